from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from neuropipe.config import Settings, load_settings
from neuropipe.errors import NeuroPipeError, UnknownProcessKind
from neuropipe.log import configure_logging
from neuropipe.pipeline.pipeline import Pipeline
from neuropipe.pipeline.report import history_rows, history_to_csv, render_report
from neuropipe.process.catalog import FamilyType, format_supported_kinds, lookup_kind, supported_kinds
from neuropipe.process.importers import quick_import
from neuropipe.process.parameters import ParameterSchema
from neuropipe.process.process import Process

app = typer.Typer(help="neuropipe CLI: build and audit EEG/MEG pipelines")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML settings file (default: $NEUROPIPE_CONFIG)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at INFO level"),
):
    try:
        settings = load_settings(config)
    except (ValueError, NeuroPipeError) as e:
        raise typer.BadParameter(str(e), param_hint="--config")
    configure_logging("INFO" if verbose else settings.log_level)
    ctx.obj = settings


# -----------------------------
# helpers
# -----------------------------

def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else Settings()


@contextmanager
def _domain_errors():
    try:
        yield
    except (NeuroPipeError, ValueError, TypeError, FileNotFoundError) as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


def _coerce_value(v: str) -> Any:
    try:
        return json.loads(v)
    except Exception:
        return v


def _parse_sets(pairs: Optional[List[str]]) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    for kv in pairs or []:
        if "=" not in kv:
            raise typer.BadParameter(f"--set expects key=value, got: {kv}")
        k, v = kv.split("=", 1)
        params[k.strip()] = _coerce_value(v.strip())
    return params


def _save(pipeline: Pipeline, path: Path) -> Path:
    """Save ``pipeline`` to ``path``, updating folder/name/extension only where they differ."""
    target = Path(path).expanduser().resolve()
    if pipeline.folder is None or Path(pipeline.folder).resolve() != target.parent:
        pipeline.folder = target.parent
    if pipeline.name != target.stem:
        pipeline.name = target.stem
    if pipeline.extension != target.suffix.lower():
        pipeline.extension = target.suffix
    return pipeline.save()


# -----------------------------
# commands
# -----------------------------

@app.command()
def new(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Pipeline name"),
    folder: Optional[Path] = typer.Option(None, "--folder", "-f", help="Folder to save into (default: settings or cwd)"),
    family: Optional[str] = typer.Option(None, "--family", help="EEG | MEG"),
    extension: Optional[str] = typer.Option(None, "--extension", "-e", help=".json | .pkl"),
    doc: str = typer.Option("", "--doc", help="Pipeline documentation"),
):
    """Create an empty pipeline and save it."""
    settings = _settings(ctx)
    folder = folder or settings.default_folder or Path.cwd()
    ext = extension or settings.default_extension
    with _domain_errors():
        pipeline = Pipeline()
        pipeline.family = family or settings.default_family
        pipeline.documentation = doc
        path = _save(pipeline, Path(folder) / f"{name}{ext if ext.startswith('.') else '.' + ext}")
    typer.secho(f"Wrote {path}", fg=typer.colors.GREEN)


@app.command()
def show(
    pipeline_path: Path = typer.Argument(..., help="Pipeline file (.json or .pkl)"),
    docs: bool = typer.Option(False, "--docs", help="Print documentation instead of the summary"),
):
    with _domain_errors():
        pipeline = Pipeline.load(pipeline_path)
    typer.echo(pipeline.format_documentation() if docs else pipeline.format_summary())


@app.command()
def kinds(
    family: Optional[str] = typer.Option(None, "--family", help="Only this family"),
):
    """List catalog kinds and their parameters."""
    with _domain_errors():
        families = [FamilyType.parse(family)] if family else list(FamilyType)
    for fam in families:
        typer.echo(format_supported_kinds(fam))
        typer.echo("")
        for display_name, kind in supported_kinds(fam).items():
            fields = ParameterSchema.from_annotations(kind.schema).format_fields(owner=display_name)
            typer.echo(f"{display_name} ({kind.function_name})")
            for line in fields.splitlines():
                typer.echo(f"    {line}")
        typer.echo("")


@app.command()
def add(
    ctx: typer.Context,
    pipeline_path: Path = typer.Argument(..., help="Pipeline file"),
    kind: str = typer.Argument(..., help="Process display name, e.g. 'Notch Filter'"),
    position: Optional[int] = typer.Option(None, "--position", "-p", help="1-based position (default: append)"),
    set: List[str] = typer.Option(None, "--set", "-s", help="key=value (repeatable, JSON values)"),
):
    """Insert a catalog process."""
    params = _parse_sets(set)
    with _domain_errors():
        pipeline = Pipeline.load(pipeline_path)
        family = pipeline.family or _settings(ctx).default_family
        if lookup_kind(kind, family) is None:
            raise UnknownProcessKind(
                f"'{kind}' is not a known process.\n\n{format_supported_kinds(family)}"
            )
        process = Process(kind, family)
        if params:
            process.set_parameters(**params)
        pipeline.insert(process, position)
        path = _save(pipeline, pipeline_path)
    typer.secho(f"Added '{process.name}' to {path}", fg=typer.colors.GREEN)


@app.command()
def remove(
    pipeline_path: Path = typer.Argument(..., help="Pipeline file"),
    pos: int = typer.Argument(..., help="1-based position"),
):
    with _domain_errors():
        pipeline = Pipeline.load(pipeline_path)
        process = pipeline.delete(pos)
        _save(pipeline, pipeline_path)
    typer.secho(f"Removed '{process.name}'", fg=typer.colors.GREEN)


@app.command()
def move(
    pipeline_path: Path = typer.Argument(..., help="Pipeline file"),
    old: int = typer.Argument(..., help="Current position"),
    new: int = typer.Argument(..., help="Target position"),
):
    with _domain_errors():
        pipeline = Pipeline.load(pipeline_path)
        pipeline.move(old, new)
        _save(pipeline, pipeline_path)
    typer.secho(f"Moved {old} -> {new}", fg=typer.colors.GREEN)


@app.command()
def swap(
    pipeline_path: Path = typer.Argument(..., help="Pipeline file"),
    pos1: int = typer.Argument(...),
    pos2: int = typer.Argument(...),
):
    with _domain_errors():
        pipeline = Pipeline.load(pipeline_path)
        pipeline.swap(pos1, pos2)
        _save(pipeline, pipeline_path)
    typer.secho(f"Swapped {pos1} <-> {pos2}", fg=typer.colors.GREEN)


@app.command("set-param")
def set_param(
    pipeline_path: Path = typer.Argument(..., help="Pipeline file"),
    pos: int = typer.Argument(..., help="1-based position of the process"),
    set: List[str] = typer.Option(None, "--set", "-s", help="key=value (repeatable, JSON values)"),
):
    """Assign parameters of one process."""
    params = _parse_sets(set)
    if not params:
        raise typer.BadParameter("Give at least one --set key=value")
    with _domain_errors():
        pipeline = Pipeline.load(pipeline_path)
        process = pipeline.process_at(pos)
        process.set_parameters(**params)
        _save(pipeline, pipeline_path)
    typer.echo(process.format_summary())


@app.command()
def history(
    pipeline_path: Path = typer.Argument(..., help="Pipeline file"),
    csv: Optional[Path] = typer.Option(None, "--csv", help="Write the history table to this CSV"),
):
    with _domain_errors():
        pipeline = Pipeline.load(pipeline_path)
    if csv:
        history_to_csv(pipeline.history, csv)
        typer.secho(f"Wrote {csv} ({len(pipeline.history)} rows)", fg=typer.colors.GREEN)
        return
    for i, row in enumerate(history_rows(pipeline.history), start=1):
        extras = [str(v) for k, v in row.items() if k.startswith("extra_")]
        typer.echo(f"{i:3d}  {row['timestamp']}  {row['actor']}  {' '.join(extras)}".rstrip())


@app.command()
def report(
    pipeline_path: Path = typer.Argument(..., help="Pipeline file"),
    out: Path = typer.Argument(..., help="Markdown file to write"),
):
    """Render an audit report."""
    with _domain_errors():
        pipeline = Pipeline.load(pipeline_path)
    render_report(pipeline, out)
    typer.secho(f"Wrote {out}", fg=typer.colors.GREEN)


@app.command()
def convert(
    pipeline_path: Path = typer.Argument(..., help="Pipeline file"),
    to: str = typer.Option(..., "--to", help=".json | .pkl"),
):
    """Re-save a pipeline in the other encoding, next to the source file."""
    with _domain_errors():
        pipeline = Pipeline.load(pipeline_path)
        ext = to if to.startswith(".") else "." + to
        path = _save(pipeline, Path(pipeline_path).with_suffix(ext.lower()))
    typer.secho(f"Wrote {path}", fg=typer.colors.GREEN)


@app.command("quick-import")
def quick_import_cmd(
    ctx: typer.Context,
    pipeline_path: Path = typer.Argument(..., help="Pipeline file"),
    pos: int = typer.Argument(..., help="Position of the 'Review Raw Files' process"),
    folder: Path = typer.Argument(..., help="Folder holding one sub-folder per subject"),
    extension: Optional[str] = typer.Option(None, "--extension", "-e", help="Raw file extension"),
):
    with _domain_errors():
        pipeline = Pipeline.load(pipeline_path)
        process = pipeline.process_at(pos)
        quick_import(process, folder, extension or _settings(ctx).import_extension)
        _save(pipeline, pipeline_path)
    typer.echo(process.format_summary())


if __name__ == "__main__":
    app()

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
from jinja2 import Environment, FileSystemLoader

from neuropipe.history import HistoryLog
from neuropipe.process.process import Process
from neuropipe.timeutils import format_date

TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"
REPORT_TEMPLATE = "report.md.j2"


def _describe_extra(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Process):
        return f"<process {value.name}>"
    text = repr(value)
    return text if len(text) <= 80 else text[:77] + "..."


def history_rows(log: HistoryLog) -> List[Dict[str, Any]]:
    rows = []
    for entry in log:
        row = {"actor": entry.actor, "timestamp": entry.timestamp}
        for i, extra in enumerate(entry.extras, start=1):
            row[f"extra_{i}"] = _describe_extra(extra)
        rows.append(row)
    return rows


def history_frame(log: HistoryLog) -> pd.DataFrame:
    df = pd.DataFrame(history_rows(log))
    if df.empty:
        return pd.DataFrame(columns=["actor", "timestamp"])
    return df


def history_to_csv(log: HistoryLog, out_path: Path) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    history_frame(log).to_csv(out_path, index=False)
    return out_path


def render_report(pipeline, out_path: Path) -> Path:
    """Render a Markdown audit report of ``pipeline`` to ``out_path``."""
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    tpl = env.get_template(REPORT_TEMPLATE)

    ctx = {
        "name": pipeline.name or "(unnamed)",
        "family": pipeline.family.value if pipeline.family else "",
        "date": format_date(pipeline.date),
        "documentation": pipeline.documentation,
        "processes": [
            {
                "position": i,
                "name": p.name,
                "function_name": p.function_name or "",
                "parameters": p.parameters.format_values(),
                "documentation": p.documentation,
            }
            for i, p in enumerate(pipeline.processes, start=1)
        ],
        "history": history_rows(pipeline.history),
    }

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(tpl.render(**ctx))
    return out_path

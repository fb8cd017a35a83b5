# neuropipe/pipeline/serializers.py

"""
Binary and text encodings of a pipeline.

Both encodings carry the same logical record::

    {name, folder, extension, date, family, processes, history, documentation}

* ``.pkl`` (binary): every field verbatim, including Process objects with
  their backend info and history entries with their snapshots.
* ``.json`` (text): backend info is stripped from processes; snapshots and
  non-scalar extras are dropped from history; the history table is
  transposed and written as one flat column, with the row width next to
  it so rows can be cut back apart.
"""

from __future__ import annotations

import json
import logging
import pickle
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from neuropipe.errors import PersistenceError, UnsupportedFormat
from neuropipe.history import HistoryLog, flatten_column_major, transpose
from neuropipe.schemas.models import PipelineDocument, ProcessDocument

logger = logging.getLogger(__name__)

BINARY_EXTENSION = ".pkl"
TEXT_EXTENSION = ".json"
SUPPORTED_EXTENSIONS = (BINARY_EXTENSION, TEXT_EXTENSION)


def check_extension(extension: Optional[str]) -> str:
    """Normalise ``extension`` (leading dot, lower case) or raise UnsupportedFormat."""
    ext = (extension or "").strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormat(
            f"The extension of the pipeline is incorrect ({extension}). "
            "Here are the supported extensions:\n\n" + "\n".join(SUPPORTED_EXTENSIONS)
        )
    return ext


def _is_text_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


# ---------------------------------------------------------------------------
# Binary
# ---------------------------------------------------------------------------

def encode_binary(pipeline) -> bytes:
    return pickle.dumps(pipeline.to_record(), protocol=pickle.HIGHEST_PROTOCOL)


def decode_binary(data: bytes) -> Dict[str, Any]:
    record = pickle.loads(data)
    if not isinstance(record, dict):
        raise ValueError("Binary pipeline file does not hold a pipeline record")
    return record


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

def encode_text(pipeline) -> Dict[str, Any]:
    processes = [
        ProcessDocument(**p.clone(strip_backend=True).to_record())
        for p in pipeline.processes
    ]

    # row-major table without snapshots, then transposed; walking the
    # transposed table column by column gives one flat column of cells
    table = pipeline.history.to_table(include_snapshot=False, keep=_is_text_scalar)
    history = flatten_column_major(transpose(table))

    record = pipeline.to_record()
    doc = PipelineDocument(
        name=record["name"],
        folder=record["folder"],
        extension=record["extension"],
        date=record["date"],
        family=record["family"],
        processes=processes,
        history=history,
        history_width=len(table[0]) if table else 0,
        documentation=record["documentation"],
    )
    return doc.model_dump(mode="json")


def decode_text(data: Mapping[str, Any]) -> Dict[str, Any]:
    try:
        doc = PipelineDocument.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid pipeline document: {e}") from e

    return {
        "name": doc.name,
        "folder": doc.folder,
        "extension": doc.extension,
        "date": doc.date,
        "family": doc.family,
        "processes": [p.model_dump() for p in doc.processes],
        "history": HistoryLog.from_flat(doc.history, width=doc.history_width),
        "documentation": doc.documentation,
    }


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def write_pipeline(pipeline, path: Path) -> Path:
    path = Path(path)
    ext = check_extension(path.suffix)
    tmp = path.with_name(path.name + ".tmp")

    # encode fully before touching the disk
    try:
        if ext == BINARY_EXTENSION:
            payload = encode_binary(pipeline)
        else:
            payload = json.dumps(encode_text(pipeline), indent=2).encode("utf-8")
    except (pickle.PicklingError, AttributeError, TypeError, ValueError) as e:
        raise PersistenceError(f"Cannot encode pipeline '{pipeline.name}' as {ext}: {e}") from e

    try:
        tmp.write_bytes(payload)
        tmp.replace(path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise PersistenceError(f"Cannot write {path}: {e}") from e
    logger.debug("Wrote %s", path)
    return path


def read_record(path: Path) -> Dict[str, Any]:
    path = Path(path)
    ext = check_extension(path.suffix)

    if ext == BINARY_EXTENSION:
        return decode_binary(path.read_bytes())

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{path}: invalid JSON") from e
    return decode_text(data)

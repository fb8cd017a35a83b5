# neuropipe/errors.py

from __future__ import annotations

from typing import Dict, Optional


class NeuroPipeError(Exception):
    """Base class for every error raised by neuropipe."""


# ---------------------------------------------------------------------------
# Process / parameter schema
# ---------------------------------------------------------------------------

class ProcessError(NeuroPipeError):
    pass


class _ParameterError(ProcessError):
    """
    Schema violation on parameter assignment.

    ``fields`` holds the full {name: type} table of the process so callers
    can show what would have been accepted.
    """

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None) -> None:
        self.fields = dict(fields or {})
        if self.fields:
            table = "\n".join(f"{k}: [{v}]" for k, v in self.fields.items())
            message = f"{message}\n\nHere are the possible fields:\n\n{table}"
        super().__init__(message)


class InvalidParameterName(_ParameterError, KeyError):
    def __str__(self) -> str:
        # KeyError would repr() the message
        return Exception.__str__(self)


class InvalidParameterType(_ParameterError, TypeError):
    pass


class UnknownProcessKind(ProcessError):
    pass


class BackendFailure(ProcessError):
    """Error raised by the processing backend while running a process."""

    def __init__(self, message: str, process_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.process_name = process_name


# ---------------------------------------------------------------------------
# Pipeline structure
# ---------------------------------------------------------------------------

class PipelineError(NeuroPipeError):
    pass


class DuplicateProcess(PipelineError):
    pass


class FamilyMismatch(PipelineError):
    pass


class PositionOutOfRange(PipelineError, IndexError):
    pass


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

class PersistenceError(NeuroPipeError):
    pass


class UnsupportedFormat(PersistenceError):
    pass


class MissingFolder(PersistenceError):
    pass


class MissingName(PersistenceError):
    pass

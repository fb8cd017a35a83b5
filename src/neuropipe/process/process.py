# neuropipe/process/process.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from neuropipe.backend import Backend
from neuropipe.errors import BackendFailure, NeuroPipeError, UnknownProcessKind
from neuropipe.history import PROCESS_ACTOR_PREFIX, HistoryEntry, HistoryLog
from neuropipe.snapshot import ProcessSnapshot
from neuropipe.process.catalog import (
    IMPORT_FUNCTION_NAME,
    FamilyType,
    ProcessKind,
    is_general,
    lookup_kind,
)
from neuropipe.process.parameters import ParameterSchema, as_row
from neuropipe.timeutils import time_now

logger = logging.getLogger(__name__)


class Process:
    """
    One configured processing step.

    A process is identified by its family, its display name and its
    parameter values. Backend info (the opaque handle a processing backend
    may attach) and history are not part of that identity.

    Processes whose display name is in the catalog get their parameter slots
    from it; any other name gives a "non-general" process whose slots come
    from ``schema`` (name -> type annotation) or stay empty.
    """

    def __init__(
        self,
        name: str,
        family: FamilyType | str,
        parameters: Optional[Mapping[str, Any]] = None,
        schema: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ValueError("A process needs a non-empty name")

        self._name = name.strip()
        self._family = FamilyType.parse(family)
        self._kind: Optional[ProcessKind] = lookup_kind(self._name, self._family)

        if self._kind is not None:
            if schema:
                raise ValueError(f"'{self._name}' has a fixed schema; 'schema' is not allowed")
            self._function_name: Optional[str] = self._kind.function_name
            self._parameters = ParameterSchema.from_annotations(self._kind.schema)
        else:
            self._function_name = None
            self._parameters = ParameterSchema.from_annotations(schema or {})

        self.date = time_now()
        self._documentation = ""
        self.backend_info: Any = None
        self.history = HistoryLog()

        self._revision = 0
        self._snapshot: Optional[ProcessSnapshot] = None
        self._snapshot_revision = -1

        if parameters is not None:
            self.replace_parameter_set(parameters)

    # ------------------------------------------------------------------
    # Alternate constructors
    # ------------------------------------------------------------------
    @classmethod
    def from_record(cls, record: Any, family: FamilyType | str | None = None) -> "Process":
        """
        Build a process from a structural record (mapping or pydantic model).

        Matching fields are copied over; array-valued parameters are
        normalised to row orientation.
        """
        data = record.model_dump() if hasattr(record, "model_dump") else dict(record)
        if not data.get("name"):
            raise ValueError("Process record is missing 'name'")

        fam = data.get("family") or family
        if fam is None:
            raise ValueError(f"Process record '{data['name']}' has no family")

        process = cls(data["name"], fam)

        params = {k: as_row(v) for k, v in (data.get("parameters") or {}).items()}
        if process._kind is None and len(process._parameters) == 0:
            process._parameters = ParameterSchema.from_values(params)
        else:
            # saved records may carry keys the current schema no longer has
            unknown = [k for k in params if k not in process._parameters]
            if unknown:
                logger.debug("Ignoring unknown parameters of '%s': %s", process.name, ", ".join(unknown))
            process._parameters.update({k: v for k, v in params.items() if k not in unknown})

        if process._kind is None and data.get("function_name"):
            process._function_name = data["function_name"]
        if data.get("date"):
            process.date = data["date"]
        if data.get("documentation"):
            process._documentation = str(data["documentation"])
        if data.get("backend_info") is not None:
            process.backend_info = data["backend_info"]

        history = data.get("history")
        if isinstance(history, HistoryLog):
            process.history = history.copy()
        elif history:
            process.history = _history_from_rows(history)

        process._touch()
        return process

    @classmethod
    def _restore(cls, *, name, family, function_name, date, parameters,
                 documentation, history) -> "Process":
        process = cls.__new__(cls)
        process._name = name
        process._family = FamilyType.parse(family)
        process._kind = lookup_kind(name, process._family)
        process._function_name = function_name
        process._parameters = parameters
        process.date = date
        process._documentation = documentation
        process.backend_info = None
        process.history = HistoryLog(history)
        process._revision = 0
        process._snapshot = None
        process._snapshot_revision = -1
        return process

    def __getstate__(self) -> Dict[str, Any]:
        # the kind is looked up again on load; runners need not be picklable
        state = self.__dict__.copy()
        state["_kind"] = None
        return state

    def __setstate__(self, state: Dict[str, Any]) -> None:
        self.__dict__.update(state)
        self._kind = lookup_kind(self._name, self._family)

    # ------------------------------------------------------------------
    # Read-only identity
    # ------------------------------------------------------------------
    @property
    def name(self) -> str:
        return self._name

    @property
    def family(self) -> FamilyType:
        return self._family

    @property
    def function_name(self) -> Optional[str]:
        return self._function_name

    @property
    def kind(self) -> Optional[ProcessKind]:
        return self._kind

    @property
    def is_general(self) -> bool:
        return is_general(self._name)

    @property
    def is_import(self) -> bool:
        return self._function_name == IMPORT_FUNCTION_NAME

    @property
    def parameters(self) -> ParameterSchema:
        """Independent copy of the parameter schema."""
        return self._parameters.copy()

    @property
    def parameter_values(self) -> Dict[str, Any]:
        return self._parameters.values()

    def get_parameter(self, name: str) -> Any:
        return self._parameters[name]

    @property
    def documentation(self) -> str:
        return self._documentation

    @documentation.setter
    def documentation(self, documentation: str) -> None:
        if not isinstance(documentation, str):
            raise TypeError("documentation must be a string")
        self._documentation = documentation
        self._touch()

    # ------------------------------------------------------------------
    # Parameter assignment
    # ------------------------------------------------------------------
    def set_parameters(self, **pairs: Any) -> None:
        """
        Assign one or more parameters, e.g. ``set_parameters(Frequency=[60.0])``.

        Every name and every value type is checked before anything changes.
        """
        names = self._parameters.update(pairs)
        self._touch()
        self._log("set_parameters", *names)
        logger.debug("%s: set %s", self._name, ", ".join(names))

    def replace_parameter_set(self, record: Mapping[str, Any]) -> None:
        """Replace the whole parameter set; names missing from ``record`` become empty."""
        if not isinstance(record, Mapping):
            raise TypeError("record must be a mapping of parameter names to values")
        self._parameters.replace(record)
        self._touch()
        self._log("replace_parameter_set", *record.keys())
        logger.debug("%s: replaced parameter set", self._name)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def run(self, inputs: Any = None, *, backend: Backend) -> Any:
        """
        Run this step on ``backend``. The import kind returns one result per
        subject. Backend errors surface as BackendFailure.
        """
        if self._kind is None or self._kind.runner is None:
            raise UnknownProcessKind(
                f"No backend operation is registered for '{self._name}' ({self._family.value})."
            )
        try:
            return self._kind.runner(backend, self._parameters.values(), inputs)
        except NeuroPipeError:
            raise
        except Exception as exc:
            logger.error("%s failed: %s", self._name, exc)
            raise BackendFailure(f"'{self._name}' failed: {exc}", self._name) from exc

    # ------------------------------------------------------------------
    # Backend info
    # ------------------------------------------------------------------
    def drop_backend_info(self) -> None:
        self.backend_info = None

    def attach_backend_info(self, info: Any) -> None:
        self.backend_info = info

    def clone(self, strip_backend: bool = True) -> "Process":
        """Independent copy; the live process is left untouched."""
        other = Process._restore(
            name=self._name,
            family=self._family,
            function_name=self._function_name,
            date=self.date,
            parameters=self._parameters.copy(),
            documentation=self._documentation,
            history=self.history.entries,
        )
        if not strip_backend:
            other.backend_info = self.backend_info
        return other

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def _touch(self) -> None:
        self._revision += 1

    def snapshot(self) -> ProcessSnapshot:
        if self._snapshot is None or self._snapshot_revision != self._revision:
            values = self._parameters.copy()
            self._snapshot = ProcessSnapshot(
                name=self._name,
                family=self._family,
                function_name=self._function_name,
                date=self.date,
                parameters=tuple(
                    (n, values.annotation(n), values.get(n)) for n in values.names
                ),
                documentation=self._documentation,
                history=self.history.entries,
            )
            self._snapshot_revision = self._revision
        return self._snapshot

    def _log(self, operation: str, *extras: Any) -> None:
        snap = self.snapshot()
        self.history.append(f"{PROCESS_ACTOR_PREFIX}{operation}", snap, *extras)
        self._touch()

    # ------------------------------------------------------------------
    # Comparison / formatting
    # ------------------------------------------------------------------
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Process):
            return NotImplemented
        return (
            self._family == other._family
            and self._name == other._name
            and self._parameters == other._parameters
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"Process({self._name!r}, {self._family.value}, {self._parameters.values()!r})"

    def format_summary(self) -> str:
        return self._name + "\n\t\t" + "\n\t\t".join(self._parameters.format_values())

    def format_documentation(self) -> str:
        return f"{self._name}\n\t\t{self._documentation}"

    def format_fields(self) -> str:
        return self._parameters.format_fields(owner=self._name)

    def to_record(self, include_backend: bool = False) -> Dict[str, Any]:
        record = {
            "name": self._name,
            "family": self._family.value,
            "function_name": self._function_name,
            "date": self.date,
            "parameters": self._parameters.values(),
            "documentation": self._documentation,
            "history": self.history.to_table(include_snapshot=False),
        }
        if include_backend:
            record["backend_info"] = self.backend_info
        return record


def _history_from_rows(rows: List[Any]) -> HistoryLog:
    if all(isinstance(r, HistoryEntry) for r in rows):
        return HistoryLog(rows)
    return HistoryLog.from_table(rows, has_snapshot=False)

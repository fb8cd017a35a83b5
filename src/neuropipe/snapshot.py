# neuropipe/snapshot.py

"""
Immutable views of processes and pipelines stored in history entries.

A ProcessSnapshot is cached on its Process until the process changes, so
consecutive pipeline snapshots share every process that did not move.
Snapshots never carry backend info.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class ProcessSnapshot:
    name: str
    family: Any
    function_name: Optional[str]
    date: str
    parameters: Tuple[Tuple[str, Any, Any], ...]   # (name, annotation, value)
    documentation: str = ""
    history: tuple = ()

    @property
    def parameter_values(self) -> dict:
        return {name: copy.deepcopy(value) for name, _, value in self.parameters}

    def restore(self):
        """Return a new live Process equal to the snapshotted one."""
        from neuropipe.process.parameters import ParameterSchema, ParameterSlot
        from neuropipe.process.process import Process

        schema = ParameterSchema(
            ParameterSlot(n, ann, copy.deepcopy(v)) for n, ann, v in self.parameters
        )
        return Process._restore(
            name=self.name,
            family=self.family,
            function_name=self.function_name,
            date=self.date,
            parameters=schema,
            documentation=self.documentation,
            history=self.history,
        )


@dataclass(frozen=True)
class PipelineSnapshot:
    name: Optional[str]
    folder: Optional[str]
    extension: Optional[str]
    date: Optional[str]
    family: Any
    processes: Tuple[ProcessSnapshot, ...]
    documentation: str = ""
    history_length: int = 0

    def restore(self, history=None):
        """
        Rebuild a live Pipeline. ``history`` (a HistoryLog of the original
        pipeline) is truncated to the length it had when this was taken.
        """
        from neuropipe.history import HistoryLog
        from neuropipe.pipeline.pipeline import Pipeline

        entries = list(history)[: self.history_length] if history is not None else []
        return Pipeline._restore(
            name=self.name,
            folder=self.folder,
            extension=self.extension,
            date=self.date,
            family=self.family,
            processes=[p.restore() for p in self.processes],
            documentation=self.documentation,
            history=HistoryLog(entries),
        )

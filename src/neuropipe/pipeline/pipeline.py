# neuropipe/pipeline/pipeline.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator, List, Mapping, Optional, Tuple

from neuropipe.backend import Backend
from neuropipe.errors import (
    DuplicateProcess,
    FamilyMismatch,
    MissingFolder,
    MissingName,
    PersistenceError,
    PipelineError,
    PositionOutOfRange,
)
from neuropipe.history import PIPELINE_ACTOR_PREFIX, HistoryEntry, HistoryLog
from neuropipe.pipeline import serializers
from neuropipe.process.catalog import FamilyType
from neuropipe.process.process import Process
from neuropipe.snapshot import PipelineSnapshot
from neuropipe.timeutils import format_date, time_now

logger = logging.getLogger(__name__)


def flatten_outputs(result: Any) -> Any:
    """
    Collapse a container of per-item result lists into one flat list.

    Anything that is not a list/tuple holding at least one list/tuple is
    returned unchanged.
    """
    if not isinstance(result, (list, tuple)):
        return result
    if not any(isinstance(r, (list, tuple)) for r in result):
        return result
    flat: List[Any] = []
    for r in result:
        if isinstance(r, (list, tuple)):
            flat.extend(r)
        else:
            flat.append(r)
    return flat


class Pipeline:
    """
    Ordered, family-locked sequence of processes plus its audit history.

    Positions given to structural operations are 1-based. Every structural
    mutation appends exactly one history entry holding a snapshot of the
    pipeline and a small operation-specific payload.
    """

    def __init__(self, name: Optional[str] = None) -> None:
        self._init_blank()
        self.date = time_now()
        self._log("create")
        if name:
            self.assign_file(name)

    def _init_blank(self) -> None:
        self._name: Optional[str] = None
        self._folder: Optional[str] = None
        self._extension: Optional[str] = None
        self.date: Optional[str] = None
        self._family: Optional[FamilyType] = None
        self._processes: List[Process] = []
        self._documentation = ""
        self.history = HistoryLog()

    # ------------------------------------------------------------------
    # Alternate constructors
    # ------------------------------------------------------------------
    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Pipeline":
        """
        Build a pipeline from a structural record.

        Processes may be Process objects or process records; each is added
        through insert() so family and duplicate rules still apply, and the
        insert entries are cancelled so loading leaves history as recorded.
        """
        pipeline = cls.__new__(cls)
        pipeline._init_blank()

        pipeline._name = record.get("name") or None
        pipeline._folder = record.get("folder") or None
        ext = record.get("extension")
        pipeline._extension = serializers.check_extension(ext) if ext else None
        pipeline.date = record.get("date") or time_now()
        if record.get("family"):
            pipeline._family = FamilyType.parse(record["family"])
        pipeline._documentation = record.get("documentation") or ""

        history = record.get("history")
        if isinstance(history, HistoryLog):
            pipeline.history = history.copy()
        elif history:
            pipeline.history = HistoryLog(e for e in history if isinstance(e, HistoryEntry))
        else:
            pipeline._log("create")

        for item in record.get("processes") or []:
            if isinstance(item, Process):
                process = item
            else:
                process = Process.from_record(item, family=pipeline._family)
            pipeline.insert(process)
            pipeline.history.drop_last(1)

        return pipeline

    @classmethod
    def _restore(cls, *, name, folder, extension, date, family, processes,
                 documentation, history) -> "Pipeline":
        pipeline = cls.__new__(cls)
        pipeline._init_blank()
        pipeline._name = name
        pipeline._folder = folder
        pipeline._extension = extension
        pipeline.date = date
        pipeline._family = FamilyType.parse(family) if family else None
        pipeline._processes = list(processes)
        pipeline._documentation = documentation
        pipeline.history = history
        return pipeline

    @classmethod
    def load(cls, path: Path | str) -> "Pipeline":
        path = Path(path).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"No pipeline file: {path}")

        record = serializers.read_record(path)
        pipeline = cls.from_record(record)
        pipeline._log("load", path.as_posix())
        logger.info("Loaded pipeline '%s' from %s", pipeline.name, path)
        return pipeline

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------
    @property
    def name(self) -> Optional[str]:
        return self._name

    @name.setter
    def name(self, name: str) -> None:
        if not isinstance(name, str) or not name.strip():
            raise MissingName("The pipeline name cannot be empty")
        self._name = name.strip()
        self._log("set_name", self._name)

    @property
    def folder(self) -> Optional[str]:
        return self._folder

    @folder.setter
    def folder(self, folder: Path | str) -> None:
        if not folder or not Path(folder).expanduser().is_dir():
            raise MissingFolder(f"The following path to a folder does not exist:\n\n{folder}")
        self._folder = str(Path(folder).expanduser())
        self._log("set_folder", self._folder)

    @property
    def extension(self) -> Optional[str]:
        return self._extension

    @extension.setter
    def extension(self, extension: str) -> None:
        self._extension = serializers.check_extension(extension)
        self._log("set_extension", self._extension)

    @property
    def family(self) -> Optional[FamilyType]:
        return self._family

    @family.setter
    def family(self, family: FamilyType | str) -> None:
        family = FamilyType.parse(family)
        wrong = [p.name for p in self._processes if p.family != family]
        if wrong:
            raise FamilyMismatch(
                f"Cannot set type {family.value}: the pipeline holds "
                f"{self._processes[0].family.value} processes ({', '.join(wrong)})."
            )
        self._family = family

    @property
    def documentation(self) -> str:
        return self._documentation

    @documentation.setter
    def documentation(self, documentation: str) -> None:
        if not isinstance(documentation, str):
            raise TypeError("documentation must be a string")
        self._documentation = documentation

    def assign_file(self, file: Path | str) -> None:
        """Assign name, extension and folder from a path like ``folder/name.json``."""
        if not file:
            raise MissingName("An empty file name was given")
        p = Path(file)
        self.name = p.stem
        if p.suffix:
            self.extension = p.suffix
        if str(p.parent) not in ("", "."):
            self.folder = p.parent

    @property
    def path(self) -> Optional[Path]:
        if not (self._folder and self._name and self._extension):
            return None
        return Path(self._folder) / f"{self._name}{self._extension}"

    # ------------------------------------------------------------------
    # Sequence access
    # ------------------------------------------------------------------
    @property
    def processes(self) -> Tuple[Process, ...]:
        return tuple(self._processes)

    def __len__(self) -> int:
        return len(self._processes)

    def __iter__(self) -> Iterator[Process]:
        return iter(self._processes)

    def process_at(self, pos: int) -> Process:
        self._check_positions(pos)
        return self._processes[pos - 1]

    def search(self, name: str) -> Optional[Process]:
        for process in self._processes:
            if process.name == name:
                return process
        return None

    # ------------------------------------------------------------------
    # Structural mutation
    # ------------------------------------------------------------------
    def insert(self, process: Process, position: Optional[int] = None) -> None:
        """Insert ``process`` at 1-based ``position`` (default: append)."""
        if not isinstance(process, Process):
            raise TypeError(f"Expected a Process, got {type(process).__name__}")

        for existing in self._processes:
            if existing == process:
                raise DuplicateProcess(
                    f"The pipeline already has this process:\n{process.format_summary()}"
                )

        if self._family is not None and process.family != self._family:
            raise FamilyMismatch(
                f"The process you're adding should be of type {self._family.value} "
                f"because the pipeline is of type {self._family.value} "
                f"(got {process.family.value})."
            )

        n = len(self._processes)
        if position is None or position == n + 1:
            index = n
        else:
            self._check_positions(position)
            index = position - 1

        self._processes.insert(index, process)
        if self._family is None:
            self._family = process.family

        self._log("insert", process.name, process.clone())
        logger.debug("Inserted '%s' at position %d", process.name, index + 1)

    def swap(self, pos1: int, pos2: int) -> None:
        self._check_positions(pos1, pos2)
        i, j = pos1 - 1, pos2 - 1
        self._processes[i], self._processes[j] = self._processes[j], self._processes[i]
        self._log("swap", pos1, pos2)

    def move(self, old_pos: int, new_pos: int) -> None:
        # same element, so no duplicate or family check
        self._check_positions(old_pos, new_pos)
        process = self._processes.pop(old_pos - 1)
        self._processes.insert(new_pos - 1, process)
        self._log("move", old_pos, new_pos)
        logger.debug("Moved '%s' from %d to %d", process.name, old_pos, new_pos)

    def delete(self, pos: int) -> Process:
        self._check_positions(pos)
        process = self._processes.pop(pos - 1)
        self._log("delete", process.name, process.clone())
        logger.debug("Deleted '%s' from position %d", process.name, pos)
        return process

    def clear(self) -> None:
        self._processes = []
        self._log("clear")

    def _check_positions(self, *positions: int) -> None:
        n = len(self._processes)
        for pos in positions:
            if isinstance(pos, bool) or not isinstance(pos, int):
                raise PositionOutOfRange(f"Positions must be integers, got {pos!r}")
            if pos < 1:
                raise PositionOutOfRange("The indexes must be greater than 0!")
            if pos > n:
                raise PositionOutOfRange(
                    "The indexes must be smaller than the number of processes "
                    f"(Current number of processes: {n})."
                )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def run(self, inputs: Any = None, *, backend: Backend) -> Any:
        """
        Run every process in order, feeding each output to the next step.

        History is only written once every step succeeded; a failing step
        aborts the run and no partial output is returned.
        """
        if not self._processes:
            return inputs

        steps = []
        current = inputs
        for process in self._processes:
            logger.info("Running '%s'", process.name)
            output = flatten_outputs(process.run(current, backend=backend))
            steps.append((process, current, output))
            current = output

        for process, before, after in steps:
            self._log("run", process.name, process.clone(), before, after)
        return current

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def snapshot(self, history_length: Optional[int] = None) -> PipelineSnapshot:
        return PipelineSnapshot(
            name=self._name,
            folder=self._folder,
            extension=self._extension,
            date=self.date,
            family=self._family,
            processes=tuple(p.snapshot() for p in self._processes),
            documentation=self._documentation,
            history_length=len(self.history) if history_length is None else history_length,
        )

    def _log(self, operation: str, *extras: Any) -> HistoryEntry:
        # the snapshot covers the history up to and including its own entry
        snap = self.snapshot(history_length=len(self.history) + 1)
        return self.history.append(f"{PIPELINE_ACTOR_PREFIX}{operation}", snap, *extras)

    def add_to_history(self, *extras: Any, actor: Optional[str] = None) -> HistoryEntry:
        """Append a caller-labelled entry (label is prefixed with ``Pipeline.``)."""
        label = actor or "note"
        if label.startswith(PIPELINE_ACTOR_PREFIX):
            label = label[len(PIPELINE_ACTOR_PREFIX):]
        return self._log(label, *extras)

    def previous(self) -> "Pipeline":
        """Pipeline as it was before the last history entry."""
        if len(self.history) < 2:
            raise PipelineError("There is no previous state in the history")
        snap = self.history[-2].snapshot
        if snap is None:
            raise PipelineError("The previous state was not kept (text-encoded history)")
        return snap.restore(self.history)

    def drop_backend_info(self) -> None:
        for process in self._processes:
            process.drop_backend_info()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save(self) -> Path:
        if not self._folder or not Path(self._folder).is_dir():
            raise MissingFolder(
                "The pipeline does not have a folder! Assign one with "
                "pipeline.folder = '/path/to/folder'."
            )
        if not self._name:
            raise MissingName(
                "The pipeline does not have a name! Assign one with pipeline.name = 'MyPipeline'."
            )
        ext = serializers.check_extension(self._extension)

        path = Path(self._folder) / f"{self._name}{ext}"
        # the written file holds its own save entry
        self._log("save", path.as_posix())
        try:
            serializers.write_pipeline(self, path)
        except PersistenceError:
            self.history.drop_last(1)
            raise
        logger.info("Saved pipeline '%s' to %s", self._name, path)
        return path

    def to_record(self) -> dict:
        return {
            "name": self._name,
            "folder": self._folder,
            "extension": self._extension,
            "date": self.date,
            "family": self._family.value if self._family else None,
            "processes": list(self._processes),
            "history": self.history,
            "documentation": self._documentation,
        }

    # ------------------------------------------------------------------
    # Comparison / formatting
    # ------------------------------------------------------------------
    def __eq__(self, other: object) -> bool:
        # same type and same processes in the same order
        if not isinstance(other, Pipeline):
            return NotImplemented
        return self._family == other._family and self._processes == other._processes

    __hash__ = None

    def __repr__(self) -> str:
        fam = self._family.value if self._family else None
        return f"Pipeline(name={self._name!r}, family={fam}, processes={len(self)})"

    def format_processes(self) -> str:
        if not self._processes:
            return "The pipeline is empty"
        return "\n".join(f"{i}. {p.format_summary()}" for i, p in enumerate(self._processes, start=1))

    def format_summary(self) -> str:
        sections = [
            f"PIPELINE\n{self._name or ''}[{self._extension or ''}]",
            f"FOLDER\n{self._folder or ''}",
            f"DATE OF CREATION\n{format_date(self.date)}",
            f"TYPE\n{self._family.value if self._family else ''}",
            f"NUMBER OF PROCESS\n{len(self._processes)}",
            f"LIST OF PROCESS\n{self.format_processes()}",
        ]
        return "\n\n".join(sections)

    def format_documentation(self) -> str:
        docs = "\n\n".join(p.format_documentation() for p in self._processes)
        return f"PIPELINE\n\t\t{self._documentation}\n\n{docs}"

# neuropipe/history.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence

from neuropipe.timeutils import time_now

PIPELINE_ACTOR_PREFIX = "Pipeline."
PROCESS_ACTOR_PREFIX = "Process."
CREATION_ACTOR = "Pipeline.create"


def is_pipeline_actor(cell: Any) -> bool:
    return isinstance(cell, str) and cell.startswith(PIPELINE_ACTOR_PREFIX)


@dataclass(frozen=True)
class HistoryEntry:
    """
    One audit row: who changed the owner, when, the owner's state at that
    moment, and operation-specific extras.
    """

    actor: str
    timestamp: str
    snapshot: Any = None
    extras: tuple = field(default_factory=tuple)

    def row(self) -> List[Any]:
        return [self.actor, self.timestamp, self.snapshot, *self.extras]


class HistoryLog:
    """
    Append-only audit trail shared by processes and pipelines.

    The only removal is drop_last(), used to cancel an entry that an outer
    operation is about to log again with a richer payload.
    """

    def __init__(self, entries: Iterable[HistoryEntry] = ()) -> None:
        self._entries: List[HistoryEntry] = list(entries)

    # ------------------------------------------------------------------
    def append(self, actor: str, snapshot: Any = None, *extras: Any,
               timestamp: Optional[str] = None) -> HistoryEntry:
        entry = HistoryEntry(
            actor=actor,
            timestamp=timestamp or time_now(),
            snapshot=snapshot,
            extras=tuple(extras),
        )
        self._entries.append(entry)
        return entry

    def extend(self, entries: Iterable[HistoryEntry]) -> None:
        self._entries.extend(entries)

    def drop_last(self, n: int = 1) -> None:
        if n < 0:
            raise ValueError("n must be >= 0")
        if n and self._entries:
            del self._entries[-n:]

    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    def __getitem__(self, index):
        return self._entries[index]

    @property
    def last(self) -> Optional[HistoryEntry]:
        return self._entries[-1] if self._entries else None

    @property
    def entries(self) -> tuple:
        return tuple(self._entries)

    def copy(self) -> "HistoryLog":
        # entries are immutable, sharing them is safe
        return HistoryLog(self._entries)

    def __repr__(self) -> str:
        return f"HistoryLog({len(self)} entries)"

    # ------------------------------------------------------------------
    # Tabular views
    # ------------------------------------------------------------------
    def to_table(self, include_snapshot: bool = True,
                 keep: Optional[Callable[[Any], bool]] = None) -> List[List[Any]]:
        """
        Row-major table ``[actor, timestamp, (snapshot), *extras]``, padded
        with None to the widest row. ``keep`` filters extras.
        """
        rows = []
        for e in self._entries:
            extras = [x for x in e.extras if keep(x)] if keep else list(e.extras)
            head = [e.actor, e.timestamp] + ([e.snapshot] if include_snapshot else [])
            rows.append(head + extras)
        width = max((len(r) for r in rows), default=0)
        return [r + [None] * (width - len(r)) for r in rows]

    @classmethod
    def from_table(cls, rows: Iterable[Sequence[Any]], has_snapshot: bool = True) -> "HistoryLog":
        entries = []
        for row in rows:
            row = _strip_padding(list(row))
            if not row:
                continue
            actor, timestamp = row[0], row[1] if len(row) > 1 else None
            if has_snapshot:
                snapshot = row[2] if len(row) > 2 else None
                extras = row[3:]
            else:
                snapshot, extras = None, row[2:]
            entries.append(HistoryEntry(actor, timestamp, snapshot, tuple(extras)))
        return cls(entries)

    @classmethod
    def from_flat(cls, cells: Iterable[Any],
                  is_row_start: Callable[[Any], bool] = is_pipeline_actor,
                  width: Optional[int] = None) -> "HistoryLog":
        """
        Rebuild rows from a flat column of cells (text encoding).

        With ``width`` the cells are cut into rows of that many cells. Older
        documents carry no width; there a new row starts whenever a cell
        names a pipeline actor and the cells that follow are folded into
        that row as timestamp then extras. Trailing padding is dropped.
        """
        cells = list(cells)
        rows: List[List[Any]] = []
        if width:
            rows = [cells[i:i + width] for i in range(0, len(cells), width)]
            return cls.from_table(rows, has_snapshot=False)

        for cell in cells:
            if is_row_start(cell) or not rows:
                rows.append([cell])
            else:
                rows[-1].append(cell)
        return cls.from_table(rows, has_snapshot=False)


def transpose(table: Sequence[Sequence[Any]]) -> List[List[Any]]:
    if not table:
        return []
    return [list(col) for col in zip(*table)]


def flatten_column_major(table: Sequence[Sequence[Any]]) -> List[Any]:
    if not table:
        return []
    n_rows, n_cols = len(table), len(table[0])
    return [table[r][c] for c in range(n_cols) for r in range(n_rows)]


def _strip_padding(row: List[Any]) -> List[Any]:
    while row and row[-1] is None:
        row.pop()
    return row

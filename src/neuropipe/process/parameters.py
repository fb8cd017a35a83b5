# neuropipe/process/parameters.py

from __future__ import annotations

import copy
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

import numpy as np
from pydantic import TypeAdapter, ValidationError

from neuropipe.errors import InvalidParameterName, InvalidParameterType


# ---------------------------------------------------------------------------
# Type helpers
# ---------------------------------------------------------------------------

@lru_cache(maxsize=None)
def _adapter(annotation: Any) -> TypeAdapter:
    return TypeAdapter(annotation)


def type_name(annotation: Any) -> str:
    if annotation is Any:
        return "any"
    if isinstance(annotation, type):
        return annotation.__name__
    return str(annotation).replace("typing.", "")


def matches(annotation: Any, value: Any) -> bool:
    """
    Strict type check of ``value`` against a slot annotation.

    ``None`` is the empty value and always matches.
    """
    if value is None or annotation is Any:
        return True
    try:
        _adapter(annotation).validate_python(value, strict=True)
    except ValidationError:
        return False
    return True


def as_row(value: Any) -> Any:
    """
    Normalise array-valued parameters to plain row-oriented Python values.

    A column array of shape (n, 1) becomes a flat list of n items; numpy
    scalars become Python scalars.
    """
    if isinstance(value, np.ndarray):
        if value.ndim == 2 and value.shape[1] == 1:
            value = value.ravel()
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (list, tuple)):
        return [as_row(v) for v in value]
    return value


def infer_annotation(value: Any) -> Any:
    if value is None:
        return Any
    return type(value)


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

@dataclass
class ParameterSlot:
    name: str
    annotation: Any = Any
    value: Any = None

    @property
    def is_empty(self) -> bool:
        return self.value is None


class ParameterSchema:
    """
    Named, typed parameter slots of a process.

    The set of names is fixed when the schema is built; later assignments
    may only change values, and only with values matching the slot type.
    """

    def __init__(self, slots: Iterable[ParameterSlot] = ()) -> None:
        self._slots: Dict[str, ParameterSlot] = {}
        for slot in slots:
            if slot.name in self._slots:
                raise ValueError(f"Duplicate parameter name '{slot.name}'")
            self._slots[slot.name] = slot

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def from_annotations(cls, annotations: Iterable[tuple] | Mapping[str, Any]) -> "ParameterSchema":
        items = annotations.items() if isinstance(annotations, Mapping) else annotations
        return cls(ParameterSlot(name, ann) for name, ann in items)

    @classmethod
    def from_values(cls, values: Mapping[str, Any]) -> "ParameterSchema":
        """Slot types are taken from the first value seen for each name."""
        slots = []
        for name, value in values.items():
            value = as_row(value)
            slots.append(ParameterSlot(name, infer_annotation(value), copy.deepcopy(value)))
        return cls(slots)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def names(self) -> List[str]:
        return list(self._slots)

    def __contains__(self, name: object) -> bool:
        return name in self._slots

    def __iter__(self) -> Iterator[str]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __getitem__(self, name: str) -> Any:
        if name not in self._slots:
            raise InvalidParameterName(f"Unknown parameter '{name}'.", self.field_table())
        return self._slots[name].value

    def get(self, name: str, default: Any = None) -> Any:
        slot = self._slots.get(name)
        return default if slot is None else slot.value

    def annotation(self, name: str) -> Any:
        return self._slots[name].annotation

    def values(self) -> Dict[str, Any]:
        return {name: copy.deepcopy(slot.value) for name, slot in self._slots.items()}

    def field_table(self) -> Dict[str, str]:
        return {name: type_name(slot.annotation) for name, slot in self._slots.items()}

    # ------------------------------------------------------------------
    # Validation / mutation
    # ------------------------------------------------------------------
    def validate(self, pairs: Mapping[str, Any]) -> None:
        """Check every name and every value type; raise on the first problem set."""
        unknown = [name for name in pairs if name not in self._slots]
        if unknown:
            raise InvalidParameterName(
                "Wrong field name(s): " + ", ".join(unknown) + ".",
                self.field_table(),
            )

        wrong = [
            f"'{name}' must be {type_name(self._slots[name].annotation)}, "
            f"got {type(value).__name__}"
            for name, value in pairs.items()
            if not matches(self._slots[name].annotation, value)
        ]
        if wrong:
            raise InvalidParameterType(
                "Wrong value class: " + "; ".join(wrong) + ".",
                self.field_table(),
            )

    def update(self, pairs: Mapping[str, Any]) -> List[str]:
        self.validate(pairs)
        for name, value in pairs.items():
            self._slots[name].value = copy.deepcopy(value)
        return list(pairs)

    def replace(self, record: Mapping[str, Any]) -> List[str]:
        """Assign the whole set at once; names absent from ``record`` become empty."""
        self.validate(record)
        for name, slot in self._slots.items():
            slot.value = copy.deepcopy(record.get(name))
        return self.names

    def copy(self) -> "ParameterSchema":
        return ParameterSchema(
            ParameterSlot(s.name, s.annotation, copy.deepcopy(s.value)) for s in self._slots.values()
        )

    # ------------------------------------------------------------------
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParameterSchema):
            return NotImplemented
        if self.names != other.names:
            return False
        return all(self._slots[n].value == other._slots[n].value for n in self._slots)

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        inner = ", ".join(f"{n}={s.value!r}" for n, s in self._slots.items())
        return f"ParameterSchema({inner})"

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------
    def format_fields(self, owner: Optional[str] = None) -> str:
        if not self._slots:
            return f"No fields for this process ({owner})." if owner else "No fields for this process."
        return "\n".join(f"{name}: [{tn}]" for name, tn in self.field_table().items())

    def format_values(self) -> List[str]:
        if not self._slots:
            return ["No Parameters"]
        return [f"{name}: {_format_value(slot)}" for name, slot in self._slots.items()]


def _format_value(slot: ParameterSlot) -> str:
    value = slot.value
    if value is None or (isinstance(value, (list, str)) and len(value) == 0):
        return f"[{type_name(slot.annotation)}]"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, list):
        if all(isinstance(v, str) for v in value):
            return ", ".join(value)
        if all(isinstance(v, list) for v in value):
            # nested lists are summarised by their lengths
            return " ".join(str(len(v)) for v in value)
        return " ".join(str(v) for v in value)
    return str(value)

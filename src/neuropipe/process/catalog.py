# neuropipe/process/catalog.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from neuropipe.errors import FamilyMismatch


class FamilyType(str, Enum):
    """Recording family a process or pipeline belongs to."""

    EEG = "EEG"
    MEG = "MEG"

    @classmethod
    def parse(cls, value: "FamilyType | str") -> "FamilyType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            supported = ", ".join(f.value for f in cls)
            raise FamilyMismatch(
                f"Unsupported type '{value}'. Supported types: {supported}"
            ) from None


# Runner signature: (backend, parameter values, inputs) -> result set
Runner = Callable[[Any, Mapping[str, Any], Any], Any]


@dataclass(frozen=True)
class ProcessKind:
    """
    Static description of a kind of process.

    ``schema`` is an ordered tuple of (parameter name, type annotation);
    ``runner`` forwards the parameter values to the matching backend method.
    """

    display_name: str
    function_name: str
    schema: Tuple[Tuple[str, Any], ...] = ()
    runner: Optional[Runner] = field(default=None, compare=False)

    @property
    def parameter_names(self) -> List[str]:
        return [name for name, _ in self.schema]


# ------------------------
# Backend runners
# ------------------------

def run_review_raw_files(backend, params: Mapping[str, Any], inputs=None) -> List[Any]:
    # One result per subject
    subjects = params.get("Subjects") or []
    raw_files = params.get("RawFiles") or []
    return [
        backend.review_raw_files(subject, raw_files[i] if i < len(raw_files) else [])
        for i, subject in enumerate(subjects)
    ]


def run_notch(backend, params: Mapping[str, Any], inputs=None):
    return backend.notch_filter(inputs, params.get("Frequency"))


def run_bandpass(backend, params: Mapping[str, Any], inputs=None):
    return backend.band_pass_filter(inputs, params.get("Frequency"))


def run_psd(backend, params: Mapping[str, Any], inputs=None):
    return backend.power_spectrum_density(inputs, params.get("WindowLength"))


def run_ica(backend, params: Mapping[str, Any], inputs=None):
    return backend.ica(inputs, params.get("NumberOfComponents"))


def run_export_bids(backend, params: Mapping[str, Any], inputs=None):
    return backend.convert_to_bids(inputs, params.get("Folder"), params.get("DataFileFormat"))


# ------------------------
# General kinds (shared by EEG and MEG)
# ------------------------

REVIEW_RAW_FILES = ProcessKind(
    display_name="Review Raw Files",
    function_name="process_import_data_raw",
    schema=(("Subjects", List[str]), ("RawFiles", List[List[str]])),
    runner=run_review_raw_files,
)

NOTCH_FILTER = ProcessKind(
    display_name="Notch Filter",
    function_name="process_notch",
    schema=(("Frequency", List[float]),),
    runner=run_notch,
)

BAND_PASS_FILTER = ProcessKind(
    display_name="Band-Pass Filter",
    function_name="process_bandpass",
    schema=(("Frequency", List[float]),),
    runner=run_bandpass,
)

POWER_SPECTRUM_DENSITY = ProcessKind(
    display_name="Power Spectrum Density",
    function_name="process_psd",
    schema=(("WindowLength", float),),
    runner=run_psd,
)

ICA = ProcessKind(
    display_name="ICA",
    function_name="process_ica",
    schema=(("NumberOfComponents", int),),
    runner=run_ica,
)

EXPORT_TO_BIDS = ProcessKind(
    display_name="Export To BIDS",
    function_name="process_export_bids",
    schema=(("Folder", str), ("DataFileFormat", str)),
    runner=run_export_bids,
)

GENERAL_KINDS: Dict[str, ProcessKind] = {
    k.display_name: k
    for k in (
        REVIEW_RAW_FILES,
        NOTCH_FILTER,
        BAND_PASS_FILTER,
        POWER_SPECTRUM_DENSITY,
        ICA,
        EXPORT_TO_BIDS,
    )
}

IMPORT_FUNCTION_NAME = REVIEW_RAW_FILES.function_name

# Family-specific kinds, filled by register_kind()
FAMILY_KINDS: Dict[FamilyType, Dict[str, ProcessKind]] = {f: {} for f in FamilyType}


def register_kind(kind: ProcessKind, family: FamilyType | str) -> ProcessKind:
    """Add a family-specific kind. General display names cannot be shadowed."""
    family = FamilyType.parse(family)
    if kind.display_name in GENERAL_KINDS:
        raise ValueError(f"'{kind.display_name}' is already a general process")
    FAMILY_KINDS[family][kind.display_name] = kind
    return kind


def unregister_kind(display_name: str, family: FamilyType | str) -> None:
    FAMILY_KINDS[FamilyType.parse(family)].pop(display_name, None)


def lookup_kind(display_name: str, family: FamilyType | str) -> Optional[ProcessKind]:
    name = display_name.strip()
    if name in GENERAL_KINDS:
        return GENERAL_KINDS[name]
    return FAMILY_KINDS[FamilyType.parse(family)].get(name)


def is_general(display_name: str) -> bool:
    return display_name.strip() in GENERAL_KINDS


def supported_kinds(family: FamilyType | str) -> Dict[str, ProcessKind]:
    family = FamilyType.parse(family)
    return {**FAMILY_KINDS[family], **GENERAL_KINDS}


def format_supported_kinds(family: FamilyType | str) -> str:
    family = FamilyType.parse(family)
    specific = "\n".join(FAMILY_KINDS[family]) or "(none)"
    general = "\n".join(GENERAL_KINDS)
    return f"{family.value} PROCESSES:\n{specific}\n\nGENERAL PROCESSES:\n{general}"

"""
Process kinds, parameter schemas and processes.

Exports the public API:
- Process
- ParameterSchema
- FamilyType, ProcessKind and the catalog helpers
- quick_import
"""
from .catalog import (
    FamilyType,
    ProcessKind,
    GENERAL_KINDS,
    register_kind,
    unregister_kind,
    lookup_kind,
    supported_kinds,
)
from .parameters import ParameterSchema, ParameterSlot
from .process import Process
from .importers import quick_import

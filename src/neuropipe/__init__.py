"""
neuropipe: build, audit and persist EEG/MEG processing pipelines.
"""
from .process import FamilyType, Process, ProcessKind, register_kind, quick_import
from .pipeline import Pipeline
from .history import HistoryEntry, HistoryLog
from . import errors

__version__ = "0.1.0"

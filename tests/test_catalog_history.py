from dataclasses import FrozenInstanceError

import pytest

from neuropipe import HistoryLog, Process
from neuropipe.errors import FamilyMismatch
from neuropipe.history import flatten_column_major, transpose
from neuropipe.process.catalog import (
    GENERAL_KINDS,
    FamilyType,
    ProcessKind,
    format_supported_kinds,
    lookup_kind,
    register_kind,
    supported_kinds,
    unregister_kind,
)


# -------------------------------------------------------
# Catalog
# -------------------------------------------------------

def test_general_kinds_are_shared():
    for fam in FamilyType:
        assert set(GENERAL_KINDS) <= set(supported_kinds(fam))
    assert lookup_kind("ICA", "MEG") is lookup_kind("ICA", "EEG")


def test_family_parse():
    assert FamilyType.parse(" meg ") is FamilyType.MEG
    with pytest.raises(FamilyMismatch):
        FamilyType.parse("fMRI")


def test_register_family_kind():
    kind = ProcessKind("Head Position", "process_head_position", (("Rate", float),))
    register_kind(kind, "MEG")
    try:
        assert lookup_kind("Head Position", "MEG") is kind
        assert lookup_kind("Head Position", "EEG") is None
        assert "Head Position" in format_supported_kinds("MEG")

        p = Process("Head Position", "MEG")
        assert p.function_name == "process_head_position"
        assert not p.is_general
    finally:
        unregister_kind("Head Position", "MEG")
    assert lookup_kind("Head Position", "MEG") is None


def test_general_kind_cannot_be_shadowed():
    with pytest.raises(ValueError):
        register_kind(ProcessKind("ICA", "my_ica"), "EEG")


# -------------------------------------------------------
# History log
# -------------------------------------------------------

def test_append_and_drop_last():
    log = HistoryLog()
    log.append("Pipeline.create")
    log.append("Pipeline.insert", None, "Notch Filter")
    log.append("Pipeline.insert", None, "ICA")

    log.drop_last(2)
    assert [e.actor for e in log] == ["Pipeline.create"]

    log.drop_last(0)
    assert len(log) == 1
    with pytest.raises(ValueError):
        log.drop_last(-1)


def test_to_table_pads_rows():
    log = HistoryLog()
    log.append("Pipeline.create", None, timestamp="t0")
    log.append("Pipeline.swap", None, 1, 3, timestamp="t1")

    assert log.to_table(include_snapshot=False) == [
        ["Pipeline.create", "t0", None, None],
        ["Pipeline.swap", "t1", 1, 3],
    ]


def test_flat_column_regroups_by_pipeline_actor():
    log = HistoryLog()
    log.append("Pipeline.create", None, timestamp="t0")
    log.append("Pipeline.insert", None, "Notch Filter", timestamp="t1")
    log.append("Pipeline.swap", None, 1, 2, timestamp="t2")

    flat = flatten_column_major(transpose(log.to_table(include_snapshot=False)))
    assert flat[:4] == ["Pipeline.create", "t0", None, None]

    back = HistoryLog.from_flat(flat)
    assert [(e.actor, e.timestamp, e.extras) for e in back] == [
        ("Pipeline.create", "t0", ()),
        ("Pipeline.insert", "t1", ("Notch Filter",)),
        ("Pipeline.swap", "t2", (1, 2)),
    ]
    assert all(e.snapshot is None for e in back)


def test_flat_column_with_width_keeps_actor_like_extras():
    log = HistoryLog()
    log.append("Pipeline.create", None, timestamp="t0")
    log.append("Pipeline.note", None, "Pipeline.review", timestamp="t1")
    table = log.to_table(include_snapshot=False)
    flat = flatten_column_major(transpose(table))

    back = HistoryLog.from_flat(flat, width=len(table[0]))
    assert [(e.actor, e.extras) for e in back] == [
        ("Pipeline.create", ()),
        ("Pipeline.note", ("Pipeline.review",)),
    ]
    # without a width the extra is read as a row of its own
    assert len(HistoryLog.from_flat(flat)) == 3


def test_entries_are_immutable():
    log = HistoryLog()
    entry = log.append("Pipeline.create")
    with pytest.raises(FrozenInstanceError):
        entry.actor = "other"
    copy = log.copy()
    copy.append("Pipeline.clear")
    assert len(log) == 1

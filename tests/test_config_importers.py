from pathlib import Path

import pytest

from neuropipe import Process, quick_import
from neuropipe.config import Settings, load_settings
from neuropipe.errors import MissingFolder, UnknownProcessKind, UnsupportedFormat
from neuropipe.process.catalog import FamilyType
from neuropipe.process.importers import scan_subject_folders


# -------------------------------------------------------
# Settings
# -------------------------------------------------------

def test_defaults_without_file(tmp_path: Path):
    s = load_settings(tmp_path / "absent.yaml")
    assert s == Settings()
    assert s.default_extension == ".json"


def test_yaml_settings(tmp_path: Path):
    cfg = tmp_path / "neuropipe.yaml"
    cfg.write_text(
        "default_family: meg\n"
        "default_extension: pkl\n"
        f"default_folder: {tmp_path}\n"
        "log_level: debug\n"
    )
    s = load_settings(cfg)
    assert s.default_family is FamilyType.MEG
    assert s.default_extension == ".pkl"
    assert s.default_folder == tmp_path
    assert s.log_level == "DEBUG"
    assert s.to_dict()["default_family"] == "MEG"


def test_env_var_names_the_file(tmp_path: Path, monkeypatch):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("import_extension: .vhdr\n")
    monkeypatch.setenv("NEUROPIPE_CONFIG", str(cfg))
    assert load_settings().import_extension == ".vhdr"


def test_bad_settings(tmp_path: Path):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("colour: blue\n")
    with pytest.raises(ValueError):
        load_settings(cfg)

    cfg.write_text("- a\n- b\n")
    with pytest.raises(ValueError):
        load_settings(cfg)

    cfg.write_text("default_extension: .mat\n")
    with pytest.raises(UnsupportedFormat):
        load_settings(cfg)


# -------------------------------------------------------
# Folder import
# -------------------------------------------------------

def make_tree(root: Path) -> Path:
    data = root / "raw"
    (data / "sub02").mkdir(parents=True)
    (data / "sub01").mkdir()
    (data / "sub01" / "b.eeg").write_text("")
    (data / "sub01" / "a.eeg").write_text("")
    (data / "sub02" / "c.eeg").write_text("")
    (data / "sub02" / "notes.txt").write_text("")
    (data / "readme.md").write_text("")
    return data


def test_scan_subject_folders(tmp_path: Path):
    data = make_tree(tmp_path)
    subjects, raw = scan_subject_folders(data, "eeg")

    assert subjects == ["sub01", "sub02"]
    assert raw == [
        [str(data / "sub01" / "a.eeg"), str(data / "sub01" / "b.eeg")],
        [str(data / "sub02" / "c.eeg")],
    ]


def test_quick_import_fills_parameters(tmp_path: Path):
    data = make_tree(tmp_path)
    p = Process("Review Raw Files", "EEG")

    quick_import(p, data)

    assert p.get_parameter("Subjects") == ["sub01", "sub02"]
    assert len(p.get_parameter("RawFiles")[0]) == 2
    assert p.history.last.actor == "Process.set_parameters"


def test_quick_import_errors(tmp_path: Path, notch):
    with pytest.raises(UnknownProcessKind):
        quick_import(notch, tmp_path)
    with pytest.raises(MissingFolder):
        quick_import(Process("Review Raw Files", "EEG"), tmp_path / "absent")

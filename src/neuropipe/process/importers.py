# neuropipe/process/importers.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Tuple

from neuropipe.errors import MissingFolder, UnknownProcessKind
from neuropipe.process.process import Process

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".eeg"


def scan_subject_folders(folder: Path, extension: str = DEFAULT_EXTENSION) -> Tuple[List[str], List[List[str]]]:
    """
    Expected layout::

        folder/
          subject_01/  a.eeg  b.eeg
          subject_02/  c.eeg

    Returns (subjects, raw files per subject), both sorted.
    """
    folder = Path(folder).expanduser()
    if not folder.is_dir():
        raise MissingFolder(f"The folder does not exist: {folder}")

    if not extension.startswith("."):
        extension = "." + extension

    subjects: List[str] = []
    raw_files: List[List[str]] = []
    for sub in sorted(p for p in folder.iterdir() if p.is_dir()):
        files = sorted(str(f) for f in sub.glob(f"*{extension}") if f.is_file())
        subjects.append(sub.name)
        raw_files.append(files)
    return subjects, raw_files


def quick_import(process: Process, folder: Path, extension: str = DEFAULT_EXTENSION) -> None:
    """Fill Subjects/RawFiles of an import process from a folder of subject folders."""
    if not process.is_import:
        raise UnknownProcessKind(
            f"quick_import needs a 'Review Raw Files' process, got '{process.name}'"
        )
    subjects, raw_files = scan_subject_folders(folder, extension)
    process.set_parameters(Subjects=subjects, RawFiles=raw_files)
    logger.info("Imported %d subject(s) from %s", len(subjects), folder)

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from neuropipe.pipeline.serializers import TEXT_EXTENSION, check_extension
from neuropipe.process.catalog import FamilyType

CONFIG_ENV_VAR = "NEUROPIPE_CONFIG"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@dataclass
class Settings:
    """
    User defaults for the CLI.

    YAML example::

        default_family: EEG
        default_extension: .json
        default_folder: ~/pipelines
        import_extension: .eeg
        log_level: INFO
    """

    default_family: FamilyType = FamilyType.EEG
    default_extension: str = TEXT_EXTENSION
    default_folder: Optional[Path] = None
    import_extension: str = ".eeg"
    log_level: str = "WARNING"

    # ------------------------------------------------------------------
    @classmethod
    def from_config(cls, cfg: Dict[str, Any] | None) -> "Settings":
        if cfg is None:
            return cls()

        cfg = dict(cfg)
        unknown = set(cfg) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

        folder = cfg.get("default_folder")
        return cls(
            default_family=FamilyType.parse(cfg.get("default_family", FamilyType.EEG)),
            default_extension=check_extension(cfg.get("default_extension", TEXT_EXTENSION)),
            default_folder=Path(folder).expanduser() if folder else None,
            import_extension=str(cfg.get("import_extension", ".eeg")),
            log_level=str(cfg.get("log_level", "WARNING")).upper(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_family": self.default_family.value,
            "default_extension": self.default_extension,
            "default_folder": str(self.default_folder) if self.default_folder else None,
            "import_extension": self.import_extension,
            "log_level": self.log_level,
        }


def load_settings(path: Path | str | None = None) -> Settings:
    """
    Read settings from ``path``, or from $NEUROPIPE_CONFIG when not given.
    A missing file gives the defaults.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return Settings()

    path = Path(path).expanduser()
    if not path.is_file():
        return Settings()

    data = yaml.safe_load(path.read_text())
    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise ValueError(f"{path}: settings must be a mapping at top level")
    return Settings.from_config(data)

"""Retention and storage settings for note-versions."""

import json
import logging
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Settings location
DATA_DIR = Path.home() / ".local" / "share" / "note-versions"
SETTINGS_PATH = DATA_DIR / "settings.json"
RECENT_FILES_PATH = DATA_DIR / "recent-files.json"

STORAGE_LOCATIONS = ("local", "global")


@dataclass(frozen=True)
class Settings:
    """Policy consumed by the version store."""

    max_versions: int = 10
    age_cleanup: bool = False
    max_age_days: int = 30
    storage_location: str = "local"  # "local" | "global"
    global_dir: Path = field(default_factory=lambda: DATA_DIR / "history")

    def validated(self) -> "Settings":
        """Return self, or raise ValueError if any value is out of range."""
        if self.max_versions < 1:
            raise ValueError(f"max_versions must be at least 1, got {self.max_versions}")
        if self.max_age_days < 1:
            raise ValueError(f"max_age_days must be at least 1, got {self.max_age_days}")
        if self.storage_location not in STORAGE_LOCATIONS:
            raise ValueError(
                f"storage_location must be one of {', '.join(STORAGE_LOCATIONS)}, "
                f"got {self.storage_location!r}"
            )
        return self

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["global_dir"] = str(self.global_dir)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if "global_dir" in values:
            values["global_dir"] = Path(values["global_dir"]).expanduser()
        return cls(**values).validated()


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from disk, falling back to defaults."""
    path = path or SETTINGS_PATH
    if not path.exists():
        return Settings()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("settings file must contain a JSON object")
        return Settings.from_dict(data)
    except (OSError, ValueError, TypeError) as exc:
        logger.warning("Ignoring unreadable settings at %s: %s", path, exc)
        return Settings()


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Persist settings as JSON and return the file written."""
    path = path or SETTINGS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings.validated().to_dict(), indent=2), encoding="utf-8")
    return path


def update_settings(settings: Settings, **changes: Any) -> Settings:
    """Return a copy of settings with the non-None changes applied."""
    changes = {k: v for k, v in changes.items() if v is not None}
    if "global_dir" in changes:
        changes["global_dir"] = Path(changes["global_dir"]).expanduser()
    return replace(settings, **changes).validated()

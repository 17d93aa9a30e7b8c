"""Data models for note-versions."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from note_versions.sessions import ComparisonHandle

# Snapshot triggers
MANUAL_SAVE = "manual-save"
AUTOSAVE = "autosave"
MANUAL_SNAPSHOT = "manual-snapshot"
TRIGGERS = (MANUAL_SAVE, AUTOSAVE, MANUAL_SNAPSHOT)

# Diff record kinds
UNCHANGED = "unchanged"
MODIFIED = "modified"
REMOVED = "removed"
ADDED = "added"

_VERSION_ID_RE = re.compile(r"v0*[1-9]\d*")


@dataclass(frozen=True)
class VersionEntry:
    """One historical snapshot as recorded in metadata.json."""

    id: str  # "v003"
    timestamp: str  # ISO-8601
    size: int
    words: int
    lines: int
    hash: str
    trigger: str  # "manual-save" | "autosave" | "manual-snapshot"

    @property
    def sequence(self) -> int:
        return int(self.id[1:])

    @property
    def created_at(self) -> datetime:
        return datetime.fromisoformat(self.timestamp)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VersionEntry:
        version_id = str(data["id"])
        if not _VERSION_ID_RE.fullmatch(version_id):
            raise ValueError(f"Invalid version id: {version_id!r}")
        return cls(
            id=version_id,
            timestamp=str(data["timestamp"]),
            size=int(data["size"]),
            words=int(data["words"]),
            lines=int(data["lines"]),
            hash=str(data["hash"]),
            trigger=str(data.get("trigger", MANUAL_SAVE)),
        )


@dataclass(frozen=True)
class DiffRecord:
    """A single positional line alignment between live and historical content."""

    kind: str  # "unchanged" | "modified" | "removed" | "added"
    live: str | None
    historical: str | None
    line_num: int

    @property
    def selectable(self) -> bool:
        """Only modified and added lines have something to restore."""
        return self.kind in (MODIFIED, ADDED)


@dataclass
class WindowSession:
    """State owned by one open editing window."""

    id: str
    path: Path | None = None
    dirty: bool = False
    last_saved: datetime | None = None
    comparison: ComparisonHandle | None = None
    closed: bool = False

    @property
    def state(self) -> str:
        if self.closed:
            return "closed"
        return "untitled" if self.path is None else "bound"

"""Most-recently-used document list."""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_RECENT_FILES = 10


class RecentFiles:
    """Newest-first list of document paths, persisted as a JSON array."""

    def __init__(self, store_path: Path, limit: int = MAX_RECENT_FILES) -> None:
        self.store_path = store_path
        self.limit = limit
        self._paths: list[Path] = []
        self.load()

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def load(self) -> None:
        """Read the list, dropping files that no longer exist."""
        self._paths = []
        if not self.store_path.exists():
            return
        try:
            data = json.loads(self.store_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Error loading recent files from %s: %s", self.store_path, exc)
            return
        if isinstance(data, list):
            self._paths = [Path(p) for p in data if isinstance(p, str) and Path(p).exists()][: self.limit]

    def save(self) -> None:
        try:
            self.store_path.parent.mkdir(parents=True, exist_ok=True)
            self.store_path.write_text(json.dumps([str(p) for p in self._paths], indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Error saving recent files to %s: %s", self.store_path, exc)

    def add(self, path: Path) -> None:
        path = Path(path)
        self._paths = [path, *(p for p in self._paths if p != path)][: self.limit]
        self.save()

    def remove(self, path: Path) -> None:
        self._paths = [p for p in self._paths if p != Path(path)]
        self.save()

    def clear(self) -> None:
        self._paths = []
        self.save()

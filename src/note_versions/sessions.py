"""Window session registry.

Every open editing window gets a WindowSession keyed by id. All history
operations go through the registry so that saves, snapshots and comparisons
are attributed to the document bound to the calling window.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from note_versions import storage
from note_versions.config import Settings
from note_versions.differ import DiffSummary, summarize
from note_versions.errors import (
    NoDocumentError,
    NoPathError,
    NotFoundError,
    SessionNotFoundError,
    StorageError,
)
from note_versions.models import (
    AUTOSAVE,
    MANUAL_SAVE,
    MANUAL_SNAPSHOT,
    TRIGGERS,
    DiffRecord,
    VersionEntry,
    WindowSession,
)
from note_versions.recent import RecentFiles
from note_versions.restore import RestorationCoordinator

logger = logging.getLogger(__name__)


@dataclass
class ComparisonHandle:
    """A comparison view attached to one session."""

    session_id: str
    version: VersionEntry
    coordinator: RestorationCoordinator

    @property
    def records(self) -> list[DiffRecord]:
        return self.coordinator.records

    @property
    def summary(self) -> DiffSummary:
        return summarize(self.coordinator.records)


@dataclass
class SaveResult:
    """Outcome of a save. snapshot is None when content was unchanged or snapshotting failed."""

    path: Path
    saved_at: datetime
    snapshot: VersionEntry | None = None
    snapshot_error: str | None = None


class SessionRegistry:
    """Authoritative map from open windows to their document state."""

    def __init__(self, settings: Settings, recent: RecentFiles | None = None) -> None:
        self.settings = settings
        self.recent = recent
        self._sessions: dict[str, WindowSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    # -- lifecycle -------------------------------------------------------

    def open(self, path: Path | None = None) -> str:
        """Create a session for a window, bound to path or untitled."""
        session = WindowSession(id=uuid.uuid4().hex, path=Path(path) if path is not None else None)
        self._sessions[session.id] = session
        if session.path is not None and self.recent is not None:
            self.recent.add(session.path)
        logger.debug("Opened session %s for %s", session.id, session.path or "untitled")
        return session.id

    def get(self, session_id: str) -> WindowSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def sessions_for_path(self, path: Path) -> list[WindowSession]:
        """Open sessions bound to the same document (they share one history)."""
        path = Path(path)
        return [s for s in self._sessions.values() if s.path == path]

    def close(self, session_id: str) -> WindowSession:
        """Destroy a session and release its comparison. Closed is terminal."""
        session = self.get(session_id)
        session.comparison = None
        session.closed = True
        del self._sessions[session_id]
        logger.debug("Closed session %s", session_id)
        return session

    # -- state transitions ----------------------------------------------

    def mark_dirty(self, session_id: str) -> None:
        self.get(session_id).dirty = True

    def mark_saved(self, session_id: str, timestamp: datetime | None = None) -> None:
        session = self.get(session_id)
        session.dirty = False
        if timestamp is None:
            timestamp = datetime.now(tz=timezone.utc)
        elif timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        session.last_saved = timestamp

    def bind(self, session_id: str, path: Path) -> None:
        """Point a session at a document path (the save-as target)."""
        session = self.get(session_id)
        new_path = Path(path)
        if session.path != new_path:
            # A comparison belongs to the old document's history
            session.comparison = None
            session.last_saved = None
        session.path = new_path

    # -- saving ----------------------------------------------------------

    def save(self, session_id: str, content: str, trigger: str = MANUAL_SAVE) -> SaveResult:
        """Write content to the session's document, then snapshot it.

        A snapshot failure is logged and reported in the result but does not
        fail the save.
        """
        if trigger not in TRIGGERS:
            raise ValueError(f"Unknown snapshot trigger: {trigger!r}")

        session = self.get(session_id)
        if session.path is None:
            raise NoPathError(session_id)

        path = session.path
        try:
            path.write_bytes(content.encode("utf-8"))
        except OSError as exc:
            raise StorageError("Could not save document", path) from exc

        result = SaveResult(path=path, saved_at=datetime.now(tz=timezone.utc))
        try:
            result.snapshot = storage.create_snapshot(path, content, trigger, self.settings)
        except StorageError as exc:
            logger.warning("Snapshot of %s failed, document was saved: %s", path, exc)
            result.snapshot_error = str(exc)

        self.mark_saved(session_id, result.saved_at)
        if self.recent is not None:
            self.recent.add(path)
        return result

    def save_as(
        self, session_id: str, path: Path, content: str, trigger: str = MANUAL_SAVE
    ) -> SaveResult:
        """Bind the session to path and save there.

        If the save fails the session keeps its previous path, comparison and
        last-saved time.
        """
        session = self.get(session_id)
        previous = (session.path, session.comparison, session.last_saved)
        self.bind(session_id, path)
        try:
            return self.save(session_id, content, trigger)
        except Exception:
            session.path, session.comparison, session.last_saved = previous
            raise

    def autosave(self, session_id: str, content: str) -> SaveResult | None:
        """Save a dirty, bound session with the autosave trigger; otherwise do nothing."""
        session = self.get(session_id)
        if session.path is None or not session.dirty:
            return None
        return self.save(session_id, content, trigger=AUTOSAVE)

    # -- history ---------------------------------------------------------

    def _bound_path(self, session_id: str) -> Path:
        session = self.get(session_id)
        if session.path is None:
            raise NoPathError(session_id)
        return session.path

    def create_manual_snapshot(self, session_id: str, content: str) -> VersionEntry | None:
        """Snapshot the buffer without saving the document. Errors propagate."""
        path = self._bound_path(session_id)
        return storage.create_snapshot(path, content, MANUAL_SNAPSHOT, self.settings)

    def list_history(self, session_id: str) -> list[VersionEntry]:
        session = self.get(session_id)
        if session.path is None:
            return []
        return storage.list_versions(session.path, self.settings)

    def delete_version(self, session_id: str, version_id: str) -> list[VersionEntry]:
        """Delete one version and return the updated history."""
        path = self._bound_path(session_id)
        if not storage.delete_snapshot(path, version_id, self.settings):
            raise NotFoundError(f"No version {version_id} for {path}")
        session = self.get(session_id)
        if (
            session.comparison is not None
            and session.comparison.version.sequence == storage.parse_version_id(version_id)
        ):
            session.comparison = None
        return storage.list_versions(path, self.settings)

    # -- comparison ------------------------------------------------------

    def attach_comparison(self, session_id: str, version_id: str, live_content: str) -> ComparisonHandle:
        """Diff live_content against a snapshot and attach the comparison to the session.

        Any comparison already attached is discarded along with its selection.
        """
        session = self.get(session_id)
        if session.path is None:
            raise NoDocumentError(f"Session {session_id} has no document to compare")

        version = storage.get_version(session.path, version_id, self.settings)
        historical = storage.read_snapshot(session.path, version_id, self.settings) if version else None
        if version is None or historical is None:
            raise NoDocumentError(f"No version {version_id} for {session.path}")

        handle = ComparisonHandle(
            session_id=session_id,
            version=version,
            coordinator=RestorationCoordinator(live_content, historical),
        )
        session.comparison = handle
        return handle

    def comparison(self, session_id: str) -> ComparisonHandle:
        handle = self.get(session_id).comparison
        if handle is None:
            raise NotFoundError(f"Session {session_id} has no open comparison")
        return handle

    def detach_comparison(self, session_id: str) -> None:
        self.get(session_id).comparison = None

    def toggle_line(self, session_id: str, index: int) -> bool:
        return self.comparison(session_id).coordinator.toggle_selection(index)

    def finalize_restoration(self, session_id: str) -> str:
        """Merged content for the originating session; the comparison is torn down."""
        coordinator = self.comparison(session_id).coordinator
        merged = coordinator.finalize()
        self._deliver(session_id, coordinator.live_content, merged)
        return merged

    def full_restore(self, session_id: str) -> str:
        """Historical content for the originating session; the comparison is torn down."""
        coordinator = self.comparison(session_id).coordinator
        restored = coordinator.full_restore()
        self._deliver(session_id, coordinator.live_content, restored)
        return restored

    def _deliver(self, session_id: str, live: str, content: str) -> None:
        session = self.get(session_id)
        session.comparison = None
        if content != live:
            session.dirty = True

    # -- presentation ----------------------------------------------------

    def title(self, session_id: str, now: datetime | None = None) -> str:
        """Window title with the document name and save status."""
        session = self.get(session_id)
        name = session.path.stem if session.path is not None else "Untitled"

        if session.dirty or session.last_saved is None:
            return f"{name} - Not saved"
        return f"{name} - Last saved {_saved_ago(session.last_saved, now)}"


def _saved_ago(saved: datetime, now: datetime | None = None) -> str:
    now = now or datetime.now(tz=timezone.utc)
    minutes = int((now - saved).total_seconds() // 60)

    if minutes < 1:
        return "just now"
    if minutes == 1:
        return "1 minute ago"
    if minutes < 60:
        return f"{minutes} minutes ago"

    hours = minutes // 60
    if hours == 1:
        return "1 hour ago"
    if hours < 24:
        return f"{hours} hours ago"
    return saved.astimezone().strftime("%Y-%m-%d %H:%M")

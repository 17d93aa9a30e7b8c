"""
Exceptions for note-versions.

Exception Hierarchy:
    NoteVersionsError (base)
    ├── StorageError (history directory or file could not be created, read or written)
    ├── NotFoundError (version id or document has no history)
    │   ├── NoDocumentError (comparison requested without a document or version)
    │   └── SessionNotFoundError (unknown or closed window session)
    ├── NoPathError (save attempted on an untitled session)
    └── HashMismatchError (content unchanged since newest snapshot; not fatal)
"""

from pathlib import Path


class NoteVersionsError(Exception):
    """Base exception for all note-versions errors."""


class StorageError(NoteVersionsError):
    """Raised when the version store cannot create, read or write on disk."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        super().__init__(message if path is None else f"{message}: {path}")


class NotFoundError(NoteVersionsError):
    """Raised when a requested version or document history does not exist."""


class NoDocumentError(NotFoundError):
    """Raised when a comparison is requested for an untitled session or a missing version."""


class SessionNotFoundError(NotFoundError):
    """Raised when a session id is unknown or its window has been closed."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"No open session with id {session_id}")


class NoPathError(NoteVersionsError):
    """Raised when saving a session that has no bound document path."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} has no document path. Choose a path with save-as first.")


class HashMismatchError(NoteVersionsError):
    """Raised inside the store when new content hashes the same as the newest snapshot.

    Never surfaced to callers: snapshot creation turns it into a no-op.
    """

    def __init__(self, digest: str, version_id: str) -> None:
        self.digest = digest
        self.version_id = version_id
        super().__init__(f"Content unchanged since {version_id} ({digest[:12]})")

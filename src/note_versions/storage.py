"""On-disk snapshot history for note-versions.

For a document at ``notes/todo.md`` the history lives either in a hidden
sibling directory (``notes/.todo.history/``) or, with the global storage
location, in ``<global_dir>/todo.md/``. Inside it:

    v001.md, v002.md, ...   one snapshot file per version
    metadata.json           {"last_id": 2, "versions": [{"id": "v001", ...}, ...]}

last_id only grows, so an id is never reused after deletion or pruning.
"""

import hashlib
import json
import logging
import os
import re
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

from note_versions.config import Settings
from note_versions.errors import HashMismatchError, NotFoundError, StorageError
from note_versions.models import TRIGGERS, VersionEntry

logger = logging.getLogger(__name__)

METADATA_FILENAME = "metadata.json"
ID_WIDTH = 3

_SNAPSHOT_RE = re.compile(r"^v(\d+)")

# One lock per history directory; two sessions saving the same document
# must not interleave their read-modify-write of metadata.json.
_locks: dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(directory: Path) -> threading.Lock:
    key = os.path.normcase(str(directory.resolve()))
    with _locks_guard:
        return _locks.setdefault(key, threading.Lock())


def format_version_id(sequence: int) -> str:
    """Format a sequence number as a version id (3 -> "v003")."""
    return f"v{sequence:0{ID_WIDTH}d}"


def parse_version_id(version_id: str | int) -> int:
    """Parse "v003", "003", "3" or 3 into a sequence number."""
    if isinstance(version_id, int):
        sequence = version_id
    else:
        text = version_id.strip().lower().removeprefix("v")
        if not text.isdigit():
            raise NotFoundError(f"Invalid version id: {version_id!r}")
        sequence = int(text)
    if sequence < 1:
        raise NotFoundError(f"Invalid version id: {version_id!r}")
    return sequence


def content_hash(content: str) -> str:
    """SHA-256 hex digest of the exact UTF-8 bytes, line endings included."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def content_stats(content: str) -> tuple[int, int, int]:
    """Return (size in bytes, word count, line count)."""
    size = len(content.encode("utf-8"))
    words = len(content.split())
    lines = content.count("\n") + 1 if content else 0
    return size, words, lines


def history_dir(path: Path, settings: Settings) -> Path:
    """Directory holding the snapshots of the document at path."""
    path = Path(path)
    if settings.storage_location == "global":
        return settings.global_dir / path.name
    return path.parent / f".{path.stem}.history"


def snapshot_path(path: Path, version_id: str, settings: Settings) -> Path:
    """Content file for one version, keeping the document's extension."""
    path = Path(path)
    return history_dir(path, settings) / f"{version_id}{path.suffix}"


def _read_metadata(directory: Path, strict: bool) -> tuple[list[VersionEntry], int]:
    """Load the version index and the highest id ever allocated.

    With strict=False any problem yields an empty index. With strict=True an
    unreadable or corrupt index raises StorageError so it is never overwritten.
    """
    metadata = directory / METADATA_FILENAME
    if not metadata.exists():
        return [], 0

    try:
        data = json.loads(metadata.read_text(encoding="utf-8"))
        entries = sorted(
            (VersionEntry.from_dict(item) for item in data.get("versions", [])),
            key=lambda e: e.sequence,
        )
        last_id = int(data.get("last_id", 0))
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
        if strict:
            raise StorageError("Could not read version metadata", metadata) from exc
        logger.warning("Ignoring unreadable version metadata at %s: %s", metadata, exc)
        return [], 0

    return entries, max(last_id, _highest(entries))


def _load_index(directory: Path, strict: bool) -> list[VersionEntry]:
    return _read_metadata(directory, strict)[0]


def _highest(entries: list[VersionEntry]) -> int:
    return max((e.sequence for e in entries), default=0)


def _save_index(directory: Path, entries: list[VersionEntry], last_id: int) -> None:
    """Atomically replace metadata.json with the given entries.

    last_id is kept next to the entries so that deleted or pruned ids are
    never handed out again.
    """
    metadata = directory / METADATA_FILENAME
    payload = json.dumps(
        {"last_id": max(last_id, _highest(entries)), "versions": [e.to_dict() for e in entries]},
        indent=2,
    )
    try:
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".metadata-", suffix=".tmp")
    except OSError as exc:
        raise StorageError("Could not write version metadata", metadata) from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, metadata)
    except OSError as exc:
        try:
            os.unlink(tmp_name)
        except OSError as cleanup_exc:
            logger.warning("Could not remove temporary file %s: %s", tmp_name, cleanup_exc)
        raise StorageError("Could not write version metadata", metadata) from exc


def _next_sequence(directory: Path, last_id: int) -> int:
    """Next id, past the recorded high-water mark and any snapshot file left on disk."""
    highest = last_id
    for child in directory.iterdir():
        match = _SNAPSHOT_RE.match(child.name)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


def _ensure_changed(entries: list[VersionEntry], digest: str) -> None:
    if entries and entries[-1].hash == digest:
        raise HashMismatchError(digest, entries[-1].id)


def _find(entries: list[VersionEntry], version_id: str | int) -> VersionEntry | None:
    try:
        sequence = parse_version_id(version_id)
    except NotFoundError:
        return None
    for entry in entries:
        if entry.sequence == sequence:
            return entry
    return None


def _unlink_snapshots(path: Path, entries: list[VersionEntry], settings: Settings) -> None:
    for entry in entries:
        target = snapshot_path(path, entry.id, settings)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove snapshot %s: %s", target, exc)


def apply_retention(
    entries: list[VersionEntry], settings: Settings, now: datetime | None = None
) -> tuple[list[VersionEntry], list[VersionEntry]]:
    """Split entries into (kept, removed) by count, then by age."""
    now = now or datetime.now(tz=timezone.utc)
    kept = list(entries)
    removed: list[VersionEntry] = []

    # Count-based: drop the oldest until max_versions holds
    overflow = len(kept) - settings.max_versions
    if overflow > 0:
        removed.extend(kept[:overflow])
        kept = kept[overflow:]

    # Age-based: independent of count
    if settings.age_cleanup:
        cutoff = now - timedelta(days=settings.max_age_days)
        still_kept = []
        for entry in kept:
            try:
                created = entry.created_at
            except ValueError:
                still_kept.append(entry)
                continue
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            if created < cutoff:
                removed.append(entry)
            else:
                still_kept.append(entry)
        kept = still_kept

    return kept, removed


def create_snapshot(
    path: Path,
    content: str,
    trigger: str,
    settings: Settings,
    now: datetime | None = None,
) -> VersionEntry | None:
    """Record content as a new version of path.

    Returns None when content is byte-identical to the newest snapshot.
    Raises StorageError if the history directory or files cannot be written.
    """
    if trigger not in TRIGGERS:
        raise ValueError(f"Unknown snapshot trigger: {trigger!r}")

    path = Path(path)
    directory = history_dir(path, settings)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError("Could not create history directory", directory) from exc

    digest = content_hash(content)
    now = now or datetime.now(tz=timezone.utc)

    with _lock_for(directory):
        entries, last_id = _read_metadata(directory, strict=True)
        try:
            _ensure_changed(entries, digest)
        except HashMismatchError as exc:
            logger.debug("Skipping snapshot of %s: %s", path, exc)
            return None

        try:
            sequence = _next_sequence(directory, last_id)
        except OSError as exc:
            raise StorageError("Could not scan history directory", directory) from exc

        version_id = format_version_id(sequence)
        size, words, lines = content_stats(content)
        entry = VersionEntry(
            id=version_id,
            timestamp=now.isoformat(),
            size=size,
            words=words,
            lines=lines,
            hash=digest,
            trigger=trigger,
        )

        target = snapshot_path(path, version_id, settings)
        try:
            target.write_bytes(content.encode("utf-8"))
        except OSError as exc:
            raise StorageError("Could not write snapshot", target) from exc

        # A failure here leaves the content file behind as unindexed litter;
        # _next_sequence skips past it.
        kept, removed = apply_retention([*entries, entry], settings, now)
        _save_index(directory, kept, sequence)
        _unlink_snapshots(path, removed, settings)

    if removed:
        logger.info("Pruned %d old version(s) of %s", len(removed), path)
    logger.debug("Created %s of %s (%s)", version_id, path, trigger)
    return entry


def list_versions(path: Path, settings: Settings) -> list[VersionEntry]:
    """All versions of path, oldest first. Never raises."""
    return _load_index(history_dir(Path(path), settings), strict=False)


def get_version(path: Path, version_id: str | int, settings: Settings) -> VersionEntry | None:
    """Look up one version entry by id."""
    return _find(list_versions(path, settings), version_id)


def read_snapshot(path: Path, version_id: str | int, settings: Settings) -> str | None:
    """Content of one version, or None if it does not exist."""
    entry = get_version(path, version_id, settings)
    if entry is None:
        return None

    target = snapshot_path(path, entry.id, settings)
    try:
        return target.read_bytes().decode("utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        raise StorageError("Could not read snapshot", target) from exc


def delete_snapshot(path: Path, version_id: str | int, settings: Settings) -> bool:
    """Remove one version and its content file. Remaining ids are not renumbered."""
    path = Path(path)
    directory = history_dir(path, settings)
    if not directory.is_dir():
        return False

    with _lock_for(directory):
        entries, last_id = _read_metadata(directory, strict=True)
        entry = _find(entries, version_id)
        if entry is None:
            return False

        _save_index(directory, [e for e in entries if e.id != entry.id], last_id)
        _unlink_snapshots(path, [entry], settings)

    logger.debug("Deleted %s of %s", entry.id, path)
    return True


def prune_versions(path: Path, settings: Settings, now: datetime | None = None) -> list[VersionEntry]:
    """Apply the retention policy without creating a snapshot."""
    path = Path(path)
    directory = history_dir(path, settings)
    if not directory.is_dir():
        return []

    with _lock_for(directory):
        entries, last_id = _read_metadata(directory, strict=True)
        kept, removed = apply_retention(entries, settings, now)
        if removed:
            _save_index(directory, kept, last_id)
            _unlink_snapshots(path, removed, settings)

    return removed


def history_size(path: Path, settings: Settings) -> int:
    """Total bytes of snapshot content recorded for path."""
    return sum(e.size for e in list_versions(path, settings))

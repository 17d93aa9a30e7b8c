"""Command table for requests arriving from editor windows.

The presentation layer resolves the focused window to a session id once and
calls ``dispatch(registry, command, session_id, payload)``. Handlers never
look the window up themselves.
"""

from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from note_versions.errors import NoteVersionsError
from note_versions.models import MANUAL_SAVE, VersionEntry
from note_versions.sessions import SessionRegistry

Payload = dict[str, Any]
Handler = Callable[[SessionRegistry, str, Payload], dict[str, Any]]


@dataclass
class Response:
    """Reply sent back to the originating window."""

    ok: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


def _versions(entries: list[VersionEntry]) -> list[dict[str, Any]]:
    return [e.to_dict() for e in entries]


def persist_buffer(registry: SessionRegistry, session_id: str, payload: Payload) -> dict[str, Any]:
    trigger = payload.get("trigger", MANUAL_SAVE)
    if payload.get("path"):
        result = registry.save_as(session_id, Path(payload["path"]), payload["content"], trigger)
    else:
        result = registry.save(session_id, payload["content"], trigger)
    return {
        "path": str(result.path),
        "saved_at": result.saved_at.isoformat(),
        "snapshot": result.snapshot.to_dict() if result.snapshot else None,
        "snapshot_error": result.snapshot_error,
    }


def create_snapshot(registry: SessionRegistry, session_id: str, payload: Payload) -> dict[str, Any]:
    entry = registry.create_manual_snapshot(session_id, payload["content"])
    return {"snapshot": entry.to_dict() if entry else None}


def list_history(registry: SessionRegistry, session_id: str, payload: Payload) -> dict[str, Any]:
    return {"versions": _versions(registry.list_history(session_id))}


def open_comparison(registry: SessionRegistry, session_id: str, payload: Payload) -> dict[str, Any]:
    handle = registry.attach_comparison(session_id, payload["version"], payload["content"])
    return {
        "version": handle.version.id,
        "timestamp": handle.version.timestamp,
        "records": [asdict(r) for r in handle.records],
        "summary": asdict(handle.summary),
    }


def toggle_line(registry: SessionRegistry, session_id: str, payload: Payload) -> dict[str, Any]:
    selected = registry.toggle_line(session_id, int(payload["index"]))
    coordinator = registry.comparison(session_id).coordinator
    return {
        "selected": selected,
        "selection": list(coordinator.selected),
        "label": coordinator.selection_label(),
        "preview": coordinator.preview_merge(),
    }


def finalize_restoration(registry: SessionRegistry, session_id: str, payload: Payload) -> dict[str, Any]:
    return {"content": registry.finalize_restoration(session_id)}


def full_restore(registry: SessionRegistry, session_id: str, payload: Payload) -> dict[str, Any]:
    if not payload.get("confirmed"):
        raise NoteVersionsError("Full restore replaces the whole document and must be confirmed")
    return {"content": registry.full_restore(session_id)}


def delete_version(registry: SessionRegistry, session_id: str, payload: Payload) -> dict[str, Any]:
    return {"versions": _versions(registry.delete_version(session_id, payload["version"]))}


COMMANDS: dict[str, Handler] = {
    "persist-buffer": persist_buffer,
    "create-snapshot": create_snapshot,
    "list-history": list_history,
    "open-comparison": open_comparison,
    "toggle-line": toggle_line,
    "finalize-restoration": finalize_restoration,
    "full-restore": full_restore,
    "delete-version": delete_version,
}


def dispatch(
    registry: SessionRegistry,
    command: str,
    session_id: str,
    payload: Payload | None = None,
) -> Response:
    """Run a command for a session.

    Errors from the note-versions hierarchy become error responses and leave
    state unchanged; unknown commands raise KeyError.
    """
    handler = COMMANDS[command]
    try:
        return Response(ok=True, data=handler(registry, session_id, payload or {}))
    except NoteVersionsError as exc:
        return Response(ok=False, error=str(exc))

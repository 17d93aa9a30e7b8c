"""Tests for the window session registry."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from note_versions.errors import (
    NoDocumentError,
    NoPathError,
    NotFoundError,
    SessionNotFoundError,
    StorageError,
)
from note_versions.models import AUTOSAVE, MANUAL_SAVE, MANUAL_SNAPSHOT
from note_versions.recent import RecentFiles
from note_versions.sessions import SessionRegistry
from note_versions.storage import list_versions


def test_open_untitled_and_bound(registry, document):
    untitled = registry.open()
    bound = registry.open(document)

    assert registry.get(untitled).state == "untitled"
    assert registry.get(bound).state == "bound"
    assert registry.get(bound).path == document
    assert not registry.get(bound).dirty
    assert untitled != bound


def test_mark_dirty_and_saved(registry, document):
    session_id = registry.open(document)
    registry.mark_dirty(session_id)
    assert registry.get(session_id).dirty

    saved_at = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
    registry.mark_saved(session_id, saved_at)
    session = registry.get(session_id)
    assert not session.dirty
    assert session.last_saved == saved_at


def test_save_writes_file_and_snapshot(registry, document, settings):
    session_id = registry.open(document)
    registry.mark_dirty(session_id)

    result = registry.save(session_id, "# Todo\n- done\n")

    assert document.read_text() == "# Todo\n- done\n"
    assert result.snapshot is not None
    assert result.snapshot.trigger == MANUAL_SAVE
    assert result.snapshot_error is None
    assert not registry.get(session_id).dirty
    assert registry.get(session_id).last_saved == result.saved_at
    assert [v.id for v in list_versions(document, settings)] == ["v001"]


def test_save_identical_content_twice(registry, document, settings):
    session_id = registry.open(document)
    registry.save(session_id, "same")
    second = registry.save(session_id, "same", trigger=AUTOSAVE)

    assert second.snapshot is None
    versions = list_versions(document, settings)
    assert len(versions) == 1
    assert versions[0].trigger == MANUAL_SAVE


def test_save_untitled_raises(registry):
    session_id = registry.open()

    with pytest.raises(NoPathError):
        registry.save(session_id, "content")


def test_save_as_binds_untitled(registry, temp_dir, settings):
    session_id = registry.open()
    target = temp_dir / "fresh.md"

    registry.save_as(session_id, target, "hello")

    assert registry.get(session_id).state == "bound"
    assert target.read_text() == "hello"
    assert len(list_versions(target, settings)) == 1


def test_snapshot_failure_does_not_fail_save(registry, document):
    session_id = registry.open(document)
    registry.mark_dirty(session_id)

    with patch(
        "note_versions.sessions.storage.create_snapshot",
        side_effect=StorageError("Could not write snapshot"),
    ):
        result = registry.save(session_id, "saved anyway")

    assert document.read_text() == "saved anyway"
    assert result.snapshot is None
    assert "Could not write snapshot" in result.snapshot_error
    assert not registry.get(session_id).dirty


def test_document_write_failure_is_reported(registry, temp_dir):
    session_id = registry.open(temp_dir / "missing-dir" / "note.md")

    with pytest.raises(StorageError):
        registry.save(session_id, "content")


def test_autosave_only_when_dirty(registry, document, settings):
    session_id = registry.open(document)
    assert registry.autosave(session_id, "draft") is None

    registry.mark_dirty(session_id)
    result = registry.autosave(session_id, "draft")

    assert result.snapshot.trigger == AUTOSAVE
    assert list_versions(document, settings)[0].trigger == AUTOSAVE


def test_manual_snapshot_does_not_touch_document(registry, document):
    original = document.read_text()
    session_id = registry.open(document)

    entry = registry.create_manual_snapshot(session_id, "unsaved buffer")

    assert entry.trigger == MANUAL_SNAPSHOT
    assert document.read_text() == original


def test_manual_snapshot_failure_propagates(registry, document):
    session_id = registry.open(document)

    with patch(
        "note_versions.sessions.storage.create_snapshot",
        side_effect=StorageError("disk full"),
    ):
        with pytest.raises(StorageError):
            registry.create_manual_snapshot(session_id, "content")


def test_two_sessions_share_history(registry, document, settings):
    first = registry.open(document)
    second = registry.open(document)

    registry.save(first, "from first")
    registry.save(second, "from second")

    assert len(registry.sessions_for_path(document)) == 2
    assert [v.id for v in registry.list_history(first)] == ["v001", "v002"]
    assert registry.list_history(second) == registry.list_history(first)


def test_list_history_untitled_is_empty(registry):
    assert registry.list_history(registry.open()) == []


def test_attach_comparison_scenario(registry, document):
    session_id = registry.open(document)
    registry.save(session_id, "a\nX\nc\nd")

    handle = registry.attach_comparison(session_id, "v001", "a\nb\nc")

    assert handle.version.id == "v001"
    assert [r.kind for r in handle.records] == ["unchanged", "modified", "unchanged", "added"]
    assert registry.get(session_id).comparison is handle

    registry.toggle_line(session_id, 1)
    registry.toggle_line(session_id, 3)
    merged = registry.finalize_restoration(session_id)

    assert merged == "a\nX\nc\nd"
    assert registry.get(session_id).comparison is None
    assert registry.get(session_id).dirty


def test_attach_comparison_requires_document(registry):
    with pytest.raises(NoDocumentError):
        registry.attach_comparison(registry.open(), "v001", "text")


def test_attach_comparison_unknown_version(registry, document):
    session_id = registry.open(document)
    registry.save(session_id, "content")

    with pytest.raises(NoDocumentError):
        registry.attach_comparison(session_id, "v042", "content")


def test_second_attachment_replaces_first(registry, document):
    session_id = registry.open(document)
    registry.save(session_id, "one")
    registry.save(session_id, "two")

    first = registry.attach_comparison(session_id, "v001", "live")
    first.coordinator.toggle_selection(0)
    second = registry.attach_comparison(session_id, "v002", "live")

    assert registry.get(session_id).comparison is second
    assert second.coordinator.selected == ()


def test_full_restore_returns_history(registry, document):
    session_id = registry.open(document)
    registry.save(session_id, "old\ncontent")
    registry.attach_comparison(session_id, "v001", "new\ncontent\nmore")
    registry.toggle_line(session_id, 0)

    assert registry.full_restore(session_id) == "old\ncontent"
    assert registry.get(session_id).comparison is None


def test_finalize_without_comparison(registry, document):
    with pytest.raises(NotFoundError):
        registry.finalize_restoration(registry.open(document))


def test_delete_version_returns_updated_history(registry, document):
    session_id = registry.open(document)
    registry.save(session_id, "one")
    registry.save(session_id, "two")
    registry.attach_comparison(session_id, "v001", "two")

    remaining = registry.delete_version(session_id, "v001")

    assert [v.id for v in remaining] == ["v002"]
    assert registry.get(session_id).comparison is None
    with pytest.raises(NotFoundError):
        registry.delete_version(session_id, "v001")


def test_close_releases_comparison(registry, document):
    session_id = registry.open(document)
    registry.save(session_id, "content")
    registry.attach_comparison(session_id, "v001", "content")

    session = registry.close(session_id)

    assert session.state == "closed"
    assert session.comparison is None
    assert session_id not in registry
    with pytest.raises(SessionNotFoundError):
        registry.get(session_id)
    with pytest.raises(SessionNotFoundError):
        registry.close(session_id)


def test_bind_to_new_path_drops_comparison(registry, document, temp_dir):
    session_id = registry.open(document)
    registry.save(session_id, "content")
    registry.attach_comparison(session_id, "v001", "content")

    registry.bind(session_id, temp_dir / "other.md")

    assert registry.get(session_id).comparison is None
    assert registry.get(session_id).last_saved is None


def test_title(registry, document):
    now = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
    assert registry.title(registry.open(), now) == "Untitled - Not saved"

    session_id = registry.open(document)
    assert registry.title(session_id, now) == "todo - Not saved"

    cases = [
        (timedelta(seconds=30), "just now"),
        (timedelta(minutes=1), "1 minute ago"),
        (timedelta(minutes=5), "5 minutes ago"),
        (timedelta(hours=1), "1 hour ago"),
        (timedelta(hours=3), "3 hours ago"),
    ]
    for ago, expected in cases:
        registry.mark_saved(session_id, now - ago)
        assert registry.title(session_id, now) == f"todo - Last saved {expected}"

    registry.mark_dirty(session_id)
    assert registry.title(session_id, now) == "todo - Not saved"


def test_recent_files_updated_on_open_and_save(settings, document, temp_dir):
    recent = RecentFiles(temp_dir / "recent.json")
    registry = SessionRegistry(settings, recent)

    other = temp_dir / "other.md"
    session_id = registry.open()
    registry.save_as(session_id, other, "x")
    registry.open(document)

    assert recent.paths == [document, other]


def test_save_survives_invalid_version_id_in_metadata(registry, document, settings):
    directory = document.parent / ".todo.history"
    directory.mkdir()
    (directory / "metadata.json").write_text(
        '{"versions": [{"id": "vX", "timestamp": "2024-01-01T00:00:00+00:00",'
        ' "size": 1, "words": 1, "lines": 1, "hash": "a"}]}'
    )
    session_id = registry.open(document)

    result = registry.save(session_id, "new content")

    assert document.read_text() == "new content"
    assert result.snapshot is None
    assert "metadata" in result.snapshot_error
    assert list_versions(document, settings) == []


def test_failed_save_as_keeps_previous_binding(registry, document, temp_dir):
    session_id = registry.open(document)
    registry.save(session_id, "a\nb")
    registry.attach_comparison(session_id, "v001", "a\nc")
    last_saved = registry.get(session_id).last_saved

    with pytest.raises(StorageError):
        registry.save_as(session_id, temp_dir / "missing-dir" / "other.md", "a\nc")

    session = registry.get(session_id)
    assert session.path == document
    assert session.comparison is not None
    assert session.last_saved == last_saved


def test_title_with_naive_saved_time(registry, document):
    now = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
    session_id = registry.open(document)

    registry.mark_saved(session_id, datetime(2024, 1, 15, 11, 55))

    assert registry.get(session_id).last_saved.tzinfo is timezone.utc
    assert registry.title(session_id, now) == "todo - Last saved 5 minutes ago"

"""Pytest fixtures for note-versions tests."""

import tempfile
from pathlib import Path

import pytest

from note_versions.config import Settings


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(temp_dir):
    """Local-storage settings with the default retention policy."""
    return Settings(global_dir=temp_dir / "global-history")


@pytest.fixture
def global_settings(temp_dir):
    """Settings that keep history in a single global folder."""
    return Settings(storage_location="global", global_dir=temp_dir / "global-history")


@pytest.fixture
def document(temp_dir):
    """A markdown note on disk."""
    path = temp_dir / "notes" / "todo.md"
    path.parent.mkdir()
    path.write_text("# Todo\n- buy milk\n- call mom\n", encoding="utf-8")
    return path


@pytest.fixture
def registry(settings):
    """A session registry without a recent-files list."""
    from note_versions.sessions import SessionRegistry

    return SessionRegistry(settings)

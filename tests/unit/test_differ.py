"""Tests for the positional diff."""

import pytest

from note_versions.differ import compute_diff, diff_contents, split_lines, summarize
from note_versions.models import ADDED, MODIFIED, REMOVED, UNCHANGED


def test_scenario_modified_unchanged_added():
    records = compute_diff(["a", "b", "c"], ["a", "X", "c", "d"])

    assert [r.kind for r in records] == [UNCHANGED, MODIFIED, UNCHANGED, ADDED]
    assert records[1].live == "b"
    assert records[1].historical == "X"
    assert records[3].live is None
    assert records[3].historical == "d"
    assert [r.line_num for r in records] == [0, 1, 2, 3]


def test_removed_lines_exist_only_in_live():
    records = compute_diff(["a", "b", "c"], ["a"])

    assert [r.kind for r in records] == [UNCHANGED, REMOVED, REMOVED]
    assert records[2].historical is None
    assert not records[2].selectable


@pytest.mark.parametrize(
    "live,historical",
    [
        ([], []),
        (["a"], []),
        ([], ["a", "b"]),
        (["a", "b", "c"], ["c", "b", "a"]),
        (["x", "y"], ["x", "y", "z", "w"]),
    ],
)
def test_diff_totality(live, historical):
    """max(a, b) records; unchanged count equals matching positions."""
    records = compute_diff(live, historical)

    assert len(records) == max(len(live), len(historical))
    matches = sum(1 for a, b in zip(live, historical) if a == b)
    assert sum(1 for r in records if r.kind == UNCHANGED) == matches


def test_inserted_line_cascades_into_modified():
    """Positional alignment: an insertion shifts every following line."""
    records = compute_diff(["new", "a", "b"], ["a", "b"])

    assert [r.kind for r in records] == [MODIFIED, MODIFIED, REMOVED]


def test_split_lines():
    assert split_lines("") == []
    assert split_lines("a\nb") == ["a", "b"]
    assert split_lines("a\n") == ["a", ""]


def test_diff_contents_empty_documents():
    assert diff_contents("", "") == []


def test_summarize_counts_modified_on_both_sides():
    summary = summarize(diff_contents("a\nb\nc", "a\nX\nc\nd"))

    assert summary.removed == 1
    assert summary.added == 2
    assert summary.unchanged == 2
    assert summary.selectable == 2

"""Positional line diff between live and historical content.

Line i of the live document is compared with line i of the snapshot. This is
not an LCS alignment: inserting or deleting a line in the middle produces a
run of ``modified`` records after it, and merge semantics depend on that.
"""

from dataclasses import dataclass

from note_versions.models import ADDED, MODIFIED, REMOVED, UNCHANGED, DiffRecord

LINE_SEPARATOR = "\n"


@dataclass(frozen=True)
class DiffSummary:
    """Counts shown above a comparison."""

    removed: int  # lines lost on full restore (removed + modified)
    added: int  # lines gained on full restore (added + modified)
    unchanged: int
    selectable: int


def split_lines(content: str) -> list[str]:
    """Split content into lines on the document separator."""
    if not content:
        return []
    return content.split(LINE_SEPARATOR)


def join_lines(lines: list[str]) -> str:
    return LINE_SEPARATOR.join(lines)


def classify(live: str | None, historical: str | None) -> str:
    """Classify one aligned pair of lines."""
    if live is not None and historical is not None:
        return UNCHANGED if live == historical else MODIFIED
    if live is not None:
        return REMOVED
    return ADDED


def compute_diff(live_lines: list[str], historical_lines: list[str]) -> list[DiffRecord]:
    """Align two line sequences position by position.

    Returns exactly max(len(live_lines), len(historical_lines)) records.
    """
    records: list[DiffRecord] = []
    for i in range(max(len(live_lines), len(historical_lines))):
        live = live_lines[i] if i < len(live_lines) else None
        historical = historical_lines[i] if i < len(historical_lines) else None
        records.append(DiffRecord(kind=classify(live, historical), live=live, historical=historical, line_num=i))
    return records


def diff_contents(live: str, historical: str) -> list[DiffRecord]:
    """compute_diff over two whole documents."""
    return compute_diff(split_lines(live), split_lines(historical))


def summarize(records: list[DiffRecord]) -> DiffSummary:
    kinds = [r.kind for r in records]
    modified = kinds.count(MODIFIED)
    return DiffSummary(
        removed=kinds.count(REMOVED) + modified,
        added=kinds.count(ADDED) + modified,
        unchanged=kinds.count(UNCHANGED),
        selectable=kinds.count(ADDED) + modified,
    )

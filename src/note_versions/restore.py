"""Selective and full restoration of historical lines."""

from note_versions.differ import diff_contents, join_lines, split_lines
from note_versions.models import ADDED, MODIFIED, DiffRecord


class RestorationCoordinator:
    """Holds the user's line selection for one comparison and builds merged content.

    The live and historical contents are captured when the comparison opens;
    neither side is modified by selecting, previewing or finalizing.
    """

    def __init__(
        self,
        live_content: str,
        historical_content: str,
        records: list[DiffRecord] | None = None,
    ) -> None:
        self.live_content = live_content
        self.historical_content = historical_content
        self.records = records if records is not None else diff_contents(live_content, historical_content)
        self._selected: set[int] = set()
        self.consumed = False

    @property
    def selected(self) -> tuple[int, ...]:
        return tuple(sorted(self._selected))

    def is_selectable(self, index: int) -> bool:
        return 0 <= index < len(self.records) and self.records[index].selectable

    def toggle_selection(self, index: int) -> bool:
        """Flip selection of a record. Returns whether it is now selected.

        Unchanged and removed records, and out-of-range indices, are ignored.
        """
        if self.consumed:
            raise RuntimeError("Restoration already finalized")
        if not self.is_selectable(index):
            return False
        if index in self._selected:
            self._selected.discard(index)
            return False
        self._selected.add(index)
        return True

    def clear_selection(self) -> None:
        self._selected.clear()

    def select_all(self) -> None:
        self._selected = {i for i, r in enumerate(self.records) if r.selectable}

    def selection_label(self) -> str:
        count = len(self._selected)
        if count == 0:
            return "No lines selected"
        return f"{count} line{'s' if count > 1 else ''} selected for restoration"

    def preview_merge(self) -> str:
        """Live content with every selected historical line applied."""
        lines = split_lines(self.live_content)
        # Ascending order keeps insert positions valid: added records only
        # occur past the end of the live lines.
        for index in self.selected:
            record = self.records[index]
            if record.kind == MODIFIED:
                lines[record.line_num] = record.historical
            elif record.kind == ADDED:
                lines.insert(record.line_num, record.historical)
        return join_lines(lines)

    def finalize(self) -> str:
        """Same result as preview_merge; the coordinator is consumed afterwards."""
        merged = self.preview_merge()
        self.consumed = True
        return merged

    def full_restore(self) -> str:
        """The historical content verbatim, whatever is selected."""
        return self.historical_content

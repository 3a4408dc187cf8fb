"""In-memory buffer sink — named line buffers that patches are applied to.

Stands in for the host editor when running headless (tests, demos,
snapshotting). Line accessors follow the caller-error convention: an
invalid index is reported as a False/None result, never raised.
"""

from __future__ import annotations

from typing import Any, Sequence

from bufferui.diff import PatchEntry, apply_patch


class MemoryBuffer:
    """Buffer sink keeping every destination's lines in a dict."""

    def __init__(self) -> None:
        self._buffers: dict[Any, list[str]] = {}
        self.patches: list[tuple[Any, list[PatchEntry]]] = []

    def update_content(self, destination_id: Any, patch: Sequence[PatchEntry]) -> bool:
        current = self._buffers.get(destination_id, [])
        self._buffers[destination_id] = apply_patch(current, patch)
        self.patches.append((destination_id, list(patch)))
        return True

    def lines(self, destination_id: Any) -> list[str]:
        return list(self._buffers.get(destination_id, []))

    def get_line(self, destination_id: Any, index: int) -> str | None:
        lines = self._buffers.get(destination_id)
        if lines is None or not 0 <= index < len(lines):
            return None
        return lines[index]

    def set_line(self, destination_id: Any, index: int, content: str) -> bool:
        """Overwrite one line in place. Out-of-range indexes return False."""
        lines = self._buffers.get(destination_id)
        if lines is None or not 0 <= index < len(lines):
            return False
        lines[index] = content
        return True

    def delete(self, destination_id: Any) -> bool:
        return self._buffers.pop(destination_id, None) is not None

    def destinations(self) -> list[Any]:
        return list(self._buffers)

"""Undo/Redo history built on snapshots of the shape store."""

from __future__ import annotations

import copy
import logging
from typing import List, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

from .errors import EditResult, EditStatus
from .models import HistoryEntry
from .shape_store import ShapeStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 50


class HistoryManager(QObject):
    """
    Manages bounded undo/redo stacks of shape-store snapshots.

    Entries are deep copies, never aliases of live shapes. Pushing a new
    entry clears the redo stack; the oldest entries are evicted once the
    bound is exceeded.

    Emits signals when the undo/redo state changes so UI can update.
    """

    state_changed = pyqtSignal()  # Emitted when undo/redo availability changes

    def __init__(self, max_history: int = DEFAULT_MAX_HISTORY) -> None:
        """
        Initialize the history manager.

        Args:
            max_history: Maximum number of snapshots to keep in history
        """
        super().__init__()
        self._undo_stack: List[HistoryEntry] = []
        self._redo_stack: List[HistoryEntry] = []
        self._max_history = max(1, max_history)

    @staticmethod
    def capture(store: ShapeStore, description: str = "") -> HistoryEntry:
        """
        Take a snapshot of the store without recording it.

        Callers push the entry once the mutation it guards has succeeded.
        """
        return HistoryEntry(
            shapes=tuple(store.snapshot()),
            selected_id=store.selected_id,
            description=description,
        )

    def push(self, entry: HistoryEntry) -> None:
        """
        Record a snapshot taken before a committed mutation.

        Args:
            entry: Snapshot from capture()
        """
        self._undo_stack.append(entry)

        # Clear redo stack when a new mutation is committed
        self._redo_stack.clear()

        # Limit history size
        while len(self._undo_stack) > self._max_history:
            self._undo_stack.pop(0)

        logger.debug(f"Checkpoint: {entry.description}")
        self.state_changed.emit()

    def checkpoint(self, store: ShapeStore, description: str = "") -> None:
        """Capture and record the current store state in one step."""
        self.push(self.capture(store, description))

    def _restore(self, store: ShapeStore, entry: HistoryEntry) -> None:
        store.restore(copy.deepcopy(entry.shapes))

    def undo(self, store: ShapeStore) -> EditResult:
        """
        Restore the most recent snapshot.

        Returns:
            OK if a snapshot was restored, HISTORY_EXHAUSTED otherwise
        """
        if not self._undo_stack:
            return EditResult(EditStatus.HISTORY_EXHAUSTED, message="Nothing to undo")

        entry = self._undo_stack.pop()
        self._redo_stack.append(self.capture(store, entry.description))
        self._restore(store, entry)

        logger.debug(f"Undone: {entry.description}")
        self.state_changed.emit()
        return EditResult.success(message=f"Undo {entry.description}".strip())

    def redo(self, store: ShapeStore) -> EditResult:
        """
        Re-apply the most recently undone snapshot.

        Returns:
            OK if a snapshot was restored, HISTORY_EXHAUSTED otherwise
        """
        if not self._redo_stack:
            return EditResult(EditStatus.HISTORY_EXHAUSTED, message="Nothing to redo")

        entry = self._redo_stack.pop()
        self._undo_stack.append(self.capture(store, entry.description))
        self._restore(store, entry)

        logger.debug(f"Redone: {entry.description}")
        self.state_changed.emit()
        return EditResult.success(message=f"Redo {entry.description}".strip())

    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._undo_stack) > 0

    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._redo_stack) > 0

    def undo_description(self) -> str:
        """Get description of the change that would be undone."""
        if self._undo_stack:
            return self._undo_stack[-1].description
        return ""

    def redo_description(self) -> str:
        """Get description of the change that would be redone."""
        if self._redo_stack:
            return self._redo_stack[-1].description
        return ""

    def clear(self) -> None:
        """Clear all undo/redo history."""
        self._undo_stack.clear()
        self._redo_stack.clear()
        self.state_changed.emit()

    @property
    def undo_count(self) -> int:
        """Get the number of snapshots that can be undone."""
        return len(self._undo_stack)

    @property
    def redo_count(self) -> int:
        """Get the number of snapshots that can be redone."""
        return len(self._redo_stack)

    @property
    def max_history(self) -> int:
        return self._max_history

    def get_history(self) -> List[Tuple[int, str, bool]]:
        """
        Get the full history as a list of tuples.

        Returns:
            List of (index, description, is_undo_stack) tuples.
            - Undo stack items (past actions) have is_undo_stack=True
            - Redo stack items (undone actions) have is_undo_stack=False
            - Index is the position in respective stack (0 = oldest)
        """
        history = []

        for i, entry in enumerate(self._undo_stack):
            history.append((i, entry.description, True))

        for i, entry in enumerate(reversed(self._redo_stack)):
            history.append((len(self._redo_stack) - 1 - i, entry.description, False))

        return history

    def set_max_history(self, max_history: int) -> None:
        """
        Update the maximum history size.

        Args:
            max_history: New maximum number of snapshots to keep
        """
        self._max_history = max(1, max_history)  # Ensure at least 1

        # Trim undo stack if necessary
        while len(self._undo_stack) > self._max_history:
            self._undo_stack.pop(0)

        self.state_changed.emit()

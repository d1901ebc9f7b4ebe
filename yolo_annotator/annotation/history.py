"""
Undo/redo history over per-image annotation snapshots.

Call push(image_id) before a mutation; undo() restores the pushed
snapshot and keeps the current state for redo().
"""

from dataclasses import dataclass
from typing import List, Optional

from ..common.constants import DEFAULT_HISTORY_SIZE
from .annotation_store import AnnotationStore
from .models import ImageAnnotation


@dataclass
class HistoryEntry:
    image_id: str
    snapshot: ImageAnnotation


class AnnotationHistory:
    """
    Bounded undo/redo stacks.

    Attributes:
        store: Store the snapshots are taken from and restored into
        max_size: Maximum undo entries; the oldest is dropped first
    """

    def __init__(self, store: AnnotationStore, max_size: int = DEFAULT_HISTORY_SIZE):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.store = store
        self.max_size = max_size
        self._undo: List[HistoryEntry] = []
        self._redo: List[HistoryEntry] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def push(self, image_id: str) -> None:
        """Save the current state of an image. Clears the redo stack."""
        self._undo.append(HistoryEntry(image_id, self.store.snapshot(image_id)))
        if len(self._undo) > self.max_size:
            self._undo.pop(0)
        self._redo.clear()

    def undo(self) -> Optional[str]:
        """
        Restore the most recent snapshot.

        Returns:
            Image id that was restored, or None if there was nothing to undo
        """
        if not self._undo:
            return None

        entry = self._undo[-1]
        current = self.store.snapshot(entry.image_id)
        self.store.restore(entry.image_id, entry.snapshot)
        self._undo.pop()
        self._redo.append(HistoryEntry(entry.image_id, current))
        return entry.image_id

    def redo(self) -> Optional[str]:
        """
        Re-apply the most recently undone state.

        Returns:
            Image id that was restored, or None if there was nothing to redo
        """
        if not self._redo:
            return None

        entry = self._redo[-1]
        current = self.store.snapshot(entry.image_id)
        self.store.restore(entry.image_id, entry.snapshot)
        self._redo.pop()
        self._undo.append(HistoryEntry(entry.image_id, current))
        return entry.image_id

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

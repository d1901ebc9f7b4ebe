"""
Annotation Store

In-memory mapping from image id (root-relative path) to its
ImageAnnotation record. The store is an explicit object handed to every
component that needs it.

Every mutating call holds one re-entrant lock. While slow I/O runs for an
image (oracle inference, decoding), callers wrap it in
``store.processing(image_id)``; mutations of that image raise
ImageBusyError until the block exits.
"""

import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple

from ..utils.exceptions import ImageBusyError
from ..utils.logger import get_logger
from .models import BoundingBox, ImageAnnotation, PolygonSegment, Size

logger = get_logger(__name__)

ChangeListener = Callable[[str], None]


class AnnotationStore:
    """
    Thread-safe store of per-image annotations.

    Example:
        >>> store = AnnotationStore()
        >>> store.set_original_size("a.jpg", 640, 480)
        >>> store.add_box("a.jpg", BoundingBox(10, 10, 50, 40, "cup"))
        >>> store.get("a.jpg").boxes[0].label
        'cup'
    """

    def __init__(self, annotations: Optional[Dict[str, ImageAnnotation]] = None):
        self._annotations: Dict[str, ImageAnnotation] = dict(annotations or {})
        self._lock = threading.RLock()
        self._busy: Set[str] = set()
        self._listeners: List[ChangeListener] = []
        self._dirty = False
        self._last_box: Optional[BoundingBox] = None
        self._last_segment: Optional[PolygonSegment] = None

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        with self._lock:
            return len(self._annotations)

    def __contains__(self, image_id: str) -> bool:
        with self._lock:
            return image_id in self._annotations

    def get(self, image_id: str) -> Optional[ImageAnnotation]:
        """Return the record of an image, or None if it has none."""
        with self._lock:
            return self._annotations.get(image_id)

    def image_ids(self) -> List[str]:
        """All image ids with a record, sorted."""
        with self._lock:
            return sorted(self._annotations)

    def items(self) -> Iterator[Tuple[str, ImageAnnotation]]:
        """Iterate (image_id, record) pairs in sorted id order."""
        for image_id in self.image_ids():
            yield image_id, self._annotations[image_id]

    def annotated_image_ids(self, kind: Optional[str] = None) -> List[str]:
        """
        Image ids that carry at least one annotation.

        Args:
            kind: "box", "polygon", or None for either

        Returns:
            Sorted list of image ids
        """
        if kind not in (None, BoundingBox.kind, PolygonSegment.kind):
            raise ValueError(f"Unknown annotation kind: {kind}")

        with self._lock:
            result = []
            for image_id, record in self._annotations.items():
                if kind == BoundingBox.kind:
                    has_items = bool(record.boxes)
                elif kind == PolygonSegment.kind:
                    has_items = bool(record.polygons)
                else:
                    has_items = not record.is_empty
                if has_items:
                    result.append(image_id)
            return sorted(result)

    def labels(self) -> List[str]:
        """All labels in use, in first-seen order over sorted image ids."""
        seen: List[str] = []
        for _, record in self.items():
            for item in record.annotations():
                if item.label and item.label not in seen:
                    seen.append(item.label)
        return seen

    def count_annotations(self) -> Dict[str, int]:
        """Total number of boxes and polygons."""
        with self._lock:
            return {
                "boxes": sum(len(r.boxes) for r in self._annotations.values()),
                "polygons": sum(len(r.polygons) for r in self._annotations.values()),
            }

    @property
    def last_box(self) -> Optional[BoundingBox]:
        return self._last_box.copy() if self._last_box else None

    @property
    def last_segment(self) -> Optional[PolygonSegment]:
        return self._last_segment.copy() if self._last_segment else None

    # ------------------------------------------------------------------
    # Dirty tracking and listeners
    # ------------------------------------------------------------------

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def mark_saved(self) -> None:
        self._dirty = False

    def add_listener(self, listener: ChangeListener) -> None:
        """Register a callback invoked with the image id after each mutation."""
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _changed(self, image_id: str) -> None:
        self._dirty = True
        for listener in list(self._listeners):
            listener(image_id)

    # ------------------------------------------------------------------
    # Processing gate
    # ------------------------------------------------------------------

    def is_processing(self, image_id: str) -> bool:
        return image_id in self._busy

    @contextmanager
    def processing(self, image_id: str):
        """
        Gate an image while slow work runs for it.

        Raises:
            ImageBusyError: If the image is already gated
        """
        with self._lock:
            if image_id in self._busy:
                raise ImageBusyError(image_id)
            self._busy.add(image_id)
        try:
            yield
        finally:
            with self._lock:
                self._busy.discard(image_id)

    def _check_not_busy(self, image_id: str) -> None:
        if image_id in self._busy:
            raise ImageBusyError(image_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def get_or_create(self, image_id: str) -> ImageAnnotation:
        """Return the record of an image, creating an empty one if needed."""
        with self._lock:
            record = self._annotations.get(image_id)
            if record is None:
                record = ImageAnnotation()
                self._annotations[image_id] = record
            return record

    def set_original_size(self, image_id: str, width: int, height: int) -> None:
        """
        Record the original dimensions of an image.

        The first non-zero size wins; a later different size is ignored
        with a warning.
        """
        with self._lock:
            self._check_not_busy(image_id)
            record = self.get_or_create(image_id)
            new_size = Size(int(width), int(height))

            if record.original_size.is_set:
                if record.original_size != new_size:
                    logger.warning(
                        f"Ignoring size {width}x{height} for {image_id}; "
                        f"already recorded as {record.original_size.width}x"
                        f"{record.original_size.height}"
                    )
                return

            if not new_size.is_set:
                return

            record.original_size = new_size
            self._changed(image_id)

    def add_box(self, image_id: str, box: BoundingBox) -> None:
        with self._lock:
            self._check_not_busy(image_id)
            self.get_or_create(image_id).boxes.append(box)
            self._last_box = box.copy()
            self._changed(image_id)

    def remove_box(self, image_id: str, index: int) -> Optional[BoundingBox]:
        """Remove a box by index. Out-of-range indices are a no-op (returns None)."""
        with self._lock:
            self._check_not_busy(image_id)
            record = self._annotations.get(image_id)
            if record is None or not 0 <= index < len(record.boxes):
                return None
            removed = record.boxes.pop(index)
            self._changed(image_id)
            return removed

    def update_box(self, image_id: str, index: int, **changes: Any) -> Optional[BoundingBox]:
        """
        Update fields of a box in place.

        Returns:
            The updated box, or None for an out-of-range index
        """
        with self._lock:
            self._check_not_busy(image_id)
            record = self._annotations.get(image_id)
            if record is None or not 0 <= index < len(record.boxes):
                return None
            record.boxes[index] = record.boxes[index].copy(**changes)
            self._changed(image_id)
            return record.boxes[index]

    def repeat_last_box(self, image_id: str, label: Optional[str] = None) -> Optional[BoundingBox]:
        """
        Add a copy of the most recently added box to another image.

        Args:
            image_id: Target image
            label: Optional replacement label

        Returns:
            The added box, or None if no box was added yet
        """
        with self._lock:
            if self._last_box is None:
                return None
            box = self._last_box.copy()
            if label:
                box.label = label
            self.add_box(image_id, box)
            return box

    def add_segment(self, image_id: str, segment: PolygonSegment) -> None:
        with self._lock:
            self._check_not_busy(image_id)
            self.get_or_create(image_id).polygons.append(segment)
            self._last_segment = segment.copy()
            self._changed(image_id)

    def remove_segment(self, image_id: str, index: int) -> Optional[PolygonSegment]:
        """Remove a segment by index. Out-of-range indices are a no-op (returns None)."""
        with self._lock:
            self._check_not_busy(image_id)
            record = self._annotations.get(image_id)
            if record is None or not 0 <= index < len(record.polygons):
                return None
            removed = record.polygons.pop(index)
            self._changed(image_id)
            return removed

    def update_segment(
        self, image_id: str, index: int, **changes: Any
    ) -> Optional[PolygonSegment]:
        """
        Update fields of a segment.

        Returns:
            The updated segment, or None for an out-of-range index or a
            polygon with fewer than 3 points (nothing changes)
        """
        with self._lock:
            self._check_not_busy(image_id)
            record = self._annotations.get(image_id)
            if record is None or not 0 <= index < len(record.polygons):
                return None
            try:
                record.polygons[index] = record.polygons[index].copy(**changes)
            except ValueError as e:
                logger.warning(f"Rejected segment update on {image_id}: {e}")
                return None
            self._changed(image_id)
            return record.polygons[index]

    def clear_image(self, image_id: str) -> None:
        """Remove every box and polygon of an image, keeping its size."""
        with self._lock:
            self._check_not_busy(image_id)
            record = self._annotations.get(image_id)
            if record is None or record.is_empty:
                return
            record.boxes.clear()
            record.polygons.clear()
            self._changed(image_id)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self, image_id: str) -> ImageAnnotation:
        """Deep copy of an image's record (empty record if none)."""
        with self._lock:
            record = self._annotations.get(image_id)
            return record.copy() if record else ImageAnnotation()

    def restore(self, image_id: str, snapshot: ImageAnnotation) -> None:
        """Replace an image's record with a snapshot."""
        with self._lock:
            self._check_not_busy(image_id)
            self._annotations[image_id] = snapshot.copy()
            self._changed(image_id)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Dict]:
        with self._lock:
            return {
                image_id: self._annotations[image_id].to_dict()
                for image_id in sorted(self._annotations)
            }

    @classmethod
    def from_dict(cls, data: Dict[str, Dict]) -> "AnnotationStore":
        return cls({
            image_id: ImageAnnotation.from_dict(record)
            for image_id, record in data.items()
        })

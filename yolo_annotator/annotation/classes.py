"""
Class list management.

The order of the class list defines the exported class ids
(index = id). Labels missing from the list export as FALLBACK_CLASS_ID.
"""

from typing import Dict, Iterable, List, Optional, Tuple, TYPE_CHECKING

from ..common.constants import CLASS_COLORS_HEX, FALLBACK_CLASS_ID

if TYPE_CHECKING:
    from .annotation_store import AnnotationStore

DEFAULT_CLASS_NAME = "object"


def hex_to_bgr(color: str) -> Tuple[int, int, int]:
    """Convert "#RRGGBB" to an OpenCV BGR tuple."""
    value = color.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Invalid hex color: {color}")
    r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    return (b, g, r)


def class_color(index: int) -> Tuple[int, int, int]:
    """Palette color (BGR) for a class index; the palette repeats."""
    return hex_to_bgr(CLASS_COLORS_HEX[index % len(CLASS_COLORS_HEX)])


class ClassList:
    """
    Ordered list of unique class names with an active selection.

    Example:
        >>> classes = ClassList(["cup", "bottle"])
        >>> classes.class_id("bottle")
        1
        >>> classes.class_id("unknown")
        0
    """

    def __init__(self, names: Optional[Iterable[str]] = None):
        self._names: List[str] = []
        self.active: Optional[str] = None
        for name in names or []:
            self.add(name, select=False)
        if self._names:
            self.active = self._names[0]

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self):
        return iter(self._names)

    def __contains__(self, name: str) -> bool:
        return name in self._names

    @property
    def names(self) -> List[str]:
        return list(self._names)

    def add(self, name: str, select: bool = True) -> Optional[str]:
        """
        Add a class name (whitespace trimmed).

        Blank names are ignored; an existing name is only selected.

        Returns:
            The stored name, or None if the name was blank
        """
        if not name or not name.strip():
            return None

        name = name.strip()
        if name not in self._names:
            self._names.append(name)
        if select:
            self.active = name
        return name

    def remove(self, index: int) -> Optional[str]:
        """
        Remove a class by index. Out-of-range indices are a no-op.

        When the active class is removed, the first remaining class
        becomes active.
        """
        if not 0 <= index < len(self._names):
            return None

        removed = self._names.pop(index)
        if self.active == removed:
            self.active = self._names[0] if self._names else None
        return removed

    def select(self, name: str) -> None:
        if name not in self._names:
            raise ValueError(f"Unknown class: {name}")
        self.active = name

    def ensure_default(self) -> None:
        """Add the default class when the list is empty."""
        if not self._names:
            self.add(DEFAULT_CLASS_NAME)

    def class_id(self, label: str) -> int:
        """Class id of a label; unknown labels map to FALLBACK_CLASS_ID."""
        try:
            return self._names.index(label)
        except ValueError:
            return FALLBACK_CLASS_ID

    def id_map(self) -> Dict[str, int]:
        return {name: idx for idx, name in enumerate(self._names)}

    def color(self, index: int) -> Tuple[int, int, int]:
        return class_color(index)

    def color_for(self, label: str) -> Tuple[int, int, int]:
        return class_color(self.class_id(label))

    def merge_labels(self, labels: Iterable[str]) -> None:
        """Append labels that are not yet in the list, keeping the selection."""
        for label in labels:
            self.add(label, select=False)
        if self.active is None and self._names:
            self.active = self._names[0]

    @classmethod
    def from_store(
        cls,
        store: "AnnotationStore",
        names: Optional[Iterable[str]] = None,
    ) -> "ClassList":
        """
        Build a class list from explicit names plus every label in a store.

        Args:
            store: Store whose labels are recovered
            names: Names that come first, in order

        Returns:
            ClassList instance
        """
        classes = cls(names)
        classes.merge_labels(store.labels())
        return classes

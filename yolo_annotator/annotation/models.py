"""
Annotation Data Model

Tagged annotation variants stored per image. All coordinates are in
original-image pixel space.

    Annotation = BoundingBox | PolygonSegment

Consumers dispatch on the concrete type with isinstance(); the `kind`
attribute is written to the persisted document.
"""

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..common.constants import DEFAULT_SEGMENT_SCORE, MIN_POLYGON_POINTS
from .contour import polygon_area, polygon_bounds


@dataclass(frozen=True)
class Point:
    """A 2D point in pixel coordinates."""

    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Point":
        return cls(x=data["x"], y=data["y"])


@dataclass(frozen=True)
class Size:
    """Image dimensions in pixels. (0, 0) means not yet known."""

    width: int = 0
    height: int = 0

    @property
    def is_set(self) -> bool:
        return self.width > 0 and self.height > 0

    def to_dict(self) -> Dict[str, int]:
        return {"width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Size":
        data = data or {}
        return cls(width=int(data.get("width", 0)), height=int(data.get("height", 0)))


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned bounding rectangle (top-left + size)."""

    x: float
    y: float
    width: float
    height: float

    def to_list(self) -> List[float]:
        return [self.x, self.y, self.width, self.height]

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Bounds":
        return cls(x=data["x"], y=data["y"], width=data["width"], height=data["height"])


@dataclass
class BoundingBox:
    """
    Axis-aligned box annotation.

    Attributes:
        x: Left edge in original pixels
        y: Top edge in original pixels
        width: Box width (> 0 once committed)
        height: Box height (> 0 once committed)
        label: Class name
    """

    x: float
    y: float
    width: float
    height: float
    label: str

    kind = "box"

    def copy(self, **changes) -> "BoundingBox":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoundingBox":
        return cls(
            x=data["x"],
            y=data["y"],
            width=data["width"],
            height=data["height"],
            label=data["label"],
        )


@dataclass
class PolygonSegment:
    """
    Polygon annotation produced from an oracle mask.

    Attributes:
        id: Unique opaque token
        label: Class name
        polygon: Ordered vertices (closed implicitly), at least 3
        click_points: Point prompts that produced the mask
        score: Oracle confidence in [0, 1], None if unknown
        bounds: Bounds derived from the polygon
        area: Shoelace area of the polygon
        timestamp: Creation time (seconds since epoch)
    """

    id: str
    label: str
    polygon: List[Point]
    click_points: List[Point] = field(default_factory=list)
    score: Optional[float] = None
    bounds: Optional[Bounds] = None
    area: Optional[float] = None
    timestamp: float = 0.0

    kind = "polygon"

    @classmethod
    def create(
        cls,
        polygon: Sequence[Union[Point, Tuple[float, float]]],
        label: str,
        click_points: Sequence[Union[Point, Tuple[float, float]]] = (),
        score: Optional[float] = None,
        timestamp: Optional[float] = None,
    ) -> Optional["PolygonSegment"]:
        """
        Build a segment, deriving bounds and area from the polygon.

        Returns:
            PolygonSegment, or None if the polygon has fewer than 3 points
        """
        points = [_as_point(p) for p in polygon]
        if len(points) < MIN_POLYGON_POINTS:
            return None

        xy = [(p.x, p.y) for p in points]
        return cls(
            id=uuid.uuid4().hex,
            label=label,
            polygon=points,
            click_points=[_as_point(p) for p in click_points],
            score=score,
            bounds=Bounds(*polygon_bounds(xy)),
            area=polygon_area(xy),
            timestamp=time.time() if timestamp is None else timestamp,
        )

    @property
    def effective_score(self) -> float:
        return DEFAULT_SEGMENT_SCORE if self.score is None else self.score

    def flat_coordinates(self) -> List[float]:
        """Polygon as [x1, y1, x2, y2, ...]."""
        coords: List[float] = []
        for p in self.polygon:
            coords.extend((p.x, p.y))
        return coords

    def copy(self, **changes) -> "PolygonSegment":
        """
        Copy with changed fields.

        A new polygon gets its bounds and area recomputed unless they are
        passed explicitly.

        Raises:
            ValueError: If the new polygon has fewer than 3 points
        """
        if "polygon" in changes:
            points = [_as_point(p) for p in changes["polygon"]]
            if len(points) < MIN_POLYGON_POINTS:
                raise ValueError(f"Polygon needs at least {MIN_POLYGON_POINTS} points")
            xy = [(p.x, p.y) for p in points]
            changes["polygon"] = points
            changes.setdefault("bounds", Bounds(*polygon_bounds(xy)))
            changes.setdefault("area", polygon_area(xy))
        else:
            changes["polygon"] = list(self.polygon)
        if "click_points" in changes:
            changes["click_points"] = [_as_point(p) for p in changes["click_points"]]
        else:
            changes["click_points"] = list(self.click_points)
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "id": self.id,
            "label": self.label,
            "polygon": [p.to_dict() for p in self.polygon],
            "click_points": [p.to_dict() for p in self.click_points],
            "score": self.score,
            "bounds": self.bounds.to_dict() if self.bounds else None,
            "area": self.area,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolygonSegment":
        click_points = data.get("click_points")
        if click_points is None:
            # Older documents stored a single click point
            single = data.get("click_point") or data.get("clickPoint")
            click_points = [single] if single else []
        bounds = data.get("bounds")
        return cls(
            id=data.get("id") or uuid.uuid4().hex,
            label=data["label"],
            polygon=[Point.from_dict(p) for p in data["polygon"]],
            click_points=[Point.from_dict(p) for p in click_points],
            score=data.get("score"),
            bounds=Bounds.from_dict(bounds) if bounds else None,
            area=data.get("area"),
            timestamp=data.get("timestamp", 0.0),
        )


Annotation = Union[BoundingBox, PolygonSegment]


@dataclass
class ImageAnnotation:
    """
    Annotation record of one image.

    Attributes:
        original_size: Source image dimensions, set once when first loaded
        boxes: Box annotations
        polygons: Polygon annotations
    """

    original_size: Size = field(default_factory=Size)
    boxes: List[BoundingBox] = field(default_factory=list)
    polygons: List[PolygonSegment] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.boxes and not self.polygons

    def annotations(self) -> List[Annotation]:
        """All annotations, boxes first."""
        return [*self.boxes, *self.polygons]

    def copy(self) -> "ImageAnnotation":
        """Deep copy of the record."""
        return ImageAnnotation(
            original_size=self.original_size,
            boxes=[b.copy() for b in self.boxes],
            polygons=[s.copy() for s in self.polygons],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_size": self.original_size.to_dict(),
            "boxes": [b.to_dict() for b in self.boxes],
            "polygons": [s.to_dict() for s in self.polygons],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageAnnotation":
        size = data.get("original_size", data.get("originalSize"))
        return cls(
            original_size=Size.from_dict(size),
            boxes=[BoundingBox.from_dict(b) for b in data.get("boxes", [])],
            polygons=[PolygonSegment.from_dict(s) for s in data.get("polygons", [])],
        )


def _as_point(value: Union[Point, Tuple[float, float], Dict[str, float]]) -> Point:
    if isinstance(value, Point):
        return value
    if isinstance(value, dict):
        return Point.from_dict(value)
    x, y = value
    return Point(x, y)

"""
YOLO Annotator - Annotation Module

Annotation data model, in-memory store, undo history, class list,
mask-to-polygon extraction and the validation preview renderer.
"""

from .models import (
    Point,
    Size,
    Bounds,
    BoundingBox,
    PolygonSegment,
    ImageAnnotation,
    Annotation,
)
from .contour import (
    find_boundary_pixels,
    trace_contours,
    douglas_peucker,
    simplify_closed_contour,
    mask_to_polygon,
    polygon_area,
    polygon_bounds,
    mask_bbox,
)
from .annotation_store import AnnotationStore
from .history import AnnotationHistory
from .classes import ClassList, class_color, hex_to_bgr
from .visualization import (
    draw_box,
    draw_polygon,
    render_validation_preview,
    render_preview_file,
)

__all__ = [
    # Models
    "Point",
    "Size",
    "Bounds",
    "BoundingBox",
    "PolygonSegment",
    "ImageAnnotation",
    "Annotation",
    # Contour extraction
    "find_boundary_pixels",
    "trace_contours",
    "douglas_peucker",
    "simplify_closed_contour",
    "mask_to_polygon",
    "polygon_area",
    "polygon_bounds",
    "mask_bbox",
    # Store
    "AnnotationStore",
    "AnnotationHistory",
    "ClassList",
    "class_color",
    "hex_to_bgr",
    # Preview
    "draw_box",
    "draw_polygon",
    "render_validation_preview",
    "render_preview_file",
]

"""
Letterbox Geometry

Pure coordinate transforms between original-image space and the square
target canvas used for training, plus the screen <-> image transform used
by interactive annotation.

compute_letterbox() is the single source of truth for scale and offset:
export, label generation and validation preview all go through it so that
what is drawn and what is exported never drift apart.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple, TYPE_CHECKING

from .constants import MIN_SCREEN_BOX_SIZE

if TYPE_CHECKING:
    from ..annotation.models import BoundingBox


def round_half_up(value: float) -> int:
    """Round to the nearest integer; exact halves round up (toward +inf)."""
    return int(math.floor(value + 0.5))


def clamp01(value: float) -> float:
    """Clamp a value to [0, 1]."""
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class LetterboxParams:
    """
    Result of fitting an image into a square target canvas.

    Attributes:
        scale: Uniform scale factor (original -> target)
        new_width: Scaled image width in target pixels
        new_height: Scaled image height in target pixels
        offset_x: Left padding in target pixels
        offset_y: Top padding in target pixels
        target_size: Side of the square canvas
    """

    scale: float
    new_width: int
    new_height: int
    offset_x: int
    offset_y: int
    target_size: int


def compute_letterbox(orig_width: float, orig_height: float, target_size: int) -> LetterboxParams:
    """
    Compute letterbox parameters (fit-within, centered).

    Args:
        orig_width: Original image width in pixels
        orig_height: Original image height in pixels
        target_size: Side of the square target canvas

    Returns:
        LetterboxParams

    Raises:
        ValueError: If any dimension is not positive
    """
    if orig_width <= 0 or orig_height <= 0 or target_size <= 0:
        raise ValueError(
            f"Invalid letterbox input: {orig_width}x{orig_height} -> {target_size}"
        )

    scale = min(target_size / orig_width, target_size / orig_height)
    # Keep at least one pixel on each side for extreme aspect ratios
    new_width = max(1, round_half_up(orig_width * scale))
    new_height = max(1, round_half_up(orig_height * scale))
    offset_x = round_half_up((target_size - new_width) / 2)
    offset_y = round_half_up((target_size - new_height) / 2)

    return LetterboxParams(
        scale=scale,
        new_width=new_width,
        new_height=new_height,
        offset_x=offset_x,
        offset_y=offset_y,
        target_size=target_size,
    )


def point_to_target(x: float, y: float, params: LetterboxParams) -> Tuple[float, float]:
    """Map an original-image point into target canvas pixels."""
    return (x * params.scale + params.offset_x, y * params.scale + params.offset_y)


def box_to_target(
    x: float, y: float, width: float, height: float, params: LetterboxParams
) -> Tuple[float, float, float, float]:
    """
    Map an original-image box (top-left + size) into target canvas pixels.

    Returns:
        Tuple (x, y, width, height) in target pixels
    """
    tx, ty = point_to_target(x, y, params)
    return (tx, ty, width * params.scale, height * params.scale)


def normalize_box(
    box: "BoundingBox",
    orig_width: float,
    orig_height: float,
    target_size: int,
) -> Tuple[float, float, float, float]:
    """
    Convert a box to normalized center/size in the letterboxed target.

    Each value is clamped to [0, 1] independently; partially visible
    boxes stay representable instead of being rejected.

    Returns:
        Tuple (x_center, y_center, width, height) in [0, 1]
    """
    params = compute_letterbox(orig_width, orig_height, target_size)

    center_x = box.x + box.width / 2
    center_y = box.y + box.height / 2
    target_cx, target_cy = point_to_target(center_x, center_y, params)

    return (
        clamp01(target_cx / target_size),
        clamp01(target_cy / target_size),
        clamp01(box.width * params.scale / target_size),
        clamp01(box.height * params.scale / target_size),
    )


def format_label_line(
    class_id: int, x_center: float, y_center: float, width: float, height: float
) -> str:
    """Format one YOLO label line with 6 decimal places."""
    return f"{class_id} {x_center:.6f} {y_center:.6f} {width:.6f} {height:.6f}"


def to_normalized_box(
    box: "BoundingBox",
    orig_width: float,
    orig_height: float,
    target_size: int,
    class_id: int,
) -> str:
    """
    Convert a box in original-image space into a YOLO label line.

    Args:
        box: Box with x, y, width, height in original pixels
        orig_width: Original image width
        orig_height: Original image height
        target_size: Side of the square target canvas
        class_id: Class index to write

    Returns:
        "<class_id> <cx> <cy> <w> <h>"
    """
    return format_label_line(class_id, *normalize_box(box, orig_width, orig_height, target_size))


@dataclass(frozen=True)
class ViewTransform:
    """
    Uniform scale + origin offset between a rendering surface and the image.

    screen = image * scale + origin; image = (screen - origin) / scale
    """

    scale: float
    origin_x: float = 0.0
    origin_y: float = 0.0

    def __post_init__(self):
        if self.scale <= 0:
            raise ValueError("scale must be positive")

    def to_screen_point(self, x: float, y: float) -> Tuple[float, float]:
        return (x * self.scale + self.origin_x, y * self.scale + self.origin_y)

    def to_image_point(self, x: float, y: float) -> Tuple[float, float]:
        return ((x - self.origin_x) / self.scale, (y - self.origin_y) / self.scale)

    @classmethod
    def fit(cls, image_width: float, image_height: float,
            view_width: float, view_height: float) -> "ViewTransform":
        """Fit an image centered inside a view, preserving aspect ratio."""
        scale = min(view_width / image_width, view_height / image_height)
        return cls(
            scale=scale,
            origin_x=(view_width - image_width * scale) / 2,
            origin_y=(view_height - image_height * scale) / 2,
        )


def box_from_screen_rect(
    left: float,
    top: float,
    width: float,
    height: float,
    transform: ViewTransform,
    label: str,
    min_screen_size: float = MIN_SCREEN_BOX_SIZE,
) -> Optional["BoundingBox"]:
    """
    Convert a rectangle drawn on screen into an image-space box.

    Args:
        left, top, width, height: Rectangle in screen pixels
        transform: Current screen <-> image transform
        label: Class name for the new box
        min_screen_size: Minimum side length on screen

    Returns:
        BoundingBox in original-image pixels, or None for a degenerate
        rectangle (either side below min_screen_size)
    """
    from ..annotation.models import BoundingBox

    if width < min_screen_size or height < min_screen_size:
        return None

    x, y = transform.to_image_point(left, top)
    return BoundingBox(
        x=x,
        y=y,
        width=width / transform.scale,
        height=height / transform.scale,
        label=label,
    )

"""
Validation Preview Rendering

Draws an image's annotations onto the exact image the exporter would
write, so the preview predicts the training labels:

- detection: filters + letterbox, boxes/polygons mapped into target space
- segmentation: the untouched source image, original coordinates
"""

from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from ..common.config_utils import ExportConfig, ExportFormat
from ..common.constants import (
    DEFAULT_BBOX_THICKNESS,
    DEFAULT_FONT_SCALE,
    DEFAULT_FONT_THICKNESS,
    FALLBACK_CLASS_ID,
)
from ..common.geometry import (
    LetterboxParams,
    box_to_target,
    compute_letterbox,
    point_to_target,
    round_half_up,
)
from ..common.image_utils import encode_png, load_image, prepare_training_image
from ..utils.exceptions import SourceImageMissingError
from .classes import class_color
from .models import BoundingBox, ImageAnnotation, PolygonSegment


class AnnotationStyle:
    """Style constants for the validation preview."""

    BOX_THICKNESS = DEFAULT_BBOX_THICKNESS
    POLYGON_THICKNESS = DEFAULT_BBOX_THICKNESS
    POLYGON_FILL_ALPHA = 0.25
    FONT = cv2.FONT_HERSHEY_SIMPLEX
    FONT_SCALE = DEFAULT_FONT_SCALE
    FONT_THICKNESS = DEFAULT_FONT_THICKNESS
    TEXT_COLOR = (255, 255, 255)


def draw_label(
    image: np.ndarray,
    text: str,
    anchor: Tuple[int, int],
    color: Tuple[int, int, int],
) -> np.ndarray:
    """Draw a text label on a filled background above an anchor point."""
    x, y = anchor
    (text_width, text_height), _ = cv2.getTextSize(
        text, AnnotationStyle.FONT, AnnotationStyle.FONT_SCALE, AnnotationStyle.FONT_THICKNESS
    )

    label_y = max(y - 5, text_height + 5)
    cv2.rectangle(
        image,
        (x, label_y - text_height - 5),
        (x + text_width + 5, label_y + 5),
        color,
        -1,
    )
    cv2.putText(
        image,
        text,
        (x + 2, label_y),
        AnnotationStyle.FONT,
        AnnotationStyle.FONT_SCALE,
        AnnotationStyle.TEXT_COLOR,
        AnnotationStyle.FONT_THICKNESS,
    )
    return image


def draw_box(
    image: np.ndarray,
    box: Tuple[float, float, float, float],
    label: str = "",
    color: Tuple[int, int, int] = (0, 255, 0),
) -> np.ndarray:
    """
    Draw a box given as (x, y, width, height) in image pixels.

    Args:
        image: Image to draw on (modified in place)
        box: Top-left corner and size
        label: Optional text drawn above the box
        color: BGR color

    Returns:
        The same image
    """
    x, y, w, h = (round_half_up(v) for v in box)
    cv2.rectangle(image, (x, y), (x + w, y + h), color, AnnotationStyle.BOX_THICKNESS)
    if label:
        draw_label(image, label, (x, y), color)
    return image


def draw_polygon(
    image: np.ndarray,
    points: Sequence[Tuple[float, float]],
    label: str = "",
    color: Tuple[int, int, int] = (0, 255, 0),
    fill_alpha: float = AnnotationStyle.POLYGON_FILL_ALPHA,
) -> np.ndarray:
    """
    Draw a closed polygon with a translucent fill.

    Args:
        image: Image to draw on (modified in place)
        points: Vertices in image pixels
        label: Optional text drawn at the top-left of the polygon bounds
        color: BGR color
        fill_alpha: Fill opacity (0 disables the fill)

    Returns:
        The same image
    """
    if len(points) < 2:
        return image

    pts = np.array(
        [[round_half_up(x), round_half_up(y)] for x, y in points], dtype=np.int32
    ).reshape(-1, 1, 2)

    if fill_alpha > 0 and len(points) >= 3:
        overlay = image.copy()
        cv2.fillPoly(overlay, [pts], color)
        cv2.addWeighted(overlay, fill_alpha, image, 1 - fill_alpha, 0, dst=image)

    cv2.polylines(image, [pts], True, color, AnnotationStyle.POLYGON_THICKNESS)

    if label:
        anchor = (int(pts[:, 0, 0].min()), int(pts[:, 0, 1].min()))
        draw_label(image, label, anchor, color)
    return image


def _identity_params(width: int, height: int) -> LetterboxParams:
    return LetterboxParams(
        scale=1.0,
        new_width=width,
        new_height=height,
        offset_x=0,
        offset_y=0,
        target_size=max(width, height),
    )


def render_validation_preview(
    image: Union[str, Path, np.ndarray],
    annotation: ImageAnnotation,
    config: ExportConfig,
) -> np.ndarray:
    """
    Render an image with its annotations as they will be exported.

    Box coordinates are mapped with the letterbox computed from the
    annotation's recorded original size (falling back to the image's own
    size), exactly like label generation.

    Args:
        image: Source image path or BGR array
        annotation: Record of the image
        config: Export configuration (format, target size, filters, classes)

    Returns:
        BGR image with overlays

    Raises:
        SourceImageMissingError: If an image path cannot be read
    """
    if isinstance(image, (str, Path)):
        loaded = load_image(image)
        if loaded is None:
            raise SourceImageMissingError(Path(image).name, str(image))
        image = loaded

    src_h, src_w = image.shape[:2]
    size = annotation.original_size
    orig_w, orig_h = (size.width, size.height) if size.is_set else (src_w, src_h)

    if config.format == ExportFormat.DETECTION:
        canvas, _ = prepare_training_image(image, config.filters, config.target_size)
        params = compute_letterbox(orig_w, orig_h, config.target_size)
    else:
        canvas = image.copy()
        params = _identity_params(src_w, src_h)

    id_map = config.class_id_map()

    for item in annotation.annotations():
        color = class_color(id_map.get(item.label, FALLBACK_CLASS_ID))
        if isinstance(item, BoundingBox):
            target_box = box_to_target(item.x, item.y, item.width, item.height, params)
            draw_box(canvas, target_box, item.label, color)
        elif isinstance(item, PolygonSegment):
            target_points = [point_to_target(p.x, p.y, params) for p in item.polygon]
            draw_polygon(canvas, target_points, item.label, color)

    return canvas


def render_preview_file(
    image_path: Union[str, Path],
    annotation: ImageAnnotation,
    config: ExportConfig,
    output_path: Optional[Union[str, Path]] = None,
) -> bytes:
    """
    Render a validation preview as PNG bytes, optionally writing it to disk.

    Returns:
        PNG-encoded preview
    """
    data = encode_png(render_validation_preview(image_path, annotation, config))
    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(data)
    return data

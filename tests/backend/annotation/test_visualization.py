"""
Tests for the validation preview renderer.
"""

from pathlib import Path

import numpy as np
import pytest

from yolo_annotator.annotation import (
    BoundingBox,
    ImageAnnotation,
    Size,
    class_color,
    draw_box,
    draw_polygon,
    render_preview_file,
    render_validation_preview,
)
from yolo_annotator.common.config_utils import ExportConfig, ExportFormat
from yolo_annotator.utils.exceptions import SourceImageMissingError


@pytest.fixture
def blank_image() -> np.ndarray:
    return np.zeros((480, 640, 3), dtype=np.uint8)


class TestDrawing:
    """Test draw_box and draw_polygon."""

    def test_draw_box_edges(self, blank_image):
        draw_box(blank_image, (100, 100, 50, 40), color=(0, 0, 255))

        assert tuple(blank_image[100, 120]) == (0, 0, 255)
        assert tuple(blank_image[120, 125]) == (0, 0, 0)

    def test_draw_polygon_fill(self, blank_image):
        draw_polygon(blank_image, [(10, 10), (110, 10), (110, 110), (10, 110)], color=(0, 255, 0))

        assert blank_image[60, 60, 1] > 0
        assert blank_image[60, 60, 1] < 255
        assert tuple(blank_image[200, 200]) == (0, 0, 0)

    def test_draw_polygon_too_few_points(self, blank_image):
        draw_polygon(blank_image, [(10, 10)])

        assert blank_image.max() == 0


class TestRenderValidationPreview:
    """Test render_validation_preview function."""

    def test_detection_is_letterboxed(self, blank_image):
        annotation = ImageAnnotation(Size(640, 480), boxes=[BoundingBox(0, 0, 640, 480, "cup")])
        config = ExportConfig(class_list=["cup"])

        preview = render_validation_preview(blank_image, annotation, config)

        assert preview.shape == (640, 640, 3)
        # Bottom edge of the box sits on the bottom of the scaled image
        assert tuple(preview[560, 320]) == class_color(0)
        assert preview[620, 320].max() == 0

    def test_detection_uses_recorded_size(self):
        """Boxes map through the letterbox of the recorded original size."""
        image = np.zeros((240, 320, 3), dtype=np.uint8)
        annotation = ImageAnnotation(Size(640, 480), boxes=[BoundingBox(0, 0, 640, 480, "cup")])

        preview = render_validation_preview(image, annotation, ExportConfig(class_list=["cup"]))

        assert tuple(preview[560, 320]) == class_color(0)

    def test_segmentation_keeps_original_size(self, blank_image, make_segment):
        annotation = ImageAnnotation(Size(640, 480), polygons=[make_segment("bottle")])
        config = ExportConfig(format=ExportFormat.SEGMENTATION, class_list=["cup", "bottle"])

        preview = render_validation_preview(blank_image, annotation, config)

        assert preview.shape == (480, 640, 3)
        assert tuple(preview[50, 35]) == class_color(1)
        assert blank_image.max() == 0

    def test_unmapped_label_uses_fallback_color(self, blank_image):
        annotation = ImageAnnotation(Size(640, 480), boxes=[BoundingBox(0, 0, 640, 480, "mystery")])

        preview = render_validation_preview(
            blank_image, annotation, ExportConfig(class_list=["cup", "bottle"])
        )

        assert tuple(preview[560, 320]) == class_color(0)

    def test_missing_image_path(self, temp_dir: Path):
        with pytest.raises(SourceImageMissingError):
            render_validation_preview(temp_dir / "missing.png", ImageAnnotation(), ExportConfig())

    def test_render_preview_file(self, sample_image: Path, temp_dir: Path):
        annotation = ImageAnnotation(Size(640, 480), boxes=[BoundingBox(10, 10, 100, 100, "cup")])
        out = temp_dir / "previews" / "a.png"

        data = render_preview_file(sample_image, annotation, ExportConfig(class_list=["cup"]), out)

        assert data.startswith(b"\x89PNG")
        assert out.read_bytes() == data

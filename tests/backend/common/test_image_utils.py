"""
Tests for image utilities.

Tests image listing, I/O, export pre-filters and letterbox resampling.
"""

from pathlib import Path

import cv2
import numpy as np
import pytest

from yolo_annotator.common.config_utils import ImageFilters
from yolo_annotator.common.image_utils import (
    apply_filters,
    encode_png,
    flatten_image_id,
    is_image_file,
    letterbox_image,
    list_image_files,
    load_image,
    prepare_training_image,
    read_image_size,
    save_image,
)


class TestImageListing:
    """Test is_image_file and list_image_files."""

    @pytest.mark.parametrize("name", ["a.jpg", "b.JPEG", "c.Png", "d.webp"])
    def test_supported_extensions(self, name):
        assert is_image_file(name)

    @pytest.mark.parametrize("name", ["notes.txt", "image.bmp", "noext"])
    def test_unsupported_extensions(self, name):
        assert not is_image_file(name)

    def test_recursive_sorted_posix_ids(self, image_folder: Path):
        assert list_image_files(image_folder) == ["a.png", "c.png", "sub/b.png"]

    def test_non_recursive(self, image_folder: Path):
        assert list_image_files(image_folder, recursive=False) == ["a.png", "c.png"]

    def test_missing_directory(self, temp_dir: Path):
        assert list_image_files(temp_dir / "missing") == []

    def test_flatten_image_id(self):
        assert flatten_image_id("shelf/top/cup.jpg") == "shelf_top_cup.jpg"
        assert flatten_image_id("cup.jpg") == "cup.jpg"


class TestImageIO:
    """Test load_image, read_image_size, save_image and encode_png."""

    def test_load_image_modes(self, sample_image: Path):
        bgr = load_image(sample_image)
        gray = load_image(sample_image, color_mode="gray")

        assert bgr.shape == (480, 640, 3)
        assert gray.shape == (480, 640)

    def test_load_missing_returns_none(self, temp_dir: Path):
        assert load_image(temp_dir / "missing.png") is None

    def test_read_image_size(self, sample_image: Path, temp_dir: Path):
        assert read_image_size(sample_image) == (640, 480)
        assert read_image_size(temp_dir / "missing.png") is None

    def test_save_creates_parent(self, sample_bgr_image: np.ndarray, temp_dir: Path):
        out = temp_dir / "nested" / "dir" / "out.jpg"

        assert save_image(sample_bgr_image, out)
        assert out.exists()

    def test_encode_png(self, sample_bgr_image: np.ndarray):
        data = encode_png(sample_bgr_image)

        assert data[:8] == b"\x89PNG\r\n\x1a\n"
        decoded = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
        assert np.array_equal(decoded, sample_bgr_image)


class TestApplyFilters:
    """Test apply_filters function."""

    def test_identity_returns_copy(self, sample_bgr_image: np.ndarray):
        result = apply_filters(sample_bgr_image, ImageFilters())

        assert np.array_equal(result, sample_bgr_image)
        assert result is not sample_bgr_image

    def test_input_not_modified(self, sample_bgr_image: np.ndarray):
        original = sample_bgr_image.copy()

        apply_filters(sample_bgr_image, ImageFilters(brightness=0.5, blur=2.0))

        assert np.array_equal(sample_bgr_image, original)

    def test_grayscale_has_equal_channels(self):
        image = np.zeros((10, 10, 3), dtype=np.uint8)
        image[..., 2] = 200

        result = apply_filters(image, ImageFilters(grayscale=True))

        assert result.shape == (10, 10, 3)
        assert np.array_equal(result[..., 0], result[..., 1])
        assert np.array_equal(result[..., 1], result[..., 2])

    def test_exposure_scales_and_saturates(self):
        image = np.full((4, 4, 3), 100, dtype=np.uint8)

        assert apply_filters(image, ImageFilters(exposure=2.0))[0, 0, 0] == 200
        assert apply_filters(image, ImageFilters(exposure=3.0))[0, 0, 0] == 255

    def test_brightness_darkens(self):
        image = np.full((4, 4, 3), 200, dtype=np.uint8)

        result = apply_filters(image, ImageFilters(brightness=0.5))

        assert result.mean() < image.mean()


class TestLetterboxImage:
    """Test letterbox_image and prepare_training_image."""

    def test_landscape_padding(self):
        image = np.full((480, 640, 3), 255, dtype=np.uint8)

        canvas, params = letterbox_image(image, 640)

        assert canvas.shape == (640, 640, 3)
        assert params.offset_y == 80
        assert canvas[:80].max() == 0
        assert canvas[560:].max() == 0
        assert canvas[80:560].min() == 255

    def test_upscale(self):
        image = np.full((100, 50, 3), 255, dtype=np.uint8)

        canvas, params = letterbox_image(image, 200)

        assert (params.new_width, params.new_height) == (100, 200)
        assert canvas[:, :50].max() == 0
        assert canvas[:, 50:150].min() == 255

    def test_extreme_aspect_ratio(self):
        image = np.full((2000, 1, 3), 255, dtype=np.uint8)

        canvas, params = letterbox_image(image, 640)

        assert canvas.shape == (640, 640, 3)
        assert (params.new_width, params.new_height) == (1, 640)
        assert canvas[:, params.offset_x].min() == 255
        assert canvas[:, params.offset_x + 1:].max() == 0

    def test_prepare_training_image(self, sample_bgr_image: np.ndarray):
        canvas, params = prepare_training_image(
            sample_bgr_image, ImageFilters(grayscale=True), 320
        )

        assert canvas.shape == (320, 320, 3)
        assert params.scale == pytest.approx(0.5)

"""
Tests for the image folder adapter.
"""

from pathlib import Path

import pytest

from yolo_annotator.services import ImageFolder
from yolo_annotator.utils.exceptions import PathError, SourceImageMissingError


class TestImageFolder:
    """Test ImageFolder class."""

    def test_connect_lists_images(self, image_folder: Path):
        folder = ImageFolder(image_folder).connect()

        assert folder.list_images() == ["a.png", "c.png", "sub/b.png"]

    def test_connect_missing_folder(self, temp_dir: Path):
        with pytest.raises(PathError) as exc_info:
            ImageFolder(temp_dir / "missing").connect()

        assert exc_info.value.path == str(temp_dir / "missing")

    def test_connect_folder_without_images(self, temp_dir: Path):
        (temp_dir / "readme.txt").write_text("hi")

        with pytest.raises(PathError, match="No images"):
            ImageFolder(temp_dir).connect()

    def test_list_refresh(self, image_folder: Path, sample_image: Path):
        folder = ImageFolder(image_folder).connect()
        (image_folder / "d.png").write_bytes(sample_image.read_bytes())

        assert "d.png" not in folder.list_images()
        assert "d.png" in folder.list_images(refresh=True)

    def test_resolve_and_exists(self, image_folder: Path):
        folder = ImageFolder(image_folder)

        assert folder.resolve("sub/b.png") == image_folder / "sub" / "b.png"
        assert folder.exists("sub/b.png")
        assert not folder.exists("sub/zzz.png")

    def test_read_image_and_size(self, image_folder: Path):
        folder = ImageFolder(image_folder)

        assert folder.read_image("sub/b.png").shape == (400, 200, 3)
        assert folder.image_size("a.png") == (640, 480)

    def test_missing_image(self, image_folder: Path):
        folder = ImageFolder(image_folder)

        with pytest.raises(SourceImageMissingError) as exc_info:
            folder.read_image("gone.png")
        assert exc_info.value.image_id == "gone.png"

        with pytest.raises(SourceImageMissingError):
            folder.image_size("gone.png")

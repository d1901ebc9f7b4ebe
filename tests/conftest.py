"""
Shared test fixtures.

Fixtures used by every test area: temporary image folders with real
encoded images, stores with a few annotations, and binary masks.
"""

from pathlib import Path

import cv2
import numpy as np
import pytest

from yolo_annotator.annotation import AnnotationStore, BoundingBox, PolygonSegment


def write_image(path: Path, width: int, height: int, color=(40, 80, 120)) -> Path:
    """Write a solid BGR image with a white square in the top-left corner."""
    path.parent.mkdir(parents=True, exist_ok=True)
    img = np.full((height, width, 3), color, dtype=np.uint8)
    img[: height // 4, : width // 4] = 255
    cv2.imwrite(str(path), img)
    return path


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Temporary directory for a test."""
    return tmp_path


@pytest.fixture
def sample_image(temp_dir: Path) -> Path:
    """640x480 PNG on disk."""
    return write_image(temp_dir / "sample.png", 640, 480)


@pytest.fixture
def sample_bgr_image() -> np.ndarray:
    """640x480 BGR image with a white square."""
    img = np.zeros((480, 640, 3), dtype=np.uint8)
    img[100:200, 100:200] = 255
    return img


@pytest.fixture
def sample_mask() -> np.ndarray:
    """Binary mask holding one 40x20 rectangle."""
    mask = np.zeros((100, 100), dtype=bool)
    mask[10:30, 20:60] = True
    return mask


@pytest.fixture
def image_folder(temp_dir: Path) -> Path:
    """
    Folder with three images:

        a.png       640x480
        c.png       300x300
        sub/b.png   200x400
    """
    root = temp_dir / "images"
    write_image(root / "a.png", 640, 480)
    write_image(root / "c.png", 300, 300)
    write_image(root / "sub" / "b.png", 200, 400)
    (root / "notes.txt").write_text("not an image")
    return root


@pytest.fixture
def make_segment():
    """Factory for polygon segments."""

    def _make(label="cup", polygon=((10, 10), (60, 10), (60, 50), (10, 50)), **kwargs):
        return PolygonSegment.create(list(polygon), label, timestamp=0.0, **kwargs)

    return _make


@pytest.fixture
def annotated_store(make_segment) -> AnnotationStore:
    """Store matching the image_folder fixture."""
    store = AnnotationStore()
    store.set_original_size("a.png", 640, 480)
    store.add_box("a.png", BoundingBox(0, 0, 640, 480, "cup"))
    store.add_box("a.png", BoundingBox(100, 50, 200, 100, "bottle"))
    store.set_original_size("sub/b.png", 200, 400)
    store.add_box("sub/b.png", BoundingBox(20, 40, 50, 60, "cup"))
    store.add_segment("sub/b.png", make_segment("cup", click_points=[(30, 30)], score=0.9))
    store.set_original_size("c.png", 300, 300)
    store.add_segment("c.png", make_segment("bottle"))
    store.mark_saved()
    return store

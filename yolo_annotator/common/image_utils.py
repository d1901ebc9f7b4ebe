"""
YOLO Annotator - Image Utilities

Image I/O, export pre-filters and letterbox resampling.
Both the dataset exporter and the validation preview call
prepare_training_image() so they resample identically.
"""

from pathlib import Path
from typing import List, Optional, Tuple, Union

import cv2
import numpy as np

from .config_utils import ImageFilters
from .constants import IMAGE_EXTENSIONS, LETTERBOX_PAD_COLOR
from .geometry import LetterboxParams, compute_letterbox


def flatten_image_id(image_id: str) -> str:
    """
    Flatten a root-relative image id into a single file name.

    Every path separator becomes "_". This is lossy: "a/x.jpg" and
    "a_x.jpg" map to the same name.
    """
    return image_id.replace("/", "_").replace("\\", "_")


def is_image_file(path: Union[str, Path]) -> bool:
    """Check the file extension against IMAGE_EXTENSIONS (case-insensitive)."""
    return Path(path).suffix.lower() in IMAGE_EXTENSIONS


def list_image_files(
    directory: Union[str, Path],
    recursive: bool = True,
) -> List[str]:
    """
    List image files in a directory as root-relative ids.

    Args:
        directory: Directory to search
        recursive: If True, search subdirectories

    Returns:
        Sorted list of posix-style relative paths (e.g. "sub/img.jpg")
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []

    pattern = "**/*" if recursive else "*"
    image_ids = [
        path.relative_to(directory).as_posix()
        for path in directory.glob(pattern)
        if path.is_file() and is_image_file(path)
    ]
    return sorted(image_ids)


def load_image(
    path: Union[str, Path],
    color_mode: str = "bgr",
) -> Optional[np.ndarray]:
    """
    Load image with error handling.

    Args:
        path: Path to image file
        color_mode: "bgr" (default), "rgb", or "gray"

    Returns:
        Image array or None if loading failed
    """
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        return None

    if color_mode == "rgb":
        image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    elif color_mode == "gray":
        image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

    return image


def read_image_size(path: Union[str, Path]) -> Optional[Tuple[int, int]]:
    """
    Read image dimensions.

    Returns:
        Tuple (width, height) or None if the file cannot be decoded
    """
    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        return None
    height, width = image.shape[:2]
    return (width, height)


def save_image(
    image: np.ndarray,
    path: Union[str, Path],
    quality: int = 95,
) -> bool:
    """
    Save image with error handling.

    Args:
        image: Image array to save
        path: Output path (format from extension)
        quality: JPEG/WebP quality (0-100)

    Returns:
        True if successful, False otherwise
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    params = []
    suffix = path.suffix.lower()
    if suffix in (".jpg", ".jpeg"):
        params = [cv2.IMWRITE_JPEG_QUALITY, quality]
    elif suffix == ".webp":
        params = [cv2.IMWRITE_WEBP_QUALITY, quality]
    elif suffix == ".png":
        params = [cv2.IMWRITE_PNG_COMPRESSION, 9 - (quality // 12)]

    return bool(cv2.imwrite(str(path), image, params))


def encode_png(image: np.ndarray) -> bytes:
    """Encode an image as PNG bytes."""
    ok, buffer = cv2.imencode(".png", image)
    if not ok:
        raise ValueError("Failed to encode image as PNG")
    return buffer.tobytes()


def apply_filters(image: np.ndarray, filters: ImageFilters) -> np.ndarray:
    """
    Apply export pre-filters to a BGR image.

    Order: brightness/saturation, exposure, grayscale, blur.

    Args:
        image: BGR image (H, W, 3)
        filters: ImageFilters settings

    Returns:
        New filtered BGR image (input is not modified)
    """
    result = image.copy()
    if filters.is_identity:
        return result

    if filters.brightness != 1.0 or filters.saturation != 1.0:
        hsv = cv2.cvtColor(result, cv2.COLOR_BGR2HSV).astype(np.float32)
        hsv[..., 1] *= filters.saturation
        hsv[..., 2] *= filters.brightness
        hsv = np.clip(hsv, 0, 255).astype(np.uint8)
        result = cv2.cvtColor(hsv, cv2.COLOR_HSV2BGR)

    if filters.exposure != 1.0:
        result = cv2.convertScaleAbs(result, alpha=filters.exposure, beta=0)

    if filters.grayscale:
        gray = cv2.cvtColor(result, cv2.COLOR_BGR2GRAY)
        result = cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)

    if filters.blur > 0:
        result = cv2.GaussianBlur(result, (0, 0), sigmaX=filters.blur)

    return result


def letterbox_image(
    image: np.ndarray,
    target_size: int,
    pad_color: Tuple[int, int, int] = LETTERBOX_PAD_COLOR,
) -> Tuple[np.ndarray, LetterboxParams]:
    """
    Resize an image into a centered square canvas, preserving aspect ratio.

    Args:
        image: BGR image (H, W, 3)
        target_size: Side of the square output
        pad_color: BGR padding color

    Returns:
        Tuple of (letterboxed image, LetterboxParams used)
    """
    orig_h, orig_w = image.shape[:2]
    params = compute_letterbox(orig_w, orig_h, target_size)

    interpolation = cv2.INTER_AREA if params.scale < 1.0 else cv2.INTER_LINEAR
    resized = cv2.resize(
        image, (params.new_width, params.new_height), interpolation=interpolation
    )

    canvas = np.full((target_size, target_size, 3), pad_color, dtype=np.uint8)
    y0, x0 = params.offset_y, params.offset_x
    canvas[y0:y0 + params.new_height, x0:x0 + params.new_width] = resized

    return canvas, params


def prepare_training_image(
    image: np.ndarray,
    filters: ImageFilters,
    target_size: int,
) -> Tuple[np.ndarray, LetterboxParams]:
    """
    Apply pre-filters then letterbox, exactly as the detection export does.

    Returns:
        Tuple of (processed image, LetterboxParams)
    """
    return letterbox_image(apply_filters(image, filters), target_size)

"""
YOLO Annotator - Common Constants

Shared constants used across the geometry, annotation, export and
preview modules.
"""

from typing import Dict, List, Tuple

# =============================================================================
# Image File Extensions
# =============================================================================
# Supported image file extensions for a connected folder (matched case-insensitively)
IMAGE_EXTENSIONS: List[str] = [".jpg", ".jpeg", ".png", ".webp"]


# =============================================================================
# Export Defaults
# =============================================================================
DEFAULT_TARGET_SIZE: int = 640
DEFAULT_TRAIN_RATIO: float = 0.8
DEFAULT_VAL_RATIO: float = 0.2
DEFAULT_TEST_RATIO: float = 0.0

# Split names in output order
SPLIT_NAMES: Tuple[str, ...] = ("train", "val", "test")

# Output file names
DATASET_YAML_NAME: str = "data.yaml"
METADATA_JSON_NAME: str = "metadata.json"
SPLIT_ANNOTATIONS_SUFFIX: str = "_annotations.json"

# Class id used for labels missing from the class list
FALLBACK_CLASS_ID: int = 0

# Confidence stored for segments without an oracle score
DEFAULT_SEGMENT_SCORE: float = 1.0

# YOLO model presets (name -> target size and display name)
MODEL_PRESETS: Dict[str, Dict] = {
    "yolov5s": {"size": 640, "name": "YOLOv5"},
    "yolov5m": {"size": 640, "name": "YOLOv5"},
    "yolov5_416": {"size": 416, "name": "YOLOv5 (416)"},
    "yolov8n": {"size": 640, "name": "YOLOv8"},
    "yolov8s": {"size": 640, "name": "YOLOv8"},
    "yolov8m": {"size": 640, "name": "YOLOv8"},
    "yolov8_1280": {"size": 1280, "name": "YOLOv8 (1280)"},
    "yolov11n": {"size": 640, "name": "YOLOv11"},
    "yolov11s": {"size": 640, "name": "YOLOv11"},
}
DEFAULT_MODEL_PRESET: str = "yolov8n"


# =============================================================================
# Annotation Defaults
# =============================================================================
# Boxes drawn smaller than this on screen (either side, pixels) are discarded
MIN_SCREEN_BOX_SIZE: float = 5.0

# Contours with fewer traced points are treated as noise
MIN_CONTOUR_POINTS: int = 10

# Douglas-Peucker tolerance in mask pixels
DEFAULT_SIMPLIFY_TOLERANCE: float = 2.0

# Minimum vertices for a stored polygon
MIN_POLYGON_POINTS: int = 3

# Oracle mask logits above this value count as foreground
DEFAULT_MASK_THRESHOLD: float = 0.0

# Undo/redo stack depth
DEFAULT_HISTORY_SIZE: int = 50

# Debounce delay before auto-saving annotations (seconds)
DEFAULT_AUTOSAVE_DELAY: float = 1.0


# =============================================================================
# Visualization Defaults
# =============================================================================
# Class palette (hex, in class-id order)
CLASS_COLORS_HEX: List[str] = [
    "#FF6B6B", "#4ECDC4", "#45B7D1", "#96CEB4",
    "#FFEAA7", "#DDA0DD", "#98D8C8", "#F7DC6F",
    "#BB8FCE", "#85C1E9", "#F8B500", "#00CED1",
]

# Default colors (BGR format for OpenCV)
DEFAULT_BBOX_COLOR: Tuple[int, int, int] = (0, 255, 0)  # Green
DEFAULT_BBOX_THICKNESS: int = 2
DEFAULT_FONT_SCALE: float = 0.5
DEFAULT_FONT_THICKNESS: int = 1
LETTERBOX_PAD_COLOR: Tuple[int, int, int] = (0, 0, 0)

"""
YOLO Annotator - Common Utilities Module

Shared constants, configuration, letterbox geometry, image processing
and validation used by the annotation, export and preview code.
"""

from .constants import (
    IMAGE_EXTENSIONS,
    DEFAULT_TARGET_SIZE,
    DEFAULT_TRAIN_RATIO,
    DEFAULT_VAL_RATIO,
    DEFAULT_TEST_RATIO,
    SPLIT_NAMES,
    FALLBACK_CLASS_ID,
    MODEL_PRESETS,
    DEFAULT_MODEL_PRESET,
    MIN_SCREEN_BOX_SIZE,
    MIN_CONTOUR_POINTS,
    DEFAULT_SIMPLIFY_TOLERANCE,
)

from .config_utils import (
    ExportFormat,
    ImageFilters,
    SplitRatios,
    ExportConfig,
)

from .geometry import (
    LetterboxParams,
    ViewTransform,
    compute_letterbox,
    point_to_target,
    box_to_target,
    normalize_box,
    to_normalized_box,
    box_from_screen_rect,
)

from .image_utils import (
    flatten_image_id,
    list_image_files,
    load_image,
    read_image_size,
    save_image,
    encode_png,
    apply_filters,
    letterbox_image,
    prepare_training_image,
)

from .validation import (
    ErrorSeverity,
    PipelineError,
    ValidationResult,
    validate_export_config,
    validate_dataset_yaml,
    validate_yolo_label,
)

__all__ = [
    # Constants
    "IMAGE_EXTENSIONS",
    "DEFAULT_TARGET_SIZE",
    "DEFAULT_TRAIN_RATIO",
    "DEFAULT_VAL_RATIO",
    "DEFAULT_TEST_RATIO",
    "SPLIT_NAMES",
    "FALLBACK_CLASS_ID",
    "MODEL_PRESETS",
    "DEFAULT_MODEL_PRESET",
    "MIN_SCREEN_BOX_SIZE",
    "MIN_CONTOUR_POINTS",
    "DEFAULT_SIMPLIFY_TOLERANCE",
    # Config
    "ExportFormat",
    "ImageFilters",
    "SplitRatios",
    "ExportConfig",
    # Geometry
    "LetterboxParams",
    "ViewTransform",
    "compute_letterbox",
    "point_to_target",
    "box_to_target",
    "normalize_box",
    "to_normalized_box",
    "box_from_screen_rect",
    # Image utilities
    "flatten_image_id",
    "list_image_files",
    "load_image",
    "read_image_size",
    "save_image",
    "encode_png",
    "apply_filters",
    "letterbox_image",
    "prepare_training_image",
    # Validation
    "ErrorSeverity",
    "PipelineError",
    "ValidationResult",
    "validate_export_config",
    "validate_dataset_yaml",
    "validate_yolo_label",
]

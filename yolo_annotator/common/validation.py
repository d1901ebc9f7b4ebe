"""
YOLO Annotator - Validation Utilities

Structured error reporting for export preparation and for checking an
exported dataset. Unmapped labels are reported here as warnings because
the exporter itself maps them to class id 0 without complaint.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, TYPE_CHECKING

import yaml
from colorama import Fore, Style

from .config_utils import ExportConfig, ExportFormat
from .constants import FALLBACK_CLASS_ID

if TYPE_CHECKING:
    from ..annotation.annotation_store import AnnotationStore


class ErrorSeverity(Enum):
    """Severity levels for pipeline errors."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class PipelineError:
    """
    Structured error for pipeline operations.

    Attributes:
        message: Error description
        severity: Error severity level
        source: Source component that raised the error
        details: Additional details or context
    """

    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    source: str = ""
    details: Optional[str] = None

    def format(self, use_color: bool = True) -> str:
        """
        Format error message with optional color.

        Args:
            use_color: If True, add ANSI color codes

        Returns:
            Formatted error string
        """
        prefix_map = {
            ErrorSeverity.INFO: (Fore.BLUE, "[INFO]"),
            ErrorSeverity.WARNING: (Fore.YELLOW, "[WARNING]"),
            ErrorSeverity.ERROR: (Fore.RED, "[ERROR]"),
            ErrorSeverity.CRITICAL: (Fore.RED + Style.BRIGHT, "[CRITICAL]"),
        }

        color, prefix = prefix_map.get(self.severity, (Fore.WHITE, "[UNKNOWN]"))

        source_str = f" ({self.source})" if self.source else ""
        details_str = f"\n  Details: {self.details}" if self.details else ""

        if use_color:
            return f"{color}{prefix}{Style.RESET_ALL}{source_str}: {self.message}{details_str}"
        return f"{prefix}{source_str}: {self.message}{details_str}"


@dataclass
class ValidationResult:
    """
    Result of a validation operation.

    Errors make the result invalid; warnings and info messages do not.
    """

    is_valid: bool = True
    errors: List[PipelineError] = field(default_factory=list)
    warnings: List[PipelineError] = field(default_factory=list)

    def add_error(
        self,
        message: str,
        source: str = "",
        details: Optional[str] = None,
    ) -> None:
        """Add an error and mark result as invalid."""
        self.is_valid = False
        self.errors.append(
            PipelineError(message, ErrorSeverity.ERROR, source, details)
        )

    def add_warning(
        self,
        message: str,
        source: str = "",
        details: Optional[str] = None,
    ) -> None:
        """Add a warning (does not affect validity)."""
        self.warnings.append(
            PipelineError(message, ErrorSeverity.WARNING, source, details)
        )

    def add_info(
        self,
        message: str,
        source: str = "",
        details: Optional[str] = None,
    ) -> None:
        """Add an info message."""
        self.warnings.append(
            PipelineError(message, ErrorSeverity.INFO, source, details)
        )

    def merge(self, other: "ValidationResult") -> None:
        """Merge another ValidationResult into this one."""
        if not other.is_valid:
            self.is_valid = False
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def format_all(self, use_color: bool = True) -> str:
        """Format all errors and warnings, errors first."""
        lines = [error.format(use_color) for error in self.errors]
        lines.extend(warning.format(use_color) for warning in self.warnings)
        return "\n".join(lines)

    def print_all(self, use_color: bool = True) -> None:
        """Print all errors and warnings to stdout."""
        formatted = self.format_all(use_color)
        if formatted:
            print(formatted)


def validate_export_config(
    store: "AnnotationStore",
    config: ExportConfig,
) -> ValidationResult:
    """
    Check that a store can be exported with a configuration.

    Checks:
    - At least one class defined
    - At least one image annotated for the chosen format
    - Labels in use that are missing from the class list (warning)
    - Annotated images without a recorded original size (detection, info)

    Args:
        store: Annotation store to export
        config: Export configuration

    Returns:
        ValidationResult with any errors or warnings
    """
    source = "validate_export_config"
    result = ValidationResult()

    if not config.class_list:
        result.add_error("No classes defined", source=source)

    kind = "box" if config.format == ExportFormat.DETECTION else "polygon"
    image_ids = store.annotated_image_ids(kind)
    if not image_ids:
        result.add_error(
            "No annotated images to export",
            source=source,
            details=f"format={config.format.value}",
        )
        return result

    known = set(config.class_list)
    unmapped = []
    for image_id in image_ids:
        annotation = store.get(image_id)
        items = annotation.boxes if kind == "box" else annotation.polygons
        for item in items:
            if item.label not in known and item.label not in unmapped:
                unmapped.append(item.label)

    if unmapped:
        result.add_warning(
            f"{len(unmapped)} label(s) not in class list will export as "
            f"class {FALLBACK_CLASS_ID}",
            source=source,
            details=", ".join(unmapped),
        )

    if config.format == ExportFormat.DETECTION:
        unsized = [
            image_id for image_id in image_ids
            if not store.get(image_id).original_size.is_set
        ]
        if unsized:
            result.add_info(
                f"{len(unsized)} image(s) have no recorded size; "
                "dimensions will be read from disk",
                source=source,
            )

    return result


def validate_dataset_yaml(dataset_yaml: str) -> ValidationResult:
    """
    Validate an exported detection manifest (data.yaml).

    Checks:
    - File exists and parses
    - Required fields present (train, val, nc, names)
    - nc matches the number of names
    - Train and val image directories exist

    Args:
        dataset_yaml: Path to dataset YAML file

    Returns:
        ValidationResult with any errors or warnings
    """
    source = "validate_dataset_yaml"
    result = ValidationResult()
    dataset_path = Path(dataset_yaml)

    if not dataset_path.exists():
        result.add_error(f"Dataset config not found: {dataset_yaml}", source=source)
        return result

    try:
        with open(dataset_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        result.add_error(f"Failed to parse YAML: {e}", source=source)
        return result

    if not isinstance(config, dict):
        result.add_error("Empty dataset configuration", source=source)
        return result

    for field_name in ("train", "val", "nc", "names"):
        if field_name not in config:
            result.add_error(f"Missing required field: '{field_name}'", source=source)

    if not result.is_valid:
        return result

    names = config["names"]
    if not isinstance(names, list) or not names:
        result.add_error("No classes defined in 'names' field", source=source)
    elif config["nc"] != len(names):
        result.add_error(
            f"nc ({config['nc']}) does not match number of names ({len(names)})",
            source=source,
        )

    base_path = dataset_path.parent / str(config.get("path", "."))
    for split in ("train", "val", "test"):
        if split not in config:
            continue
        split_path = base_path / config[split]
        if not split_path.is_dir():
            result.add_error(f"{split} path not found: {split_path}", source=source)

    return result


def validate_yolo_label(label_path: str) -> Tuple[bool, List[str]]:
    """
    Validate an exported YOLO label file.

    Every value after the class id must be within [0, 1].

    Args:
        label_path: Path to .txt label file

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors = []
    label_path = Path(label_path)

    if not label_path.exists():
        return False, ["Label file not found"]

    try:
        with open(label_path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except OSError as e:
        return False, [f"Failed to read label file: {e}"]

    for i, line in enumerate(lines, 1):
        line = line.strip()
        if not line:
            continue

        parts = line.split()
        if len(parts) != 5:
            errors.append(f"Line {i}: Expected 5 values, got {len(parts)}")
            continue

        try:
            class_id = int(parts[0])
            values = [float(v) for v in parts[1:]]
        except ValueError as e:
            errors.append(f"Line {i}: Invalid number format: {e}")
            continue

        if class_id < 0:
            errors.append(f"Line {i}: Negative class ID: {class_id}")

        for name, value in zip(("x_center", "y_center", "width", "height"), values):
            if not 0.0 <= value <= 1.0:
                errors.append(f"Line {i}: {name} out of range: {value}")

    return len(errors) == 0, errors

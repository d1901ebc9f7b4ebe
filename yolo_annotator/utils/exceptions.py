"""
Custom Exception Classes for YOLO Annotator

Provides a hierarchy of exceptions for the export pipeline, the
segmentation oracle and the annotation store.

Geometry and contour extraction never raise for degenerate input; they
return empty results (None / []) that callers must check.

Usage:
    from yolo_annotator.utils.exceptions import ExportError

    try:
        exporter.export(store, source_root, config)
    except ExportError as e:
        logger.error(f"Export failed: {e}")
"""

from typing import Any, Optional


class AnnotatorError(Exception):
    """
    Base exception class for YOLO Annotator.

    All custom exceptions inherit from this class, allowing
    broad exception catching when needed.
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class PathError(AnnotatorError):
    """
    Exception for path-related errors.

    Raised when a connected image folder is missing or holds no images.
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = details or {}
        if path:
            details["path"] = path
        super().__init__(message, details)
        self.path = path


class ValidationError(AnnotatorError):
    """
    Exception for validation errors.

    Raised when input validation fails, such as an invalid export
    configuration or a malformed annotation record.
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        invalid_value: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = details or {}
        if field_name:
            details["field_name"] = field_name
        if invalid_value is not None:
            details["invalid_value"] = str(invalid_value)
        super().__init__(message, details)
        self.field_name = field_name
        self.invalid_value = invalid_value


class ExportError(AnnotatorError):
    """
    Exception for dataset export failures.

    An export either produces a complete archive or raises this error;
    there is no partial-success result.
    """


class NoAnnotatedImagesError(ExportError):
    """Raised when no image qualifies for the requested export format."""

    def __init__(self, export_format: str, details: Optional[dict[str, Any]] = None):
        details = details or {}
        details["format"] = export_format
        super().__init__("No annotated images to export", details)
        self.export_format = export_format


class SourceImageMissingError(ExportError):
    """
    Raised for an annotated image that no longer exists on disk.

    The exporter catches this per image, logs a warning and continues.
    """

    def __init__(self, image_id: str, path: Optional[str] = None):
        details = {"image_id": image_id}
        if path:
            details["path"] = path
        super().__init__(f"Image not found: {image_id}", details)
        self.image_id = image_id


class OracleError(AnnotatorError):
    """Base exception for segmentation oracle errors."""


class OracleUnavailableError(OracleError):
    """Raised when the segmentation oracle is not loaded or has no embedding."""


class OracleBusyError(OracleError):
    """Raised when an oracle request arrives while another is in flight."""


class ImageBusyError(AnnotatorError):
    """Raised when an image's annotations are mutated while it is being processed."""

    def __init__(self, image_id: str):
        super().__init__(
            f"Image is being processed: {image_id}", {"image_id": image_id}
        )
        self.image_id = image_id


class PersistenceError(AnnotatorError):
    """Raised when the annotation document cannot be read or written."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = details or {}
        if path:
            details["path"] = path
        super().__init__(message, details)
        self.path = path

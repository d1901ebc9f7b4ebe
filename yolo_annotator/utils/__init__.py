"""
YOLO Annotator Utilities

Provides common utilities for logging and exceptions.
"""

from .logger import get_logger, set_log_level, set_global_log_level, add_file_handler
from .exceptions import (
    AnnotatorError,
    PathError,
    ValidationError,
    ExportError,
    NoAnnotatedImagesError,
    SourceImageMissingError,
    OracleError,
    OracleUnavailableError,
    OracleBusyError,
    ImageBusyError,
    PersistenceError,
)

__all__ = [
    "get_logger",
    "set_log_level",
    "set_global_log_level",
    "add_file_handler",
    "AnnotatorError",
    "PathError",
    "ValidationError",
    "ExportError",
    "NoAnnotatedImagesError",
    "SourceImageMissingError",
    "OracleError",
    "OracleUnavailableError",
    "OracleBusyError",
    "ImageBusyError",
    "PersistenceError",
]

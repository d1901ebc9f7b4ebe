"""
YOLO Annotator - Services Module

Image folder access, annotation persistence, point-prompt segmentation
and dataset export.
"""

from .image_source import ImageFolder
from .annotation_persistence import AnnotationRepository, AutoSaver, DEFAULT_ANNOTATIONS_FILE
from .segmentation_service import (
    EmbeddingHandle,
    OraclePrediction,
    SegmentationOracle,
    SegmentationService,
    Sam2Oracle,
)
from .dataset_exporter import (
    DatasetExporter,
    ExportResult,
    export_dataset,
    split_dataset,
)

__all__ = [
    "ImageFolder",
    "AnnotationRepository",
    "AutoSaver",
    "DEFAULT_ANNOTATIONS_FILE",
    "EmbeddingHandle",
    "OraclePrediction",
    "SegmentationOracle",
    "SegmentationService",
    "Sam2Oracle",
    "DatasetExporter",
    "ExportResult",
    "export_dataset",
    "split_dataset",
]

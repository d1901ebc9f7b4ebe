#!/usr/bin/env python3
"""
YOLO Annotator command line interface

Sub-commands:
    list     Show the images of a folder and their annotation counts
    export   Build a detection or segmentation dataset archive
    preview  Render one image exactly as it would be exported
"""

import argparse
import logging
import sys
import tempfile
from pathlib import Path
from typing import List, Optional

from colorama import Fore, Style, init as colorama_init
from tabulate import tabulate

from .annotation import ClassList, ImageAnnotation, render_preview_file
from .common.config_utils import ExportConfig, ExportFormat, ImageFilters, SplitRatios
from .common.constants import (
    DEFAULT_MODEL_PRESET,
    DEFAULT_TEST_RATIO,
    DEFAULT_TRAIN_RATIO,
    DEFAULT_VAL_RATIO,
    MODEL_PRESETS,
)
from .common.validation import validate_export_config
from .services import (
    DEFAULT_ANNOTATIONS_FILE,
    AnnotationRepository,
    DatasetExporter,
    ExportResult,
    ImageFolder,
)
from .utils.exceptions import AnnotatorError, ValidationError
from .utils.logger import get_logger, set_global_log_level

colorama_init()

logger = get_logger(__name__)


def _annotations_path(folder: Path, annotations: Optional[str]) -> Path:
    return Path(annotations) if annotations else folder / DEFAULT_ANNOTATIONS_FILE


def _build_config(args: argparse.Namespace, store) -> ExportConfig:
    """Export configuration from parsed arguments."""
    class_list = ClassList.from_store(store, args.classes).names
    filters = ImageFilters(
        brightness=args.brightness,
        saturation=args.saturation,
        exposure=args.exposure,
        blur=args.blur,
        grayscale=args.grayscale,
    )
    try:
        ratios = SplitRatios(train=args.train, val=args.val, test=args.test)
    except ValueError as e:
        raise ValidationError(str(e), field_name="ratios") from e
    kwargs = dict(
        format=ExportFormat(args.format),
        filters=filters,
        class_list=class_list,
        ratios=ratios,
        seed=args.seed,
    )
    if args.target_size is not None:
        return ExportConfig(target_size=args.target_size, **kwargs)
    return ExportConfig.from_preset(args.preset or DEFAULT_MODEL_PRESET, **kwargs)


def export_summary(result: ExportResult, archive_path: Path) -> str:
    """Tabulated summary of an export run."""
    lines = [
        f"\n{'='*60}",
        "  Export Summary",
        f"{'='*60}",
        f"  Format:       {result.format.value}",
        f"  Archive:      {archive_path}",
        f"  Images:       {result.total_images}",
        f"  Annotations:  {result.total_annotations}",
        "",
    ]

    table_data = [
        [split, len(result.splits[split]), result.split_counts[split]]
        for split in result.split_counts
    ]
    lines.append(
        tabulate(table_data, headers=["Split", "Assigned", "Written"], tablefmt="simple")
    )

    if result.skipped:
        lines.append(f"\n  {Fore.YELLOW}Skipped (missing source):{Style.RESET_ALL}")
        lines.extend(f"    - {image_id}" for image_id in result.skipped)

    lines.append(f"\n{'='*60}\n")
    return "\n".join(lines)


def cmd_list(args: argparse.Namespace) -> int:
    folder = ImageFolder(args.folder).connect()
    store = AnnotationRepository(_annotations_path(folder.root, args.annotations)).load()

    table_data = []
    for image_id in folder.list_images():
        record = store.get(image_id)
        boxes = len(record.boxes) if record else 0
        polygons = len(record.polygons) if record else 0
        size = (
            f"{record.original_size.width}x{record.original_size.height}"
            if record and record.original_size.is_set
            else "-"
        )
        table_data.append([image_id, size, boxes, polygons])

    print(tabulate(table_data, headers=["Image", "Size", "Boxes", "Polygons"], tablefmt="simple"))

    counts = store.count_annotations()
    print(
        f"\n{len(table_data)} images, "
        f"{counts['boxes']} boxes, {counts['polygons']} polygons"
    )
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    folder = ImageFolder(args.folder).connect()
    store = AnnotationRepository(_annotations_path(folder.root, args.annotations)).load()
    config = _build_config(args, store)

    validation = validate_export_config(store, config)
    validation.print_all()
    if not validation.is_valid:
        return 1

    staging = Path(args.staging) if args.staging else Path(tempfile.mkdtemp(prefix="yolo_export_"))
    logger.debug(f"Staging export in {staging}")
    exporter = DatasetExporter(
        staging,
        max_workers=args.workers,
        show_progress=not args.quiet,
    )

    try:
        result = exporter.export(store, folder.root, config)
        archive_path = result.write_archive(args.output)
    finally:
        if not args.keep_staging:
            exporter.clear_output()
            staging.rmdir()

    print(export_summary(result, archive_path))
    return 0


def cmd_preview(args: argparse.Namespace) -> int:
    folder = ImageFolder(args.folder)
    store = AnnotationRepository(_annotations_path(folder.root, args.annotations)).load()
    config = _build_config(args, store)

    record = store.get(args.image_id) or ImageAnnotation()
    render_preview_file(folder.resolve(args.image_id), record, config, args.output)
    print(f"Preview written to {args.output}")
    return 0


def _add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--annotations",
        "-a",
        help=f"Annotation document (default: <folder>/{DEFAULT_ANNOTATIONS_FILE})",
    )
    parser.add_argument(
        "--format",
        "-f",
        choices=[f.value for f in ExportFormat],
        default=ExportFormat.DETECTION.value,
        help="Dataset layout (default: detection)",
    )
    size = parser.add_mutually_exclusive_group()
    size.add_argument(
        "--preset",
        choices=sorted(MODEL_PRESETS),
        help=f"Model preset defining the target size (default: {DEFAULT_MODEL_PRESET})",
    )
    size.add_argument(
        "--target-size",
        type=int,
        help="Square target size in pixels (instead of --preset)",
    )
    parser.add_argument(
        "--classes",
        nargs="+",
        help="Ordered class names; labels in the annotations are appended",
    )
    parser.add_argument("--train", type=float, default=DEFAULT_TRAIN_RATIO, help="Train ratio")
    parser.add_argument("--val", type=float, default=DEFAULT_VAL_RATIO, help="Validation ratio")
    parser.add_argument("--test", type=float, default=DEFAULT_TEST_RATIO, help="Test ratio")
    parser.add_argument("--seed", type=int, help="Seed for a reproducible split")

    filters = parser.add_argument_group("image filters (detection)")
    filters.add_argument("--brightness", type=float, default=1.0)
    filters.add_argument("--saturation", type=float, default=1.0)
    filters.add_argument("--exposure", type=float, default=1.0)
    filters.add_argument("--blur", type=float, default=0.0, help="Gaussian sigma in pixels")
    filters.add_argument("--grayscale", action="store_true")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="yolo-annotator",
        description="Annotate images and export YOLO training datasets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show annotation status
  yolo-annotator list datasets/shelf

  # Export a detection dataset for YOLOv8 with a fixed split
  yolo-annotator export datasets/shelf --output shelf.zip \\
      --classes cup bottle --seed 42

  # Check how one image will look in the exported dataset
  yolo-annotator preview datasets/shelf cup_001.jpg --output preview.png
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List images and annotation counts")
    list_parser.add_argument("folder", help="Image folder")
    list_parser.add_argument(
        "--annotations",
        "-a",
        help=f"Annotation document (default: <folder>/{DEFAULT_ANNOTATIONS_FILE})",
    )
    list_parser.set_defaults(func=cmd_list)

    export_parser = subparsers.add_parser("export", help="Export a dataset archive")
    export_parser.add_argument("folder", help="Image folder")
    export_parser.add_argument("--output", "-o", required=True, help="Output zip file")
    _add_config_arguments(export_parser)
    export_parser.add_argument(
        "--workers", type=int, default=1, help="Images processed concurrently (default: 1)"
    )
    export_parser.add_argument("--staging", help="Staging directory (default: temporary)")
    export_parser.add_argument(
        "--keep-staging", action="store_true", help="Keep the staging directory"
    )
    export_parser.add_argument("--quiet", "-q", action="store_true", help="Hide the progress bar")
    export_parser.set_defaults(func=cmd_export)

    preview_parser = subparsers.add_parser("preview", help="Render an export preview")
    preview_parser.add_argument("folder", help="Image folder")
    preview_parser.add_argument("image_id", help="Image id relative to the folder")
    preview_parser.add_argument("--output", "-o", required=True, help="Output PNG file")
    _add_config_arguments(preview_parser)
    preview_parser.set_defaults(func=cmd_preview)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        set_global_log_level(logging.DEBUG)

    try:
        return args.func(args)
    except (AnnotatorError, ValueError) as e:
        print(f"{Fore.RED}Error: {e}{Style.RESET_ALL}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

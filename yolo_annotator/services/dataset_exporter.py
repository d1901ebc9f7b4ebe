"""
Dataset Exporter Service

Builds a training dataset archive from an AnnotationStore.

Detection layout (letterboxed images + normalized box labels):
    images/{train,val[,test]}/*, labels/{train,val[,test]}/*.txt, data.yaml

Segmentation layout (original images + polygon JSON):
    images/{train,val[,test]}/*, <split>_annotations.json, metadata.json

The staging directory is emptied at the start of every run and belongs to
the exporter for the duration of the run. An export either returns a
complete archive or raises ExportError.
"""

import io
import json
import random
import shutil
import zipfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

import cv2
import yaml
from tqdm import tqdm

from ..annotation.annotation_store import AnnotationStore
from ..annotation.contour import polygon_area, polygon_bounds
from ..annotation.models import BoundingBox, ImageAnnotation, PolygonSegment
from ..common.config_utils import ExportConfig, ExportFormat, SplitRatios
from ..common.constants import (
    DATASET_YAML_NAME,
    FALLBACK_CLASS_ID,
    METADATA_JSON_NAME,
    SPLIT_ANNOTATIONS_SUFFIX,
    SPLIT_NAMES,
)
from ..common.geometry import to_normalized_box
from ..common.image_utils import (
    flatten_image_id,
    load_image,
    prepare_training_image,
    read_image_size,
    save_image,
)
from ..utils.exceptions import (
    ExportError,
    NoAnnotatedImagesError,
    SourceImageMissingError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Fixed timestamp for archive entries so identical trees zip identically
ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)

Clock = Callable[[], datetime]
ProgressCallback = Callable[[int, int], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def split_dataset(
    image_ids: Sequence[str],
    ratios: SplitRatios,
    rng: random.Random,
) -> Dict[str, List[str]]:
    """
    Shuffle image ids and partition them into train/val/test.

    Ids are sorted before shuffling so a seeded rng gives the same split
    regardless of the input order.

    Args:
        image_ids: Selected image ids
        ratios: Split ratios (train = floor(n*train), val = floor(n*val),
            test = remainder)
        rng: Random source used for the shuffle

    Returns:
        Dictionary {"train": [...], "val": [...], "test": [...]}
    """
    shuffled = sorted(image_ids)
    rng.shuffle(shuffled)

    counts = ratios.split_counts(len(shuffled))
    train_end = counts["train"]
    val_end = train_end + counts["val"]

    return {
        "train": shuffled[:train_end],
        "val": shuffled[train_end:val_end],
        "test": shuffled[val_end:],
    }


@dataclass
class ExportResult:
    """
    Result of one export run.

    Attributes:
        archive: Zip archive of the staging directory
        format: Exported layout
        splits: Image ids assigned to each split
        split_counts: Images actually written per split
        skipped: Annotated image ids whose source file was missing
        total_annotations: Boxes or polygons written
        output_dir: Staging directory that was archived
    """

    archive: bytes
    format: ExportFormat
    splits: Dict[str, List[str]]
    split_counts: Dict[str, int]
    skipped: List[str] = field(default_factory=list)
    total_annotations: int = 0
    output_dir: Optional[Path] = None

    @property
    def total_images(self) -> int:
        return sum(self.split_counts.values())

    def write_archive(self, path: Union[str, Path]) -> Path:
        """Write the archive to disk and return its path."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.archive)
        return path


@dataclass
class _ImageOutcome:
    image_id: str
    written: bool
    annotation_count: int = 0
    record: Optional[Dict] = None


class DatasetExporter:
    """
    Export pipeline for detection and segmentation datasets.

    Example:
        >>> exporter = DatasetExporter("/tmp/yolo_export")
        >>> result = exporter.export(store, "/data/photos", ExportConfig(class_list=["cup"]))
        >>> result.write_archive("dataset.zip")
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        rng: Optional[random.Random] = None,
        clock: Optional[Clock] = None,
        max_workers: int = 1,
        show_progress: bool = False,
    ):
        """
        Initialize the exporter.

        Args:
            output_dir: Staging directory (emptied on every run)
            rng: Random source for the split; when None, a Random seeded
                with config.seed is used (OS entropy if the seed is None)
            clock: Returns the creation time written to metadata.json
            max_workers: Images of a split processed concurrently
            show_progress: Show a tqdm progress bar
        """
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.output_dir = Path(output_dir)
        self.rng = rng
        self.clock = clock or _utc_now
        self.max_workers = max_workers
        self.show_progress = show_progress

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def clear_output(self) -> None:
        """Empty the staging directory (created if missing)."""
        if self.output_dir.exists():
            shutil.rmtree(self.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def export(
        self,
        store: AnnotationStore,
        source_root: Union[str, Path],
        config: ExportConfig,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ExportResult:
        """
        Run the export pipeline.

        Args:
            store: Annotations to export
            source_root: Folder the image ids are relative to
            config: Export configuration
            progress_callback: Optional callback(current, total)

        Returns:
            ExportResult with the archive bytes

        Raises:
            NoAnnotatedImagesError: No image qualifies for the format
            ExportError: Any I/O failure during the run
        """
        source_root = Path(source_root)
        records = self._select(store, config.format)
        class_ids = config.class_id_map()
        rng = self.rng if self.rng is not None else random.Random(config.seed)
        splits = split_dataset(list(records), config.ratios, rng)

        logger.info(
            f"Exporting {len(records)} images ({config.format.value}): "
            + ", ".join(f"{name}={len(splits[name])}" for name in SPLIT_NAMES)
        )

        try:
            self.clear_output()
            self._make_dirs(config.format, splits)

            if config.format == ExportFormat.DETECTION:
                outcomes = self._run_splits(
                    splits,
                    lambda image_id, split: self._export_detection_image(
                        image_id, split, records[image_id], source_root, config, class_ids
                    ),
                    progress_callback,
                )
                self._write_data_yaml(config.class_list, splits)
            else:
                outcomes = self._run_splits(
                    splits,
                    lambda image_id, split: self._export_segmentation_image(
                        image_id, split, records[image_id], source_root, config, class_ids
                    ),
                    progress_callback,
                )
                self._write_segmentation_json(config.class_list, splits, outcomes)

            archive = self._package()
        except (OSError, cv2.error) as e:
            raise ExportError(f"Export failed: {e}", {"output_dir": str(self.output_dir)}) from e

        skipped = sorted(
            o.image_id for split_outcomes in outcomes.values()
            for o in split_outcomes if not o.written
        )
        split_counts = {
            name: sum(1 for o in outcomes[name] if o.written) for name in SPLIT_NAMES
        }
        total_annotations = sum(
            o.annotation_count for split_outcomes in outcomes.values() for o in split_outcomes
        )

        logger.info(
            f"Export complete: {sum(split_counts.values())} images, "
            f"{total_annotations} annotations, {len(skipped)} skipped"
        )

        return ExportResult(
            archive=archive,
            format=config.format,
            splits=splits,
            split_counts=split_counts,
            skipped=skipped,
            total_annotations=total_annotations,
            output_dir=self.output_dir,
        )

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def _select(self, store: AnnotationStore, export_format: ExportFormat) -> Dict[str, ImageAnnotation]:
        """Snapshot every image with at least one annotation of the format's kind."""
        kind = BoundingBox.kind if export_format == ExportFormat.DETECTION else PolygonSegment.kind
        image_ids = store.annotated_image_ids(kind)
        if not image_ids:
            raise NoAnnotatedImagesError(export_format.value)
        return {image_id: store.snapshot(image_id) for image_id in image_ids}

    def _make_dirs(self, export_format: ExportFormat, splits: Dict[str, List[str]]) -> None:
        for split in self._active_splits(splits):
            (self.output_dir / "images" / split).mkdir(parents=True, exist_ok=True)
            if export_format == ExportFormat.DETECTION:
                (self.output_dir / "labels" / split).mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _active_splits(splits: Dict[str, List[str]]) -> List[str]:
        """train and val always; test only when it has images."""
        return [name for name in SPLIT_NAMES if name != "test" or splits["test"]]

    def _run_splits(
        self,
        splits: Dict[str, List[str]],
        worker: Callable[[str, str], _ImageOutcome],
        progress_callback: Optional[ProgressCallback],
    ) -> Dict[str, List[_ImageOutcome]]:
        """
        Process every image of every split.

        Outcomes keep the split order; all writes of a split have finished
        when this returns.
        """
        total = sum(len(ids) for ids in splits.values())
        outcomes: Dict[str, List[_ImageOutcome]] = {name: [] for name in SPLIT_NAMES}
        done = 0

        with tqdm(total=total, desc="Exporting", disable=not self.show_progress) as pbar:
            for split in SPLIT_NAMES:
                image_ids = splits[split]
                if self.max_workers > 1 and len(image_ids) > 1:
                    with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                        results = executor.map(lambda i: self._guarded(worker, i, split), image_ids)
                        for outcome in results:
                            outcomes[split].append(outcome)
                            done += 1
                            pbar.update(1)
                            if progress_callback:
                                progress_callback(done, total)
                else:
                    for image_id in image_ids:
                        outcomes[split].append(self._guarded(worker, image_id, split))
                        done += 1
                        pbar.update(1)
                        if progress_callback:
                            progress_callback(done, total)

        return outcomes

    @staticmethod
    def _guarded(
        worker: Callable[[str, str], _ImageOutcome], image_id: str, split: str
    ) -> _ImageOutcome:
        """Run a worker; a missing source image is skipped with a warning."""
        try:
            return worker(image_id, split)
        except SourceImageMissingError as e:
            logger.warning(f"Skipping {image_id}: {e.message}")
            return _ImageOutcome(image_id=image_id, written=False)

    @staticmethod
    def _source_path(source_root: Path, image_id: str) -> Path:
        path = source_root.joinpath(*image_id.split("/"))
        if not path.is_file():
            raise SourceImageMissingError(image_id, str(path))
        return path

    def _export_detection_image(
        self,
        image_id: str,
        split: str,
        record: ImageAnnotation,
        source_root: Path,
        config: ExportConfig,
        class_ids: Dict[str, int],
    ) -> _ImageOutcome:
        """Letterbox one image and write its label file."""
        source = self._source_path(source_root, image_id)
        image = load_image(source)
        if image is None:
            raise ExportError(f"Failed to decode image: {image_id}", {"path": str(source)})

        if record.original_size.is_set:
            orig_w, orig_h = record.original_size.width, record.original_size.height
        else:
            orig_h, orig_w = image.shape[:2]

        processed, _ = prepare_training_image(image, config.filters, config.target_size)

        file_name = flatten_image_id(image_id)
        image_out = self.output_dir / "images" / split / file_name
        if not save_image(processed, image_out):
            raise ExportError(f"Failed to write image: {image_out}", {"image_id": image_id})

        lines = [
            to_normalized_box(
                box,
                orig_w,
                orig_h,
                config.target_size,
                class_ids.get(box.label, FALLBACK_CLASS_ID),
            )
            for box in record.boxes
        ]
        label_out = self.output_dir / "labels" / split / f"{Path(file_name).stem}.txt"
        with open(label_out, "w", encoding="utf-8", newline="\n") as f:
            for line in lines:
                f.write(line + "\n")

        return _ImageOutcome(image_id=image_id, written=True, annotation_count=len(lines))

    def _export_segmentation_image(
        self,
        image_id: str,
        split: str,
        record: ImageAnnotation,
        source_root: Path,
        config: ExportConfig,
        class_ids: Dict[str, int],
    ) -> _ImageOutcome:
        """Copy one image unmodified and build its JSON record."""
        source = self._source_path(source_root, image_id)

        if record.original_size.is_set:
            width, height = record.original_size.width, record.original_size.height
        else:
            size = read_image_size(source)
            if size is None:
                raise ExportError(f"Failed to decode image: {image_id}", {"path": str(source)})
            width, height = size

        file_name = flatten_image_id(image_id)
        shutil.copy2(source, self.output_dir / "images" / split / file_name)

        annotations = [
            self._segment_record(segment, class_ids) for segment in record.polygons
        ]
        image_record = {
            "id": image_id,
            "file_name": file_name,
            "width": width,
            "height": height,
            "annotations": annotations,
        }
        return _ImageOutcome(
            image_id=image_id,
            written=True,
            annotation_count=len(annotations),
            record=image_record,
        )

    @staticmethod
    def _segment_record(segment: PolygonSegment, class_ids: Dict[str, int]) -> Dict:
        """JSON record of one polygon; stored bounds/area win over recomputed ones."""
        xy = [(p.x, p.y) for p in segment.polygon]
        bbox = segment.bounds.to_list() if segment.bounds else list(polygon_bounds(xy))
        area = segment.area if segment.area is not None else polygon_area(xy)

        entry = {
            "id": segment.id,
            "category_id": class_ids.get(segment.label, FALLBACK_CLASS_ID),
            "category_name": segment.label,
            "segmentation": segment.flat_coordinates(),
            "bbox": bbox,
            "area": area,
            "score": segment.effective_score,
        }
        if segment.click_points:
            entry["point_prompt"] = [[p.x, p.y] for p in segment.click_points]
        return entry

    def _write_segmentation_json(
        self,
        class_names: List[str],
        splits: Dict[str, List[str]],
        outcomes: Dict[str, List[_ImageOutcome]],
    ) -> None:
        """Write one annotations document per non-empty split plus metadata.json."""
        categories = [{"id": idx, "name": name} for idx, name in enumerate(class_names)]
        counts: Dict[str, int] = {}
        total_annotations = 0

        for split in SPLIT_NAMES:
            images = [o.record for o in outcomes[split] if o.written]
            counts[split] = len(images)
            if not images:
                continue
            total_annotations += sum(len(img["annotations"]) for img in images)
            self._write_json(
                self.output_dir / f"{split}{SPLIT_ANNOTATIONS_SUFFIX}",
                {"split": split, "categories": categories, "images": images},
            )

        self._write_json(
            self.output_dir / METADATA_JSON_NAME,
            {
                "format": ExportFormat.SEGMENTATION.value,
                "created_at": self.clock().isoformat(),
                "categories": categories,
                "splits": counts,
                "total_annotations": total_annotations,
            },
        )

    @staticmethod
    def _write_json(path: Path, data: Dict) -> None:
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")

    def _write_data_yaml(self, class_names: List[str], splits: Dict[str, List[str]]) -> Path:
        """Write the detection manifest with a fixed key order."""
        data = {"path": "."}
        for split in self._active_splits(splits):
            data[split] = f"images/{split}"
        data["nc"] = len(class_names)
        data["names"] = list(class_names)

        yaml_path = self.output_dir / DATASET_YAML_NAME
        with open(yaml_path, "w", encoding="utf-8", newline="\n") as f:
            yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
        return yaml_path

    def _package(self) -> bytes:
        """Zip the staging directory; entries sorted, posix names, fixed timestamps."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for path in sorted(self.output_dir.rglob("*")):
                arcname = path.relative_to(self.output_dir).as_posix()
                if path.is_dir():
                    info = zipfile.ZipInfo(arcname + "/", date_time=ZIP_DATE_TIME)
                    info.external_attr = 0o40755 << 16
                    zf.writestr(info, b"")
                else:
                    info = zipfile.ZipInfo(arcname, date_time=ZIP_DATE_TIME)
                    info.compress_type = zipfile.ZIP_DEFLATED
                    info.external_attr = 0o644 << 16
                    zf.writestr(info, path.read_bytes())
        return buffer.getvalue()


def export_dataset(
    store: AnnotationStore,
    source_root: Union[str, Path],
    config: ExportConfig,
    output_dir: Union[str, Path],
    rng: Optional[random.Random] = None,
) -> bytes:
    """
    Export a dataset and return only the archive bytes.

    Args:
        store: Annotations to export
        source_root: Folder the image ids are relative to
        config: Export configuration
        output_dir: Staging directory
        rng: Optional random source for the split

    Returns:
        Zip archive bytes
    """
    return DatasetExporter(output_dir, rng=rng).export(store, source_root, config).archive

"""
Segmentation Service

Point-prompt segmentation on top of a pluggable oracle. The oracle only
has to implement embed() and predict(); SAM2 is one implementation.

At most one oracle call is in flight per service. A request that arrives
while another is running raises OracleBusyError immediately and is never
queued.
"""

import itertools
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Sequence, Tuple

import cv2
import numpy as np

from ..annotation.annotation_store import AnnotationStore
from ..annotation.contour import mask_bbox, mask_to_polygon
from ..annotation.models import Bounds, PolygonSegment
from ..common.constants import DEFAULT_MASK_THRESHOLD, DEFAULT_SIMPLIFY_TOLERANCE
from ..utils.exceptions import OracleBusyError, OracleUnavailableError
from ..utils.logger import get_logger

logger = get_logger(__name__)

PointXY = Tuple[float, float]


@dataclass(frozen=True)
class EmbeddingHandle:
    """
    Opaque per-image embedding returned by an oracle.

    Attributes:
        width: Width of the embedded image
        height: Height of the embedded image
        data: Oracle-specific payload
    """

    width: int
    height: int
    data: Any = None


@dataclass
class OraclePrediction:
    """Mask (H, W) in embedded-image pixels and its confidence."""

    mask: np.ndarray
    score: float


class SegmentationOracle(Protocol):
    """Capability interface of a segmentation model."""

    def embed(self, image: np.ndarray) -> EmbeddingHandle:
        ...

    def predict(self, embedding: EmbeddingHandle, points: Sequence[PointXY]) -> OraclePrediction:
        ...


class SegmentationService:
    """
    Turns point prompts into stored polygon segments.

    Point prompts are given in original-image pixels. The embedding is
    recomputed whenever the active image changes.

    Example:
        >>> service = SegmentationService(store, oracle)
        >>> service.ensure_embedding("a.jpg", image)
        >>> segment = service.segment("a.jpg", [(120, 80)], "cup")
    """

    def __init__(
        self,
        store: AnnotationStore,
        oracle: Optional[SegmentationOracle] = None,
        tolerance: float = DEFAULT_SIMPLIFY_TOLERANCE,
        mask_threshold: float = DEFAULT_MASK_THRESHOLD,
    ):
        self.store = store
        self.oracle = oracle
        self.tolerance = tolerance
        self.mask_threshold = mask_threshold
        self._busy = threading.Lock()
        self._active_image_id: Optional[str] = None
        self._embedding: Optional[EmbeddingHandle] = None

    @property
    def is_loaded(self) -> bool:
        return self.oracle is not None

    @property
    def is_ready(self) -> bool:
        return self.oracle is not None and self._embedding is not None

    @property
    def is_busy(self) -> bool:
        return self._busy.locked()

    @property
    def active_image_id(self) -> Optional[str]:
        return self._active_image_id

    def set_oracle(self, oracle: Optional[SegmentationOracle]) -> None:
        """Replace the oracle; any cached embedding is dropped."""
        self.oracle = oracle
        self.clear_embedding()

    def clear_embedding(self) -> None:
        self._active_image_id = None
        self._embedding = None

    def _require_oracle(self) -> SegmentationOracle:
        if self.oracle is None:
            raise OracleUnavailableError("Segmentation model is not loaded")
        return self.oracle

    def _acquire(self) -> None:
        if not self._busy.acquire(blocking=False):
            raise OracleBusyError("Segmentation model is busy")

    def ensure_embedding(self, image_id: str, image: np.ndarray) -> EmbeddingHandle:
        """
        Make `image_id` the active image, embedding it if needed.

        Also records the image's original size in the store.

        Raises:
            OracleUnavailableError: If no oracle is loaded
            OracleBusyError: If another oracle call is in flight
        """
        oracle = self._require_oracle()
        if self._active_image_id == image_id and self._embedding is not None:
            return self._embedding

        self._acquire()
        try:
            with self.store.processing(image_id):
                logger.debug(f"Embedding {image_id}")
                embedding = oracle.embed(image)
        finally:
            self._busy.release()

        self._active_image_id = image_id
        self._embedding = embedding
        height, width = image.shape[:2]
        self.store.set_original_size(image_id, width, height)
        return embedding

    def _predict(
        self, image_id: str, points: Sequence[PointXY]
    ) -> Tuple[np.ndarray, float, float, float]:
        """
        Run the oracle for the active image.

        Returns:
            Tuple of (binary mask, score, scale_x, scale_y) where the scale
            factors map mask pixels to original-image pixels
        """
        oracle = self._require_oracle()
        if self._embedding is None or self._active_image_id != image_id:
            raise OracleUnavailableError(
                "No embedding for image", {"image_id": image_id}
            )
        if not points:
            raise ValueError("At least one point prompt is required")

        embedding = self._embedding
        orig_w, orig_h = self._original_size(image_id, embedding)

        # Prompts arrive in original pixels; the oracle works in embedded pixels
        to_embed_x = embedding.width / orig_w
        to_embed_y = embedding.height / orig_h
        scaled = [(x * to_embed_x, y * to_embed_y) for x, y in points]

        self._acquire()
        try:
            with self.store.processing(image_id):
                prediction = oracle.predict(embedding, scaled)
        finally:
            self._busy.release()

        mask = np.asarray(prediction.mask)
        if mask.ndim == 3:
            mask = mask[0]
        binary = mask > self.mask_threshold

        mask_h, mask_w = binary.shape
        return binary, float(prediction.score), orig_w / mask_w, orig_h / mask_h

    def _original_size(self, image_id: str, embedding: EmbeddingHandle) -> Tuple[int, int]:
        record = self.store.get(image_id)
        if record is not None and record.original_size.is_set:
            return record.original_size.width, record.original_size.height
        return embedding.width, embedding.height

    def segment(
        self,
        image_id: str,
        points: Sequence[PointXY],
        label: str,
    ) -> Optional[PolygonSegment]:
        """
        Segment the object under the point prompts and store it.

        Args:
            image_id: Active image
            points: Foreground point prompts in original-image pixels
            label: Class name of the new segment

        Returns:
            The stored PolygonSegment, or None when the mask yields fewer
            than 3 polygon points (nothing is stored)

        Raises:
            OracleUnavailableError: No oracle loaded, or image not embedded
            OracleBusyError: Another oracle call is in flight
        """
        binary, score, scale_x, scale_y = self._predict(image_id, points)

        polygon = mask_to_polygon(binary, scale_x, scale_y, self.tolerance)
        segment = PolygonSegment.create(
            polygon, label, click_points=list(points), score=score
        )
        if segment is None:
            logger.debug(f"Discarded mask for {image_id}: {len(polygon)} polygon points")
            return None

        self.store.add_segment(image_id, segment)
        logger.info(
            f"Added segment '{label}' to {image_id} "
            f"({len(segment.polygon)} points, score {score:.3f})"
        )
        return segment

    def preview_box(self, image_id: str, points: Sequence[PointXY]) -> Optional[Bounds]:
        """
        Bounding box of the predicted mask, for hover previews.

        Nothing is stored.

        Returns:
            Bounds in original-image pixels, or None for an empty mask
        """
        binary, _, scale_x, scale_y = self._predict(image_id, points)
        box = mask_bbox(binary)
        if box is None:
            return None

        orig_w, orig_h = binary.shape[1] * scale_x, binary.shape[0] * scale_y
        x, y, w, h = box
        return Bounds(
            x=max(0.0, x * scale_x),
            y=max(0.0, y * scale_y),
            width=min(w * scale_x, orig_w),
            height=min(h * scale_y, orig_h),
        )


class Sam2Oracle:
    """
    SegmentationOracle backed by SAM2's image predictor.

    SAM2 keeps the image features inside the predictor, so only the most
    recent embedding can be used for prediction.
    """

    def __init__(self, model_path: str = "sam2_b.pt", device: str = "cuda"):
        """
        Initialize the adapter.

        Args:
            model_path: Path to SAM2 model checkpoint
            device: Device to run model on ("cuda" or "cpu")
        """
        self.model_path = model_path
        self.device = device
        self.predictor = None
        self.model = None
        self._tokens = itertools.count(1)
        self._current_token: Optional[int] = None

    def _model_config(self) -> str:
        """SAM2.1 config matching the checkpoint name."""
        name = self.model_path.lower()
        if "large" in name or "_l" in name:
            return "configs/sam2.1/sam2.1_hiera_l.yaml"
        if "small" in name or "_s" in name:
            return "configs/sam2.1/sam2.1_hiera_s.yaml"
        if "tiny" in name or "_t" in name:
            return "configs/sam2.1/sam2.1_hiera_t.yaml"
        return "configs/sam2.1/sam2.1_hiera_b+.yaml"

    def load_model(self, progress_callback: Optional[Callable[[str], None]] = None) -> None:
        """
        Load the SAM2 model.

        Args:
            progress_callback: Optional callback for progress updates
        """
        if self.predictor is not None:
            return

        try:
            from sam2.build_sam import build_sam2
            from sam2.sam2_image_predictor import SAM2ImagePredictor
        except ImportError:
            raise ImportError(
                "SAM2 not installed. Install with:\n"
                "pip install 'yolo-annotator[sam]'"
            )

        if progress_callback:
            progress_callback("Loading SAM2 model...")

        self.model = build_sam2(self._model_config(), self.model_path, device=self.device)
        self.predictor = SAM2ImagePredictor(self.model)

        if progress_callback:
            progress_callback("SAM2 model loaded successfully")

    def embed(self, image: np.ndarray) -> EmbeddingHandle:
        """
        Compute image features.

        Args:
            image: BGR image (H, W, 3)
        """
        if self.predictor is None:
            raise OracleUnavailableError("Model not loaded. Call load_model() first.")

        self.predictor.set_image(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))
        self._current_token = next(self._tokens)
        height, width = image.shape[:2]
        return EmbeddingHandle(width=width, height=height, data=self._current_token)

    def predict(self, embedding: EmbeddingHandle, points: Sequence[PointXY]) -> OraclePrediction:
        """Predict the best of SAM2's multimask outputs for foreground points."""
        if self.predictor is None:
            raise OracleUnavailableError("Model not loaded. Call load_model() first.")
        if embedding.data != self._current_token:
            raise OracleUnavailableError("Embedding is no longer current")

        point_coords = np.array(points, dtype=np.float32)
        point_labels = np.ones(len(points), dtype=np.int32)

        masks, iou_predictions, _ = self.predictor.predict(
            point_coords=point_coords,
            point_labels=point_labels,
            multimask_output=True,
        )

        best_idx = int(np.argmax(iou_predictions))
        return OraclePrediction(
            mask=masks[best_idx].astype(np.float32),
            score=float(iou_predictions[best_idx]),
        )

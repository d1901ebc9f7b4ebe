"""
YOLO Annotator - Configuration Utilities

Export configuration dataclasses. Each dataclass validates itself in
__post_init__ and raises ValueError on invalid values.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .constants import (
    DEFAULT_MODEL_PRESET,
    DEFAULT_TARGET_SIZE,
    DEFAULT_TEST_RATIO,
    DEFAULT_TRAIN_RATIO,
    DEFAULT_VAL_RATIO,
    MODEL_PRESETS,
)


class ExportFormat(str, Enum):
    """Dataset layout produced by the export pipeline."""

    DETECTION = "detection"
    SEGMENTATION = "segmentation"


@dataclass
class ImageFilters:
    """
    Pre-filters applied to images before letterboxing (detection export).

    Attributes:
        brightness: Brightness multiplier (1.0 = unchanged)
        saturation: Saturation multiplier (1.0 = unchanged)
        exposure: Linear gain applied to every channel (1.0 = unchanged)
        blur: Gaussian blur sigma in pixels (0 = no blur)
        grayscale: Convert to grayscale
    """

    brightness: float = 1.0
    saturation: float = 1.0
    exposure: float = 1.0
    blur: float = 0.0
    grayscale: bool = False

    def __post_init__(self):
        for name in ("brightness", "saturation", "exposure"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.blur < 0:
            raise ValueError("blur must be >= 0")

    @property
    def is_identity(self) -> bool:
        """True when no filter changes the image."""
        return (
            self.brightness == 1.0
            and self.saturation == 1.0
            and self.exposure == 1.0
            and self.blur == 0
            and not self.grayscale
        )

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "ImageFilters":
        data = data or {}
        return cls(
            brightness=float(data.get("brightness", 1.0)),
            saturation=float(data.get("saturation", 1.0)),
            exposure=float(data.get("exposure", 1.0)),
            blur=float(data.get("blur", 0.0)),
            grayscale=bool(data.get("grayscale", False)),
        )


@dataclass
class SplitRatios:
    """
    Train/val/test ratios.

    Split sizes are floor(n * train) and floor(n * val); every remaining
    image goes to test, so the test ratio is informational.
    """

    train: float = DEFAULT_TRAIN_RATIO
    val: float = DEFAULT_VAL_RATIO
    test: float = DEFAULT_TEST_RATIO

    def __post_init__(self):
        for name in ("train", "val", "test"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} ratio must be in [0, 1], got {value}")
        # Small epsilon for float sums such as 0.7 + 0.2 + 0.1
        if self.train + self.val + self.test > 1.0 + 1e-9:
            raise ValueError("Split ratios must sum to <= 1")

    def split_counts(self, total: int) -> Dict[str, int]:
        """
        Compute split sizes for `total` images.

        Args:
            total: Number of selected images

        Returns:
            Dictionary {"train": n, "val": m, "test": rest}
        """
        train_count = int(total * self.train)
        val_count = int(total * self.val)
        return {
            "train": train_count,
            "val": val_count,
            "test": total - train_count - val_count,
        }

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class ExportConfig:
    """
    Configuration for one dataset export run.

    Attributes:
        format: Detection (letterboxed images + txt labels) or segmentation
            (original images + JSON polygons)
        target_size: Square canvas size for detection export and preview
        filters: Image pre-filters for detection export
        class_list: Ordered class names; index is the exported class id
        ratios: Split ratios
        seed: Optional seed for a reproducible split
    """

    format: ExportFormat = ExportFormat.DETECTION
    target_size: int = DEFAULT_TARGET_SIZE
    filters: ImageFilters = field(default_factory=ImageFilters)
    class_list: List[str] = field(default_factory=list)
    ratios: SplitRatios = field(default_factory=SplitRatios)
    seed: Optional[int] = None

    def __post_init__(self):
        self.format = ExportFormat(self.format)
        if self.target_size <= 0:
            raise ValueError("target_size must be positive")
        if len(set(self.class_list)) != len(self.class_list):
            raise ValueError("class_list must not contain duplicates")

    def class_id_map(self) -> Dict[str, int]:
        """Mapping from class name to class id, in list order."""
        return {name: idx for idx, name in enumerate(self.class_list)}

    def to_dict(self) -> Dict:
        return {
            "format": self.format.value,
            "target_size": self.target_size,
            "filters": self.filters.to_dict(),
            "class_list": list(self.class_list),
            "ratios": self.ratios.to_dict(),
            "seed": self.seed,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ExportConfig":
        ratios = data.get("ratios") or {}
        return cls(
            format=data.get("format", ExportFormat.DETECTION.value),
            target_size=int(data.get("target_size", DEFAULT_TARGET_SIZE)),
            filters=ImageFilters.from_dict(data.get("filters")),
            class_list=list(data.get("class_list", [])),
            ratios=SplitRatios(
                train=float(ratios.get("train", DEFAULT_TRAIN_RATIO)),
                val=float(ratios.get("val", DEFAULT_VAL_RATIO)),
                test=float(ratios.get("test", DEFAULT_TEST_RATIO)),
            ),
            seed=data.get("seed"),
        )

    @classmethod
    def from_preset(cls, preset: str = DEFAULT_MODEL_PRESET, **kwargs) -> "ExportConfig":
        """
        Build a config whose target size comes from a YOLO model preset.

        Args:
            preset: Key of MODEL_PRESETS (e.g. "yolov8n", "yolov8_1280")
            **kwargs: Remaining ExportConfig fields

        Returns:
            ExportConfig instance
        """
        if preset not in MODEL_PRESETS:
            raise ValueError(f"Unknown model preset: {preset}")
        return cls(target_size=MODEL_PRESETS[preset]["size"], **kwargs)

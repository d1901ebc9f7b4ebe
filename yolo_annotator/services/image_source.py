"""
Image Source Service

Read-only access to a connected image folder. Image ids are root-relative
posix paths such as "shelf/cup_001.jpg".
"""

from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from ..common.image_utils import list_image_files, load_image, read_image_size
from ..utils.exceptions import PathError, SourceImageMissingError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ImageFolder:
    """
    A connected folder of images.

    Example:
        >>> folder = ImageFolder("/data/shelf_photos").connect()
        >>> folder.list_images()
        ['a.jpg', 'sub/b.png']
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self._images: Optional[List[str]] = None

    def connect(self) -> "ImageFolder":
        """
        Validate the folder and scan it for images.

        Raises:
            PathError: If the folder does not exist or holds no images
        """
        if not self.root.is_dir():
            raise PathError("Image folder not found", path=str(self.root))

        images = list_image_files(self.root, recursive=True)
        if not images:
            raise PathError("No images found in folder", path=str(self.root))

        self._images = images
        logger.info(f"Connected {self.root} ({len(images)} images)")
        return self

    def list_images(self, refresh: bool = False) -> List[str]:
        """
        Sorted root-relative ids of every image in the folder (recursive).

        Args:
            refresh: Rescan the folder instead of using the cached list
        """
        if self._images is None or refresh:
            self._images = list_image_files(self.root, recursive=True)
        return list(self._images)

    def resolve(self, image_id: str) -> Path:
        """Absolute path of an image id."""
        return self.root.joinpath(*image_id.split("/"))

    def exists(self, image_id: str) -> bool:
        return self.resolve(image_id).is_file()

    def read_image(self, image_id: str) -> np.ndarray:
        """
        Decode an image as BGR.

        Raises:
            SourceImageMissingError: If the file is missing or unreadable
        """
        path = self.resolve(image_id)
        image = load_image(path)
        if image is None:
            raise SourceImageMissingError(image_id, str(path))
        return image

    def image_size(self, image_id: str) -> Tuple[int, int]:
        """
        Dimensions of an image as (width, height).

        Raises:
            SourceImageMissingError: If the file is missing or unreadable
        """
        path = self.resolve(image_id)
        size = read_image_size(path)
        if size is None:
            raise SourceImageMissingError(image_id, str(path))
        return size

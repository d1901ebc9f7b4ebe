"""
Annotation Persistence Service

Loads and saves the whole AnnotationStore as one JSON document keyed by
image id. AutoSaver debounces saves after each store change.
"""

import json
import threading
from pathlib import Path
from typing import Optional, Union

from ..annotation.annotation_store import AnnotationStore
from ..common.constants import DEFAULT_AUTOSAVE_DELAY
from ..utils.exceptions import PersistenceError
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_ANNOTATIONS_FILE = "annotations.json"


class AnnotationRepository:
    """
    JSON file holding every image's annotations.

    Document layout:
        {"<image_id>": {"original_size": {...}, "boxes": [...], "polygons": [...]}}
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> AnnotationStore:
        """
        Load the store.

        Returns:
            AnnotationStore (empty if the document does not exist)

        Raises:
            PersistenceError: If the document cannot be read or parsed
        """
        if not self.path.exists():
            logger.debug(f"No annotation document at {self.path}; starting empty")
            return AnnotationStore()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt annotation document: {e}", path=str(self.path)) from e
        except OSError as e:
            raise PersistenceError(f"Failed to read annotations: {e}", path=str(self.path)) from e

        if not isinstance(data, dict):
            raise PersistenceError("Annotation document must be an object", path=str(self.path))

        try:
            store = AnnotationStore.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed annotation record: {e}", path=str(self.path)) from e

        logger.info(f"Loaded annotations for {len(store)} images from {self.path}")
        return store

    def save(self, store: AnnotationStore) -> None:
        """
        Write the store and mark it saved.

        The document is written to a temporary file first and then moved
        into place.

        Raises:
            PersistenceError: If the document cannot be written
        """
        data = store.to_dict()
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            tmp_path.replace(self.path)
        except OSError as e:
            raise PersistenceError(f"Failed to save annotations: {e}", path=str(self.path)) from e

        store.mark_saved()
        logger.debug(f"Saved annotations for {len(data)} images to {self.path}")


class AutoSaver:
    """
    Debounced auto-save: each store change (re)starts a timer and the
    store is saved once no change arrived for `delay` seconds.

    Example:
        >>> saver = AutoSaver(store, AnnotationRepository("annotations.json"))
        >>> store.add_box("a.jpg", box)   # saved about one second later
        >>> saver.close()                 # flushes pending changes
    """

    def __init__(
        self,
        store: AnnotationStore,
        repository: AnnotationRepository,
        delay: float = DEFAULT_AUTOSAVE_DELAY,
    ):
        self.store = store
        self.repository = repository
        self.delay = delay
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self.last_error: Optional[PersistenceError] = None
        store.add_listener(self._on_change)

    def _on_change(self, image_id: str) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._save)
            self._timer.daemon = True
            self._timer.start()

    def _save(self) -> None:
        with self._lock:
            self._timer = None
        try:
            self.repository.save(self.store)
            self.last_error = None
        except PersistenceError as e:
            # Runs on a timer thread; keep the error for the owner to inspect
            self.last_error = e
            logger.error(f"Auto-save failed: {e}")

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def flush(self) -> None:
        """Save now if a save is pending or the store is dirty."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self.store.is_dirty:
            self.repository.save(self.store)

    def close(self) -> None:
        """Flush and stop listening to the store."""
        self.store.remove_listener(self._on_change)
        self.flush()

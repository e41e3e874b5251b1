"""Temporary on-disk storage for uploaded and derived images."""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from textlens.logging.logger import Log
from textlens.storage.exceptions import ImageStoreError


@dataclass(frozen=True)
class StoredImage:
    """Handle to one temporary image file."""

    path: Path
    size_bytes: int
    width: int | None = None
    height: int | None = None

    @property
    def name(self) -> str:
        return self.path.name

    def read_bytes(self) -> bytes:
        """Read the stored file.

        Raises:
            ImageStoreError: if the file cannot be read.
        """
        try:
            return self.path.read_bytes()
        except OSError as exc:
            raise ImageStoreError(f"Failed to read image {self.path}: {exc}") from exc


class ImageStore:
    """Issues unique temporary files for images and deletes them on demand."""

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def save(self, raw_bytes: bytes, suffix: str = ".jpg") -> StoredImage:
        """Write bytes to a new file with a random name.

        Raises:
            ImageStoreError: if the directory or file cannot be written.
        """
        path = self._root / f"{uuid.uuid4().hex}{suffix}"
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ImageStoreError(f"Failed to store image: {exc}") from exc
        try:
            # "xb" refuses to reuse an existing name
            fh = path.open("xb")
        except OSError as exc:
            raise ImageStoreError(f"Failed to store image: {exc}") from exc
        try:
            with fh:
                fh.write(raw_bytes)
        except OSError as exc:
            self._discard_partial(path)
            raise ImageStoreError(f"Failed to store image: {exc}") from exc
        Log.debug("Stored image", path=path, size_bytes=len(raw_bytes))
        return StoredImage(path=path, size_bytes=len(raw_bytes))

    def delete(self, image: StoredImage) -> None:
        """Remove an image. A file that is already gone is not an error.

        Raises:
            ImageStoreError: if the file exists but cannot be removed.
        """
        try:
            image.path.unlink(missing_ok=True)
        except OSError as exc:
            raise ImageStoreError(f"Failed to delete image {image.path}: {exc}") from exc

    @staticmethod
    def _discard_partial(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            Log.error("Partial image cleanup failed", path=path, error=exc)

    @contextmanager
    def scope(self) -> Iterator["ImageScope"]:
        """Yield an ImageScope whose images are all deleted when the block exits."""
        image_scope = ImageScope(self)
        try:
            yield image_scope
        finally:
            image_scope.release()


class ImageScope:
    """Tracks every temporary image created during one pipeline run."""

    def __init__(self, store: ImageStore) -> None:
        self._store = store
        self._owned: list[StoredImage] = []

    @property
    def images(self) -> tuple[StoredImage, ...]:
        return tuple(self._owned)

    def save(self, raw_bytes: bytes, suffix: str = ".jpg") -> StoredImage:
        return self.adopt(self._store.save(raw_bytes, suffix))

    def adopt(self, image: StoredImage) -> StoredImage:
        """Take ownership of an image created elsewhere."""
        self._owned.append(image)
        return image

    def release(self) -> None:
        """Delete every owned image exactly once. Safe to call repeatedly."""
        while self._owned:
            image = self._owned.pop()
            try:
                self._store.delete(image)
            except ImageStoreError as exc:
                Log.error("Temporary image cleanup failed", path=image.path, error=exc)

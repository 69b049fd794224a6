import logging
import os
import uuid
from pathlib import Path, PurePosixPath

from drive_server.core.config import settings
from drive_server.core.errors import StorageFailureError

logger = logging.getLogger(__name__)


MAX_SUFFIX_LENGTH = 16


def new_storage_path(owner_id: int, filename: str) -> str:
    """Return a fresh storage key: {owner_id}/{uuid4 hex}{ext}."""
    suffix = PurePosixPath(filename).suffix.lower()
    # keys must stay short enough for any filesystem
    if len(suffix) > MAX_SUFFIX_LENGTH:
        suffix = ""
    return f"{owner_id}/{uuid.uuid4().hex}{suffix}"


class LocalDiskStorage:
    """
    Blob storage on the local filesystem.

    Keys are relative POSIX paths resolved under ``root``; keys that
    would escape the root are rejected.
    """

    def __init__(self, root: str | os.PathLike):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if target != self.root and self.root not in target.parents:
            raise StorageFailureError(
                "Storage path escapes the storage root",
                details={"storage_path": path},
            )
        return target

    def write(self, path: str, data: bytes) -> str:
        dest = self._resolve(path)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            # never overwrite: storage paths are unique for the record lifetime
            with open(dest, "xb") as f:
                f.write(data)
        except OSError as e:
            logger.exception("Failed to write storage object: %s", path)
            raise StorageFailureError(
                f"Failed to write storage object {path}: {e}",
                details={"storage_path": path},
                cause=e,
            ) from e

        logger.debug("Stored %d bytes at %s", len(data), path)
        return path

    def delete(self, path: str) -> bool:
        """Remove an object. Returns False when it was already gone."""
        target = self._resolve(path)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageFailureError(
                f"Failed to delete storage object {path}: {e}",
                details={"storage_path": path},
                cause=e,
            ) from e
        return True

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def local_path(self, path: str) -> Path:
        return self._resolve(path)


def get_storage() -> LocalDiskStorage:
    return LocalDiskStorage(settings.STORAGE_DIR)

"""Filesystem-based storage implementation.

Stores each key as a file on disk below a base directory.
Suitable for single-node deployments and development.
"""

import os
import tempfile
from pathlib import Path

from loguru import logger

from oauth_login.auth.storage import Storage, validate_key
from oauth_login.errors import StorageError


class FileSystemStorage(Storage):
    """Filesystem-based storage.

    Storage layout:
        {base_path}/{key}

    Example:
        ~/.oauth-login/data/config
        ~/.oauth-login/data/role/default

    Writes go to a temporary file that is renamed over the target, so a
    reader sees either the old or the new value and concurrent writers to
    the same key resolve as last-writer-wins.
    """

    def __init__(self, base_path: str = "~/.oauth-login/data"):
        """Initialize filesystem storage.

        Args:
            base_path: Root directory for stored entries
        """
        self.base_path = Path(os.path.expanduser(base_path))
        logger.info(f"FileSystemStorage initialized: {self.base_path}")

    def get(self, key: str) -> bytes | None:
        path = self._key_path(key)
        if not path.is_file():
            return None

        try:
            return path.read_bytes()
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}")
            raise StorageError(f"failed to read {key}") from e

    def put(self, key: str, value: bytes) -> None:
        path = self._key_path(key)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise StorageError(f"failed to write {key}") from e

    def delete(self, key: str) -> None:
        path = self._key_path(key)

        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to delete {path}: {e}")
            raise StorageError(f"failed to delete {key}") from e

    def list(self, prefix: str) -> list[str]:
        directory = self.base_path / prefix.strip("/") if prefix.strip("/") else self.base_path
        if not directory.is_dir():
            return []

        try:
            children = []
            for path in directory.iterdir():
                if path.name.startswith("."):
                    continue
                children.append(path.name + "/" if path.is_dir() else path.name)
            return sorted(children)
        except OSError as e:
            logger.error(f"Failed to list {directory}: {e}")
            raise StorageError(f"failed to list {prefix}") from e

    def _key_path(self, key: str) -> Path:
        """Get path to the file holding a key."""
        validate_key(key)
        return self.base_path.joinpath(*key.split("/"))

"""Abstract storage interface.

Defines the contract for persisting provider configuration and roles:
- FileSystemStorage: one file per key on disk
- InMemoryStorage: process-local dict (tests, ephemeral servers)
"""

import threading
from abc import ABC, abstractmethod

from oauth_login.errors import StorageError


class Storage(ABC):
    """Abstract key-value storage.

    Keys are slash-separated paths. Values are opaque bytes; callers
    serialize their own records.

    Storage pattern:
        config          -> provider configuration
        role/<name>     -> one role per entry
    """

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Get value by key.

        Args:
            key: Entry key

        Returns:
            Stored bytes if found, None otherwise

        Raises:
            StorageError: Backend failure
        """
        pass

    @abstractmethod
    def put(self, key: str, value: bytes) -> None:
        """Store value by key, replacing any previous value.

        Args:
            key: Entry key
            value: Bytes to store

        Raises:
            StorageError: Backend failure
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete value by key. Deleting a missing key is not an error.

        Raises:
            StorageError: Backend failure
        """
        pass

    @abstractmethod
    def list(self, prefix: str) -> list[str]:
        """List immediate children below a prefix.

        Args:
            prefix: Key prefix, usually ending in "/"

        Returns:
            Sorted child names with the prefix removed. Children that have
            descendants of their own are suffixed with "/".
        """
        pass


def validate_key(key: str) -> None:
    parts = key.split("/")
    if not key or any(part in ("", ".", "..") for part in parts):
        raise StorageError(f"invalid storage key: {key!r}")


def _children(keys: list[str], prefix: str) -> list[str]:
    children: set[str] = set()
    for key in keys:
        if not key.startswith(prefix):
            continue
        rest = key[len(prefix):]
        if not rest:
            continue
        head, sep, _ = rest.partition("/")
        children.add(head + sep)
    return sorted(children)


class InMemoryStorage(Storage):
    """Process-local storage backed by a dict.

    Contents are lost when the process exits.
    """

    def __init__(self):
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        validate_key(key)
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        validate_key(key)
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        validate_key(key)
        with self._lock:
            self._data.pop(key, None)

    def list(self, prefix: str) -> list[str]:
        with self._lock:
            keys = list(self._data)
        return _children(keys, prefix)

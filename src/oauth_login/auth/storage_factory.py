"""Factory for storage backends.

Creates the Storage implementation selected by configuration.
"""

from loguru import logger

from oauth_login.auth.storage import InMemoryStorage, Storage
from oauth_login.auth.storage_fs import FileSystemStorage
from oauth_login.settings import settings


# Singleton instance
_storage_instance: Storage | None = None


def get_storage() -> Storage:
    """Get storage instance (singleton).

    Returns:
        Storage implementation based on SERVER__STORAGE_BACKEND

    Raises:
        ValueError: If storage backend is invalid
    """
    global _storage_instance

    if _storage_instance is not None:
        return _storage_instance

    backend = settings.server.storage_backend.lower()

    if backend == "filesystem":
        logger.info("Initializing FileSystemStorage")
        _storage_instance = FileSystemStorage(base_path=settings.server.storage_path)
    elif backend == "memory":
        logger.warning("Using InMemoryStorage, configuration is lost on restart")
        _storage_instance = InMemoryStorage()
    else:
        raise ValueError(
            f"Invalid storage backend: {backend}. "
            f"Valid options: filesystem, memory"
        )

    return _storage_instance

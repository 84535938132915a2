"""Generic object store with prefix listing and simulated folders."""

from objectstore.errors import (
    BackendUnavailableError,
    InvalidKeyError,
    ObjectNotFoundError,
    StorageConfigError,
    StorageError,
)
from objectstore.storage import (
    LocalStorage,
    MemoryMedium,
    MemoryStorage,
    Object,
    S3RequestsStorage,
    StorageBackend,
    get_storage,
)

__all__ = [
    "BackendUnavailableError",
    "InvalidKeyError",
    "ObjectNotFoundError",
    "StorageConfigError",
    "StorageError",
    "LocalStorage",
    "MemoryMedium",
    "MemoryStorage",
    "Object",
    "S3RequestsStorage",
    "StorageBackend",
    "get_storage",
]

"""Storage backend implementations."""

from objectstore.storage.base import Object, StorageBackend
from objectstore.storage.factory import get_storage
from objectstore.storage.local import LocalStorage
from objectstore.storage.memory import MemoryMedium, MemoryStorage
from objectstore.storage.s3 import S3RequestsStorage

__all__ = [
    "Object",
    "StorageBackend",
    "LocalStorage",
    "MemoryMedium",
    "MemoryStorage",
    "S3RequestsStorage",
    "get_storage",
]

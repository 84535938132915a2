"""In-memory storage backend."""

import logging
import mimetypes
from dataclasses import dataclass
from datetime import datetime, timezone
from hashlib import md5

from objectstore.errors import BackendUnavailableError, ObjectNotFoundError
from objectstore.keys import KeyCodec, folders_from_keys, is_folder_marker
from objectstore.storage.base import Object

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredRecord:
    """Object as held by the medium."""

    content: bytes
    content_type: str
    last_modified: datetime
    etag: str
    encryption: str = ""


class MemoryMedium:
    """Process-wide container of buckets shared by MemoryStorage clients."""

    def __init__(self, buckets: list[str] | None = None):
        self.buckets: dict[str, dict[str, StoredRecord]] = {}
        for bucket in buckets or []:
            self.create_bucket(bucket)

    def create_bucket(self, bucket: str) -> None:
        self.buckets.setdefault(bucket, {})

    def delete_bucket(self, bucket: str) -> None:
        self.buckets.pop(bucket, None)


class MemoryStorage:
    """Storage backend holding objects in a MemoryMedium."""

    def __init__(
        self,
        medium: MemoryMedium,
        bucket: str,
        prefix: str = "",
        encryption: str = "",
    ):
        self.medium = medium
        self.bucket = bucket
        self.codec = KeyCodec(prefix)
        self.encryption = encryption
        self.name = f"memory bucket '{bucket}'"

    def _objects(self) -> dict[str, StoredRecord]:
        objects = self.medium.buckets.get(self.bucket)
        if objects is None:
            raise BackendUnavailableError(f"Bucket '{self.bucket}' does not exist")
        return objects

    def put_object(self, key: str, content: bytes, content_type: str | None = None) -> None:
        """Store content under key, replacing any previous record."""
        path = self.codec.to_storage(key)
        objects = self._objects()

        if content_type is None:
            guessed, _ = mimetypes.guess_type(path)
            content_type = guessed or "application/octet-stream"

        data = bytes(content)
        objects[path] = StoredRecord(
            content=data,
            content_type=content_type,
            last_modified=datetime.now(timezone.utc),
            etag=md5(data).hexdigest(),
            encryption=self.encryption,
        )
        logger.debug("Stored %s (%d bytes) in %s", path, len(data), self.name)

    def get_object(self, key: str) -> Object:
        path = self.codec.to_storage(key)
        record = self._objects().get(path)
        if record is None:
            raise ObjectNotFoundError(f"Object '{key}' not found in {self.name}")
        return Object(
            key=self.codec.from_storage(path),
            content=record.content,
            content_type=record.content_type,
            last_modified=record.last_modified,
            size=len(record.content),
            etag=record.etag,
        )

    def delete_object(self, key: str) -> None:
        path = self.codec.to_storage(key)
        self._objects().pop(path, None)

    def list_objects(self, prefix: str = "") -> list[Object]:
        search = self.codec.storage_prefix(prefix)
        # Snapshot the items so concurrent writers cannot break iteration.
        items = list(self._objects().items())

        objects = []
        for path, record in sorted(items):
            if not path.startswith(search) or is_folder_marker(path):
                continue
            objects.append(
                Object(
                    key=self.codec.from_storage(path),
                    content_type=record.content_type,
                    last_modified=record.last_modified,
                    size=len(record.content),
                    etag=record.etag,
                )
            )
        return objects

    def list_folders(self, prefix: str = "") -> list[str]:
        search = self.codec.folder_prefix(prefix)
        paths = list(self._objects().keys())
        return folders_from_keys(paths, search)

    def stored_record(self, key: str) -> StoredRecord:
        """Raw record as held by the medium, including its encryption mode."""
        path = self.codec.to_storage(key)
        record = self._objects().get(path)
        if record is None:
            raise ObjectNotFoundError(f"Object '{key}' not found in {self.name}")
        return record

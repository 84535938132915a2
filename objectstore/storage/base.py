"""Storage backend protocol definition."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass
class Object:
    """A stored object.

    Listings return metadata only: `content` stays empty until the object
    is fetched with `get_object`.
    """

    key: str
    content: bytes = b""
    content_type: str | None = None
    last_modified: datetime | None = None
    size: int = 0
    etag: str | None = None

    def has_extension(self, extension: str) -> bool:
        """Check whether the key ends with the given extension."""
        return self.key.endswith(f".{extension.lstrip('.')}")


class StorageBackend(Protocol):
    """Protocol for object storage backends (memory, local filesystem or S3-compatible).

    Constructing a backend never touches the medium; a bad bucket surfaces
    as BackendUnavailableError on the first operation.
    """

    name: str

    def put_object(self, key: str, content: bytes, content_type: str | None = None) -> None:
        """Write or overwrite the object at key."""
        ...

    def get_object(self, key: str) -> Object:
        """Fetch an object with its content. Raises ObjectNotFoundError if absent."""
        ...

    def delete_object(self, key: str) -> None:
        """Delete the object at key. Deleting a missing key is not an error."""
        ...

    def list_objects(self, prefix: str = "") -> list[Object]:
        """List objects whose key starts with prefix, excluding folder markers."""
        ...

    def list_folders(self, prefix: str = "") -> list[str]:
        """List distinct first-level folder names inside the folder prefix."""
        ...

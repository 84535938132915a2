"""Local filesystem storage backend."""

import hashlib
import logging
import mimetypes
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from objectstore.errors import (
    BackendUnavailableError,
    InvalidKeyError,
    ObjectNotFoundError,
    StorageConfigError,
)
from objectstore.keys import SEPARATOR, KeyCodec, folders_from_keys, is_folder_marker
from objectstore.storage.base import Object

logger = logging.getLogger(__name__)

# Valid keys never contain control characters, so these names cannot
# collide with stored objects.
INTERNAL_MARKER = "\x01"
TEMP_PREFIX = f"{INTERNAL_MARKER}tmp."
FOLDER_SENTINEL = f"{INTERNAL_MARKER}folder"


class LocalStorage:
    """Storage backend using a local directory as the bucket.

    The directory must exist when an operation runs; it is never created.
    A folder marker key ("a/") is a directory holding a sentinel file, so it
    outlives the objects stored under it. Server-side encryption is not
    available on this medium.

    Unlike flat object stores, a key cannot be both a file and a directory:
    with "a" stored, putting "a/b" raises InvalidKeyError, and vice versa.
    """

    def __init__(self, base_path: str, prefix: str = "", encryption: str = ""):
        if encryption:
            raise StorageConfigError(
                f"Local storage does not support encryption mode '{encryption}'"
            )
        self.base_path = Path(base_path)
        self.codec = KeyCodec(prefix)
        self.name = f"local filesystem ({self.base_path.absolute()})"

    def _root(self) -> Path:
        """Return the resolved bucket directory, failing if it is missing."""
        if not self.base_path.is_dir():
            raise BackendUnavailableError(
                f"Storage directory '{self.base_path}' does not exist"
            )
        return self.base_path.resolve()

    def _resolve(self, root: Path, path: str) -> Path:
        """Resolve a full key to a filesystem path inside root."""
        target = (root / path).resolve()
        if target != root and root not in target.parents:
            raise InvalidKeyError(f"Key '{path}' escapes storage directory {root}")
        return target

    def _stat_object(self, key: str, file_path: Path, content: bytes = b"") -> Object:
        stat = file_path.stat()
        guessed, _ = mimetypes.guess_type(file_path.name)
        return Object(
            key=key,
            content=content,
            content_type=guessed or "application/octet-stream",
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            size=stat.st_size,
        )

    def put_object(self, key: str, content: bytes, content_type: str | None = None) -> None:
        """Write content to a file, replacing it atomically."""
        path = self.codec.to_storage(key)
        root = self._root()
        target = self._resolve(root, path)

        try:
            if is_folder_marker(path):
                target.mkdir(parents=True, exist_ok=True)
                (target / FOLDER_SENTINEL).touch()
                return

            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=TEMP_PREFIX)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(content)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (FileExistsError, NotADirectoryError, IsADirectoryError) as e:
            raise InvalidKeyError(
                f"Key '{key}' collides with an existing file or folder in {self.name}"
            ) from e
        except OSError as e:
            raise BackendUnavailableError(f"Failed to write '{key}': {e}", e) from e

        logger.debug("Stored %s (%d bytes) in %s", path, len(content), self.name)

    def get_object(self, key: str) -> Object:
        path = self.codec.to_storage(key)
        root = self._root()
        target = self._resolve(root, path)

        try:
            content = target.read_bytes()
            obj = self._stat_object(self.codec.from_storage(path), target, content)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
            raise ObjectNotFoundError(f"Object '{key}' not found in {self.name}") from e
        except OSError as e:
            raise BackendUnavailableError(f"Failed to read '{key}': {e}", e) from e

        obj.etag = hashlib.md5(content).hexdigest()
        return obj

    def delete_object(self, key: str) -> None:
        """Delete a file or folder marker and prune directories left empty by it."""
        path = self.codec.to_storage(key)
        root = self._root()
        target = self._resolve(root, path)

        try:
            if is_folder_marker(path):
                if not target.is_dir():
                    return
                (target / FOLDER_SENTINEL).unlink(missing_ok=True)
                self._prune_empty_parents(root, target)
            elif target.is_file():
                target.unlink(missing_ok=True)
                self._prune_empty_parents(root, target.parent)
        except OSError as e:
            raise BackendUnavailableError(f"Failed to delete '{key}': {e}", e) from e

    def _prune_empty_parents(self, root: Path, directory: Path) -> None:
        # Directories holding a folder sentinel are never empty, so they stay.
        while directory != root and root in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                # Not empty, or removed concurrently.
                return
            directory = directory.parent

    def _walk(self, root: Path) -> Iterator[tuple[str, Path]]:
        """Yield (full key, path) for files and explicit folder markers."""
        for dirpath, _, filenames in os.walk(root):
            current = Path(dirpath)
            for filename in filenames:
                if filename == FOLDER_SENTINEL and current != root:
                    yield current.relative_to(root).as_posix() + SEPARATOR, current
                if INTERNAL_MARKER in filename:
                    continue
                file_path = current / filename
                yield file_path.relative_to(root).as_posix(), file_path

    def list_objects(self, prefix: str = "") -> list[Object]:
        search = self.codec.storage_prefix(prefix)
        root = self._root()

        objects = []
        try:
            for path, file_path in sorted(self._walk(root)):
                if not path.startswith(search) or is_folder_marker(path):
                    continue
                try:
                    objects.append(self._stat_object(self.codec.from_storage(path), file_path))
                except FileNotFoundError:
                    # Deleted between walk and stat.
                    continue
        except OSError as e:
            raise BackendUnavailableError(f"Failed to list '{prefix}': {e}", e) from e
        return objects

    def list_folders(self, prefix: str = "") -> list[str]:
        search = self.codec.folder_prefix(prefix)
        root = self._root()
        try:
            paths = [path for path, _ in self._walk(root)]
        except OSError as e:
            raise BackendUnavailableError(f"Failed to list '{prefix}': {e}", e) from e
        return folders_from_keys(paths, search)

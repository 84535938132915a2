"""Object key normalization and folder derivation."""

from typing import Iterable

from objectstore.errors import InvalidKeyError

SEPARATOR = "/"


def _has_control_chars(value: str) -> bool:
    return any(ord(char) < 32 or ord(char) == 127 for char in value)


def normalize_key(key: str) -> str:
    """Strip leading separators and validate an object key.

    Raises InvalidKeyError for empty keys, control characters and
    relative path segments ("." or "..").
    """
    if not isinstance(key, str):
        raise InvalidKeyError(f"Key must be a string, got {type(key).__name__}")

    normalized = key.lstrip(SEPARATOR)
    if not normalized:
        raise InvalidKeyError(f"Key is empty: {key!r}")
    if _has_control_chars(normalized):
        raise InvalidKeyError(f"Key contains control characters: {key!r}")

    segments = normalized.rstrip(SEPARATOR).split(SEPARATOR)
    if any(segment in (".", "..") for segment in segments):
        raise InvalidKeyError(f"Key contains relative path segments: {key!r}")
    if "" in segments:
        raise InvalidKeyError(f"Key contains an empty path segment: {key!r}")

    return normalized


def normalize_prefix(prefix: str) -> str:
    """Strip leading separators from a listing prefix. Empty is allowed."""
    if not isinstance(prefix, str):
        raise InvalidKeyError(f"Prefix must be a string, got {type(prefix).__name__}")
    if _has_control_chars(prefix):
        raise InvalidKeyError(f"Prefix contains control characters: {prefix!r}")
    return prefix.lstrip(SEPARATOR)


def clean_prefix(prefix: str) -> str:
    """Strip leading and trailing separators."""
    return prefix.strip(SEPARATOR)


def is_folder_marker(key: str) -> bool:
    """Keys with a trailing separator mark a folder, not an object."""
    return key.endswith(SEPARATOR)


def folder_of(key: str, prefix_len: int) -> str | None:
    """Return the first path segment after `prefix_len` characters.

    Returns None when the rest of the key is a leaf object name.
    """
    rest = key[prefix_len:]
    segment, sep, _ = rest.partition(SEPARATOR)
    if not sep or not segment:
        return None
    return segment


def folder_path(prefix: str) -> str:
    """Turn a folder prefix into the key prefix of its children."""
    cleaned = clean_prefix(normalize_prefix(prefix))
    return f"{cleaned}{SEPARATOR}" if cleaned else ""


def folders_from_keys(keys: Iterable[str], prefix: str = "") -> list[str]:
    """Distinct first-level folder names under a folder prefix, sorted."""
    search = folder_path(prefix)
    folders = set()
    for key in keys:
        if not key.startswith(search):
            continue
        folder = folder_of(key, len(search))
        if folder is not None:
            folders.add(folder)
    return sorted(folders)


class KeyCodec:
    """Applies and strips a backend key prefix.

    The prefix is invisible to callers: keys go in and come out without it.
    """

    def __init__(self, prefix: str = ""):
        self.prefix = clean_prefix(prefix)

    def to_storage(self, key: str) -> str:
        """Caller key to full key on the medium."""
        normalized = normalize_key(key)
        if self.prefix:
            return f"{self.prefix}{SEPARATOR}{normalized}"
        return normalized

    def from_storage(self, path: str) -> str:
        """Full key on the medium back to caller key."""
        if not self.prefix:
            return path
        head = f"{self.prefix}{SEPARATOR}"
        if path.startswith(head):
            return path[len(head):]
        return path

    def storage_prefix(self, prefix: str = "") -> str:
        """Listing prefix on the medium for a caller's starts-with prefix."""
        normalized = normalize_prefix(prefix)
        if self.prefix:
            return f"{self.prefix}{SEPARATOR}{normalized}"
        return normalized

    def folder_prefix(self, prefix: str = "") -> str:
        """Listing prefix on the medium for the children of a folder."""
        return self.storage_prefix(folder_path(prefix))

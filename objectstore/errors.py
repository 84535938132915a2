"""Storage error taxonomy shared by every backend."""


class StorageError(Exception):
    """Base exception for object storage operations."""
    pass


class InvalidKeyError(StorageError):
    """Key or prefix failed normalization. Never worth retrying."""
    pass


class ObjectNotFoundError(StorageError):
    """Requested object does not exist."""
    pass


class BackendUnavailableError(StorageError):
    """Medium could not be reached, refused the request, or is misconfigured.

    Callers may retry with backoff; backends never retry on their own.
    """

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error


class StorageConfigError(StorageError):
    """Backend configuration is invalid."""
    pass

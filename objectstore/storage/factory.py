"""Build storage backends from provider configuration."""

from objectstore.config import ProviderConfig
from objectstore.storage.base import StorageBackend
from objectstore.storage.local import LocalStorage
from objectstore.storage.memory import MemoryMedium, MemoryStorage
from objectstore.storage.s3 import S3RequestsStorage


def get_storage(provider: ProviderConfig, medium: MemoryMedium | None = None) -> StorageBackend:
    """Get storage backend based on provider configuration.

    Memory providers share `medium` when given; otherwise a fresh medium
    holding only the configured bucket is created.
    """
    provider.validate()

    if provider.type == "s3":
        return S3RequestsStorage(
            bucket=provider.bucket,
            prefix=provider.prefix,
            endpoint=provider.endpoint,
            encryption=provider.encryption,
            access_key=provider.access_key,
            secret_key=provider.secret_key,
            region=provider.region,
            timeout=provider.timeout_seconds,
        )
    elif provider.type == "local":
        return LocalStorage(base_path=provider.base_path, prefix=provider.prefix)
    else:
        if medium is None:
            medium = MemoryMedium([provider.bucket])
        return MemoryStorage(
            medium, provider.bucket, prefix=provider.prefix, encryption=provider.encryption
        )

"""Configuration management using TOML and environment variables."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Mapping

try:
    import tomllib
except ImportError:
    import tomli as tomllib

from objectstore.errors import StorageConfigError


@dataclass
class ProviderConfig:
    """Configuration for a single storage backend."""

    name: str
    type: Literal["s3", "local", "memory"]
    enabled: bool = True

    bucket: str | None = None
    prefix: str = ""
    encryption: str = ""

    # S3-specific fields
    endpoint: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    region: str | None = None
    timeout_seconds: float = 30

    # Local-specific fields
    base_path: str | None = None

    def validate(self) -> None:
        """Validate provider configuration."""
        if self.type == "s3":
            if not self.bucket:
                raise StorageConfigError(f"S3 provider '{self.name}' missing required field: bucket")
            if bool(self.access_key) != bool(self.secret_key):
                raise StorageConfigError(
                    f"S3 provider '{self.name}' needs both access_key and secret_key, or neither"
                )
        elif self.type == "local":
            if not self.base_path:
                raise StorageConfigError(f"Local provider '{self.name}' missing required field: base_path")
            if self.encryption:
                raise StorageConfigError(f"Local provider '{self.name}' does not support encryption")
        elif self.type == "memory":
            if not self.bucket:
                raise StorageConfigError(f"Memory provider '{self.name}' missing required field: bucket")
        else:
            raise StorageConfigError(f"Provider '{self.name}' has unknown type '{self.type}'")


@dataclass
class Config:
    """Complete configuration."""

    providers: list[ProviderConfig]

    @classmethod
    def from_file(cls, config_path: str | Path = "storage.toml") -> "Config":
        """Load configuration from TOML file."""
        config_path = Path(config_path)

        if not config_path.exists():
            raise StorageConfigError(f"Configuration file not found: {config_path}")

        with open(config_path, "rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise StorageConfigError(f"Invalid TOML in {config_path}: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Mapping) -> "Config":
        providers = []
        for provider_data in data.get("providers", []):
            try:
                provider = ProviderConfig(
                    name=provider_data["name"],
                    type=provider_data["type"],
                    enabled=provider_data.get("enabled", True),
                    bucket=provider_data.get("bucket"),
                    prefix=provider_data.get("prefix", ""),
                    encryption=provider_data.get("encryption", ""),
                    endpoint=provider_data.get("endpoint"),
                    access_key=provider_data.get("access_key"),
                    secret_key=provider_data.get("secret_key"),
                    region=provider_data.get("region"),
                    timeout_seconds=provider_data.get("timeout_seconds", 30),
                    base_path=provider_data.get("base_path"),
                )
            except KeyError as e:
                raise StorageConfigError(f"Provider entry missing required field: {e}") from e
            providers.append(provider)

        return cls(providers=providers)

    def get_enabled_providers(self) -> list[ProviderConfig]:
        """Get list of enabled providers."""
        return [p for p in self.providers if p.enabled]

    def get_provider(self, name: str) -> ProviderConfig | None:
        """Get provider by name."""
        for provider in self.providers:
            if provider.name == name:
                return provider
        return None

    def validate(self) -> None:
        """Validate all enabled providers."""
        for provider in self.get_enabled_providers():
            provider.validate()


@dataclass
class CloudTestSettings:
    """Gate and target for live-network conformance tests."""

    enabled: bool
    bucket: str = ""
    endpoint: str = ""
    access_key: str | None = None
    secret_key: str | None = None
    region: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "CloudTestSettings":
        env = os.environ if environ is None else environ
        bucket = env.get("TEST_STORAGE_S3_BUCKET", "")
        endpoint = env.get("TEST_STORAGE_S3_ENDPOINT", "")
        return cls(
            enabled=env.get("TEST_CLOUD_STORAGE") == "1" and bool(bucket) and bool(endpoint),
            bucket=bucket,
            endpoint=endpoint,
            access_key=env.get("TEST_STORAGE_S3_ACCESS_KEY") or None,
            secret_key=env.get("TEST_STORAGE_S3_SECRET_KEY") or None,
            region=env.get("TEST_STORAGE_S3_REGION") or None,
        )

    def provider(self, name: str, prefix: str = "", encryption: str = "") -> ProviderConfig:
        """Build an S3 provider config targeting the test bucket."""
        return ProviderConfig(
            name=name,
            type="s3",
            bucket=self.bucket,
            prefix=prefix,
            encryption=encryption,
            endpoint=self.endpoint,
            access_key=self.access_key,
            secret_key=self.secret_key,
            region=self.region,
        )

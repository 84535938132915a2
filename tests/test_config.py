"""Tests for configuration loading and backend construction."""

import pytest

from objectstore.config import CloudTestSettings, Config, ProviderConfig
from objectstore.errors import StorageConfigError
from objectstore.storage import LocalStorage, MemoryMedium, MemoryStorage, S3RequestsStorage, get_storage

CONFIG_TOML = """
[[providers]]
name = "oss"
type = "s3"
bucket = "charts"
prefix = "ssetest"
endpoint = "https://oss-eu-central-1.aliyuncs.com"
encryption = "AES256"
access_key = "key-id"
secret_key = "key-secret"
timeout_seconds = 10

[[providers]]
name = "disk"
type = "local"
base_path = "/var/lib/charts"

[[providers]]
name = "scratch"
type = "memory"
bucket = "scratch"
enabled = false
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "storage.toml"
    path.write_text(CONFIG_TOML)
    return path


class TestConfigFile:
    def test_load_providers(self, config_file):
        config = Config.from_file(config_file)
        assert [p.name for p in config.providers] == ["oss", "disk", "scratch"]

        oss = config.get_provider("oss")
        assert oss.type == "s3"
        assert oss.prefix == "ssetest"
        assert oss.encryption == "AES256"
        assert oss.timeout_seconds == 10
        assert config.get_provider("disk").prefix == ""
        assert config.get_provider("nope") is None

    def test_enabled_providers(self, config_file):
        config = Config.from_file(config_file)
        assert [p.name for p in config.get_enabled_providers()] == ["oss", "disk"]
        config.validate()

    def test_missing_file(self, tmp_path):
        with pytest.raises(StorageConfigError):
            Config.from_file(tmp_path / "absent.toml")

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[[providers]\nname =")
        with pytest.raises(StorageConfigError):
            Config.from_file(path)

    def test_provider_missing_type(self):
        with pytest.raises(StorageConfigError):
            Config.from_dict({"providers": [{"name": "x"}]})


class TestProviderValidation:
    @pytest.mark.parametrize(
        "provider",
        [
            ProviderConfig(name="s3", type="s3"),
            ProviderConfig(name="s3", type="s3", bucket="b", access_key="only-id"),
            ProviderConfig(name="disk", type="local"),
            ProviderConfig(name="disk", type="local", base_path="/tmp", encryption="AES256"),
            ProviderConfig(name="mem", type="memory"),
            ProviderConfig(name="ftp", type="ftp", bucket="b"),
        ],
    )
    def test_invalid_provider(self, provider):
        with pytest.raises(StorageConfigError):
            provider.validate()


class TestGetStorage:
    def test_s3_backend(self):
        storage = get_storage(
            ProviderConfig(
                name="oss",
                type="s3",
                bucket="charts",
                prefix="ssetest",
                endpoint="https://oss.example.com",
                encryption="AES256",
            )
        )
        assert isinstance(storage, S3RequestsStorage)
        assert storage.base_url == "https://oss.example.com/charts"
        assert storage.codec.prefix == "ssetest"
        assert storage.encryption == "AES256"

    def test_local_backend(self, tmp_path):
        storage = get_storage(ProviderConfig(name="disk", type="local", base_path=str(tmp_path)))
        assert isinstance(storage, LocalStorage)
        storage.put_object("a.txt", b"x")
        assert (tmp_path / "a.txt").exists()

    def test_memory_backend_gets_own_medium(self):
        storage = get_storage(ProviderConfig(name="mem", type="memory", bucket="b"))
        assert isinstance(storage, MemoryStorage)
        storage.put_object("a.txt", b"x")
        assert storage.get_object("a.txt").content == b"x"

    def test_memory_backends_share_medium(self):
        medium = MemoryMedium(["b"])
        first = get_storage(ProviderConfig(name="one", type="memory", bucket="b"), medium)
        second = get_storage(ProviderConfig(name="two", type="memory", bucket="b"), medium)
        first.put_object("a.txt", b"x")
        assert second.get_object("a.txt").content == b"x"

    def test_invalid_provider_rejected(self):
        with pytest.raises(StorageConfigError):
            get_storage(ProviderConfig(name="disk", type="local"))


class TestCloudTestSettings:
    def test_disabled_by_default(self):
        assert not CloudTestSettings.from_env({}).enabled

    def test_gate_requires_bucket_and_endpoint(self):
        env = {"TEST_CLOUD_STORAGE": "1", "TEST_STORAGE_S3_BUCKET": "charts"}
        assert not CloudTestSettings.from_env(env).enabled

    def test_gate_must_be_one(self):
        env = {
            "TEST_CLOUD_STORAGE": "true",
            "TEST_STORAGE_S3_BUCKET": "charts",
            "TEST_STORAGE_S3_ENDPOINT": "https://s3.example.com",
        }
        assert not CloudTestSettings.from_env(env).enabled

    def test_enabled(self):
        env = {
            "TEST_CLOUD_STORAGE": "1",
            "TEST_STORAGE_S3_BUCKET": "charts",
            "TEST_STORAGE_S3_ENDPOINT": "https://s3.example.com",
            "TEST_STORAGE_S3_ACCESS_KEY": "key-id",
            "TEST_STORAGE_S3_SECRET_KEY": "key-secret",
        }
        settings = CloudTestSettings.from_env(env)
        assert settings.enabled

        provider = settings.provider("sse", prefix="ssetest", encryption="AES256")
        assert provider.bucket == "charts"
        assert provider.endpoint == "https://s3.example.com"
        assert provider.access_key == "key-id"
        assert provider.encryption == "AES256"
        provider.validate()

"""Tests for the JSON config store."""

import json

import pytest

from devpack.config.store import ConfigStore
from devpack.config.types import PlainValue, SecretReference
from devpack.core.errors import ConfigurationError


@pytest.fixture
def config_store(tmp_path) -> ConfigStore:
    return ConfigStore(tmp_path / "config.json")


class TestConfigStore:
    def test_missing_file_is_empty(self, config_store):
        assert config_store.get("bucket") is None

    def test_set_and_get_plain_value(self, config_store):
        config_store.set("bucket", "artifacts")
        assert config_store.get("bucket") == PlainValue("artifacts")
        assert json.loads(config_store.path.read_text()) == {"bucket": "artifacts"}

    def test_op_string_is_stored_as_reference(self, config_store):
        config_store.set("secret_key", "op://dev/s3/secret")
        assert config_store.get("secret_key") == SecretReference("op://dev/s3/secret")
        assert json.loads(config_store.path.read_text()) == {
            "secret_key": {"type": "1password", "reference": "op://dev/s3/secret"}
        }

    def test_reads_existing_reference_shape(self, config_store):
        config_store.path.write_text(
            json.dumps({"access_key": {"type": "1password", "reference": "op://dev/s3/access"}})
        )
        assert config_store.get("access_key") == SecretReference("op://dev/s3/access")

    def test_unset(self, config_store):
        config_store.set("endpoint", "s3.example.com")
        config_store.unset("endpoint")
        assert config_store.get("endpoint") is None

    def test_unknown_key_rejected(self, config_store):
        with pytest.raises(ConfigurationError, match="Unknown config key"):
            config_store.set("nope", "x")

    def test_invalid_json_raises(self, config_store):
        config_store.path.write_text("{not json")
        with pytest.raises(ConfigurationError, match="Invalid config file"):
            config_store.get("bucket")

    def test_unknown_key_in_file_raises(self, config_store):
        config_store.path.write_text(json.dumps({"colour": "blue"}))
        with pytest.raises(ConfigurationError):
            config_store.get("bucket")

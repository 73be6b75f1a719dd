"""Tests for configuration loading from environment variables and files."""

from __future__ import annotations

import os
from datetime import timedelta
from unittest.mock import patch

import pytest

from domainverify.core.config import (
    VerificationSettings,
    flatten_config,
    load_config_from_file,
)


class TestVerificationSettings:
    """Test VerificationSettings."""

    def test_default_values(self) -> None:
        """Test default values."""
        with patch.dict(os.environ, {}, clear=True):
            config = VerificationSettings(_env_file=None)

        assert config.service_host is None
        assert config.txt_record_verify_key is None
        assert config.storage_path == "domains.json"
        assert config.token_ttl_seconds == 86400
        assert config.token_ttl == timedelta(hours=24)
        assert config.port == 4000

    def test_env_override(self) -> None:
        """Test DOMAINVERIFY_ env vars."""
        env = {
            "DOMAINVERIFY_SERVICE_HOST": "svc.example.com",
            "DOMAINVERIFY_TXT_RECORD_VERIFY_KEY": "key123",
            "DOMAINVERIFY_TOKEN_TTL_SECONDS": "3600",
        }
        with patch.dict(os.environ, env):
            config = VerificationSettings(_env_file=None)

        assert config.service_host == "svc.example.com"
        assert config.txt_record_verify_key == "key123"
        assert config.token_ttl == timedelta(hours=1)

    def test_invalid_ttl(self) -> None:
        """Test the token TTL must be positive."""
        with pytest.raises(ValueError):
            VerificationSettings(_env_file=None, token_ttl_seconds=0)

    def test_require_service_settings(self) -> None:
        """Test missing service host or key is reported by name."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="SERVICE_HOST"):
                VerificationSettings(_env_file=None).require_service_settings()

            with pytest.raises(ValueError, match="TXT_RECORD_VERIFY_KEY"):
                VerificationSettings(
                    _env_file=None, service_host="svc.example.com"
                ).require_service_settings()

        config = VerificationSettings(
            _env_file=None, service_host="svc.example.com", txt_record_verify_key="key123"
        )
        assert config.require_service_settings() == ("svc.example.com", "key123")


class TestConfigFiles:
    """Test YAML/TOML config loading."""

    def test_load_yaml(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("service_host: svc.example.com\ndns:\n  timeout: 2.5\n")

        flat = flatten_config(load_config_from_file(path))

        assert flat == {"service_host": "svc.example.com", "dns_timeout": 2.5}
        assert VerificationSettings(_env_file=None, **flat).dns_timeout == 2.5

    def test_load_toml(self, tmp_path) -> None:
        path = tmp_path / "config.toml"
        path.write_text('txt_record_verify_key = "key123"\n')

        assert load_config_from_file(path) == {"txt_record_verify_key": "key123"}

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config_from_file(tmp_path / "missing.yaml")

    def test_unsupported_format(self, tmp_path) -> None:
        path = tmp_path / "config.ini"
        path.write_text("[x]")

        with pytest.raises(ValueError, match="Unsupported config format"):
            load_config_from_file(path)

    def test_invalid_yaml(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("key: [unclosed")

        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config_from_file(path)

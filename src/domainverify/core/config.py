"""Configuration with environment variable support.

All settings can be configured via environment variables with the DOMAINVERIFY_ prefix.
Example: DOMAINVERIFY_SERVICE_HOST=svc.example.com sets service_host.
"""

from __future__ import annotations

import tomllib
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            return tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


def flatten_config(config: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in config.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict):
            result.update(flatten_config(value, full_key))
        else:
            result[full_key] = value
    return result


class VerificationSettings(BaseSettings):
    """Settings for the verification service.

    All settings can be overridden via environment variables:
    - DOMAINVERIFY_SERVICE_HOST: CNAME target customers must point at
    - DOMAINVERIFY_TXT_RECORD_VERIFY_KEY: Key name in the TXT proof
    - DOMAINVERIFY_STORAGE_PATH: JSON file holding domain records
    - DOMAINVERIFY_TOKEN_TTL_SECONDS: Lifetime of verification tokens
    - etc.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOMAINVERIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    service_host: str | None = Field(
        default=None,
        description="Host name customer domains must CNAME to (e.g., svc.example.com).",
    )
    txt_record_verify_key: str | None = Field(
        default=None,
        description="Key name of the TXT proof, published as '<key>=<token>'.",
    )
    storage_path: str = Field(
        default="domains.json",
        description="Path to the JSON file storing domain records and audit logs.",
    )
    token_ttl_seconds: int = Field(
        default=86400,
        gt=0,
        description="Lifetime in seconds of a verification token (24 hours default).",
    )
    dns_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Timeout in seconds for a single DNS query.",
    )
    dns_nameservers: list[str] = Field(
        default_factory=list,
        description="Nameservers to query. Empty uses the system resolver configuration.",
    )
    host: str = Field(
        default="0.0.0.0",
        description="Bind address of the HTTP API.",
    )
    port: int = Field(
        default=4000,
        description="Port of the HTTP API.",
    )
    log_level: str = Field(
        default="info",
        description="Log level: debug, info, warning or error.",
    )

    @property
    def token_ttl(self) -> timedelta:
        return timedelta(seconds=self.token_ttl_seconds)

    def require_service_settings(self) -> tuple[str, str]:
        """Return (service_host, txt_record_verify_key).

        Raises:
            ValueError: If either setting is missing.
        """
        if not self.service_host:
            raise ValueError("DOMAINVERIFY_SERVICE_HOST environment variable is not set")
        if not self.txt_record_verify_key:
            raise ValueError("DOMAINVERIFY_TXT_RECORD_VERIFY_KEY environment variable is not set")
        return self.service_host, self.txt_record_verify_key

    def to_display_dict(self) -> dict[str, Any]:
        return {
            "service_host": self.service_host,
            "txt_record_verify_key": self.txt_record_verify_key,
            "storage_path": self.storage_path,
            "token_ttl_seconds": self.token_ttl_seconds,
            "dns_timeout": self.dns_timeout,
            "dns_nameservers": self.dns_nameservers,
            "host": self.host,
            "port": self.port,
            "log_level": self.log_level,
        }


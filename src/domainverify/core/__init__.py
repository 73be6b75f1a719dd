"""Core."""

from .config import VerificationSettings, flatten_config, load_config_from_file

__all__ = [
    "VerificationSettings",
    "flatten_config",
    "load_config_from_file",
]

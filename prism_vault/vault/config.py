"""
Vault Configuration — Validated settings for the encryption engine.

Reads overrides from environment variables:
    PRISM_VAULT_STORAGE_PATH = <path to local storage JSON file>
    PRISM_VAULT_FORMAT = <wire format version, e.g. v1>
    PRISM_VAULT_SESSION_MARKER = <true|false>

The PBKDF2 iteration count is not a setting: it is fixed per wire format
version (see ``crypto.FORMATS``).
"""
import os
import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from ..conf import (
    DEFAULT_STORAGE_PATH,
    ENV_FORMAT,
    ENV_SESSION_MARKER,
    ENV_STORAGE_PATH,
)
from .crypto import FORMATS, WireFormat, get_format

logger = logging.getLogger("prism.vault")


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    storage_path: Path = Field(default=DEFAULT_STORAGE_PATH)
    format_version: str = Field(default="v1")
    session_marker: bool = Field(default=True)

    @field_validator("format_version")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate the wire format is registered."""
        if v not in FORMATS:
            raise ValueError(
                f"Unsupported format version: {v} "
                f"(available: {sorted(FORMATS)})"
            )
        return v

    @field_validator("storage_path")
    @classmethod
    def expand_path(cls, v: Path) -> Path:
        return v.expanduser()

    @property
    def wire_format(self) -> WireFormat:
        return get_format(self.format_version)

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        storage_path = os.environ.get(ENV_STORAGE_PATH) or DEFAULT_STORAGE_PATH
        format_version = os.environ.get(ENV_FORMAT, "v1")
        session_marker = os.environ.get(ENV_SESSION_MARKER, True)
        logger.debug(
            "Vault config from env: storage=%s format=%s",
            storage_path, format_version,
        )
        return cls(
            storage_path=storage_path,
            format_version=format_version,
            session_marker=session_marker,
        )

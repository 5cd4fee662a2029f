"""Prism Vault defaults.

Storage key names match the ones the web client writes, so a salt
created there can be loaded here.
"""
from pathlib import Path

# durable local storage
SALT_STORAGE_KEY = "encryption_salt"
DEFAULT_STORAGE_PATH = Path.home() / ".prism_vault" / "storage.json"

# session storage (never persisted)
SESSION_MARKER_KEY = "master_key_hash"

# environment overrides
ENV_STORAGE_PATH = "PRISM_VAULT_STORAGE_PATH"
ENV_FORMAT = "PRISM_VAULT_FORMAT"
ENV_SESSION_MARKER = "PRISM_VAULT_SESSION_MARKER"

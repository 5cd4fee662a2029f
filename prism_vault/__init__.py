"""Prism Vault.

Client-side field-level encryption for personal-finance records.
"""
from .version import __version__
from .context import CryptoContext
from .records import PII_FIELDS, pii_fields

__all__ = ["__version__", "CryptoContext", "PII_FIELDS", "pii_fields"]

"""Prism Vault — Client-side field-level encryption for finance records.

Security Note (Threat Model):
    The derived key lives in process memory between unlock() and lock().
    A memory dump of the process during that window could expose it.
    Python offers no guaranteed zeroing of every copy; we zero the buffer
    we own. The remote store only ever sees ``ENC:v1:`` values.
    Losing the passphrase makes encrypted fields unrecoverable.
"""

from .config import VaultConfig
from .crypto import DECRYPT_SENTINEL, ENCRYPTION_PREFIX, is_encrypted
from .engine import DecryptResult, EncryptionEngine
from .errors import (
    DecryptionError,
    DerivationError,
    EngineError,
    NotUnlockedError,
    StorageError,
)
from .key_rotation import rotate_passphrase
from .storage import LocalStorage, MemoryStorage, Storage

__all__ = [
    "EncryptionEngine",
    "DecryptResult",
    "VaultConfig",
    "Storage",
    "LocalStorage",
    "MemoryStorage",
    "rotate_passphrase",
    "is_encrypted",
    "ENCRYPTION_PREFIX",
    "DECRYPT_SENTINEL",
    "EngineError",
    "NotUnlockedError",
    "DerivationError",
    "DecryptionError",
    "StorageError",
]

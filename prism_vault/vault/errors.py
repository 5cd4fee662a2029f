"""
Vault Errors — Exception hierarchy for the encryption engine.

Security Note:
    Error messages never carry passphrases, key bytes, plaintext or
    ciphertext. Only describe what failed.
"""


class EngineError(Exception):
    """Base class for every error raised by the encryption engine."""


class NotUnlockedError(EngineError):
    """An operation needs the derived key but the engine is locked."""

    def __init__(self, message: str = "Encryption is locked. Call unlock() first."):
        super().__init__(message)


class DerivationError(EngineError):
    """The key-derivation primitive failed during unlock()."""


class DecryptionError(EngineError):
    """Wrong key, tampered ciphertext or malformed encrypted payload."""


class StorageError(EngineError):
    """Local storage could not be read or written, or holds a corrupt salt."""

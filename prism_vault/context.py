"""Application-level crypto context.

The application creates one ``CryptoContext`` at startup and hands it to
the services that read and write records; there is no module-level engine.
"""
import logging
from typing import Any, Mapping, Optional, Sequence

from .records import pii_fields
from .vault import EncryptionEngine, EngineError, VaultConfig

logger = logging.getLogger("prism.context")


class CryptoContext:
    """Owns the encryption engine and maps record types to their PII fields."""

    def __init__(self, engine: EncryptionEngine):
        self._engine = engine

    @classmethod
    def from_config(cls, config: Optional[VaultConfig] = None) -> "CryptoContext":
        return cls(EncryptionEngine.from_config(config))

    @property
    def engine(self) -> EncryptionEngine:
        return self._engine

    @property
    def is_setup(self) -> bool:
        return self._engine.is_setup()

    @property
    def is_unlocked(self) -> bool:
        return self._engine.is_active()

    def unlock(self, passphrase: str) -> bool:
        """Unlock encryption for this session.

        Returns:
            True on success, False if the passphrase was empty or key
            derivation failed. A wrong passphrase still returns True.
        """
        try:
            self._engine.unlock(passphrase)
        except (EngineError, ValueError) as err:
            logger.error("Failed to unlock encryption: %s", err)
            return False
        return True

    def lock(self) -> None:
        self._engine.lock()

    def protect(self, record_type: str, record: Mapping[str, Any]) -> Mapping[str, Any]:
        """Encrypt a record's PII fields before it is sent to the server."""
        return self._engine.encrypt_fields(record, pii_fields(record_type))

    def reveal(self, record_type: str, record: Mapping[str, Any]) -> Mapping[str, Any]:
        """Decrypt a record's PII fields after it is fetched."""
        return self._engine.decrypt_fields(record, pii_fields(record_type))

    def reveal_all(
        self, record_type: str, records: Sequence[Mapping[str, Any]]
    ) -> Sequence[Mapping[str, Any]]:
        return self._engine.decrypt_batch(records, pii_fields(record_type))

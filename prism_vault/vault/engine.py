"""
EncryptionEngine — Passphrase-derived field encryption for domain records.

Provides the public API of the vault:
- ``unlock(passphrase)`` / ``lock()`` — load or discard the in-memory key
- ``encrypt(text)`` / ``decrypt(value)`` — single field values
- ``encrypt_fields()`` / ``decrypt_fields()`` / ``decrypt_batch()`` — records

The first ``unlock()`` on an installation generates and persists the salt.
``unlock()`` does not verify the passphrase: a wrong one only shows up
later as ``"[Encrypted]"`` placeholders where decryption fails.

Security Note:
    Never log passphrases, key bytes, plaintext or ciphertext values.
    Key bytes are zeroed on ``lock()`` as far as Python allows.
"""
import base64
import binascii
import logging
import threading
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..conf import SALT_STORAGE_KEY, SESSION_MARKER_KEY
from .config import VaultConfig
from .crypto import (
    DECRYPT_SENTINEL,
    SALT_SIZE,
    SecretKey,
    decrypt_value,
    derive_key,
    encrypt_value,
    generate_salt,
    is_encrypted,
    passphrase_digest,
)
from .errors import DecryptionError, NotUnlockedError, StorageError
from .storage import LocalStorage, MemoryStorage, Storage

logger = logging.getLogger("prism.vault")


@dataclass(frozen=True)
class DecryptResult:
    """Outcome of decrypting one value.

    ``value`` is the plaintext, the unchanged input for unmarked values, or
    the ``"[Encrypted]"`` sentinel when ``error`` is set.
    """

    value: Any
    error: Optional[DecryptionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class EncryptionEngine:
    """Field-level encryption bound to a passphrase-derived key.

    Starts locked. ``unlock()`` and ``lock()`` are serialized with every
    other call; ``encrypt()``/``decrypt()`` only hold the state lock while
    taking the active cipher, so they can run concurrently.
    """

    def __init__(
        self,
        storage: Storage,
        session: Optional[Storage] = None,
        config: Optional[VaultConfig] = None,
    ):
        self._storage = storage
        self._session = session if session is not None else MemoryStorage()
        self._config = config or VaultConfig()
        self._format = self._config.wire_format
        self._lock = threading.RLock()
        self._key: Optional[SecretKey] = None
        self._salt: Optional[bytes] = None

    @classmethod
    def from_config(cls, config: Optional[VaultConfig] = None) -> "EncryptionEngine":
        """Build an engine backed by the configured local storage file."""
        config = config or VaultConfig.from_env()
        return cls(
            storage=LocalStorage(config.storage_path),
            session=MemoryStorage(),
            config=config,
        )

    def __repr__(self) -> str:
        return f"<EncryptionEngine format={self._format.version} active={self.is_active()}>"

    # ------------------------------------------------------------------
    # Salt
    # ------------------------------------------------------------------

    @staticmethod
    def _decode_salt(stored: str) -> bytes:
        try:
            salt = base64.b64decode(stored, validate=True)
        except (binascii.Error, ValueError) as err:
            raise StorageError("Persisted encryption salt is not valid base64") from err
        if len(salt) != SALT_SIZE:
            raise StorageError(
                f"Persisted encryption salt must be {SALT_SIZE} bytes, got {len(salt)}"
            )
        return salt

    def _load_salt(self) -> bytes:
        """Return the installation salt, creating and persisting it once."""
        if self._salt is not None:
            return self._salt
        stored = self._storage.get(SALT_STORAGE_KEY)
        if stored is None:
            candidate = base64.b64encode(generate_salt()).decode("ascii")
            stored = self._storage.set_if_absent(SALT_STORAGE_KEY, candidate)
            if stored == candidate:
                logger.debug("Generated new encryption salt")
        self._salt = self._decode_salt(stored)
        return self._salt

    # ------------------------------------------------------------------
    # Key lifecycle
    # ------------------------------------------------------------------

    def is_setup(self) -> bool:
        """Whether a salt has been persisted on this installation."""
        return self._storage.get(SALT_STORAGE_KEY) is not None

    def is_active(self) -> bool:
        """Whether a key is loaded."""
        return self._key is not None

    def unlock(self, passphrase: str) -> None:
        """Derive the key from ``passphrase`` and hold it for the session.

        Args:
            passphrase: Non-empty user secret.

        Raises:
            ValueError: If the passphrase is empty.
            DerivationError: If key derivation fails; the engine stays locked.
            StorageError: If the salt cannot be read, written or decoded.
        """
        if not isinstance(passphrase, str) or not passphrase:
            raise ValueError("Passphrase cannot be empty")
        with self._lock:
            try:
                first_time = not self.is_setup()
                salt = self._load_salt()
                secret = SecretKey(
                    derive_key(passphrase, salt, self._format.iterations)
                )
            except Exception:
                self._discard_key()
                raise
            previous, self._key = self._key, secret
            if previous is not None:
                previous.wipe()
            if self._config.session_marker:
                self._session.set(SESSION_MARKER_KEY, passphrase_digest(passphrase))
        logger.info(
            "Encryption unlocked (format=%s, first_time=%s)",
            self._format.version, first_time,
        )

    def lock(self) -> None:
        """Discard the key and the session marker."""
        with self._lock:
            self._discard_key()
        logger.info("Encryption locked")

    def _discard_key(self) -> None:
        if self._key is not None:
            self._key.wipe()
            self._key = None
        self._session.remove(SESSION_MARKER_KEY)

    def _active_cipher(self) -> AESGCM:
        with self._lock:
            if self._key is None:
                raise NotUnlockedError()
            return self._key.cipher

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    @staticmethod
    def is_encrypted(value: Any) -> bool:
        """Check if a value carries the encrypted-value marker."""
        return is_encrypted(value)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a text value into its ``ENC:v1:`` wire form.

        Raises:
            NotUnlockedError: If no key is loaded.
        """
        return encrypt_value(plaintext, self._active_cipher(), self._format)

    def decrypt_result(self, value: Any) -> DecryptResult:
        """Decrypt a value and report failures instead of hiding them.

        Unmarked values come back unchanged. Undecryptable ones come back
        as the sentinel together with the ``DecryptionError``.

        Raises:
            NotUnlockedError: If ``value`` is encrypted and no key is loaded.
        """
        if not is_encrypted(value):
            return DecryptResult(value)
        cipher = self._active_cipher()
        try:
            return DecryptResult(decrypt_value(value, cipher))
        except DecryptionError as err:
            logger.warning("Failed to decrypt value: %s", err)
            return DecryptResult(DECRYPT_SENTINEL, err)

    def decrypt(self, value: Any, strict: bool = False) -> Any:
        """Decrypt a value, falling back to ``"[Encrypted]"`` on failure.

        Args:
            value: Stored field value; unmarked values are returned as-is.
            strict: Raise ``DecryptionError`` instead of returning the sentinel.

        Raises:
            NotUnlockedError: If ``value`` is encrypted and no key is loaded.
            DecryptionError: Only with ``strict=True``.
        """
        result = self.decrypt_result(value)
        if strict and result.error is not None:
            raise result.error
        return result.value

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def encrypt_fields(
        self, record: Mapping[str, Any], fields: Iterable[str]
    ) -> Mapping[str, Any]:
        """Encrypt the named string fields of a record.

        Returns ``record`` itself when locked, otherwise a shallow copy.
        Missing, empty and non-string fields are left alone.
        """
        if not self.is_active():
            return record
        result = dict(record)
        for field in fields:
            value = result.get(field)
            if value and isinstance(value, str):
                result[field] = self.encrypt(value)
        return result

    def decrypt_fields(
        self, record: Mapping[str, Any], fields: Iterable[str], strict: bool = False
    ) -> Mapping[str, Any]:
        """Decrypt the named fields of a record.

        Returns ``record`` itself when locked, otherwise a shallow copy.
        Plaintext values pass through unchanged.
        """
        if not self.is_active():
            return record
        result = dict(record)
        for field in fields:
            value = result.get(field)
            if value and isinstance(value, str):
                result[field] = self.decrypt(value, strict=strict)
        return result

    def decrypt_batch(
        self, records: Sequence[Mapping[str, Any]], fields: Iterable[str]
    ) -> Sequence[Mapping[str, Any]]:
        """Decrypt the named fields of every record.

        Returns ``records`` itself when locked. A field that fails to decrypt
        becomes the sentinel without affecting the other records.
        """
        if not self.is_active():
            return records
        fields = tuple(fields)
        return [self.decrypt_fields(record, fields) for record in records]

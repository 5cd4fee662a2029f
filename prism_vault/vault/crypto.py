"""
Vault Crypto Core — Key derivation, field encryption/decryption and wire format.

Wire format for one encrypted field value:
    "ENC:v1:" + base64( nonce[12] || ciphertext[N] || tag[16] )

- Key derivation: PBKDF2-HMAC-SHA256(passphrase, salt) → 32-byte AES key.
  The iteration count is bound to the format version, never chosen by callers.
- Encryption: AES-256-GCM with a fresh random 96-bit nonce per value.

Security Note:
    Never log plaintext, ciphertext or key material.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import base64
import binascii
import hashlib
import logging
from typing import NamedTuple, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecryptionError, DerivationError

logger = logging.getLogger("prism.vault")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16  # GCM authentication tag
KEY_LENGTH = 32  # AES-256
SALT_SIZE = 16

MIN_PBKDF2_ITERATIONS = 100_000

DECRYPT_SENTINEL = "[Encrypted]"


class WireFormat(NamedTuple):
    """A versioned encrypted-value format and the KDF cost bound to it."""

    version: str
    iterations: int

    @property
    def prefix(self) -> str:
        return f"ENC:{self.version}:"


FORMATS: dict[str, WireFormat] = {
    "v1": WireFormat(version="v1", iterations=100_000),
}

CURRENT_FORMAT = FORMATS["v1"]
ENCRYPTION_PREFIX = CURRENT_FORMAT.prefix


def get_format(version: str) -> WireFormat:
    """Return the registered wire format for ``version``.

    Raises:
        KeyError: If the version is not registered.
    """
    try:
        return FORMATS[version]
    except KeyError:
        raise KeyError(
            f"Unknown encryption format {version!r} "
            f"(available: {sorted(FORMATS)})"
        ) from None


def format_of(value: object) -> Optional[WireFormat]:
    """Return the wire format ``value`` is marked with, or None for plaintext."""
    if not isinstance(value, str):
        return None
    for fmt in FORMATS.values():
        if value.startswith(fmt.prefix):
            return fmt
    return None


def is_encrypted(value: object) -> bool:
    """Check whether a value carries a known encrypted-value marker."""
    return format_of(value) is not None


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def generate_salt() -> bytes:
    """Return a fresh cryptographically random 16-byte salt."""
    return os.urandom(SALT_SIZE)


def derive_key(passphrase: str, salt: bytes, iterations: int) -> bytes:
    """Derive a 32-byte AES key using PBKDF2-HMAC-SHA256.

    Args:
        passphrase: User secret. Never persisted or logged.
        salt: Persisted per-installation salt.
        iterations: PBKDF2 work factor taken from the wire format.

    Returns:
        32-byte derived key.

    Raises:
        ValueError: If ``iterations`` is below MIN_PBKDF2_ITERATIONS.
        DerivationError: If the underlying primitive fails.
    """
    if iterations < MIN_PBKDF2_ITERATIONS:
        raise ValueError(
            f"PBKDF2 iterations must be at least {MIN_PBKDF2_ITERATIONS}"
        )
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(passphrase.encode("utf-8"))
    except Exception as err:
        raise DerivationError(f"Key derivation failed: {type(err).__name__}") from err


def passphrase_digest(passphrase: str) -> str:
    """Base64 SHA-256 of the passphrase, used only as a session marker."""
    digest = hashlib.sha256(passphrase.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


# ---------------------------------------------------------------------------
# Key material
# ---------------------------------------------------------------------------

def zero_bytes(buffer: bytearray) -> None:
    """Overwrite a mutable buffer with zeros in place."""
    for i in range(len(buffer)):
        buffer[i] = 0


class SecretKey:
    """Derived AES key held in a zeroable buffer.

    Python cannot guarantee every copy is cleared: the immutable bytes handed
    to AESGCM and the library's internal state live until garbage collected.
    ``wipe()`` zeroes the buffer we own and drops the cipher reference.
    """

    __slots__ = ("_buffer", "_cipher")

    def __init__(self, key: bytes):
        self._buffer: Optional[bytearray] = None
        self._cipher: Optional[AESGCM] = None
        if len(key) != KEY_LENGTH:
            raise ValueError(f"Key must be {KEY_LENGTH} bytes")
        self._buffer = bytearray(key)
        self._cipher = AESGCM(bytes(self._buffer))

    @property
    def cipher(self) -> AESGCM:
        if self._cipher is None:
            raise ValueError("Key has been wiped")
        return self._cipher

    @property
    def wiped(self) -> bool:
        return self._buffer is None

    def wipe(self) -> None:
        if self._buffer is not None:
            zero_bytes(self._buffer)
            self._buffer = None
        self._cipher = None

    def __repr__(self) -> str:
        state = "wiped" if self.wiped else "loaded"
        return f"<SecretKey {state}>"

    def __del__(self):
        self.wipe()


# ---------------------------------------------------------------------------
# Field encryption
# ---------------------------------------------------------------------------

def encrypt_value(plaintext: str, cipher: AESGCM, fmt: WireFormat = CURRENT_FORMAT) -> str:
    """Encrypt a text value into its prefixed wire representation.

    Format: prefix + base64([nonce 12B][ciphertext + GCM tag 16B])

    Args:
        plaintext: Text to encrypt.
        cipher: AESGCM instance built from the derived key.
        fmt: Wire format to emit.

    Returns:
        Encrypted value string.
    """
    nonce = os.urandom(NONCE_SIZE)
    ct = cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
    return fmt.prefix + base64.b64encode(nonce + ct).decode("ascii")


def decrypt_value(value: str, cipher: AESGCM) -> str:
    """Decrypt a prefixed wire value back to text.

    Args:
        value: Encrypted value string carrying a known prefix.
        cipher: AESGCM instance built from the derived key.

    Returns:
        Decrypted plaintext.

    Raises:
        DecryptionError: If the value is unmarked, malformed, tampered with,
            or was encrypted under a different key.
    """
    fmt = format_of(value)
    if fmt is None:
        raise DecryptionError("Value is not an encrypted payload")
    try:
        raw = base64.b64decode(value[len(fmt.prefix):], validate=True)
    except (binascii.Error, ValueError) as err:
        raise DecryptionError("Encrypted payload is not valid base64") from err
    _min = NONCE_SIZE + TAG_SIZE
    if len(raw) < _min:
        raise DecryptionError(
            f"Encrypted payload too short: {len(raw)} bytes (minimum {_min})"
        )
    nonce = raw[:NONCE_SIZE]
    ct = raw[NONCE_SIZE:]
    try:
        plaintext = cipher.decrypt(nonce, ct, None)
    except InvalidTag as err:
        raise DecryptionError(
            "Authentication failed: wrong key or corrupted data"
        ) from err
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as err:
        raise DecryptionError("Decrypted payload is not valid UTF-8") from err

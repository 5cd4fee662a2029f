"""
Tests for the vault crypto core.

Tests cover:
- PBKDF2 key derivation (determinism, salt sensitivity, minimum cost)
- Wire format layout of encrypted values
- Decryption failures (tampering, wrong key, malformed payloads)
- SecretKey wiping
"""
import base64
import hashlib
import os

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from prism_vault.vault.crypto import (
    CURRENT_FORMAT,
    ENCRYPTION_PREFIX,
    FORMATS,
    MIN_PBKDF2_ITERATIONS,
    NONCE_SIZE,
    SALT_SIZE,
    TAG_SIZE,
    SecretKey,
    decrypt_value,
    derive_key,
    encrypt_value,
    format_of,
    generate_salt,
    get_format,
    is_encrypted,
    passphrase_digest,
    zero_bytes,
)
from prism_vault.vault.errors import DecryptionError, DerivationError


@pytest.fixture
def salt():
    return bytes(range(SALT_SIZE))


@pytest.fixture
def cipher():
    return AESGCM(os.urandom(32))


# --- Test Key Derivation ---

class TestDeriveKey:
    """Tests for PBKDF2-HMAC-SHA256 key derivation."""

    def test_key_length(self, salt):
        key = derive_key("correct-horse", salt, CURRENT_FORMAT.iterations)
        assert len(key) == 32

    def test_deterministic(self, salt):
        """Same passphrase and salt always yield the same key."""
        a = derive_key("correct-horse", salt, CURRENT_FORMAT.iterations)
        b = derive_key("correct-horse", salt, CURRENT_FORMAT.iterations)
        assert a == b

    def test_matches_reference_pbkdf2(self, salt):
        """Derivation matches hashlib's PBKDF2 for interoperability."""
        expected = hashlib.pbkdf2_hmac(
            "sha256", "correct-horse".encode("utf-8"), salt, 100_000, 32
        )
        assert derive_key("correct-horse", salt, 100_000) == expected

    def test_salt_changes_key(self, salt):
        other = bytes(reversed(salt))
        assert derive_key("pw", salt, 100_000) != derive_key("pw", other, 100_000)

    def test_passphrase_changes_key(self, salt):
        assert derive_key("p1", salt, 100_000) != derive_key("p2", salt, 100_000)

    def test_low_iteration_count_rejected(self, salt):
        with pytest.raises(ValueError):
            derive_key("pw", salt, MIN_PBKDF2_ITERATIONS - 1)

    def test_primitive_failure_wrapped(self):
        """Primitive errors surface as DerivationError."""
        with pytest.raises(DerivationError) as exc:
            derive_key("pw", "not-bytes", 100_000)
        assert exc.value.__cause__ is not None

    def test_v1_iterations_fixed(self):
        assert FORMATS["v1"].iterations == 100_000
        assert FORMATS["v1"].iterations >= MIN_PBKDF2_ITERATIONS

    def test_generate_salt(self):
        a = generate_salt()
        b = generate_salt()
        assert len(a) == SALT_SIZE
        assert a != b


# --- Test Wire Format ---

class TestWireFormat:
    """Tests for the ENC:v1: value layout."""

    def test_prefix(self):
        assert ENCRYPTION_PREFIX == "ENC:v1:"
        assert get_format("v1").prefix == "ENC:v1:"

    def test_unknown_format(self):
        with pytest.raises(KeyError):
            get_format("v9")

    def test_layout(self, cipher):
        value = encrypt_value("Grocery Store", cipher)
        assert value.startswith("ENC:v1:")
        raw = base64.b64decode(value[len("ENC:v1:"):], validate=True)
        assert len(raw) == NONCE_SIZE + len("Grocery Store") + TAG_SIZE

    def test_standard_base64_alphabet(self, cipher):
        """Payload decodes with the standard (not URL-safe) alphabet."""
        for _ in range(20):
            payload = encrypt_value("x" * 40, cipher)[len("ENC:v1:"):]
            assert "-" not in payload and "_" not in payload
            assert len(payload) % 4 == 0

    def test_readable_by_plain_aesgcm(self, cipher):
        """Any AES-GCM implementation can read nonce || ciphertext || tag."""
        value = encrypt_value("Grocery Store", cipher)
        raw = base64.b64decode(value[len("ENC:v1:"):])
        plaintext = cipher.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], None)
        assert plaintext == b"Grocery Store"

    def test_decrypts_externally_built_value(self, cipher):
        nonce = os.urandom(NONCE_SIZE)
        ct = cipher.encrypt(nonce, "Café ☕".encode("utf-8"), None)
        value = "ENC:v1:" + base64.b64encode(nonce + ct).decode("ascii")
        assert decrypt_value(value, cipher) == "Café ☕"

    def test_fresh_nonce_per_value(self, cipher):
        values = {encrypt_value("same", cipher) for _ in range(50)}
        assert len(values) == 50
        nonces = {base64.b64decode(v[7:])[:NONCE_SIZE] for v in values}
        assert len(nonces) == 50

    def test_empty_plaintext(self, cipher):
        value = encrypt_value("", cipher)
        assert decrypt_value(value, cipher) == ""

    def test_is_encrypted(self, cipher):
        assert is_encrypted(encrypt_value("a", cipher))
        assert not is_encrypted("hello")
        assert not is_encrypted("ENC:v2:abcd")
        assert not is_encrypted("enc:v1:abcd")
        assert not is_encrypted(100)
        assert not is_encrypted(None)

    def test_format_of(self):
        assert format_of("ENC:v1:xyz") is FORMATS["v1"]
        assert format_of("plain") is None


# --- Test Decryption Failures ---

class TestDecryptFailures:
    """Tests for malformed and tampered payloads."""

    def test_wrong_key(self, cipher):
        value = encrypt_value("secret", cipher)
        with pytest.raises(DecryptionError):
            decrypt_value(value, AESGCM(os.urandom(32)))

    def test_tampered_ciphertext(self, cipher):
        value = encrypt_value("secret", cipher)
        raw = bytearray(base64.b64decode(value[7:]))
        raw[NONCE_SIZE] ^= 0x01
        tampered = "ENC:v1:" + base64.b64encode(bytes(raw)).decode("ascii")
        with pytest.raises(DecryptionError):
            decrypt_value(tampered, cipher)

    def test_tampered_tag(self, cipher):
        value = encrypt_value("secret", cipher)
        raw = bytearray(base64.b64decode(value[7:]))
        raw[-1] ^= 0x80
        tampered = "ENC:v1:" + base64.b64encode(bytes(raw)).decode("ascii")
        with pytest.raises(DecryptionError):
            decrypt_value(tampered, cipher)

    def test_invalid_base64(self, cipher):
        with pytest.raises(DecryptionError):
            decrypt_value("ENC:v1:***not base64***", cipher)

    def test_too_short(self, cipher):
        short = "ENC:v1:" + base64.b64encode(b"\x00" * 27).decode("ascii")
        with pytest.raises(DecryptionError, match="too short"):
            decrypt_value(short, cipher)

    def test_unmarked_value(self, cipher):
        with pytest.raises(DecryptionError):
            decrypt_value("plain text", cipher)

    def test_non_utf8_plaintext(self, cipher):
        nonce = os.urandom(NONCE_SIZE)
        ct = cipher.encrypt(nonce, b"\xff\xfe\xfd", None)
        value = "ENC:v1:" + base64.b64encode(nonce + ct).decode("ascii")
        with pytest.raises(DecryptionError):
            decrypt_value(value, cipher)


# --- Test Key Material ---

class TestSecretKey:
    """Tests for the zeroable key wrapper."""

    def test_cipher_usable(self):
        key = SecretKey(os.urandom(32))
        value = encrypt_value("hi", key.cipher)
        assert decrypt_value(value, key.cipher) == "hi"

    def test_wrong_length_rejected(self):
        with pytest.raises(ValueError):
            SecretKey(b"short")

    def test_wipe(self):
        key = SecretKey(os.urandom(32))
        buffer = key._buffer
        key.wipe()
        assert key.wiped is True
        assert buffer == bytearray(32)
        with pytest.raises(ValueError):
            key.cipher

    def test_wipe_twice(self):
        key = SecretKey(os.urandom(32))
        key.wipe()
        key.wipe()
        assert key.wiped

    def test_repr_hides_bytes(self):
        raw = bytes(range(32))
        key = SecretKey(raw)
        assert repr(key) == "<SecretKey loaded>"
        assert raw.hex() not in repr(key)

    def test_zero_bytes(self):
        buf = bytearray(b"abc")
        zero_bytes(buf)
        assert buf == bytearray(3)

    def test_passphrase_digest(self):
        digest = passphrase_digest("correct-horse")
        assert base64.b64decode(digest) == hashlib.sha256(b"correct-horse").digest()
        assert "correct-horse" not in digest

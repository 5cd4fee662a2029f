"""Tests for CryptoContext and the PII field registry."""
import pytest

from prism_vault import CryptoContext, PII_FIELDS, pii_fields
from prism_vault.vault import DerivationError, EncryptionEngine, VaultConfig


@pytest.fixture
def ctx(engine):
    return CryptoContext(engine)


class TestRecords:

    def test_known_types(self):
        assert pii_fields("account") == ("name",)
        assert pii_fields("transaction") == ("description", "merchant", "notes")
        assert pii_fields("category") == ()

    def test_no_numeric_fields(self):
        for fields in PII_FIELDS.values():
            assert "amount" not in fields
            assert "balance" not in fields

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            pii_fields("budget")


class TestCryptoContext:

    def test_initial_state(self, ctx):
        assert ctx.is_setup is False
        assert ctx.is_unlocked is False

    def test_unlock_and_lock(self, ctx):
        assert ctx.unlock("correct-horse") is True
        assert ctx.is_setup is True
        assert ctx.is_unlocked is True
        ctx.lock()
        assert ctx.is_unlocked is False
        assert ctx.is_setup is True

    def test_unlock_empty_passphrase(self, ctx, caplog):
        with caplog.at_level("ERROR", logger="prism.context"):
            assert ctx.unlock("") is False
        assert "Failed to unlock" in caplog.text
        assert ctx.is_unlocked is False

    def test_unlock_derivation_failure(self, ctx, monkeypatch):
        def boom(*args, **kwargs):
            raise DerivationError("unavailable")

        monkeypatch.setattr("prism_vault.vault.engine.derive_key", boom)
        assert ctx.unlock("correct-horse") is False
        assert ctx.is_unlocked is False

    def test_protect_and_reveal_account(self, ctx):
        ctx.unlock("correct-horse")
        account = {"id": "a1", "name": "Everyday Checking", "balance": 1520.75,
                   "type": "checking", "currency": "USD"}
        stored = ctx.protect("account", account)
        assert stored["name"].startswith("ENC:v1:")
        assert stored["balance"] == 1520.75
        assert stored["type"] == "checking"
        assert ctx.reveal("account", stored) == account

    def test_reveal_all_transactions(self, ctx):
        ctx.unlock("correct-horse")
        txns = [
            {"id": "t1", "amount": -4.5, "description": "Coffee", "merchant": "Bean Bar"},
            {"id": "t2", "amount": -60.0, "description": "Grocery Store"},
        ]
        stored = [ctx.protect("transaction", t) for t in txns]
        assert all(s["description"].startswith("ENC:v1:") for s in stored)
        assert ctx.reveal_all("transaction", stored) == txns

    def test_locked_pass_through(self, ctx):
        record = {"name": "Savings"}
        assert ctx.protect("account", record) is record
        assert ctx.reveal_all("account", [record]) == [record]

    def test_from_config(self, tmp_path):
        ctx = CryptoContext.from_config(VaultConfig(storage_path=tmp_path / "s.json"))
        assert isinstance(ctx.engine, EncryptionEngine)
        assert ctx.unlock("correct-horse") is True
        assert (tmp_path / "s.json").exists()

import pytest

from prism_vault.vault import EncryptionEngine, MemoryStorage, VaultConfig


@pytest.fixture
def storage():
    """Fresh durable storage stand-in."""
    return MemoryStorage()


@pytest.fixture
def session():
    """Fresh session storage."""
    return MemoryStorage()


@pytest.fixture
def config(tmp_path):
    return VaultConfig(storage_path=tmp_path / "storage.json")


@pytest.fixture
def engine(storage, session, config):
    """A locked engine."""
    return EncryptionEngine(storage=storage, session=session, config=config)


@pytest.fixture
def unlocked(engine):
    """An engine unlocked with a known passphrase."""
    engine.unlock("correct-horse")
    yield engine
    engine.lock()

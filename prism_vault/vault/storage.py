"""
Vault Storage — Small key-value stores for salt and session state.

- ``LocalStorage``: durable JSON file (orjson), holds ``encryption_salt``.
- ``MemoryStorage``: process-lifetime dict, used as session storage.

Security Note:
    Only non-secret values belong here (salt, session marker digest).
    Never store passphrases or key material.
"""
import os
import fcntl
import logging
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union

import orjson

from .errors import StorageError

logger = logging.getLogger("prism.vault")


class Storage(ABC):
    """String key-value store."""

    def __init__(self):
        self._lock = threading.RLock()

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    def set_if_absent(self, key: str, value: str) -> str:
        """Store ``value`` unless ``key`` already holds one.

        Returns:
            The value that ends up stored under ``key``.
        """
        with self._lock:
            current = self.get(key)
            if current is not None:
                return current
            self.set(key, value)
            return value


class MemoryStorage(Storage):
    """Dict-backed storage that lives as long as the process."""

    def __init__(self, data: Optional[dict[str, str]] = None):
        super().__init__()
        self._data: dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class LocalStorage(Storage):
    """JSON file storage, rewritten atomically on every change.

    Writes hold an flock on a sidecar ``<name>.lock`` file so that several
    instances or processes sharing the file never interleave read-modify-write
    cycles.
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + ".lock")

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return {}
        except OSError as err:
            raise StorageError(f"Cannot read {self._path}: {err}") from err
        if not raw.strip():
            return {}
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as err:
            raise StorageError(f"{self._path} is not valid JSON") from err
        if not isinstance(data, dict):
            raise StorageError(f"{self._path} does not hold a JSON object")
        return data

    def _write(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(orjson.dumps(data, option=orjson.OPT_SORT_KEYS))
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp, self._path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as err:
            raise StorageError(f"Cannot write {self._path}: {err}") from err
        logger.debug("Storage written: %s (%d key(s))", self._path, len(data))

    @staticmethod
    def _value(data: dict[str, str], key: str) -> Optional[str]:
        if key not in data:
            return None
        value = data[key]
        if not isinstance(value, str):
            raise StorageError(f"Stored value for {key!r} is not a string")
        return value

    @contextmanager
    def _file_lock(self):
        """Exclusive lock shared by every process and instance using this file."""
        try:
            self._lock_path.parent.mkdir(parents=True, exist_ok=True)
            lock_fd = open(self._lock_path, "a")
        except OSError as err:
            raise StorageError(f"Cannot lock {self._path}: {err}") from err
        try:
            fcntl.flock(lock_fd.fileno(), fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(lock_fd.fileno(), fcntl.LOCK_UN)
            lock_fd.close()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._value(self._read(), key)

    def set_if_absent(self, key: str, value: str) -> str:
        with self._lock, self._file_lock():
            data = self._read()
            if self._value(data, key) is None:
                data[key] = value
                self._write(data)
            stored = self._value(self._read(), key)
        if stored is None:
            raise StorageError(f"{key!r} missing from {self._path} after write")
        return stored

    def set(self, key: str, value: str) -> None:
        with self._lock, self._file_lock():
            data = self._read()
            data[key] = value
            self._write(data)

    def remove(self, key: str) -> None:
        with self._lock, self._file_lock():
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)

"""
Local key-value stores.

The local store is the durable, immediately consistent copy of session and
dashboard data. Writes rely on single-key atomicity; there is no locking.
"""
import os
import logging
import tempfile
from pathlib import Path
from typing import Optional, Protocol, Union

from .exceptions import StorageError

logger = logging.getLogger("wallet_session.storage")


class KeyValueStore(Protocol):
    """Capability interface for the local persistent medium."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore:
    """In-process store; contents are lost when the process exits."""

    def __init__(self, data: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class FileStore:
    """Directory-backed store, one file per key.

    Each ``set`` writes a temporary file and atomically replaces the target,
    so readers see either the old or the new value.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path).expanduser()
        try:
            self._path.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise StorageError(
                f"Cannot create store directory {self._path}: {err}"
            ) from err

    @property
    def path(self) -> Path:
        return self._path

    def _file(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._path / key

    def get(self, key: str) -> Optional[str]:
        file = self._file(key)
        try:
            return file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as err:
            raise StorageError(f"Cannot read {key}: {err}") from err

    def set(self, key: str, value: str) -> None:
        file = self._file(key)
        fd, tmp = tempfile.mkstemp(dir=self._path, prefix=f".{key}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                fp.write(value)
            os.replace(tmp, file)
        except OSError as err:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise StorageError(f"Cannot write {key}: {err}") from err
        logger.debug("Stored key=%s in %s", key, self._path)

    def delete(self, key: str) -> None:
        try:
            self._file(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as err:
            raise StorageError(f"Cannot delete {key}: {err}") from err

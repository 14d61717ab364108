"""
Key-value stores backing the quota subsystem.

The quota core only talks to the ``KeyValueStore`` interface. ``InMemoryStore``
is the single-process test double; ``JsonFileStore`` persists every key in one
JSON document that any number of processes can share.
"""

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional

try:
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover
    fcntl = None

logger = logging.getLogger(__name__)

ChangeListener = Callable[[List[str]], None]


class KeyValueStore:
    """
    Synchronous string-keyed store shared by every instance of the app.

    Subclasses implement ``_read_all`` and ``_write_all``; every mutation goes
    through ``lock()`` so writers sharing the store are serialized.
    """

    def __init__(self):
        self._listeners: List[ChangeListener] = []
        self._listeners_lock = threading.Lock()

    # =====================
    # Storage primitives
    # =====================

    def _read_all(self) -> Dict[str, str]:
        raise NotImplementedError

    def _write_all(self, data: Dict[str, str]) -> None:
        raise NotImplementedError

    def lock(self):
        """Re-entrant writer lock (a context manager). Readers never take it."""
        raise NotImplementedError

    # =====================
    # Public API
    # =====================

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self.lock():
            data = self._read_all()
            data[key] = value
            self._write_all(data)
        self._notify([key])

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        with self.lock():
            data = self._read_all()
            if key not in data:
                return False
            del data[key]
            self._write_all(data)
        self._notify([key])
        return True

    def delete_many(self, keys: List[str]) -> int:
        """Delete several keys in one write. Returns how many existed."""
        with self.lock():
            data = self._read_all()
            removed = [key for key in keys if key in data]
            for key in removed:
                del data[key]
            if removed:
                self._write_all(data)
        if removed:
            self._notify(removed)
        return len(removed)

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(key for key in self._read_all() if key.startswith(prefix))

    def compare_and_set(self, key: str, expected: Optional[str], new: Optional[str]) -> bool:
        """
        Atomically replace ``key`` if it still holds ``expected``.

        Args:
            key: Key to update
            expected: Value the caller last read (None means absent)
            new: Value to write (None deletes the key)

        Returns:
            True if the write happened, False if another writer got there first
        """
        with self.lock():
            data = self._read_all()
            if data.get(key) != expected:
                return False
            if new is None:
                data.pop(key, None)
            else:
                data[key] = new
            self._write_all(data)
        self._notify([key])
        return True

    # =====================
    # Change notifications
    # =====================

    def subscribe(self, listener: ChangeListener) -> ChangeListener:
        """Register a callback invoked with the list of keys after each write."""
        with self._listeners_lock:
            self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: ChangeListener) -> None:
        with self._listeners_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, changed_keys: List[str]) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(list(changed_keys))
            except Exception as e:
                logger.error(f"Store change listener failed: {e}", exc_info=True)


class InMemoryStore(KeyValueStore):
    """Process-local store, used as the test double."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        super().__init__()
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.RLock()

    def _read_all(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)

    def _write_all(self, data: Dict[str, str]) -> None:
        with self._lock:
            self._data = dict(data)

    @contextmanager
    def lock(self) -> Iterator[None]:
        with self._lock:
            yield


class JsonFileStore(KeyValueStore):
    """
    Durable store kept in a single JSON object on disk.

    Every read goes back to the file so that separate processes sharing it
    see each other's writes. Writes replace the file atomically and are
    serialized across processes with an advisory lock on a sidecar file.
    """

    def __init__(self, store_file: Path):
        """
        Initialize JsonFileStore.

        Args:
            store_file: Path to the JSON document holding every key
        """
        super().__init__()
        self.store_file = Path(store_file)
        self.lock_file = self.store_file.with_name(f".{self.store_file.name}.lock")
        self._thread_lock = threading.RLock()
        self._depth = 0
        self._lock_handle = None

        self.store_file.parent.mkdir(parents=True, exist_ok=True)
        if not self.store_file.exists():
            with self.lock():
                if not self.store_file.exists():
                    self._write_all({})

    @contextmanager
    def lock(self) -> Iterator[None]:
        with self._thread_lock:
            if self._depth == 0:
                self._lock_handle = open(self.lock_file, "a+", encoding="utf-8")
                if fcntl is not None:
                    fcntl.flock(self._lock_handle.fileno(), fcntl.LOCK_EX)
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
                if self._depth == 0:
                    if fcntl is not None:
                        fcntl.flock(self._lock_handle.fileno(), fcntl.LOCK_UN)
                    self._lock_handle.close()
                    self._lock_handle = None

    def _read_all(self) -> Dict[str, str]:
        """Load every key from file. A missing or corrupt file reads as empty."""
        try:
            if not self.store_file.exists():
                return {}
            with open(self.store_file, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading quota store {self.store_file}: {e}")
            return {}

        if not isinstance(raw, dict):
            logger.error(f"Quota store {self.store_file} does not hold a JSON object, ignoring it")
            return {}

        data = {}
        for key, value in raw.items():
            if isinstance(value, str):
                data[key] = value
            else:
                logger.warning(f"Dropping non-text value for key {key!r} in {self.store_file}")
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.store_file.name}.", suffix=".tmp", dir=str(self.store_file.parent)
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2, sort_keys=True)
            os.replace(tmp_name, self.store_file)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

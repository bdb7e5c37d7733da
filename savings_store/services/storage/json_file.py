"""
JSON File Storage Implementation

DESIGN DECISION: The whole key space lives in one JSON document.
Every write stages the complete map to a temporary file in the same
directory and swaps it in with os.replace, so a crash mid-write leaves
either the old file or the new one, never a torn one.

TRADEOFFS:
- Every write rewrites the file (fine for a ~5MB quota)
- One process at a time; a per-path lock only serializes threads
"""

import json
import os
import tempfile
import threading
from typing import Iterable, Optional

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from savings_store.services.storage.interface import (
    KeyValueStorage,
    ReadFailure,
    StorageWriteFailure,
)
from savings_store.services.storage.memory import DEFAULT_CAPACITY_BYTES, _footprint


logger = structlog.get_logger(__name__)


class JsonFileStorage(KeyValueStorage):
    """
    Key-value storage persisted to a single JSON file.

    The file is read once, lazily; afterwards the in-memory copy is
    authoritative and every successful commit rewrites the file.
    """

    _path_locks: dict[str, threading.RLock] = {}
    _path_locks_guard = threading.Lock()

    def __init__(
        self,
        file_path: str,
        capacity_bytes: int = DEFAULT_CAPACITY_BYTES,
    ):
        self._file_path = file_path
        self._capacity = capacity_bytes
        self._data: Optional[dict[str, str]] = None

        abs_path = os.path.abspath(file_path)
        with self._path_locks_guard:
            if abs_path not in self._path_locks:
                self._path_locks[abs_path] = threading.RLock()
            self._lock = self._path_locks[abs_path]

    @property
    def file_path(self) -> str:
        return self._file_path

    def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data

        with self._lock:
            try:
                with open(self._file_path, encoding="utf-8") as f:
                    raw = json.load(f)
            except FileNotFoundError:
                raw = {}
            except json.JSONDecodeError:
                logger.warning("storage_file_corrupt", path=self._file_path)
                raw = {}
            except OSError as e:
                raise ReadFailure(f"Failed to read storage file {self._file_path}: {e}")

            if not isinstance(raw, dict):
                logger.warning("storage_file_invalid_root", path=self._file_path)
                raw = {}

            self._data = {
                str(key): value
                for key, value in raw.items()
                if isinstance(value, str)
            }
        return self._data

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _write_file(self, data: dict[str, str]) -> None:
        directory = os.path.dirname(self._file_path) or "."
        fd, tmp_path = tempfile.mkstemp(prefix=".savings_", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_path, self._file_path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        self.commit({key: value})

    def remove(self, key: str) -> None:
        self.commit({}, removals=[key])

    def keys(self, prefix: str = "") -> list[str]:
        return [key for key in self._load() if key.startswith(prefix)]

    def commit(
        self,
        writes: dict[str, str],
        removals: Iterable[str] = (),
    ) -> None:
        with self._lock:
            staged = dict(self._load())
            for key in removals:
                staged.pop(key, None)
            for key, value in writes.items():
                if not isinstance(value, str):
                    raise StorageWriteFailure(f"Value for {key} is not text")
                staged[key] = value

            used = _footprint(staged)
            if used > self._capacity:
                raise StorageWriteFailure(
                    f"Quota exceeded: {used} bytes needed, capacity is {self._capacity}"
                )

            try:
                self._write_file(staged)
            except OSError as e:
                raise StorageWriteFailure(f"Failed to write storage file: {e}")

            self._data = staged

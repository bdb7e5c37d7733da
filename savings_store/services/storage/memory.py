"""
In-Memory Storage Implementation

Behaves like the browser's localStorage: synchronous, string values,
insertion-ordered keys and a bounded quota. Used by tests and by any
shell that keeps data only for the lifetime of the process.
"""

from typing import Iterable, Optional

from savings_store.services.storage.interface import (
    KeyValueStorage,
    StorageWriteFailure,
)


DEFAULT_CAPACITY_BYTES = 5 * 1024 * 1024


def _footprint(data: dict[str, str]) -> int:
    # Browsers count key and value characters against the quota
    return sum(len(key) + len(value) for key, value in data.items())


class InMemoryStorage(KeyValueStorage):
    """
    Dict-backed key-value storage with a quota.

    A write or batch that would push the footprint over capacity is
    rejected as a whole and leaves the contents untouched.
    """

    def __init__(
        self,
        capacity_bytes: int = DEFAULT_CAPACITY_BYTES,
        initial: Optional[dict[str, str]] = None,
    ):
        self._capacity = capacity_bytes
        self._data: dict[str, str] = dict(initial or {})

    @property
    def capacity_bytes(self) -> int:
        return self._capacity

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self.commit({key: value})

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return [key for key in self._data if key.startswith(prefix)]

    def commit(
        self,
        writes: dict[str, str],
        removals: Iterable[str] = (),
    ) -> None:
        staged = dict(self._data)
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

        self._data = staged

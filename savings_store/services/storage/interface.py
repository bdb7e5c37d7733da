"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the persistence layer.
This allows us to:
1. Model the browser's key-value storage without a browser
2. Use in-memory storage for testing
3. Persist to a local JSON file for desktop use
4. Keep snapshot, migration and backup logic decoupled from the backend

The interface is intentionally tiny - the four operations of a browser
key-value store (get, set, remove, enumerate by prefix) plus one batch
operation. Values are serialized text.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional


class KeyValueStorage(ABC):
    """
    Abstract interface for key-value persistence.

    Keys are strings; values are serialized text. Every implementation
    has a bounded capacity and rejects writes that would exceed it.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Returns:
            The stored text, or None if the key is absent

        Raises:
            ReadFailure: If the backend itself cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value under a key, replacing any previous value.

        Raises:
            StorageWriteFailure: If the write is rejected (e.g. quota)
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """
        Remove a key. Removing an absent key is not an error.
        """
        pass

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        """
        Enumerate keys starting with a prefix.

        Returns:
            Matching keys in insertion order
        """
        pass

    @abstractmethod
    def commit(
        self,
        writes: dict[str, str],
        removals: Iterable[str] = (),
    ) -> None:
        """
        Apply a batch of writes and removals atomically.

        Either every write and removal lands or none does.

        Raises:
            StorageWriteFailure: If the batch is rejected; storage is unchanged
        """
        pass

    def storage_usage(self, prefix: str = "") -> int:
        """Total length of the values stored under a prefix."""
        total = 0
        for key in self.keys(prefix):
            value = self.get(key)
            if value is not None:
                total += len(value)
        return total


def encode_value(value: Any) -> str:
    """Serialize a record for storage."""
    return json.dumps(value, ensure_ascii=False)


def decode_value(text: Optional[str]) -> Any:
    """
    Deserialize a stored record.

    Returns None for absent keys.

    Raises:
        ReadFailure: If the stored text is not valid JSON
    """
    if text is None:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ReadFailure(f"Stored value is not valid JSON: {e}")


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageWriteFailure(StorageError):
    """Persistence rejected a write (e.g. quota exceeded)."""
    pass


class ReadFailure(StorageError):
    """Underlying storage or file could not be read."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class InvalidFormat(StorageError):
    """An imported container failed validation."""
    pass

"""
Storage Services Package

Provides the abstract key-value interface and concrete implementations.
In-memory storage mirrors the browser's localStorage; JSON file storage
persists the same key space to disk. Both are swappable.
"""

from savings_store.services.storage.interface import (
    InvalidFormat,
    KeyValueStorage,
    NotFoundError,
    ReadFailure,
    StorageError,
    StorageWriteFailure,
    decode_value,
    encode_value,
)
from savings_store.services.storage.memory import InMemoryStorage
from savings_store.services.storage.json_file import JsonFileStorage

__all__ = [
    # Interface
    "KeyValueStorage",
    "decode_value",
    "encode_value",
    # Exceptions
    "InvalidFormat",
    "NotFoundError",
    "ReadFailure",
    "StorageError",
    "StorageWriteFailure",
    # Implementations
    "InMemoryStorage",
    "JsonFileStorage",
]

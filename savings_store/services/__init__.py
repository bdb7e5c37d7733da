"""Services package."""

from savings_store.services.storage import (
    InMemoryStorage,
    InvalidFormat,
    JsonFileStorage,
    KeyValueStorage,
    NotFoundError,
    ReadFailure,
    StorageError,
    StorageWriteFailure,
)

__all__ = [
    # Storage services
    "InMemoryStorage",
    "InvalidFormat",
    "JsonFileStorage",
    "KeyValueStorage",
    "NotFoundError",
    "ReadFailure",
    "StorageError",
    "StorageWriteFailure",
]

# src/lab_intelligence/storage/__init__.py

from .base import StorageBackend
from .sqlite_store import SQLiteStore
from .memory_store import InMemoryStore

__all__ = ["StorageBackend", "SQLiteStore", "InMemoryStore"]

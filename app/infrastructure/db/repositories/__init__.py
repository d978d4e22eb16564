from .memory_store import InMemoryRecordStore
from .returns_repository import SqlRecordStore

__all__ = [
    "InMemoryRecordStore",
    "SqlRecordStore",
]

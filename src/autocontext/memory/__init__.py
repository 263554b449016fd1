"""Message and offload storage for autocontext."""

from .offload import FileOffloadStore, InMemoryOffloadStore, OffloadError, OffloadStore
from .sql_offload import SQLOffloadStore
from .store import MessageStore

__all__ = [
    "FileOffloadStore",
    "InMemoryOffloadStore",
    "MessageStore",
    "OffloadError",
    "OffloadStore",
    "SQLOffloadStore",
]

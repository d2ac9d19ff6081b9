"""
NFTMint - Registry Package

Local persistence of the record id to metadata content id mapping.
"""

from .mapping import InMemoryMappingRecorder, JSONMappingStore, MappingEntry, MappingRecorder
from .storage import FileLock, IntegrityError, JSONStorage, LockTimeoutError, StorageError

__all__ = [
    "MappingEntry",
    "MappingRecorder",
    "InMemoryMappingRecorder",
    "JSONMappingStore",
    "JSONStorage",
    "FileLock",
    "StorageError",
    "LockTimeoutError",
    "IntegrityError"
]

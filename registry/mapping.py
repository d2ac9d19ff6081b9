"""
NFTMint - Record Mapping

This module records which metadata document each confirmed record points to,
in the order the records were confirmed.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .storage import JSONStorage, StorageError


MAPPING_FORMAT_VERSION = 1


@dataclass(frozen=True)
class MappingEntry:
    """A confirmed record identifier and its metadata content id."""

    record_id: int
    content_id: str
    tx_ref: Optional[str] = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "record_id": str(self.record_id),
            "content_id": self.content_id,
            "recorded_at": self.recorded_at.isoformat()
        }
        if self.tx_ref:
            result["tx_ref"] = self.tx_ref
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MappingEntry':
        return cls(
            record_id=int(data["record_id"]),
            content_id=data["content_id"],
            tx_ref=data.get("tx_ref"),
            recorded_at=datetime.fromisoformat(data["recorded_at"])
        )


class MappingRecorder(ABC):
    """Append-only record id -> content id log."""

    @abstractmethod
    def record(self, record_id: int, content_id: str, tx_ref: Optional[str] = None) -> MappingEntry:
        """
        Append a mapping.

        Raises:
            StorageError: If the record id was already recorded
        """
        pass

    @abstractmethod
    def entries(self) -> List[MappingEntry]:
        """All mappings in the order they were recorded."""
        pass

    def get(self, record_id: int) -> Optional[str]:
        """Content id recorded for a record id, if any."""
        for entry in self.entries():
            if entry.record_id == record_id:
                return entry.content_id
        return None

    def __len__(self) -> int:
        return len(self.entries())


class InMemoryMappingRecorder(MappingRecorder):
    """Mapping log kept in process memory."""

    def __init__(self):
        self._entries: List[MappingEntry] = []
        self._lock = threading.Lock()

    def record(self, record_id: int, content_id: str, tx_ref: Optional[str] = None) -> MappingEntry:
        with self._lock:
            if any(e.record_id == record_id for e in self._entries):
                raise StorageError(f"Record {record_id} is already mapped")
            entry = MappingEntry(record_id, content_id, tx_ref)
            self._entries.append(entry)
            return entry

    def entries(self) -> List[MappingEntry]:
        with self._lock:
            return list(self._entries)


class JSONMappingStore(MappingRecorder):
    """Mapping log persisted to a JSON file, surviving restarts."""

    def __init__(self, file_path: Union[str, Path], backup_count: int = 0):
        self.storage = JSONStorage(file_path, backup_count=backup_count)
        self.logger = logging.getLogger(__name__)

    def record(self, record_id: int, content_id: str, tx_ref: Optional[str] = None) -> MappingEntry:
        entry = MappingEntry(record_id, content_id, tx_ref)

        def append(data: Dict[str, Any]) -> Dict[str, Any]:
            rows = data.get("entries", [])
            if any(int(row["record_id"]) == record_id for row in rows):
                raise StorageError(f"Record {record_id} is already mapped")
            rows.append(entry.to_dict())
            return {"version": MAPPING_FORMAT_VERSION, "entries": rows}

        self.storage.update(append)
        self.logger.info(f"Recorded mapping: record {record_id} -> {content_id}")
        return entry

    def entries(self) -> List[MappingEntry]:
        data = self.storage.read()
        try:
            return [MappingEntry.from_dict(row) for row in data.get("entries", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Corrupt mapping file {self.storage.file_path}: {e}")

"""
NFTMint - Record Identifier Allocation

Record identifiers are allocated by the client before submission. Two
collision-free strategies are provided: a counter continuing from the
ledger's record count, and random 128-bit identifiers for ledgers that
cannot report a count.
"""

import logging
import heapq
import threading
import uuid
from abc import ABC, abstractmethod
from typing import List, Set

from network.ledger import CountableLedger, Ledger


logger = logging.getLogger(__name__)


class RecordIdAllocator(ABC):
    """Hands out record identifiers, never the same one twice."""

    def __init__(self):
        self._issued: Set[int] = set()
        self._released: List[int] = []
        self._lock = threading.Lock()

    @abstractmethod
    def _candidate(self) -> int:
        pass

    def allocate(self) -> int:
        """Allocate a fresh record identifier."""
        with self._lock:
            if self._released:
                record_id = heapq.heappop(self._released)
                self._issued.add(record_id)
                return record_id
            record_id = self._candidate()
            while record_id in self._issued:
                record_id = self._candidate()
            self._issued.add(record_id)
            return record_id

    def release(self, record_id: int) -> None:
        """Make an identifier that never reached the ledger available again, lowest first."""
        with self._lock:
            if record_id in self._issued:
                self._issued.discard(record_id)
                heapq.heappush(self._released, record_id)


class CounterRecordIdAllocator(RecordIdAllocator):
    """Sequential identifiers starting at a given value."""

    def __init__(self, start: int = 1):
        super().__init__()
        if start < 1:
            raise ValueError("Record identifiers start at 1")
        self._next = start

    def _candidate(self) -> int:
        value = self._next
        self._next += 1
        return value


class UuidRecordIdAllocator(RecordIdAllocator):
    """Random identifiers drawn from the 128-bit UUID space."""

    def _candidate(self) -> int:
        return uuid.uuid4().int


def allocator_for_ledger(ledger: Ledger) -> RecordIdAllocator:
    """
    Choose the allocation strategy for a ledger.

    Countable ledgers continue after their current count so the gallery's
    1..count scan finds the new records; probe-only ledgers get UUID-space
    identifiers.
    """
    if isinstance(ledger, CountableLedger):
        start = ledger.count() + 1
        logger.info(f"Allocating record identifiers from {start}")
        return CounterRecordIdAllocator(start)

    logger.info("Ledger has no record count; allocating UUID-space record identifiers")
    return UuidRecordIdAllocator()

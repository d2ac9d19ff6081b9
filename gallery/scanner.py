"""
NFTMint - Gallery Reconstruction

This module rebuilds the inventory of records held by a contract. Contracts
that report a record count are enumerated directly; contracts that do not
are probed identifier by identifier until a run of misses or an attempt
budget ends the scan.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional

from network.ledger import CountableLedger, Ledger, LedgerError, RecordNotFound
from nft.exceptions import ContentError
from nft.ipfs import ContentPublisher

from .history import HistoryFetcher
from .records import ScanState, TokenRecord


DEFAULT_MAX_ATTEMPTS = 1000
DEFAULT_MAX_CONSECUTIVE_FAILURES = 100


class GalleryScanner:
    """
    Discovers and enriches the records of one contract.

    The scan strategy is fixed by the ledger variant: CountableLedger gets
    the 1..count enumeration, any other ledger the bounded probe. A probe
    that lands on a missing identifier is a miss, not an error, and so is a
    transient read failure. Identifiers past a run of max_consecutive_failures
    misses are never reached.
    """

    def __init__(self, ledger: Ledger, publisher: ContentPublisher,
                 history: Optional[HistoryFetcher] = None,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                 max_consecutive_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES,
                 fetch_workers: int = 4,
                 start_id: int = 1):
        """
        Initialize scanner.

        Args:
            ledger: Ledger bound to the record contract
            publisher: Content publisher used to resolve metadata
            history: Transfer history fetcher (history is left empty if None)
            max_attempts: Probe budget in identifiers
            max_consecutive_failures: Misses in a row that end a probe scan
            fetch_workers: Parallel fetches on the enumeration path
            start_id: First identifier probed
        """
        if max_attempts < 1 or max_consecutive_failures < 1:
            raise ValueError("Scan bounds must be at least 1")
        if fetch_workers < 1:
            raise ValueError("fetch_workers must be at least 1")

        self.ledger = ledger
        self.publisher = publisher
        self.history = history
        self.max_attempts = max_attempts
        self.max_consecutive_failures = max_consecutive_failures
        self.fetch_workers = fetch_workers
        self.start_id = start_id
        self.logger = logging.getLogger(__name__)

        self.state = ScanState(cursor=start_id)
        self._cancel_event = threading.Event()
        self._lookup_pool: Optional[ThreadPoolExecutor] = None
        self._pool_lock = threading.Lock()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        with self._pool_lock:
            if self._lookup_pool is not None:
                self._lookup_pool.shutdown(wait=True)
                self._lookup_pool = None

    def cancel(self):
        """Stop the running scan after the identifier in progress."""
        self._cancel_event.set()

    def _pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._lookup_pool is None:
                # Three lookups per record, one record per fetch worker
                self._lookup_pool = ThreadPoolExecutor(max_workers=3 * self.fetch_workers,
                                                       thread_name_prefix="nftmint-lookup")
            return self._lookup_pool

    def scan(self) -> List[TokenRecord]:
        """
        Rebuild the gallery.

        Returns:
            Discovered records sorted by record id
        """
        self._cancel_event.clear()
        if self.history is not None:
            self.history.clear_cache()

        if isinstance(self.ledger, CountableLedger):
            records = self._scan_countable(self.ledger)
        else:
            records = self._scan_probe()

        records.sort(key=lambda record: record.record_id)
        self.logger.info(f"Scan finished ({self.state.strategy}): {len(records)} records "
                         f"after {self.state.total_attempts} lookups")
        return records

    def _scan_countable(self, ledger: CountableLedger) -> List[TokenRecord]:
        total = ledger.count()
        self.state = ScanState(cursor=1, strategy="enumerate")
        self.logger.info(f"Contract reports {total} records; enumerating 1..{total}")

        records: List[TokenRecord] = []
        if total <= 0:
            return records

        with ThreadPoolExecutor(max_workers=self.fetch_workers,
                                thread_name_prefix="nftmint-scan") as executor:
            futures = {executor.submit(self.fetch_single, record_id): record_id
                       for record_id in range(1, total + 1)}
            for future in as_completed(futures):
                record_id = futures[future]
                if self._cancel_event.is_set():
                    for pending in futures:
                        pending.cancel()
                if future.cancelled():
                    continue
                try:
                    record = future.result()
                except Exception as e:
                    self.state.record_miss()
                    self.logger.error(f"Failed to fetch record {record_id}: {e}")
                    continue

                if record is None:
                    self.state.record_miss()
                    self.logger.info(f"Record {record_id} no longer exists, skipping")
                else:
                    self.state.record_hit()
                    records.append(record)

        return records

    def _scan_probe(self) -> List[TokenRecord]:
        state = ScanState(cursor=self.start_id, strategy="probe")
        self.state = state
        self.logger.info(f"Contract has no record count; probing from {self.start_id} "
                         f"(max {self.max_attempts} attempts, stop after "
                         f"{self.max_consecutive_failures} consecutive misses)")

        records: List[TokenRecord] = []
        while (state.consecutive_failures < self.max_consecutive_failures
               and state.total_attempts < self.max_attempts):
            if self._cancel_event.is_set():
                self.logger.warning(f"Scan cancelled at record {state.cursor}")
                break

            record_id = state.cursor
            try:
                record = self.fetch_single(record_id)
            except LedgerError as e:
                self.logger.warning(f"Lookup of record {record_id} failed: {e}")
                record = None

            if record is None:
                state.record_miss()
            else:
                state.record_hit()
                records.append(record)
            state.cursor += 1

        if state.consecutive_failures >= self.max_consecutive_failures:
            self.logger.info(f"Stopped after {state.consecutive_failures} consecutive misses "
                             f"at record {state.cursor - 1}")
        elif state.total_attempts >= self.max_attempts:
            self.logger.info(f"Stopped after reaching the attempt budget of {self.max_attempts}")
        return records

    def fetch_single(self, record_id: int) -> Optional[TokenRecord]:
        """
        Fetch and enrich one record.

        Owner, content reference and history lookups run concurrently.

        Returns:
            TokenRecord, or None if the ledger reports no such record

        Raises:
            LedgerReadError: If the owner lookup fails for another reason
        """
        pool = self._pool()
        owner_future = pool.submit(self.ledger.owner_of, record_id)
        ref_future = pool.submit(self.ledger.content_ref, record_id)
        history_future = pool.submit(self.history.fetch, record_id) if self.history else None

        try:
            owner = owner_future.result()
        except RecordNotFound:
            self.logger.debug(f"Record {record_id} not found")
            return None

        try:
            content_ref = ref_future.result()
        except LedgerError as e:
            self.logger.warning(f"Could not read content reference of record {record_id}: {e}")
            content_ref = None

        metadata = None
        if content_ref:
            try:
                metadata = self.publisher.resolve_metadata(content_ref)
            except ContentError as e:
                self.logger.warning(f"Could not resolve metadata of record {record_id} at {content_ref}: {e}")

        history = history_future.result() if history_future else []

        return TokenRecord(
            record_id=record_id,
            owner=owner,
            content_ref=content_ref,
            metadata=metadata,
            history=history
        )

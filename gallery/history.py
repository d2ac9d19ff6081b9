"""
NFTMint - Transfer History Fetcher

Per-record transfer history built from the contract-wide listing of the
explorer API.
"""

import logging
import threading
from typing import List, Optional

from network.history import EtherscanClient, TransferRecord

from .records import TransferEvent


class HistoryFetcher:
    """
    Returns the transfer events of one record, oldest first.

    The contract-wide listing is fetched once and cached until clear_cache()
    is called; the scanner clears it at the start of every scan. Failures
    degrade to an empty history.
    """

    def __init__(self, client: EtherscanClient, contract_address: str):
        self.client = client
        self.contract_address = contract_address
        self.logger = logging.getLogger(__name__)

        self._transfers: Optional[List[TransferRecord]] = None
        self._failure: Optional[Exception] = None
        self._lock = threading.Lock()

    def clear_cache(self):
        with self._lock:
            self._transfers = None
            self._failure = None

    def _listing(self) -> List[TransferRecord]:
        with self._lock:
            # A failed listing is not retried until the next scan
            if self._failure is not None:
                raise self._failure
            if self._transfers is None:
                try:
                    self._transfers = self.client.list_transfers(self.contract_address)
                except Exception as e:
                    self._failure = e
                    raise
            return self._transfers

    def fetch(self, record_id: int) -> List[TransferEvent]:
        """Transfer events of a record in ascending timestamp order ([] on any error)."""
        try:
            transfers = self._listing()
        except Exception as e:
            self.logger.warning(f"Could not fetch transfer history for record {record_id}: {e}")
            return []

        events = [TransferEvent.from_transfer(t) for t in transfers if t.record_id == record_id]
        events.sort(key=lambda event: event.timestamp)
        return events

"""
NFTMint - Gallery Reconstruction Engine

Discovers the records of a contract and enriches them with metadata and
transfer history.
"""

from .records import ScanState, TokenRecord, TransferEvent
from .history import HistoryFetcher
from .scanner import DEFAULT_MAX_ATTEMPTS, DEFAULT_MAX_CONSECUTIVE_FAILURES, GalleryScanner

__all__ = [
    "ScanState",
    "TokenRecord",
    "TransferEvent",
    "HistoryFetcher",
    "GalleryScanner",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_MAX_CONSECUTIVE_FAILURES"
]

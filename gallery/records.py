"""
NFTMint - Gallery Records

Data types produced by the gallery reconstruction engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from network.history import TransferRecord
from nft.metadata import MetadataRecord


@dataclass(frozen=True)
class TransferEvent:
    """One ownership transfer of a record."""

    sender: str
    recipient: str
    timestamp: datetime
    tx_ref: Optional[str] = None

    @classmethod
    def from_transfer(cls, transfer: TransferRecord) -> 'TransferEvent':
        return cls(
            sender=transfer.sender,
            recipient=transfer.recipient,
            timestamp=transfer.timestamp,
            tx_ref=transfer.tx_ref
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.sender,
            "to": self.recipient,
            "timestamp": self.timestamp.isoformat(),
            "tx_ref": self.tx_ref
        }


@dataclass
class TokenRecord:
    """A discovered ledger record with its owner, metadata and history."""

    record_id: int
    owner: str
    content_ref: Optional[str] = None
    metadata: Optional[MetadataRecord] = None
    history: List[TransferEvent] = field(default_factory=list)

    @property
    def name(self) -> Optional[str]:
        return self.metadata.name if self.metadata else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "record_id": str(self.record_id),
            "owner": self.owner,
            "content_ref": self.content_ref,
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "history": [event.to_dict() for event in self.history]
        }


@dataclass
class ScanState:
    """Progress of one scan; never persisted."""

    cursor: int = 1
    consecutive_failures: int = 0
    total_attempts: int = 0
    found: int = 0
    strategy: Optional[str] = None

    def record_hit(self):
        self.total_attempts += 1
        self.consecutive_failures = 0
        self.found += 1

    def record_miss(self):
        self.total_attempts += 1
        self.consecutive_failures += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "cursor": self.cursor,
            "consecutive_failures": self.consecutive_failures,
            "total_attempts": self.total_attempts,
            "found": self.found
        }

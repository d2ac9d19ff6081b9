"""
NFTMint - Mint Jobs

This module defines mint requests, the per-request job state machine and the
structured batch report returned to callers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import InvalidTransitionError


class MintState(Enum):
    """Lifecycle states of a mint job."""
    QUEUED = "queued"
    UPLOADING = "uploading"
    METADATA_READY = "metadata_ready"
    GAS_ESTIMATED = "gas_estimated"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (MintState.CONFIRMED, MintState.FAILED)


# Forward-only successor of every non-terminal state
_NEXT_STATE = {
    MintState.QUEUED: MintState.UPLOADING,
    MintState.UPLOADING: MintState.METADATA_READY,
    MintState.METADATA_READY: MintState.GAS_ESTIMATED,
    MintState.GAS_ESTIMATED: MintState.SUBMITTED,
    MintState.SUBMITTED: MintState.CONFIRMED,
}


@dataclass(frozen=True)
class MintRequest:
    """One user request to mint an asset."""

    asset: bytes
    display_name: str
    description: str = ""
    filename: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.asset, (bytes, bytearray)):
            raise TypeError("Asset must be bytes")
        if not self.display_name or not self.display_name.strip():
            raise ValueError("Display name cannot be empty")


@dataclass
class ErrorInfo:
    """Why a job failed."""

    kind: str
    message: str
    revert_reason: Optional[str] = None
    failed_in: Optional[str] = None

    @classmethod
    def from_exception(cls, error: BaseException, state: Optional[MintState] = None) -> 'ErrorInfo':
        return cls(
            kind=type(error).__name__,
            message=str(error),
            revert_reason=getattr(error, "revert_reason", None),
            failed_in=state.value if state else None
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {"kind": self.kind, "message": self.message}
        if self.revert_reason:
            result["revert_reason"] = self.revert_reason
        if self.failed_in:
            result["failed_in"] = self.failed_in
        return result


@dataclass
class MintJob:
    """State of one mint request within a batch."""

    request_index: int
    display_name: str = ""
    state: MintState = MintState.QUEUED
    record_id: Optional[int] = None
    asset_content_id: Optional[str] = None
    metadata_content_id: Optional[str] = None
    tx_ref: Optional[str] = None
    error: Optional[ErrorInfo] = None
    warnings: List[str] = field(default_factory=list)
    history: List[MintState] = field(default_factory=lambda: [MintState.QUEUED])
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def succeeded(self) -> bool:
        return self.state == MintState.CONFIRMED

    @property
    def metadata_uri(self) -> Optional[str]:
        if self.metadata_content_id is None:
            return None
        return f"ipfs://{self.metadata_content_id}"

    def advance(self, target: MintState) -> None:
        """
        Move to the next state.

        Raises:
            InvalidTransitionError: If target is not the direct successor
        """
        expected = _NEXT_STATE.get(self.state)
        if target is MintState.FAILED or expected is not target:
            raise InvalidTransitionError(
                f"Job {self.request_index}: cannot move from {self.state.value} to {target.value}"
            )
        self._set(target)

    def fail(self, error: BaseException) -> None:
        """Move to FAILED from any non-terminal state, recording the cause."""
        if self.is_terminal:
            raise InvalidTransitionError(
                f"Job {self.request_index}: already terminal ({self.state.value})"
            )
        self.error = ErrorInfo.from_exception(error, self.state)
        self._set(MintState.FAILED)

    def _set(self, state: MintState) -> None:
        self.state = state
        self.history.append(state)
        self.updated_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "index": self.request_index,
            "name": self.display_name,
            "state": self.state.value,
            "record_id": str(self.record_id) if self.record_id is not None else None,
            "metadata_uri": self.metadata_uri,
            "tx_ref": self.tx_ref,
            "error": self.error.to_dict() if self.error else None,
            "warnings": list(self.warnings)
        }


@dataclass
class BatchReport:
    """Outcome of a minting batch, one job per request in input order."""

    jobs: List[MintJob]
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self.jobs)

    def __iter__(self):
        return iter(self.jobs)

    def __getitem__(self, index: int) -> MintJob:
        return self.jobs[index]

    @property
    def succeeded(self) -> List[MintJob]:
        return [job for job in self.jobs if job.state == MintState.CONFIRMED]

    @property
    def failed(self) -> List[MintJob]:
        return [job for job in self.jobs if job.state == MintState.FAILED]

    @property
    def all_succeeded(self) -> bool:
        return len(self.succeeded) == len(self.jobs)

    def states(self) -> List[MintState]:
        return [job.state for job in self.jobs]

    def mark_completed(self) -> None:
        self.completed_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary for serialization."""
        duration = None
        if self.completed_at:
            duration = (self.completed_at - self.started_at).total_seconds()
        return {
            "total": len(self.jobs),
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": duration,
            "jobs": [job.to_dict() for job in self.jobs]
        }

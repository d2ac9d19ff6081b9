"""
NFTMint - Minting Exceptions

This module defines the per-item error taxonomy of a minting batch. Each of
these aborts only the job it was raised for.
"""

from typing import Optional

from nft.exceptions import UploadError


class MintError(Exception):
    """Base exception for minting errors."""
    pass


class EstimationError(MintError):
    """Cost estimation failed; no submission was attempted."""

    def __init__(self, message: str, revert_reason: Optional[str] = None):
        self.revert_reason = revert_reason
        super().__init__(message)


class SubmissionError(MintError):
    """The ledger rejected or reverted a submitted mint."""

    def __init__(self, message: str, revert_reason: Optional[str] = None,
                 already_exists: bool = False, tx_ref: Optional[str] = None,
                 reverted: bool = False):
        self.revert_reason = revert_reason
        self.already_exists = already_exists
        self.tx_ref = tx_ref
        self.reverted = reverted
        super().__init__(message)


class MintCancelledError(MintError):
    """The batch was cancelled before this job was submitted."""
    pass


class InvalidTransitionError(MintError):
    """A job was asked to move to a state that does not follow its current one."""
    pass


__all__ = [
    "MintError",
    "UploadError",
    "EstimationError",
    "SubmissionError",
    "MintCancelledError",
    "InvalidTransitionError"
]

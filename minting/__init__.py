"""
NFTMint - Minting Orchestrator

Batch minting: parallel content upload followed by paced, strictly
sequential ledger submission.
"""

from .exceptions import (
    MintError,
    UploadError,
    EstimationError,
    SubmissionError,
    MintCancelledError,
    InvalidTransitionError
)

from .jobs import (
    BatchReport,
    ErrorInfo,
    MintJob,
    MintRequest,
    MintState
)

from .pacing import PacingPolicy

from .allocation import (
    RecordIdAllocator,
    CounterRecordIdAllocator,
    UuidRecordIdAllocator,
    allocator_for_ledger
)

from .submitter import (
    SubmissionResult,
    SubmissionWorker,
    TransactionSubmitter,
    compute_budget
)

from .job_queue import MintJobQueue

__all__ = [
    "MintError",
    "UploadError",
    "EstimationError",
    "SubmissionError",
    "MintCancelledError",
    "InvalidTransitionError",
    "BatchReport",
    "ErrorInfo",
    "MintJob",
    "MintRequest",
    "MintState",
    "PacingPolicy",
    "RecordIdAllocator",
    "CounterRecordIdAllocator",
    "UuidRecordIdAllocator",
    "allocator_for_ledger",
    "SubmissionResult",
    "SubmissionWorker",
    "TransactionSubmitter",
    "compute_budget",
    "MintJobQueue"
]

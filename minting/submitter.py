"""
NFTMint - Transaction Submission

This module turns a prepared mint job into a confirmed ledger record: cost
estimation with a safety margin, signed submission and confirmation. All
submissions of a signing identity go through a single SubmissionWorker so
at most one is in flight at a time.
"""

import logging
import math
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Tuple

from network.ledger import (
    ContractCall,
    Ledger,
    LedgerCallError,
    LedgerError,
    Receipt,
    TransactionRevertedError,
    is_already_exists_reason
)
from network.wallet import WalletContext

from .allocation import RecordIdAllocator, allocator_for_ledger
from .exceptions import EstimationError, MintCancelledError, SubmissionError
from .jobs import MintJob, MintState
from .pacing import PacingPolicy


DEFAULT_GAS_MULTIPLIER = 1.2


def compute_budget(estimate: int, multiplier: float = DEFAULT_GAS_MULTIPLIER) -> int:
    """Apply the safety multiplier to a cost estimate, rounding up to an integer."""
    if estimate < 0:
        raise ValueError("Cost estimate cannot be negative")
    # Decimal keeps 1.2 exact so 100 * 1.2 is 120, not 120.00000000000001
    return int(math.ceil(Decimal(int(estimate)) * Decimal(str(multiplier))))


@dataclass
class SubmissionResult:
    """Outcome of one confirmed mint submission."""

    record_id: int
    tx_ref: str
    estimate: int
    budget: int
    receipt: Receipt

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": str(self.record_id),
            "tx_ref": self.tx_ref,
            "estimate": self.estimate,
            "budget": self.budget,
            "receipt": self.receipt.to_dict()
        }


class TransactionSubmitter:
    """
    Estimates, submits and confirms mint calls for one signing identity.

    Ledger failures are translated into the per-item minting errors:
    EstimationError before anything was sent, SubmissionError afterwards.
    """

    def __init__(self, ledger: Ledger, wallet: WalletContext,
                 gas_multiplier: float = DEFAULT_GAS_MULTIPLIER,
                 allocator: Optional[RecordIdAllocator] = None):
        if gas_multiplier < 1:
            raise ValueError("Gas multiplier must be at least 1")
        self.ledger = ledger
        self.wallet = wallet
        self.gas_multiplier = gas_multiplier
        self._allocator = allocator
        self._allocator_lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    @property
    def allocator(self) -> RecordIdAllocator:
        # Resolved lazily since a countable ledger is asked for its count
        with self._allocator_lock:
            if self._allocator is None:
                self._allocator = allocator_for_ledger(self.ledger)
            return self._allocator

    def allocate_record_id(self) -> int:
        return self.allocator.allocate()

    def release_record_id(self, record_id: Optional[int], error: BaseException,
                          submitted: bool = False) -> bool:
        """
        Return the identifier of a failed job to the allocator when no
        transaction using it can still land. Returns True if it was released.
        """
        if record_id is None or getattr(error, "already_exists", False):
            return False
        if submitted and not getattr(error, "reverted", False):
            return False
        self.allocator.release(record_id)
        return True

    def build_call(self, record_id: int, metadata_uri: str) -> ContractCall:
        return self.ledger.mint_call(self.wallet.address, record_id, metadata_uri)

    def estimate(self, call: ContractCall) -> int:
        """Estimate the cost of a mint call and return the padded budget."""
        return self._estimate(call)[1]

    def _estimate(self, call: ContractCall) -> Tuple[int, int]:
        """
        Estimate a mint call.

        Returns:
            Tuple of (raw estimate, padded budget)

        Raises:
            EstimationError: If the ledger rejects the estimate
        """
        try:
            estimate = self.ledger.estimate_cost(call)
        except LedgerCallError as e:
            raise EstimationError(f"Cost estimation for {call.describe()} reverted: {e}",
                                  revert_reason=e.reason)
        except LedgerError as e:
            raise EstimationError(f"Cost estimation for {call.describe()} failed: {e}",
                                  revert_reason=e.reason)

        budget = compute_budget(estimate, self.gas_multiplier)
        self.logger.debug(f"{call.describe()}: estimate {estimate}, budget {budget}")
        return estimate, budget

    def send(self, call: ContractCall, budget: int) -> str:
        """
        Submit a mint call with the given budget.

        Raises:
            SubmissionError: If the ledger rejects the submission
        """
        try:
            return self.ledger.submit(call, budget)
        except LedgerError as e:
            raise SubmissionError(
                f"Submission of {call.describe()} failed: {e}",
                revert_reason=e.reason,
                already_exists=is_already_exists_reason(e.reason, str(e))
            )

    def confirm(self, tx_ref: str) -> Receipt:
        """
        Wait for a submitted transaction to be confirmed.

        Raises:
            SubmissionError: If the transaction reverted or was never confirmed
        """
        try:
            return self.ledger.await_confirmation(tx_ref)
        except TransactionRevertedError as e:
            raise SubmissionError(
                str(e),
                revert_reason=e.reason,
                already_exists=is_already_exists_reason(e.reason),
                tx_ref=tx_ref,
                reverted=True
            )
        except LedgerError as e:
            raise SubmissionError(f"Confirmation of {tx_ref} failed: {e}",
                                  revert_reason=e.reason, tx_ref=tx_ref)

    def submit(self, record_id: int, metadata_content_id: str) -> SubmissionResult:
        """
        Estimate, submit and confirm the mint of one record.

        Args:
            record_id: Identifier of the record to create
            metadata_content_id: Content id of the published metadata document

        Returns:
            SubmissionResult of the confirmed transaction
        """
        call = self.build_call(record_id, f"ipfs://{metadata_content_id}")
        estimate, budget = self._estimate(call)
        tx_ref = self.send(call, budget)
        receipt = self.confirm(tx_ref)
        return SubmissionResult(record_id=record_id, tx_ref=tx_ref, estimate=estimate,
                                budget=budget, receipt=receipt)


@dataclass
class _WorkItem:
    job: MintJob
    future: Future
    cancel_event: Optional[threading.Event] = None
    on_confirmed: Optional[Callable[[MintJob], None]] = None


class SubmissionWorker:
    """
    Single background thread that drives mint jobs from METADATA_READY to a
    terminal state, one at a time, in the order they were enqueued.
    """

    def __init__(self, submitter: TransactionSubmitter, pacing: Optional[PacingPolicy] = None):
        self.submitter = submitter
        self.pacing = pacing or PacingPolicy()
        self.logger = logging.getLogger(__name__)

        self._queue: "queue.Queue[Optional[_WorkItem]]" = queue.Queue()
        self._running = False
        self._worker_thread: Optional[threading.Thread] = None
        self._state_lock = threading.Lock()

        self._stats = {
            "processed": 0,
            "confirmed": 0,
            "failed": 0,
            "cancelled": 0
        }

    def start(self):
        """Start background submission processing."""
        with self._state_lock:
            if self._running:
                return
            self._running = True
            self._worker_thread = threading.Thread(target=self._process_submissions,
                                                   name="nftmint-submitter", daemon=True)
            self._worker_thread.start()
        self.logger.info("Submission worker started")

    def stop(self, timeout: float = 5.0):
        """Stop after the jobs already queued have been processed."""
        with self._state_lock:
            if not self._running:
                return
            self._running = False
            thread = self._worker_thread
        self._queue.put(None)
        if thread:
            thread.join(timeout=timeout)
        self.logger.info("Submission worker stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def enqueue(self, job: MintJob, cancel_event: Optional[threading.Event] = None,
                on_confirmed: Optional[Callable[[MintJob], None]] = None) -> Future:
        """
        Queue a METADATA_READY job for submission.

        Args:
            job: Job to drive to a terminal state
            cancel_event: When set before the job starts, the job fails as cancelled
            on_confirmed: Called with the job right after it is confirmed

        Returns:
            Future resolving to the job once it is terminal
        """
        if job.state != MintState.METADATA_READY:
            raise ValueError(f"Job {job.request_index} is {job.state.value}, not ready for submission")

        self.start()
        future: Future = Future()
        self._queue.put(_WorkItem(job, future, cancel_event, on_confirmed))
        return future

    def _process_submissions(self):
        """Background thread for processing the submission queue."""
        self.logger.debug("Submission worker thread started")

        while True:
            item = self._queue.get()
            if item is None:
                break
            try:
                self._process(item)
            except Exception as e:
                self.logger.error(f"Error in submission worker for job {item.job.request_index}: {e}")
                if not item.job.is_terminal:
                    item.job.fail(e)
            finally:
                if not item.future.done():
                    item.future.set_result(item.job)
                self._queue.task_done()

        self.logger.debug("Submission worker thread stopped")

    def _process(self, item: _WorkItem):
        job = item.job
        self._stats["processed"] += 1

        if item.cancel_event is not None and item.cancel_event.is_set():
            job.fail(MintCancelledError(f"Job {job.request_index} cancelled before submission"))
            self._stats["cancelled"] += 1
            return

        self.pacing.wait()

        try:
            if job.record_id is None:
                job.record_id = self.submitter.allocate_record_id()

            call = self.submitter.build_call(job.record_id, job.metadata_uri)
            budget = self.submitter.estimate(call)
            job.advance(MintState.GAS_ESTIMATED)

            job.tx_ref = self.submitter.send(call, budget)
            self.pacing.mark()
            job.advance(MintState.SUBMITTED)

            self.submitter.confirm(job.tx_ref)
            job.advance(MintState.CONFIRMED)
        except Exception as e:
            self.logger.warning(f"Job {job.request_index} ({job.display_name}) failed "
                                f"in {job.state.value}: {e}")
            if self.submitter.release_record_id(job.record_id, e, submitted=job.tx_ref is not None):
                job.record_id = None
            job.fail(e)
            self._stats["failed"] += 1
            return

        self._stats["confirmed"] += 1
        self.logger.info(f"Job {job.request_index} ({job.display_name}) confirmed as "
                         f"record {job.record_id} in {job.tx_ref}")

        if item.on_confirmed is not None:
            try:
                item.on_confirmed(job)
            except Exception as e:
                self.logger.error(f"Post-confirmation hook failed for record {job.record_id}: {e}")
                job.warnings.append(f"Post-confirmation step failed: {e}")

    def get_statistics(self) -> Dict[str, Any]:
        stats = self._stats.copy()
        stats["queued"] = self._queue.qsize()
        stats["running"] = self._running
        return stats

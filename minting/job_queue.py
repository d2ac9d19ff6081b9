"""
NFTMint - Batch Minting Queue

This module orchestrates a minting batch: assets and metadata are uploaded
in parallel, then the prepared jobs are submitted to the ledger one at a
time through the shared submission worker.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence

from network.wallet import SigningIdentityUnavailable
from nft.ipfs import ContentPublisher
from nft.metadata import compose_metadata
from registry.mapping import MappingRecorder

from .exceptions import MintCancelledError
from .jobs import BatchReport, MintJob, MintRequest, MintState
from .pacing import PacingPolicy
from .submitter import SubmissionWorker, TransactionSubmitter


class MintJobQueue:
    """
    Runs minting batches for one signing identity.

    Per-item failures are recorded on the job and never abort the batch.
    Only a missing signing identity or a network mismatch is fatal, and both
    are detected before any upload or ledger call is made.
    """

    def __init__(self, publisher: ContentPublisher, submitter: TransactionSubmitter,
                 pacing: Optional[PacingPolicy] = None,
                 mapping: Optional[MappingRecorder] = None,
                 expected_chain_id: Optional[int] = None,
                 upload_workers: int = 4,
                 worker: Optional[SubmissionWorker] = None):
        """
        Initialize the queue.

        Args:
            publisher: Content publisher for assets and metadata
            submitter: Transaction submitter bound to the ledger and wallet
            pacing: Pacing policy between submissions (ignored if worker is given)
            mapping: Recorder for confirmed record id -> metadata content id pairs
            expected_chain_id: Chain the batch must run on
            upload_workers: Parallel upload threads
            worker: Shared submission worker; one is created if omitted
        """
        if upload_workers < 1:
            raise ValueError("upload_workers must be at least 1")

        self.publisher = publisher
        self.submitter = submitter
        self.mapping = mapping
        self.expected_chain_id = expected_chain_id
        self.upload_workers = upload_workers
        self.worker = worker or SubmissionWorker(submitter, pacing)
        self.logger = logging.getLogger(__name__)

        self._cancel_event = threading.Event()
        self._batch_lock = threading.Lock()

    def _check_identity(self):
        wallet = self.submitter.wallet
        if wallet is None or not wallet.address:
            raise SigningIdentityUnavailable("No signing identity available for minting")
        wallet.ensure_chain(self.expected_chain_id)

    def cancel(self):
        """Stop issuing further calls; jobs not yet submitted end as cancelled."""
        self.logger.warning("Batch cancellation requested")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def submit_batch(self, requests: Sequence[MintRequest]) -> BatchReport:
        """
        Mint a batch of requests.

        Args:
            requests: Mint requests, in the order records should be created

        Returns:
            BatchReport with one terminal job per request, in input order

        Raises:
            SigningIdentityUnavailable: If no signing identity is available
            NetworkMismatchError: If the wallet is on a different chain
        """
        with self._batch_lock:
            self._check_identity()
            self._cancel_event.clear()

            jobs = [MintJob(request_index=i, display_name=r.display_name)
                    for i, r in enumerate(requests)]
            report = BatchReport(jobs)
            if not jobs:
                report.mark_completed()
                return report

            self.logger.info(f"Starting batch of {len(jobs)} mint requests "
                             f"as {self.submitter.wallet.short_address()}")

            self._upload_all(jobs, requests)
            self._submit_all(jobs)

            report.mark_completed()
            self.logger.info(f"Batch finished: {len(report.succeeded)} confirmed, "
                             f"{len(report.failed)} failed")
            return report

    def _upload_all(self, jobs: List[MintJob], requests: Sequence[MintRequest]):
        """Upload every asset and metadata document; returns once all are done."""
        with ThreadPoolExecutor(max_workers=self.upload_workers,
                                thread_name_prefix="nftmint-upload") as executor:
            futures = [executor.submit(self._prepare, job, request)
                       for job, request in zip(jobs, requests)]
            for future in as_completed(futures):
                future.result()

        ready = sum(1 for job in jobs if job.state == MintState.METADATA_READY)
        self.logger.info(f"Uploads complete: {ready}/{len(jobs)} jobs ready for submission")

    def _prepare(self, job: MintJob, request: MintRequest):
        if self.cancelled:
            job.fail(MintCancelledError(f"Job {job.request_index} cancelled before upload"))
            return

        job.advance(MintState.UPLOADING)
        try:
            asset = self.publisher.publish_asset(request.asset, name=request.filename or request.display_name)
            job.asset_content_id = asset.content_id

            record = compose_metadata(request.display_name, request.description, asset.content_id)
            document = self.publisher.publish_metadata(record, name=f"{request.display_name}.json")
            job.metadata_content_id = document.content_id
        except Exception as e:
            self.logger.error(f"Upload failed for job {job.request_index} ({job.display_name}): {e}")
            job.fail(e)
            return

        job.advance(MintState.METADATA_READY)
        self.logger.debug(f"Job {job.request_index} metadata ready at {job.metadata_uri}")

    def _submit_all(self, jobs: List[MintJob]):
        """Submit ready jobs in input order and wait for each to finish."""
        futures = []
        for job in jobs:
            if job.state != MintState.METADATA_READY:
                continue
            futures.append(self.worker.enqueue(job, cancel_event=self._cancel_event,
                                               on_confirmed=self._record_mapping))
        for future in futures:
            future.result()

    def _record_mapping(self, job: MintJob):
        if self.mapping is not None:
            self.mapping.record(job.record_id, job.metadata_content_id, tx_ref=job.tx_ref)

    def close(self):
        """Stop the submission worker."""
        self.worker.stop()

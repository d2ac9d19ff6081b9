"""
Unit tests for the batch minting queue.
"""

import json

import pytest

from minting.exceptions import MintCancelledError
from minting.job_queue import MintJobQueue
from minting.jobs import MintRequest, MintState
from minting.submitter import TransactionSubmitter
from network.wallet import NetworkMismatchError, SigningIdentityUnavailable, WalletContext
from registry.mapping import InMemoryMappingRecorder, JSONMappingStore

from tests.conftest import CHAIN_ID, WALLET_ADDRESS


def make_requests(*names):
    return [
        MintRequest(asset=f"asset-{name}".encode(), display_name=name,
                    description=f"Description for {name}", filename=f"{name.lower()}.png")
        for name in names
    ]


@pytest.fixture
def mapping():
    return InMemoryMappingRecorder()


@pytest.fixture
def make_queue(publisher, countable_ledger, pacing, mapping):
    created = []

    def build(wallet, **kwargs):
        kwargs.setdefault("mapping", mapping)
        kwargs.setdefault("expected_chain_id", CHAIN_ID)
        queue = MintJobQueue(publisher, TransactionSubmitter(countable_ledger, wallet),
                             pacing=pacing, **kwargs)
        created.append(queue)
        return queue

    yield build
    for queue in created:
        queue.close()


class TestSubmitBatch:
    """End-to-end batches over in-memory collaborators."""

    def test_failed_estimate_does_not_abort_batch(self, make_queue, wallet, countable_ledger, mapping):
        """Test the middle item fails estimation and the others still confirm."""
        countable_ledger.fail_estimate_calls = {2: "ERC721: mint paused"}
        queue = make_queue(wallet)

        report = queue.submit_batch(make_requests("A", "B", "C"))

        assert report.states() == [MintState.CONFIRMED, MintState.FAILED, MintState.CONFIRMED]
        assert report[1].error.kind == "EstimationError"
        assert report[1].error.revert_reason == "ERC721: mint paused"
        assert report[1].record_id is None

        assert [job.record_id for job in report.succeeded] == [1, 2]
        assert len(countable_ledger.submissions) == 2
        times = [s["at"] for s in countable_ledger.submissions]
        assert times[1] - times[0] >= 1.0

        entries = mapping.entries()
        assert [(e.record_id, e.content_id) for e in entries] == [
            (1, report[0].metadata_content_id),
            (2, report[2].metadata_content_id)
        ]

    def test_submissions_follow_input_order(self, make_queue, wallet, countable_ledger):
        queue = make_queue(wallet, upload_workers=4)

        report = queue.submit_batch(make_requests("A", "B", "C", "D", "E"))

        assert report.all_succeeded
        uris = [s["call"].args[2] for s in countable_ledger.submissions]
        assert uris == [job.metadata_uri for job in report]
        assert [job.record_id for job in report] == [1, 2, 3, 4, 5]
        assert countable_ledger.max_in_flight == 1

    def test_metadata_document_points_at_asset(self, make_queue, wallet, storage):
        report = make_queue(wallet).submit_batch(make_requests("Dawn"))

        job = report[0]
        document = json.loads(storage.blobs[job.metadata_content_id])
        assert document == {
            "name": "Dawn",
            "description": "Description for Dawn",
            "image": f"ipfs://{job.asset_content_id}"
        }
        assert sorted(storage.published) == ["Dawn.json", "dawn.png"]

    def test_upload_failure_is_per_item(self, make_queue, wallet, storage, countable_ledger):
        storage.fail_names = {"b.png"}

        report = make_queue(wallet).submit_batch(make_requests("A", "B", "C"))

        assert report.states() == [MintState.CONFIRMED, MintState.FAILED, MintState.CONFIRMED]
        assert report[1].error.kind == "UploadError"
        assert report[1].error.failed_in == "uploading"
        assert len(countable_ledger.submissions) == 2

    def test_submission_revert_is_per_item(self, make_queue, wallet, countable_ledger, mapping):
        countable_ledger.revert_ids = {1: "ERC721: token already minted"}

        report = make_queue(wallet).submit_batch(make_requests("A", "B"))

        assert report[0].state == MintState.FAILED
        assert report[0].error.kind == "SubmissionError"
        assert report[0].tx_ref is not None
        assert report[1].state == MintState.CONFIRMED
        assert len(mapping) == 1

    def test_empty_batch(self, make_queue, wallet, storage, countable_ledger):
        report = make_queue(wallet).submit_batch([])

        assert len(report) == 0
        assert report.completed_at is not None
        assert storage.published == []
        assert countable_ledger.estimates == []

    def test_mapping_failure_becomes_warning(self, make_queue, wallet):
        class BrokenMapping(InMemoryMappingRecorder):
            def record(self, record_id, content_id, tx_ref=None):
                raise OSError("read-only file system")

        report = make_queue(wallet, mapping=BrokenMapping()).submit_batch(make_requests("A"))

        assert report[0].state == MintState.CONFIRMED
        assert "read-only file system" in report[0].warnings[0]

    def test_mapping_persisted_to_file(self, make_queue, wallet, tmp_path):
        path = tmp_path / "mappings.json"

        report = make_queue(wallet, mapping=JSONMappingStore(path)).submit_batch(make_requests("A", "B"))

        reloaded = JSONMappingStore(path).entries()
        assert [e.record_id for e in reloaded] == [1, 2]
        assert reloaded[1].content_id == report[1].metadata_content_id
        assert reloaded[1].tx_ref == report[1].tx_ref


class TestFatalConditions:
    """Identity problems abort before any upload or ledger call."""

    def test_missing_identity(self, make_queue, storage, countable_ledger):
        queue = make_queue(WalletContext(address="", chain_id=CHAIN_ID))

        with pytest.raises(SigningIdentityUnavailable):
            queue.submit_batch(make_requests("A"))

        assert storage.published == []
        assert countable_ledger.estimates == []

    def test_no_wallet(self, make_queue, storage):
        with pytest.raises(SigningIdentityUnavailable):
            make_queue(None).submit_batch(make_requests("A"))
        assert storage.published == []

    def test_network_mismatch(self, make_queue, storage, countable_ledger):
        queue = make_queue(WalletContext(address=WALLET_ADDRESS, chain_id=1))

        with pytest.raises(NetworkMismatchError) as exc_info:
            queue.submit_batch(make_requests("A"))

        assert exc_info.value.expected == CHAIN_ID
        assert exc_info.value.actual == 1
        assert storage.published == []
        assert countable_ledger.submissions == []

    def test_invalid_upload_workers(self, publisher, countable_ledger, wallet):
        with pytest.raises(ValueError):
            MintJobQueue(publisher, TransactionSubmitter(countable_ledger, wallet), upload_workers=0)


class TestCancellation:

    def test_cancel_during_uploads(self, make_queue, wallet, storage, countable_ledger):
        """Test jobs not yet submitted end as cancelled and nothing is sent."""
        queue = make_queue(wallet, upload_workers=1)
        storage.on_publish = lambda name: queue.cancel()

        report = queue.submit_batch(make_requests("A", "B", "C"))

        assert report.states() == [MintState.FAILED] * 3
        assert all(job.error.kind == MintCancelledError.__name__ for job in report)
        assert countable_ledger.submissions == []
        assert queue.cancelled

    def test_next_batch_clears_cancellation(self, make_queue, wallet):
        queue = make_queue(wallet)
        queue.cancel()

        report = queue.submit_batch(make_requests("A"))

        assert report.all_succeeded

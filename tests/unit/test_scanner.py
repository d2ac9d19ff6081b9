"""
Unit tests for gallery reconstruction.
"""

import pytest

from gallery.history import HistoryFetcher
from gallery.scanner import GalleryScanner
from network.history import HistoryError

from tests.conftest import CONTRACT_ADDRESS, FakeCountableLedger, FakeExplorer, FakeProbeLedger, transfer


OWNER = "0x" + "11" * 20
ZERO = "0x" + "00" * 20


def populate(ledger, storage, record_ids):
    for record_id in record_ids:
        ledger.records[record_id] = (OWNER, storage.put_metadata(f"Token {record_id}"))


class TestProbeScan:
    """Test the bounded probe over ledgers without a record count."""

    def test_stops_after_consecutive_misses(self, probe_ledger, storage, publisher):
        populate(probe_ledger, storage, [1, 2, 5])

        with GalleryScanner(probe_ledger, publisher, max_consecutive_failures=3) as scanner:
            records = scanner.scan()

        assert [r.record_id for r in records] == [1, 2, 5]
        assert [r.name for r in records] == ["Token 1", "Token 2", "Token 5"]
        assert scanner.state.total_attempts == 8
        assert scanner.state.strategy == "probe"
        assert scanner.state.found == 3

    def test_gap_beyond_threshold_is_not_reached(self, probe_ledger, storage, publisher):
        populate(probe_ledger, storage, [1, 2, 6])

        with GalleryScanner(probe_ledger, publisher, max_consecutive_failures=3) as scanner:
            records = scanner.scan()

        assert [r.record_id for r in records] == [1, 2]
        assert scanner.state.total_attempts == 5

    def test_default_threshold(self, probe_ledger, storage, publisher):
        populate(probe_ledger, storage, [1, 2, 5])

        with GalleryScanner(probe_ledger, publisher) as scanner:
            records = scanner.scan()

        assert len(records) == 3
        assert scanner.state.total_attempts == 105

    def test_attempt_budget(self, probe_ledger, storage, publisher):
        populate(probe_ledger, storage, range(1, 51))

        with GalleryScanner(probe_ledger, publisher, max_attempts=10) as scanner:
            records = scanner.scan()

        assert len(records) == 10
        assert scanner.state.total_attempts == 10

    def test_read_errors_count_as_misses(self, probe_ledger, storage, publisher):
        populate(probe_ledger, storage, [1, 2, 3, 4])
        probe_ledger.read_error_ids = {3}

        with GalleryScanner(probe_ledger, publisher, max_consecutive_failures=3) as scanner:
            records = scanner.scan()

        assert [r.record_id for r in records] == [1, 2, 4]
        assert scanner.state.total_attempts == 7

    def test_start_id(self, probe_ledger, storage, publisher):
        populate(probe_ledger, storage, [1, 10, 11])

        with GalleryScanner(probe_ledger, publisher, max_consecutive_failures=2, start_id=10) as scanner:
            records = scanner.scan()

        assert [r.record_id for r in records] == [10, 11]

    def test_cancel(self, probe_ledger, storage, publisher):
        populate(probe_ledger, storage, range(1, 10))
        scanner = GalleryScanner(probe_ledger, publisher)
        original_query = probe_ledger.query

        def query(call):
            if call.args and call.args[0] == 2:
                scanner.cancel()
            return original_query(call)
        probe_ledger.query = query

        with scanner:
            records = scanner.scan()

        assert [r.record_id for r in records] == [1, 2]

    def test_invalid_bounds(self, probe_ledger, publisher):
        with pytest.raises(ValueError):
            GalleryScanner(probe_ledger, publisher, max_attempts=0)
        with pytest.raises(ValueError):
            GalleryScanner(probe_ledger, publisher, max_consecutive_failures=0)


class TestCountableScan:
    """Test the 1..count enumeration."""

    def test_enumerates_all_records(self, countable_ledger, storage, publisher):
        populate(countable_ledger, storage, range(1, 6))

        with GalleryScanner(countable_ledger, publisher, fetch_workers=3) as scanner:
            records = scanner.scan()

        assert [r.record_id for r in records] == [1, 2, 3, 4, 5]
        assert all(r.owner == OWNER for r in records)
        assert scanner.state.strategy == "enumerate"
        assert scanner.state.total_attempts == 5

    def test_does_not_probe_past_count(self, countable_ledger, storage, publisher):
        populate(countable_ledger, storage, range(1, 4))

        with GalleryScanner(countable_ledger, publisher) as scanner:
            scanner.scan()

        probed = {call.args[0] for call in countable_ledger.queries if call.args}
        assert probed == {1, 2, 3}

    def test_missing_ids_are_skipped(self, countable_ledger, storage, publisher):
        populate(countable_ledger, storage, [1, 2, 4])

        with GalleryScanner(countable_ledger, publisher) as scanner:
            records = scanner.scan()

        assert [r.record_id for r in records] == [1, 2]

    def test_read_errors_are_skipped(self, countable_ledger, storage, publisher):
        populate(countable_ledger, storage, range(1, 4))
        countable_ledger.read_error_ids = {2}

        with GalleryScanner(countable_ledger, publisher) as scanner:
            records = scanner.scan()

        assert [r.record_id for r in records] == [1, 3]

    def test_empty_contract(self, countable_ledger, publisher):
        with GalleryScanner(countable_ledger, publisher) as scanner:
            assert scanner.scan() == []


class TestFetchSingle:
    """Test per-record enrichment and degradation."""

    def test_not_found(self, probe_ledger, publisher):
        with GalleryScanner(probe_ledger, publisher) as scanner:
            assert scanner.fetch_single(42) is None

    def test_with_history(self, probe_ledger, storage, publisher):
        populate(probe_ledger, storage, [1])
        explorer = FakeExplorer([
            transfer(1, OWNER, "0x" + "22" * 20, 200, "0xb"),
            transfer(1, ZERO, OWNER, 100, "0xa")
        ])
        history = HistoryFetcher(explorer, CONTRACT_ADDRESS)

        with GalleryScanner(probe_ledger, publisher, history=history) as scanner:
            record = scanner.fetch_single(1)

        assert [e.tx_ref for e in record.history] == ["0xa", "0xb"]
        data = record.to_dict()
        assert data["record_id"] == "1"
        assert data["metadata"]["name"] == "Token 1"
        assert len(data["history"]) == 2

    def test_history_failure_degrades(self, probe_ledger, storage, publisher):
        populate(probe_ledger, storage, [1])
        history = HistoryFetcher(FakeExplorer(error=HistoryError("down")), CONTRACT_ADDRESS)

        with GalleryScanner(probe_ledger, publisher, history=history) as scanner:
            record = scanner.fetch_single(1)

        assert record.name == "Token 1"
        assert record.history == []

    def test_unresolvable_metadata_degrades(self, probe_ledger, publisher):
        probe_ledger.records[1] = (OWNER, "ipfs://QmMissing")

        with GalleryScanner(probe_ledger, publisher) as scanner:
            record = scanner.fetch_single(1)

        assert record.owner == OWNER
        assert record.content_ref == "ipfs://QmMissing"
        assert record.metadata is None
        assert record.name is None

    def test_invalid_metadata_degrades(self, probe_ledger, storage, publisher):
        cid = storage.publish_bytes(b'{"description": "no name"}').content_id
        probe_ledger.records[1] = (OWNER, f"ipfs://{cid}")

        with GalleryScanner(probe_ledger, publisher) as scanner:
            record = scanner.fetch_single(1)

        assert record.metadata is None

    def test_empty_content_ref(self, probe_ledger, publisher):
        probe_ledger.records[1] = (OWNER, "")

        with GalleryScanner(probe_ledger, publisher) as scanner:
            record = scanner.fetch_single(1)

        assert record.content_ref is None
        assert record.metadata is None

    def test_history_listing_refreshed_per_scan(self, probe_ledger, storage, publisher):
        populate(probe_ledger, storage, [1, 2])
        explorer = FakeExplorer([transfer(1, ZERO, OWNER, 100)])
        history = HistoryFetcher(explorer, CONTRACT_ADDRESS)

        with GalleryScanner(probe_ledger, publisher, history=history,
                            max_consecutive_failures=1) as scanner:
            scanner.scan()
            scanner.scan()

        assert explorer.calls == 2


def test_scanner_accepts_both_ledger_variants(storage, publisher):
    for ledger in (FakeCountableLedger(), FakeProbeLedger()):
        populate(ledger, storage, [1])
        with GalleryScanner(ledger, publisher, max_consecutive_failures=1) as scanner:
            assert [r.record_id for r in scanner.scan()] == [1]

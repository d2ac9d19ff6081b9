"""
Pytest configuration and fixtures for NFTMint tests.

Collaborators (ledger, content storage, explorer) are replaced by in-memory
fakes so the suite runs without network access.
"""

import hashlib
import json
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from minting.pacing import PacingPolicy
from network.history import TransferRecord
from network.ledger import (
    ContractCall,
    CountableLedger,
    LedgerCallError,
    LedgerReadError,
    ProbeOnlyLedger,
    Receipt,
    RecordNotFound,
    TransactionRevertedError
)
from network.wallet import WalletContext
from nft.content import ContentStorage, PublishedAsset, StorageType, canonical_json
from nft.exceptions import ContentResolutionError, UploadError
from nft.ipfs import ContentPublisher


WALLET_ADDRESS = "0x" + "ab" * 20
CONTRACT_ADDRESS = "0x" + "cd" * 20
CHAIN_ID = 11155111


class FakeClock:
    """Simulated monotonic clock; sleep() advances time instantly."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeStorage(ContentStorage):
    """In-memory content-addressed storage."""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.published: List[Optional[str]] = []
        self.fail_names = set()
        self.on_publish = None
        self._lock = threading.Lock()

    def _store(self, data: bytes, name: Optional[str]) -> PublishedAsset:
        if name in self.fail_names:
            raise UploadError(f"Storage rejected {name}", status_code=500)
        cid = "Qm" + hashlib.sha256(data).hexdigest()[:44]
        with self._lock:
            self.blobs[cid] = data
            self.published.append(name)
        if self.on_publish is not None:
            self.on_publish(name)
        return PublishedAsset(content_id=cid, size=len(data))

    def publish_bytes(self, data: bytes, name: Optional[str] = None) -> PublishedAsset:
        return self._store(data, name)

    def publish_json(self, document: Dict[str, Any], name: Optional[str] = None) -> PublishedAsset:
        return self._store(canonical_json(document), name)

    def resolve(self, content_id: str) -> bytes:
        if content_id not in self.blobs:
            raise ContentResolutionError(f"Unknown content {content_id}")
        return self.blobs[content_id]

    def get_storage_type(self) -> StorageType:
        return StorageType.LOCAL

    def put_metadata(self, name: str, description: str = "", image: str = "ipfs://QmImage") -> str:
        """Store a metadata document directly and return its ipfs:// URI."""
        cid = self.publish_json({"name": name, "description": description, "image": image}).content_id
        return f"ipfs://{cid}"


class FakeLedgerBase:
    """
    In-memory record contract.

    records maps record id -> (owner, content ref). Failures are injected by
    call number (fail_estimate_calls, fail_submit_calls) or by record id
    (revert_ids, read_error_ids).
    """

    def __init__(self, records: Optional[Dict[int, tuple]] = None, clock: Optional[FakeClock] = None):
        self.records: Dict[int, tuple] = dict(records or {})
        self.clock = clock
        self.gas = 100_000
        self.fail_estimate_calls: Dict[int, str] = {}
        self.fail_submit_calls: Dict[int, str] = {}
        self.revert_ids: Dict[int, str] = {}
        self.read_error_ids = set()

        self.estimates: List[ContractCall] = []
        self.submissions: List[Dict[str, Any]] = []
        self.queries: List[ContractCall] = []
        self._pending: Dict[str, ContractCall] = {}
        self._in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    @property
    def contract_address(self) -> str:
        return CONTRACT_ADDRESS

    def estimate_cost(self, call: ContractCall) -> int:
        self.estimates.append(call)
        reason = self.fail_estimate_calls.get(len(self.estimates))
        if reason:
            raise LedgerCallError(f"execution reverted: {reason}", reason=reason)
        record_id = call.args[1]
        if record_id in self.records:
            raise LedgerCallError("execution reverted: ERC721: token already minted",
                                  reason="ERC721: token already minted")
        return self.gas

    def submit(self, call: ContractCall, budget: int) -> str:
        with self._lock:
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
        self.submissions.append({
            "call": call,
            "budget": budget,
            "at": self.clock.time() if self.clock else None
        })
        reason = self.fail_submit_calls.get(len(self.submissions))
        if reason:
            with self._lock:
                self._in_flight -= 1
            raise LedgerCallError(f"rejected: {reason}", reason=reason)
        tx_ref = "0x%064x" % len(self.submissions)
        self._pending[tx_ref] = call
        return tx_ref

    def await_confirmation(self, tx_ref: str) -> Receipt:
        call = self._pending.pop(tx_ref)
        with self._lock:
            self._in_flight -= 1
        recipient, record_id, uri = call.args
        if record_id in self.revert_ids:
            raise TransactionRevertedError(tx_ref, self.revert_ids[record_id])
        self.records[record_id] = (recipient, uri)
        return Receipt(tx_ref=tx_ref, status=True, block_number=len(self.submissions), gas_used=self.gas)

    def query(self, call: ContractCall) -> Any:
        self.queries.append(call)
        if call.function == "totalSupply":
            return len(self.records)

        record_id = call.args[0]
        if record_id in self.read_error_ids:
            raise LedgerReadError(f"{call.describe()} failed: connection reset")
        if record_id not in self.records:
            raise RecordNotFound(record_id, reason="ERC721NonexistentToken")

        owner, uri = self.records[record_id]
        if call.function == "ownerOf":
            return owner
        if call.function == "tokenURI":
            return uri
        raise LedgerCallError(f"Unknown function {call.function}")


class FakeCountableLedger(FakeLedgerBase, CountableLedger):
    def count(self) -> int:
        return self.query(ContractCall("totalSupply"))


class FakeProbeLedger(FakeLedgerBase, ProbeOnlyLedger):
    pass


class FakeExplorer:
    """Stands in for EtherscanClient.list_transfers."""

    def __init__(self, transfers: Optional[List[TransferRecord]] = None, error: Optional[Exception] = None):
        self.transfers = list(transfers or [])
        self.error = error
        self.calls = 0

    def list_transfers(self, contract_address: str) -> List[TransferRecord]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.transfers)


def transfer(record_id: int, sender: str, recipient: str, ts: int, tx: str = None) -> TransferRecord:
    return TransferRecord(
        sender=sender,
        recipient=recipient,
        record_id=record_id,
        timestamp=datetime.fromtimestamp(ts, tz=timezone.utc),
        tx_ref=tx
    )


@pytest.fixture
def clock():
    return FakeClock(start=1000.0)


@pytest.fixture
def pacing(clock):
    return PacingPolicy(min_interval=1.0, clock=clock.time, sleep=clock.sleep)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def publisher(storage):
    return ContentPublisher(storage)


@pytest.fixture
def wallet():
    return WalletContext(address=WALLET_ADDRESS, chain_id=CHAIN_ID)


@pytest.fixture
def countable_ledger(clock):
    return FakeCountableLedger(clock=clock)


@pytest.fixture
def probe_ledger(clock):
    return FakeProbeLedger(clock=clock)


@pytest.fixture
def metadata_json():
    def build(name: str, description: str = "", image: str = "ipfs://QmImage") -> bytes:
        return json.dumps({"name": name, "description": description, "image": image}).encode()
    return build

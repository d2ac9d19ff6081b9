"""
NFTMint - Ledger Collaborator Interface

This module defines the contract-facing ledger interface used by the minting
orchestrator and the gallery scanner. Two explicit variants exist: ledgers
that can report how many records they hold and ledgers that can only be
probed identifier by identifier.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


# Revert reasons and error selectors that mean "no such record"
NOT_FOUND_MARKERS = (
    "nonexistent token",
    "does not exist",
    "invalid token id",
    "erc721nonexistenttoken",
    "0x7e273289",  # ERC721NonexistentToken(uint256)
)

ALREADY_EXISTS_MARKERS = (
    "already minted",
    "already exists",
    "token already",
    "erc721invalidsender",
    "0x73c6ac6e",  # ERC721InvalidSender(address)
)


class LedgerError(Exception):
    """Base exception for ledger collaborator errors."""

    def __init__(self, message: str, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(message)


class LedgerCallError(LedgerError):
    """A contract call was rejected by the ledger (revert or custom error)."""
    pass


class TransactionRevertedError(LedgerError):
    """A submitted transaction was mined but reverted."""

    def __init__(self, tx_ref: str, reason: Optional[str] = None):
        self.tx_ref = tx_ref
        detail = f": {reason}" if reason else ""
        super().__init__(f"Transaction {tx_ref} reverted{detail}", reason=reason)


class RecordNotFound(LedgerError):
    """The ledger reports that a record identifier does not exist."""

    def __init__(self, record_id: int, reason: Optional[str] = None):
        self.record_id = record_id
        super().__init__(f"Record {record_id} does not exist", reason=reason)


class LedgerReadError(LedgerError):
    """A read query failed for a reason other than a missing record."""
    pass


def _matches(text: Optional[str], markers: Tuple[str, ...]) -> bool:
    if not text:
        return False
    lowered = str(text).lower()
    return any(marker in lowered for marker in markers)


def is_not_found_reason(*texts: Optional[str]) -> bool:
    """Check whether any of the given revert reasons/data signal a missing record."""
    return any(_matches(text, NOT_FOUND_MARKERS) for text in texts)


def is_already_exists_reason(*texts: Optional[str]) -> bool:
    """Check whether any of the given revert reasons/data signal a duplicate record."""
    return any(_matches(text, ALREADY_EXISTS_MARKERS) for text in texts)


@dataclass(frozen=True)
class ContractCall:
    """A contract function invocation."""

    function: str
    args: Tuple[Any, ...] = ()
    sender: Optional[str] = None

    def describe(self) -> str:
        rendered = ", ".join(str(a) for a in self.args)
        return f"{self.function}({rendered})"


@dataclass
class Receipt:
    """Confirmation receipt of a submitted transaction."""

    tx_ref: str
    status: bool
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "tx_ref": self.tx_ref,
            "status": self.status,
            "block_number": self.block_number,
            "gas_used": self.gas_used
        }


class Ledger(ABC):
    """
    Ledger collaborator bound to one record contract.

    Implementations translate transport and contract errors into the
    LedgerError hierarchy. Reads of a missing identifier raise RecordNotFound.
    """

    mint_function: str = "mint"
    owner_function: str = "ownerOf"
    content_ref_function: str = "tokenURI"

    @property
    @abstractmethod
    def contract_address(self) -> str:
        """Address of the record contract."""
        pass

    @abstractmethod
    def estimate_cost(self, call: ContractCall) -> int:
        """Estimate the execution cost of a state-changing call."""
        pass

    @abstractmethod
    def submit(self, call: ContractCall, budget: int) -> str:
        """Submit a state-changing call with an execution budget; return the tx reference."""
        pass

    @abstractmethod
    def await_confirmation(self, tx_ref: str) -> Receipt:
        """Block until the transaction is confirmed; raise TransactionRevertedError on revert."""
        pass

    @abstractmethod
    def query(self, call: ContractCall) -> Any:
        """Execute a read-only call."""
        pass

    def mint_call(self, recipient: str, record_id: int, content_ref: str) -> ContractCall:
        """Build the call that mints one record."""
        return ContractCall(self.mint_function, (recipient, record_id, content_ref), sender=recipient)

    def owner_of(self, record_id: int) -> str:
        """
        Get the owner of a record.

        Raises:
            RecordNotFound: If the record does not exist
            LedgerReadError: On any other failure
        """
        owner = self.query(ContractCall(self.owner_function, (record_id,)))
        if not owner:
            raise RecordNotFound(record_id)
        return owner

    def content_ref(self, record_id: int) -> Optional[str]:
        """Get the content reference stored for a record, None when unset."""
        ref = self.query(ContractCall(self.content_ref_function, (record_id,)))
        return ref or None


class CountableLedger(Ledger):
    """Ledger that can report the number of records it holds."""

    @abstractmethod
    def count(self) -> int:
        """Number of records; identifiers are assumed to run 1..count."""
        pass


class ProbeOnlyLedger(Ledger):
    """Ledger without an enumeration primitive; records must be probed."""
    pass

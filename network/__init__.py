"""
NFTMint - Network Collaborators

Ledger, signing identity and transfer history clients.
"""

from .ledger import (
    ContractCall,
    CountableLedger,
    Ledger,
    LedgerCallError,
    LedgerError,
    LedgerReadError,
    ProbeOnlyLedger,
    Receipt,
    RecordNotFound,
    TransactionRevertedError,
    is_already_exists_reason,
    is_not_found_reason
)
from .wallet import (
    NetworkMismatchError,
    SigningIdentityUnavailable,
    WalletContext,
    WalletError
)
from .history import EtherscanClient, HistoryConfig, HistoryError, TransferRecord

__all__ = [
    "ContractCall",
    "CountableLedger",
    "Ledger",
    "LedgerCallError",
    "LedgerError",
    "LedgerReadError",
    "ProbeOnlyLedger",
    "Receipt",
    "RecordNotFound",
    "TransactionRevertedError",
    "is_already_exists_reason",
    "is_not_found_reason",
    "NetworkMismatchError",
    "SigningIdentityUnavailable",
    "WalletContext",
    "WalletError",
    "EtherscanClient",
    "HistoryConfig",
    "HistoryError",
    "TransferRecord"
]

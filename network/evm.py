"""
NFTMint - EVM Ledger Client

This module binds the ledger interface to an ERC-721 style contract on an
EVM chain through web3.py, including capability selection between countable
and probe-only contracts.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

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
    is_not_found_reason
)
from .wallet import SigningIdentityUnavailable, WalletContext


COUNT_FUNCTION = "totalSupply"


def _fn(name, inputs, outputs, mutability="view"):
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs]
    }


# Minimal ABI of the mint(address,uint256,string) record contract
DEFAULT_ABI = [
    _fn("mint", [("to", "address"), ("tokenId", "uint256"), ("uri", "string")], [], "nonpayable"),
    _fn("ownerOf", [("tokenId", "uint256")], [("", "address")]),
    _fn("tokenURI", [("tokenId", "uint256")], [("", "string")]),
    _fn(COUNT_FUNCTION, [], [("", "uint256")]),
]


def load_abi(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Load a contract ABI from a JSON file.

    Accepts either a bare ABI list or a compiler artifact with an "abi" key.
    """
    with open(path, "r") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("abi")
    if not isinstance(data, list):
        raise ValueError(f"No ABI found in {path}")
    return data


def abi_has_function(abi: List[Dict[str, Any]], name: str, arity: Optional[int] = None) -> bool:
    """Check whether an ABI declares a function with the given name (and arity)."""
    for entry in abi:
        if entry.get("type", "function") != "function" or entry.get("name") != name:
            continue
        if arity is None or len(entry.get("inputs", [])) == arity:
            return True
    return False


def _error_text(error: ContractLogicError) -> Optional[str]:
    message = getattr(error, "message", None) or str(error)
    return message


def _error_data(error: ContractLogicError) -> Optional[str]:
    data = getattr(error, "data", None)
    if data is None:
        return None
    if isinstance(data, (bytes, bytearray)):
        return Web3.to_hex(data)
    return str(data)


class Web3Ledger(Ledger):
    """Ledger implementation backed by a web3.py contract binding."""

    def __init__(self, w3: Web3, contract_address: str, abi: List[Dict[str, Any]],
                 wallet: Optional[WalletContext] = None,
                 confirmation_timeout: float = 180.0,
                 poll_latency: float = 1.0):
        """
        Initialize ledger client.

        Args:
            w3: Connected Web3 instance
            contract_address: Address of the record contract
            abi: Contract ABI
            wallet: Signing identity, required only for submissions
            confirmation_timeout: Seconds to wait for a receipt
            poll_latency: Seconds between receipt polls
        """
        self.w3 = w3
        self.abi = abi
        self.wallet = wallet
        self.confirmation_timeout = confirmation_timeout
        self.poll_latency = poll_latency
        self.logger = logging.getLogger(__name__)

        self._address = Web3.to_checksum_address(contract_address)
        self.contract = w3.eth.contract(address=self._address, abi=abi)

        self._stats = {
            "estimates": 0,
            "submissions": 0,
            "confirmations": 0,
            "reverts": 0,
            "queries": 0,
            "query_errors": 0,
            "last_submission": None
        }
        self._stats_lock = threading.Lock()

    @property
    def contract_address(self) -> str:
        return self._address

    def _bump(self, key: str):
        with self._stats_lock:
            self._stats[key] += 1

    def _bind(self, call: ContractCall):
        try:
            function = self.contract.get_function_by_name(call.function)
        except ValueError as e:
            raise LedgerError(f"Contract has no function {call.function}: {e}")
        return function(*call.args)

    def _sender(self, call: ContractCall) -> str:
        if call.sender:
            return Web3.to_checksum_address(call.sender)
        if self.wallet is None:
            raise SigningIdentityUnavailable("No wallet attached to ledger client")
        return self.wallet.address

    def estimate_cost(self, call: ContractCall) -> int:
        """Estimate gas for a state-changing call."""
        bound = self._bind(call)
        try:
            gas = bound.estimate_gas({"from": self._sender(call)})
        except ContractLogicError as e:
            raise LedgerCallError(f"Estimate for {call.describe()} reverted: {_error_text(e)}",
                                  reason=_error_text(e) or _error_data(e))
        except SigningIdentityUnavailable:
            raise
        except Exception as e:
            raise LedgerError(f"Estimate for {call.describe()} failed: {e}")

        self._bump("estimates")
        self.logger.debug(f"Estimated gas for {call.describe()}: {gas}")
        return int(gas)

    def submit(self, call: ContractCall, budget: int) -> str:
        """Sign and send a state-changing call with the given gas limit."""
        if self.wallet is None:
            raise SigningIdentityUnavailable("Submissions require a wallet")

        sender = self._sender(call)
        bound = self._bind(call)
        try:
            nonce = self.w3.eth.get_transaction_count(sender, "pending")
            transaction = bound.build_transaction({
                "from": sender,
                "nonce": nonce,
                "gas": int(budget),
                "chainId": self.wallet.chain_id
            })
            raw = self.wallet.sign_transaction(transaction)
            tx_hash = self.w3.eth.send_raw_transaction(raw)
        except ContractLogicError as e:
            raise LedgerCallError(f"Submission of {call.describe()} rejected: {_error_text(e)}",
                                  reason=_error_text(e) or _error_data(e))
        except Exception as e:
            raise LedgerError(f"Submission of {call.describe()} failed: {e}")

        tx_ref = Web3.to_hex(tx_hash)
        with self._stats_lock:
            self._stats["submissions"] += 1
            self._stats["last_submission"] = datetime.now(timezone.utc)

        self.logger.info(f"Submitted {call.describe()} as {tx_ref} (gas limit {budget})")
        return tx_ref

    def await_confirmation(self, tx_ref: str) -> Receipt:
        """Wait for a transaction receipt."""
        try:
            raw = self.w3.eth.wait_for_transaction_receipt(
                tx_ref,
                timeout=self.confirmation_timeout,
                poll_latency=self.poll_latency
            )
        except TimeExhausted:
            raise LedgerError(f"Transaction {tx_ref} not confirmed within {self.confirmation_timeout}s")
        except Exception as e:
            raise LedgerError(f"Failed to fetch receipt for {tx_ref}: {e}")

        receipt = Receipt(
            tx_ref=tx_ref,
            status=raw.get("status") == 1,
            block_number=raw.get("blockNumber"),
            gas_used=raw.get("gasUsed"),
            raw=dict(raw)
        )

        if not receipt.status:
            self._bump("reverts")
            raise TransactionRevertedError(tx_ref, self._replay_revert_reason(tx_ref, receipt))

        self._bump("confirmations")
        self.logger.info(f"Transaction {tx_ref} confirmed in block {receipt.block_number}")
        return receipt

    def _replay_revert_reason(self, tx_ref: str, receipt: Receipt) -> Optional[str]:
        """Re-run a reverted transaction as a call to recover its revert reason."""
        try:
            tx = self.w3.eth.get_transaction(tx_ref)
            self.w3.eth.call({
                "from": tx["from"],
                "to": tx["to"],
                "data": tx["input"],
                "value": tx.get("value", 0)
            }, receipt.block_number)
        except ContractLogicError as e:
            return _error_text(e) or _error_data(e)
        except Exception as e:
            self.logger.debug(f"Could not replay {tx_ref} for revert reason: {e}")
        return None

    def query(self, call: ContractCall) -> Any:
        """Execute a read-only call."""
        bound = self._bind(call)
        self._bump("queries")
        try:
            return bound.call()
        except ContractLogicError as e:
            text, data = _error_text(e), _error_data(e)
            if call.args and is_not_found_reason(text, data):
                raise RecordNotFound(call.args[0], reason=text)
            self._bump("query_errors")
            raise LedgerReadError(f"{call.describe()} reverted: {text}", reason=text or data)
        except Exception as e:
            self._bump("query_errors")
            raise LedgerReadError(f"{call.describe()} failed: {e}")

    def get_stats(self) -> Dict[str, Any]:
        """Get client statistics."""
        with self._stats_lock:
            stats = self._stats.copy()
        if stats["last_submission"]:
            stats["last_submission"] = stats["last_submission"].isoformat()
        stats["contract_address"] = self._address
        stats["capability"] = "countable" if isinstance(self, CountableLedger) else "probe-only"
        return stats


class Web3CountableLedger(Web3Ledger, CountableLedger):
    """EVM contract exposing totalSupply()."""

    def count(self) -> int:
        value = self.query(ContractCall(COUNT_FUNCTION))
        return int(value)


class Web3ProbeOnlyLedger(Web3Ledger, ProbeOnlyLedger):
    """EVM contract without an enumeration primitive."""
    pass


def select_ledger(w3: Web3, contract_address: str, abi: List[Dict[str, Any]],
                  wallet: Optional[WalletContext] = None,
                  capability: Optional[str] = None, **kwargs) -> Web3Ledger:
    """
    Pick the ledger variant for a contract by inspecting its ABI once.

    Args:
        capability: "countable" or "probe" to override the ABI inspection

    Returns:
        Web3CountableLedger when the ABI declares totalSupply(), otherwise
        Web3ProbeOnlyLedger
    """
    if capability not in (None, "countable", "probe"):
        raise ValueError(f"Unknown ledger capability: {capability}")

    if capability is None:
        countable = abi_has_function(abi, COUNT_FUNCTION, arity=0)
    else:
        countable = capability == "countable"
    ledger_cls = Web3CountableLedger if countable else Web3ProbeOnlyLedger

    logging.getLogger(__name__).debug(f"Selected {ledger_cls.__name__} for {contract_address}")
    return ledger_cls(w3, contract_address, abi, wallet=wallet, **kwargs)


def create_web3(rpc_url: str, timeout: int = 30) -> Web3:
    """Create a Web3 instance for an HTTP JSON-RPC endpoint."""
    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))

"""
NFTMint - Signing Identity

This module holds the explicit signing context (address, chain id, key) that
is passed into the minting orchestrator instead of ambient wallet state.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from web3 import Web3


logger = logging.getLogger(__name__)


class WalletError(Exception):
    """Base exception for signing identity errors."""
    pass


class SigningIdentityUnavailable(WalletError):
    """No usable signing identity is configured."""
    pass


class NetworkMismatchError(WalletError):
    """The connected chain is not the one the batch was configured for."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Connected to chain {actual}, expected chain {expected}")


@dataclass
class WalletContext:
    """Signing identity used for every submission of a batch."""

    address: str
    chain_id: int
    account: Any = field(default=None, repr=False)

    def sign_transaction(self, transaction: Dict[str, Any]) -> bytes:
        """Sign a transaction dict and return the raw signed bytes."""
        if self.account is None:
            raise SigningIdentityUnavailable(f"No signing key loaded for {self.address}")
        signed = self.account.sign_transaction(transaction)
        return signed.raw_transaction

    def ensure_chain(self, expected_chain_id: Optional[int]) -> None:
        """Raise NetworkMismatchError unless the wallet is on the expected chain."""
        if expected_chain_id is not None and int(expected_chain_id) != int(self.chain_id):
            raise NetworkMismatchError(int(expected_chain_id), int(self.chain_id))

    def short_address(self) -> str:
        return f"{self.address[:6]}...{self.address[-4:]}"


def connect_wallet(w3: Web3, private_key: Optional[str],
                   expected_chain_id: Optional[int] = None) -> WalletContext:
    """
    Load the signing identity and verify the connected network.

    Args:
        w3: Connected Web3 instance
        private_key: Hex private key of the minting account
        expected_chain_id: Chain the batch must run on (None skips the check)

    Raises:
        SigningIdentityUnavailable: If no valid key is provided
        NetworkMismatchError: If the node reports a different chain
    """
    if not private_key:
        raise SigningIdentityUnavailable("No private key configured for the minting account")

    try:
        account = w3.eth.account.from_key(private_key)
    except (ValueError, TypeError) as e:
        raise SigningIdentityUnavailable(f"Invalid private key: {e}")

    chain_id = w3.eth.chain_id
    wallet = WalletContext(address=account.address, chain_id=chain_id, account=account)
    wallet.ensure_chain(expected_chain_id)

    logger.info(f"Wallet connected: {wallet.short_address()} on chain {chain_id}")
    return wallet

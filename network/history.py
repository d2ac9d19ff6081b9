"""
NFTMint - Ledger History Client

This module lists token transfer events of a contract through an
Etherscan-compatible explorer API.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


ETHERSCAN_SEPOLIA_API_URL = "https://api-sepolia.etherscan.io/api"


class HistoryError(Exception):
    """Exception for explorer API failures."""
    pass


@dataclass(frozen=True)
class TransferRecord:
    """One token transfer as reported by the explorer."""

    sender: str
    recipient: str
    record_id: int
    timestamp: datetime
    tx_ref: Optional[str] = None

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> 'TransferRecord':
        """Create from an explorer tokennfttx result row."""
        return cls(
            sender=item["from"],
            recipient=item["to"],
            record_id=int(item["tokenID"]),
            timestamp=datetime.fromtimestamp(int(item["timeStamp"]), tz=timezone.utc),
            tx_ref=item.get("hash")
        )


@dataclass
class HistoryConfig:
    """Explorer API configuration."""

    api_url: str = ETHERSCAN_SEPOLIA_API_URL
    api_key: Optional[str] = None
    timeout: int = 30
    max_retries: int = 3
    backoff_factor: float = 1.0


class EtherscanClient:
    """Client for the Etherscan account/tokennfttx endpoint."""

    def __init__(self, config: Optional[HistoryConfig] = None,
                 session: Optional[requests.Session] = None):
        self.config = config or HistoryConfig()
        self.logger = logging.getLogger(__name__)

        if session is None:
            session = requests.Session()
            retry_strategy = Retry(
                total=self.config.max_retries,
                backoff_factor=self.config.backoff_factor,
                status_forcelist=[429, 500, 502, 503, 504]
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def list_transfers(self, contract_address: str) -> List[TransferRecord]:
        """
        List every transfer event of a contract in ascending order.

        Args:
            contract_address: Address of the record contract

        Returns:
            Transfer records sorted as returned by the explorer (ascending)

        Raises:
            HistoryError: On transport failure or an API error response
        """
        params = {
            "module": "account",
            "action": "tokennfttx",
            "contractaddress": contract_address,
            "sort": "asc",
        }
        if self.config.api_key:
            params["apikey"] = self.config.api_key

        try:
            response = self.session.get(self.config.api_url, params=params, timeout=self.config.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise HistoryError(f"Explorer request failed: {e}")
        except ValueError as e:
            raise HistoryError(f"Invalid explorer response: {e}")

        status = str(data.get("status", ""))
        result = data.get("result")

        if status != "1":
            message = str(data.get("message", ""))
            # Explorer reports an empty history as status 0
            if (isinstance(result, list) and not result) or "no transactions found" in message.lower():
                return []
            raise HistoryError(f"Explorer error: {message or 'unknown'}: {result}")

        if not isinstance(result, list):
            raise HistoryError(f"Unexpected explorer result: {result!r}")

        transfers = []
        for item in result:
            try:
                transfers.append(TransferRecord.from_api(item))
            except (KeyError, ValueError, TypeError) as e:
                self.logger.warning(f"Skipping malformed transfer row {item!r}: {e}")

        self.logger.debug(f"Fetched {len(transfers)} transfers for {contract_address}")
        return transfers

    def close(self):
        self.session.close()

"""
NFTMint CLI Services

Builds the content, ledger, wallet and history collaborators from the
loaded configuration.
"""

import logging
from typing import Optional

from web3 import Web3

from gallery.history import HistoryFetcher
from gallery.scanner import GalleryScanner
from minting.job_queue import MintJobQueue
from minting.pacing import PacingPolicy
from minting.submitter import TransactionSubmitter
from network.evm import DEFAULT_ABI, Web3Ledger, create_web3, load_abi, select_ledger
from network.history import EtherscanClient, HistoryConfig
from network.wallet import WalletContext, connect_wallet
from nft.content import ContentStorage, LocalContentStorage
from nft.ipfs import ContentPublisher, IPFSGateway, PinataConfig, PinataStorage
from registry.mapping import JSONMappingStore

from .config import ConfigurationManager


logger = logging.getLogger(__name__)


def build_storage(config: ConfigurationManager, for_upload: bool = True) -> ContentStorage:
    """Create the content storage backend selected by storage.backend."""
    backend = config.get('storage.backend', 'pinata')

    if backend == 'local':
        config.require('storage.local_path')
        return LocalContentStorage(config.get('storage.local_path'))

    if for_upload:
        config.require('storage.pinata_jwt')
    pinata_config = PinataConfig(
        jwt=config.get('storage.pinata_jwt'),
        api_url=config.get('storage.pinata_api_url'),
        upload_timeout=config.get('storage.timeout', 120),
        max_retries=config.get('storage.max_retries', 3)
    )
    gateways = config.get('storage.gateways', [])
    if gateways:
        pinata_config.gateways = sorted(
            (IPFSGateway(g.get('name', g['url']), g['url'], priority=g.get('priority', i + 1))
             for i, g in enumerate(gateways)),
            key=lambda g: g.priority
        )
    return PinataStorage(pinata_config)


def build_publisher(config: ConfigurationManager, for_upload: bool = True) -> ContentPublisher:
    return ContentPublisher(build_storage(config, for_upload), timeout=config.get('ledger.request_timeout', 30))


def build_web3(config: ConfigurationManager) -> Web3:
    config.require('ledger.rpc_url')
    return create_web3(config.get('ledger.rpc_url'), timeout=config.get('ledger.request_timeout', 30))


def build_wallet(config: ConfigurationManager, w3: Web3) -> WalletContext:
    """Load the signing identity and check it is on the configured chain."""
    return connect_wallet(w3, config.get('wallet.private_key'),
                          expected_chain_id=config.get('ledger.chain_id'))


def build_ledger(config: ConfigurationManager, w3: Web3,
                 wallet: Optional[WalletContext] = None,
                 capability: Optional[str] = None) -> Web3Ledger:
    config.require('ledger.contract_address')
    abi_path = config.get('ledger.abi_path')
    abi = load_abi(abi_path) if abi_path else DEFAULT_ABI

    return select_ledger(
        w3,
        config.get('ledger.contract_address'),
        abi,
        wallet=wallet,
        capability=capability,
        confirmation_timeout=config.get('ledger.confirmation_timeout', 180)
    )


def build_history(config: ConfigurationManager, contract_address: str) -> HistoryFetcher:
    client = EtherscanClient(HistoryConfig(
        api_url=config.get('history.api_url'),
        api_key=config.get('history.api_key'),
        timeout=config.get('history.timeout', 30)
    ))
    return HistoryFetcher(client, contract_address)


def build_mint_queue(config: ConfigurationManager) -> MintJobQueue:
    """Wire a minting queue: wallet, ledger, submitter, pacing and mapping file."""
    w3 = build_web3(config)
    wallet = build_wallet(config, w3)
    ledger = build_ledger(config, w3, wallet=wallet)

    submitter = TransactionSubmitter(
        ledger,
        wallet,
        gas_multiplier=config.get('minting.gas_multiplier', 1.2)
    )
    mapping_file = config.get('minting.mapping_file')
    mapping = JSONMappingStore(mapping_file) if mapping_file else None

    logger.debug(f"Minting to {ledger.contract_address} on chain {wallet.chain_id}")
    return MintJobQueue(
        build_publisher(config),
        submitter,
        pacing=PacingPolicy(config.get('minting.pacing_interval', 1.0)),
        mapping=mapping,
        expected_chain_id=config.get('ledger.chain_id'),
        upload_workers=config.get('minting.upload_workers', 4)
    )


def build_scanner(config: ConfigurationManager, capability: Optional[str] = None,
                  with_history: bool = True,
                  max_attempts: Optional[int] = None,
                  max_consecutive_failures: Optional[int] = None) -> GalleryScanner:
    """Wire a gallery scanner; scanning needs no signing identity."""
    w3 = build_web3(config)
    ledger = build_ledger(config, w3, capability=capability)
    history = build_history(config, ledger.contract_address) if with_history else None

    return GalleryScanner(
        ledger,
        build_publisher(config, for_upload=False),
        history=history,
        max_attempts=max_attempts or config.get('gallery.max_attempts', 1000),
        max_consecutive_failures=(max_consecutive_failures
                                  or config.get('gallery.max_consecutive_failures', 100)),
        fetch_workers=config.get('gallery.fetch_workers', 4),
        start_id=config.get('gallery.start_id', 1)
    )

"""EVM toolkit facade: wires the components and returns uniform results."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import requests

from ..base import BridgeProvider, SwapAggregator
from ..config import load_config
from ..networks import list_supported_networks, resolve_network
from ..results import ToolResult, run_guarded
from .across import AcrossBridgeProvider
from .bridge import BridgeOrchestrator, ProgressFeed, ProgressObserver
from .config import EVMToolkitConfig
from .connections import ClientCache, Web3Factory, address_from_private_key
from .ens import AddressResolver
from .metadata import TokenMetadataCache
from .oneinch import OneInchAggregator
from .reads import ChainReader
from .swap import SwapOrchestrator
from .transactions import TransactionDispatcher
from .transfers import TransferService

logger = logging.getLogger(__name__)


class EVMToolkit:
    """Bridge, swap, transfer and read operations across the supported EVM networks.

    Every public operation returns a ``ToolResult``; ``result.to_dict()`` yields
    either ``{"ok": True, ...}`` or ``{"ok": False, "stage", "kind", "message"}``.
    Write operations sign with ``private_key`` when given, else with the key
    from configuration.
    """

    def __init__(
        self,
        config: EVMToolkitConfig | None = None,
        *,
        session: requests.Session | None = None,
        web3_factory: Web3Factory | None = None,
        bridge_provider: BridgeProvider | None = None,
        swap_aggregator: SwapAggregator | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config if config is not None else load_config()
        self._session = session or requests.Session()

        request_timeout = self._config.connection.request_timeout
        self._clients = ClientCache(self._config.connection, web3_factory=web3_factory)
        self._resolver = AddressResolver(self._clients)
        self._metadata = TokenMetadataCache(self._clients)
        self._dispatcher = TransactionDispatcher(receipt_timeout=self._config.bridge.receipt_timeout)

        self._transfers = TransferService(self._clients, self._resolver, self._metadata, self._dispatcher)
        self._reader = ChainReader(self._clients, self._resolver, self._metadata)

        self._bridge_provider = bridge_provider or AcrossBridgeProvider(
            self._config.bridge,
            self._session,
            self._dispatcher,
            request_timeout=request_timeout,
            sleep=sleep,
        )
        self._bridge = BridgeOrchestrator(
            self._clients, self._bridge_provider, max_workers=self._config.bridge.max_workers
        )

        aggregator = swap_aggregator or OneInchAggregator(
            self._config.swap, self._session, request_timeout=request_timeout
        )
        self._swap = SwapOrchestrator(
            self._clients,
            self._resolver,
            aggregator,
            self._dispatcher,
            api_key=self._config.swap.api_key,
            rate_limit_delay=self._config.swap.rate_limit_delay,
            sleep=sleep,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def config(self) -> EVMToolkitConfig:
        return self._config

    @property
    def clients(self) -> ClientCache:
        return self._clients

    def close(self) -> None:
        self._bridge.shutdown(wait=False)
        self._session.close()
        self._clients.clear()
        self._metadata.reset()

    def __enter__(self) -> EVMToolkit:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _signing_key(self, private_key: str | None) -> str | None:
        return private_key or self._config.private_key

    # ------------------------------------------------------------------
    # Bridge and swap
    # ------------------------------------------------------------------
    def bridge_native_eth(
        self,
        origin_network: str | int,
        destination_network: str | int,
        amount_in_eth: str,
        *,
        private_key: str | None = None,
        observer: ProgressObserver | None = None,
        feed: ProgressFeed | None = None,
    ) -> ToolResult:
        """Bridge native ETH; returns once the origin-chain deposit is confirmed.

        ``observer`` receives every ``BridgeProgressEvent``, including fill updates
        that arrive after this method has returned.
        """

        return run_guarded(
            "quoting",
            self._bridge.bridge_native,
            origin_network,
            destination_network,
            amount_in_eth,
            self._signing_key(private_key),
            observer=observer,
            feed=feed,
            render=lambda outcome: outcome.to_dict(),
        )

    def swap_tokens(
        self,
        from_token: str,
        to_token: str,
        amount: str | int,
        *,
        network: str | int = "ethereum",
        slippage: float | None = None,
        private_key: str | None = None,
    ) -> ToolResult:
        """Swap ``amount`` base units of ``from_token`` into ``to_token`` via the aggregator."""

        return run_guarded(
            "validating",
            self._swap.swap,
            from_token,
            to_token,
            amount,
            self._signing_key(private_key),
            network=network,
            slippage=self._config.swap.default_slippage if slippage is None else slippage,
            render=lambda outcome: outcome.to_dict(),
        )

    def get_token_contract_address(self, chain_identifier: str | int, token_symbol: str) -> ToolResult:
        """Look up a bridgeable token's contract address by chain name or id and symbol."""

        return run_guarded(
            "resolving_token",
            self._bridge_provider.get_token_address,
            chain_identifier,
            token_symbol,
            render=lambda listing: listing.to_dict(),
        )

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------
    def transfer_eth(
        self,
        to: str,
        amount: str,
        *,
        network: str | int = "ethereum",
        private_key: str | None = None,
    ) -> ToolResult:
        return run_guarded(
            "submitting",
            self._transfers.transfer_eth,
            to,
            amount,
            self._signing_key(private_key),
            network=network,
            render=lambda outcome: outcome.to_dict(),
        )

    def transfer_erc20(
        self,
        token: str,
        to: str,
        amount: str,
        *,
        network: str | int = "ethereum",
        private_key: str | None = None,
    ) -> ToolResult:
        return run_guarded(
            "submitting",
            self._transfers.transfer_erc20,
            token,
            to,
            amount,
            self._signing_key(private_key),
            network=network,
            render=lambda outcome: outcome.to_dict(),
        )

    def approve_erc20(
        self,
        token: str,
        spender: str,
        amount: str,
        *,
        network: str | int = "ethereum",
        private_key: str | None = None,
    ) -> ToolResult:
        return run_guarded(
            "submitting",
            self._transfers.approve_erc20,
            token,
            spender,
            amount,
            self._signing_key(private_key),
            network=network,
            render=lambda outcome: outcome.to_dict(),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_balance(self, address: str, network: str | int = "ethereum") -> ToolResult:
        return run_guarded("reading", self._reader.get_balance, address, network)

    def get_erc20_balance(self, token: str, owner: str, network: str | int = "ethereum") -> ToolResult:
        return run_guarded("reading", self._reader.get_erc20_balance, token, owner, network)

    def get_token_info(self, token: str, network: str | int = "ethereum") -> ToolResult:
        return run_guarded("reading", self._reader.get_token_info, token, network)

    def get_block_number(self, network: str | int = "ethereum") -> ToolResult:
        return run_guarded("reading", self._reader.get_block_number, network)

    def get_block(
        self, block: str | int | None = "latest", network: str | int = "ethereum", *, full_transactions: bool = False
    ) -> ToolResult:
        return run_guarded("reading", self._reader.get_block, block, network, full_transactions=full_transactions)

    def get_transaction(self, tx_hash: str, network: str | int = "ethereum") -> ToolResult:
        return run_guarded("reading", self._reader.get_transaction, tx_hash, network)

    def get_transaction_receipt(self, tx_hash: str, network: str | int = "ethereum") -> ToolResult:
        return run_guarded("reading", self._reader.get_transaction_receipt, tx_hash, network)

    def estimate_gas(
        self,
        to: str,
        value: str = "0",
        data: str | None = None,
        network: str | int = "ethereum",
        *,
        from_address: str | None = None,
    ) -> ToolResult:
        return run_guarded(
            "reading", self._reader.estimate_gas, to, value, data, network, from_address=from_address
        )

    def get_chain_info(self, network: str | int = "ethereum") -> ToolResult:
        return run_guarded("reading", self._reader.get_chain_info, network)

    # ------------------------------------------------------------------
    # Names, networks and wallet
    # ------------------------------------------------------------------
    def resolve_ens(self, name: str, network: str | int = "ethereum") -> ToolResult:
        def _resolve() -> dict[str, Any]:
            descriptor = resolve_network(network)
            address = self._resolver.resolve(name, descriptor.name)
            return {"name": name, "address": address, "network": descriptor.name}

        return run_guarded("resolving_address", _resolve)

    def get_supported_networks(self) -> ToolResult:
        def _networks() -> dict[str, Any]:
            networks = []
            for name in list_supported_networks():
                descriptor = resolve_network(name)
                networks.append(
                    {
                        "name": descriptor.name,
                        "chainId": descriptor.chain_id,
                        "nativeCurrency": descriptor.native_currency_symbol,
                        "aliases": list(descriptor.aliases),
                        "testnet": descriptor.testnet,
                    }
                )
            return {"networks": networks}

        return run_guarded("resolving_network", _networks)

    def get_address(self, private_key: str | None = None) -> ToolResult:
        """Return the address controlled by the configured (or given) key."""

        def _address() -> dict[str, Any]:
            return {"address": address_from_private_key(self._signing_key(private_key))}

        return run_guarded("configuring", _address)

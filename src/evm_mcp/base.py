"""Interfaces for the third-party services the orchestrators drive."""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from .evm.connections import WriteConnection
from .types import BridgeQuote, BridgeRoute, ProviderProgress, TokenListing

ProgressCallback = Callable[[ProviderProgress], None]


class BridgeProvider(ABC):
    """Cross-chain bridging service: prices routes, executes deposits, reports fills."""

    @abstractmethod
    def get_quote(self, route: BridgeRoute, input_amount: int) -> BridgeQuote:
        pass

    @abstractmethod
    def execute_quote(
        self,
        quote: BridgeQuote,
        connection: WriteConnection,
        on_progress: ProgressCallback,
    ) -> tuple[str, int | None] | None:
        """Run approve/deposit for ``quote``, pushing every step to ``on_progress``.

        Returns ``(deposit_hash, deposit_id)`` once the deposit is confirmed, or
        ``None`` when the failure was already reported through ``on_progress``.
        """

    @abstractmethod
    def watch_fill(
        self,
        quote: BridgeQuote,
        deposit_hash: str,
        deposit_id: int | None,
        on_progress: ProgressCallback,
        stop: threading.Event | None = None,
    ) -> None:
        """Report fill progress for a confirmed deposit until it is terminal or ``stop`` is set."""

    @abstractmethod
    def get_token_address(self, chain_identifier: str | int, token_symbol: str) -> TokenListing:
        """Look up a token the bridge supports by chain (name or id) and symbol."""


class SwapAggregator(ABC):
    """DEX aggregator HTTP API."""

    @abstractmethod
    def get_spender(self, chain_id: int) -> str:
        pass

    @abstractmethod
    def get_swap(self, chain_id: int, params: Mapping[str, Any]) -> Mapping[str, Any]:
        pass

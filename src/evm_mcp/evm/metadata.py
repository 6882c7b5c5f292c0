"""ERC-20 metadata lookups with an in-memory cache."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from web3 import Web3

from ..constants import ERC20_ABI
from ..exceptions import RPCError
from ..networks import resolve_network
from .connections import ClientCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenMetadata:
    address: str
    symbol: str
    decimals: int


class TokenMetadataCache:
    """Maintain decimals/symbol per (network, token address)."""

    def __init__(self, clients: ClientCache) -> None:
        self._clients = clients
        self._entries: dict[tuple[str, str], TokenMetadata] = {}
        self._lock = threading.Lock()

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def contract(self, token_address: str, network: str | int):
        web3 = self._clients.get_read_connection(network).web3
        return web3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ABI)

    def resolve(self, token_address: str, network: str | int = "ethereum") -> TokenMetadata:
        """Return symbol and decimals for ``token_address``, reading them on first use."""

        descriptor = resolve_network(network)
        key = (descriptor.name, token_address.lower())

        with self._lock:
            cached = self._entries.get(key)
        if cached is not None:
            return cached

        contract = self.contract(token_address, descriptor.name)
        try:
            decimals = int(contract.functions.decimals().call())
            symbol = str(contract.functions.symbol().call())
        except Exception as exc:
            raise RPCError(
                f"Failed to read ERC-20 metadata for {token_address}",
                network=descriptor.name,
                details={"error": str(exc)},
            ) from exc

        metadata = TokenMetadata(address=token_address, symbol=symbol, decimals=decimals)
        logger.debug("Token %s on %s: symbol=%s decimals=%s", token_address, descriptor.name, symbol, decimals)

        with self._lock:
            return self._entries.setdefault(key, metadata)

"""Connection management: shared read clients and per-call signing clients."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import cast
from urllib.parse import urlparse

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import HTTPProvider, Web3
from web3.middleware import SignAndSendRawMiddlewareBuilder
from web3.types import ChecksumAddress

from ..exceptions import ConfigurationError, NetworkInitError
from ..networks import NetworkDescriptor, resolve_network
from ..utils import normalise_private_key
from .config import ConnectionConfig

logger = logging.getLogger(__name__)

Web3Factory = Callable[[str, float], Web3]


def build_http_web3(rpc_url: str, request_timeout: float) -> Web3:
    """Construct a ``Web3`` bound to an HTTP(S) RPC endpoint."""

    provider = HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout})
    return Web3(provider)


@dataclass(frozen=True)
class ReadConnection:
    """Read-only binding to one network; shared for the lifetime of the cache."""

    network: NetworkDescriptor
    rpc_url: str
    web3: Web3


@dataclass(frozen=True)
class WriteConnection:
    """Signing binding to one network; built per call and never cached."""

    network: NetworkDescriptor
    rpc_url: str
    web3: Web3
    account: LocalAccount = field(repr=False)

    @property
    def address(self) -> ChecksumAddress:
        return cast(ChecksumAddress, self.account.address)


def address_from_private_key(private_key: str | None) -> ChecksumAddress:
    """Derive the checksum address for ``private_key``."""

    return cast(ChecksumAddress, _derive_account(private_key).address)


def _derive_account(private_key: str | None) -> LocalAccount:
    key = normalise_private_key(private_key)
    try:
        return cast(LocalAccount, Account.from_key(key))
    except Exception as exc:
        # The key itself must not end up in the error details
        raise ConfigurationError(
            "Failed to derive signer account from provided private key",
            setting="WALLET_PRIVATE_KEY",
            details={"error": exc.__class__.__name__},
        ) from None


class ClientCache:
    """Own one read connection per network and hand out fresh write connections.

    Read connections are memoised by canonical network name. Two threads racing
    on the first use of a network may both build a client, but only the first
    one stored is kept and returned from then on.
    """

    def __init__(
        self,
        config: ConnectionConfig | None = None,
        *,
        web3_factory: Web3Factory | None = None,
    ) -> None:
        self.config = config or ConnectionConfig()
        self._web3_factory = web3_factory or build_http_web3
        self._read_connections: dict[str, ReadConnection] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def rpc_url_for(self, network: NetworkDescriptor) -> str:
        return self.config.rpc_overrides.get(network.name, network.rpc_url)

    def get_read_connection(self, network: str | int = "ethereum") -> ReadConnection:
        """Return the memoised read connection for ``network``, building it on first use."""

        descriptor = resolve_network(network)
        key = descriptor.name

        with self._lock:
            cached = self._read_connections.get(key)
        if cached is not None:
            return cached

        connection = self._build_read_connection(descriptor)

        with self._lock:
            stored = self._read_connections.setdefault(key, connection)
        if stored is connection:
            logger.info("Connected to %s RPC at %s", descriptor.name, connection.rpc_url)
        return stored

    def get_write_connection(self, private_key: str | None, network: str | int = "ethereum") -> WriteConnection:
        """Build a signing connection for one call. The result is never stored."""

        account = _derive_account(private_key)
        descriptor = resolve_network(network)
        rpc_url = self.rpc_url_for(descriptor)
        web3 = self._build_web3(descriptor, rpc_url)

        web3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(account))  # type: ignore[arg-type]
        web3.eth.default_account = account.address
        logger.debug("Prepared signing client on %s for %s", descriptor.name, account.address)
        return WriteConnection(network=descriptor, rpc_url=rpc_url, web3=web3, account=account)

    def cached_networks(self) -> list[str]:
        with self._lock:
            return list(self._read_connections)

    def clear(self) -> None:
        with self._lock:
            self._read_connections.clear()

    # ------------------------------------------------------------------
    # Internal wiring
    # ------------------------------------------------------------------
    def _build_read_connection(self, descriptor: NetworkDescriptor) -> ReadConnection:
        rpc_url = self.rpc_url_for(descriptor)
        web3 = self._build_web3(descriptor, rpc_url)
        return ReadConnection(network=descriptor, rpc_url=rpc_url, web3=web3)

    def _build_web3(self, descriptor: NetworkDescriptor, rpc_url: str) -> Web3:
        parsed = urlparse(rpc_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise NetworkInitError(
                f"Invalid RPC URL for {descriptor.name}",
                network=descriptor.name,
                endpoint=rpc_url,
            )

        try:
            web3 = self._web3_factory(rpc_url, self.config.request_timeout)
        except Exception as exc:
            raise NetworkInitError(
                f"Failed to initialise RPC client for {descriptor.name}",
                network=descriptor.name,
                endpoint=rpc_url,
                details={"error": str(exc)},
            ) from exc

        if self.config.verify_connectivity and not web3.is_connected():
            raise NetworkInitError(
                f"Unable to connect to {descriptor.name} RPC",
                network=descriptor.name,
                endpoint=rpc_url,
            )
        return web3

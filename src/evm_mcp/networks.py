"""Static registry of supported EVM networks.

Lookups are pure: no I/O happens here. Callers pass a network name, an alias,
or a numeric chain id (as ``int`` or numeric string) and get back an immutable
``NetworkDescriptor``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .exceptions import UnsupportedNetworkError

DEFAULT_NETWORK = "ethereum"


@dataclass(frozen=True)
class NetworkDescriptor:
    """Chain metadata for one supported network."""

    name: str
    chain_id: int
    native_currency_symbol: str
    rpc_url: str
    aliases: tuple[str, ...] = field(default_factory=tuple)
    ens_network: str | None = "ethereum"
    testnet: bool = False


_NETWORKS: tuple[NetworkDescriptor, ...] = (
    NetworkDescriptor(
        name="ethereum",
        chain_id=1,
        native_currency_symbol="ETH",
        rpc_url="https://eth.llamarpc.com",
        aliases=("mainnet", "eth", "homestead"),
    ),
    NetworkDescriptor(
        name="optimism",
        chain_id=10,
        native_currency_symbol="ETH",
        rpc_url="https://mainnet.optimism.io",
        aliases=("op", "op-mainnet"),
    ),
    NetworkDescriptor(
        name="arbitrum",
        chain_id=42161,
        native_currency_symbol="ETH",
        rpc_url="https://arb1.arbitrum.io/rpc",
        aliases=("arb", "arbitrum-one"),
    ),
    NetworkDescriptor(
        name="base",
        chain_id=8453,
        native_currency_symbol="ETH",
        rpc_url="https://mainnet.base.org",
        aliases=("base-mainnet",),
    ),
    NetworkDescriptor(
        name="polygon",
        chain_id=137,
        native_currency_symbol="POL",
        rpc_url="https://polygon-rpc.com",
        aliases=("matic", "polygon-pos"),
    ),
    NetworkDescriptor(
        name="bsc",
        chain_id=56,
        native_currency_symbol="BNB",
        rpc_url="https://bsc-dataseed.binance.org",
        aliases=("bnb", "binance", "binance-smart-chain"),
    ),
    NetworkDescriptor(
        name="avalanche",
        chain_id=43114,
        native_currency_symbol="AVAX",
        rpc_url="https://api.avax.network/ext/bc/C/rpc",
        aliases=("avax", "avalanche-c"),
    ),
    NetworkDescriptor(
        name="gnosis",
        chain_id=100,
        native_currency_symbol="xDAI",
        rpc_url="https://rpc.gnosischain.com",
        aliases=("xdai",),
    ),
    NetworkDescriptor(
        name="linea",
        chain_id=59144,
        native_currency_symbol="ETH",
        rpc_url="https://rpc.linea.build",
    ),
    NetworkDescriptor(
        name="zksync",
        chain_id=324,
        native_currency_symbol="ETH",
        rpc_url="https://mainnet.era.zksync.io",
        aliases=("zksync-era", "era"),
    ),
    NetworkDescriptor(
        name="sepolia",
        chain_id=11155111,
        native_currency_symbol="ETH",
        rpc_url="https://rpc.sepolia.org",
        aliases=("eth-sepolia",),
        ens_network="sepolia",
        testnet=True,
    ),
    NetworkDescriptor(
        name="base-sepolia",
        chain_id=84532,
        native_currency_symbol="ETH",
        rpc_url="https://sepolia.base.org",
        aliases=("basesepolia",),
        ens_network="sepolia",
        testnet=True,
    ),
)

_BY_KEY: dict[str, NetworkDescriptor] = {}
_BY_CHAIN_ID: dict[int, NetworkDescriptor] = {}
for _descriptor in _NETWORKS:
    _BY_CHAIN_ID[_descriptor.chain_id] = _descriptor
    for _key in (_descriptor.name, *_descriptor.aliases):
        _BY_KEY[_key.lower()] = _descriptor


def resolve_network(identifier: str | int) -> NetworkDescriptor:
    """Resolve a network name, alias or chain id to its descriptor.

    Args:
        identifier: Network name (e.g. ``"ethereum"``), alias (e.g. ``"arb"``),
            or chain id as ``int`` or numeric string (e.g. ``10`` or ``"10"``).

    Returns:
        The matching ``NetworkDescriptor``.

    Raises:
        UnsupportedNetworkError: If nothing matches.
    """
    if isinstance(identifier, bool):
        raise UnsupportedNetworkError(identifier)

    if isinstance(identifier, int):
        descriptor = _BY_CHAIN_ID.get(identifier)
        if descriptor is None:
            raise UnsupportedNetworkError(identifier)
        return descriptor

    if not isinstance(identifier, str):
        raise UnsupportedNetworkError(identifier)

    key = identifier.strip().lower()
    if key.isdigit():
        return resolve_network(int(key))

    descriptor = _BY_KEY.get(key)
    if descriptor is None:
        raise UnsupportedNetworkError(identifier)
    return descriptor


def list_supported_networks() -> list[str]:
    """Return canonical network names in registry order."""
    return [descriptor.name for descriptor in _NETWORKS]

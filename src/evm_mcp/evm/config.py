"""Configuration containers for the EVM tool core."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace

from ..constants import ACROSS_API_URL, ACROSS_TESTNET_API_URL, ONEINCH_API_URL, SWAP_RATE_LIMIT_DELAY

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_RECEIPT_TIMEOUT = 120.0
DEFAULT_FILL_POLL_INTERVAL = 5.0
DEFAULT_FILL_MAX_POLLS = 60
DEFAULT_SLIPPAGE = 1.0


@dataclass(frozen=True)
class ConnectionConfig:
    """Settings for building RPC connections."""

    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    rpc_overrides: Mapping[str, str] = field(default_factory=dict)
    verify_connectivity: bool = False


@dataclass(frozen=True)
class BridgeConfig:
    """Settings for the Across bridge pipeline."""

    api_url: str = ACROSS_API_URL
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    fill_poll_interval: float = DEFAULT_FILL_POLL_INTERVAL
    fill_max_polls: int = DEFAULT_FILL_MAX_POLLS
    max_workers: int = 4


@dataclass(frozen=True)
class SwapConfig:
    """Settings for the 1inch swap pipeline."""

    api_url: str = ONEINCH_API_URL
    api_key: str | None = None
    rate_limit_delay: float = SWAP_RATE_LIMIT_DELAY
    default_slippage: float = DEFAULT_SLIPPAGE


@dataclass(frozen=True)
class EVMToolkitConfig:
    """Aggregated configuration used to construct the toolkit."""

    private_key: str | None = None
    connection: ConnectionConfig = ConnectionConfig()
    bridge: BridgeConfig = BridgeConfig()
    swap: SwapConfig = SwapConfig()
    testnet: bool = False

    def __repr__(self) -> str:
        return (
            f"EVMToolkitConfig(private_key={'<set>' if self.private_key else None}, "
            f"connection={self.connection!r}, bridge={self.bridge!r}, "
            f"swap=SwapConfig(api_url={self.swap.api_url!r}, "
            f"api_key={'<set>' if self.swap.api_key else None}), testnet={self.testnet})"
        )

    def with_defaulted_urls(self) -> EVMToolkitConfig:
        """Return a copy whose API URLs default based on network selection."""

        bridge = self.bridge
        if self.testnet and bridge.api_url == ACROSS_API_URL:
            bridge = replace(bridge, api_url=ACROSS_TESTNET_API_URL)
        bridge = replace(bridge, api_url=bridge.api_url.rstrip("/"))
        swap = replace(self.swap, api_url=self.swap.api_url.rstrip("/"))
        return replace(self, bridge=bridge, swap=swap)

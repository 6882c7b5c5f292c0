"""Environment-driven configuration loading."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv

from .constants import ACROSS_API_URL, ONEINCH_API_URL, SWAP_RATE_LIMIT_DELAY
from .evm.config import (
    DEFAULT_FILL_MAX_POLLS,
    DEFAULT_FILL_POLL_INTERVAL,
    DEFAULT_RECEIPT_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    BridgeConfig,
    ConnectionConfig,
    EVMToolkitConfig,
    SwapConfig,
)
from .exceptions import ConfigurationError
from .networks import list_supported_networks

logger = logging.getLogger(__name__)

ENV_FILES = (".local.env", ".env")
RPC_OVERRIDE_PREFIX = "RPC_URL_"


def load_env_files(directory: str | Path | None = None) -> Path | None:
    """Load the first env file found in ``directory`` (default: cwd)."""

    base = Path(directory) if directory is not None else Path.cwd()
    for name in ENV_FILES:
        path = base / name
        if path.exists():
            load_dotenv(path)
            logger.info("Loaded environment variables from %s", path)
            return path

    logger.warning(
        "No .local.env file found in %s; private key configuration will come from the process environment",
        base,
    )
    return None


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number", setting=name) from exc


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer", setting=name) from exc


def rpc_overrides_from_env(env: Mapping[str, str]) -> dict[str, str]:
    """Collect ``RPC_URL_<NETWORK>`` overrides keyed by canonical network name."""

    overrides: dict[str, str] = {}
    for network in list_supported_networks():
        key = RPC_OVERRIDE_PREFIX + network.upper().replace("-", "_")
        value = env.get(key)
        if value:
            overrides[network] = value.strip()
    return overrides


def load_config(env: Mapping[str, str] | None = None, *, load_files: bool = True) -> EVMToolkitConfig:
    """Build an ``EVMToolkitConfig`` from the environment.

    Secrets are optional here; the operations that need them raise
    ``ConfigurationError`` before any network call when they are absent.
    """

    if env is None:
        if load_files:
            load_env_files()
        env = os.environ

    connection = ConnectionConfig(
        request_timeout=_float_env(env, "EVM_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        rpc_overrides=rpc_overrides_from_env(env),
    )
    bridge = BridgeConfig(
        api_url=env.get("ACROSS_API_URL") or ACROSS_API_URL,
        receipt_timeout=_float_env(env, "EVM_RECEIPT_TIMEOUT", DEFAULT_RECEIPT_TIMEOUT),
        fill_poll_interval=_float_env(env, "BRIDGE_FILL_POLL_INTERVAL", DEFAULT_FILL_POLL_INTERVAL),
        fill_max_polls=_int_env(env, "BRIDGE_FILL_MAX_POLLS", DEFAULT_FILL_MAX_POLLS),
    )
    swap = SwapConfig(
        api_url=env.get("ONEINCH_API_URL") or ONEINCH_API_URL,
        api_key=env.get("ONEINCH_API_KEY") or None,
        rate_limit_delay=_float_env(env, "SWAP_RATE_LIMIT_DELAY", SWAP_RATE_LIMIT_DELAY),
    )

    return EVMToolkitConfig(
        private_key=env.get("WALLET_PRIVATE_KEY") or None,
        connection=connection,
        bridge=bridge,
        swap=swap,
        testnet=env.get("EVM_TESTNET", "false").lower() == "true",
    ).with_defaulted_urls()

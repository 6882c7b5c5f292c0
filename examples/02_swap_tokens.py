"""Example: Swap native ETH for a token through the 1inch aggregator."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from evm_mcp import EVMToolkit, load_config
from evm_mcp.constants import NATIVE_TOKEN_ADDRESS
from evm_mcp.utils import format_json, to_base_units

load_dotenv(".local.env")

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger("swap_tokens")

# USDC on Base
DEFAULT_TO_TOKEN = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"{name} not found in environment variables")
    return value


def main() -> None:
    _require_env("WALLET_PRIVATE_KEY")
    _require_env("ONEINCH_API_KEY")

    network = os.getenv("SWAP_NETWORK", "base")
    to_token = os.getenv("SWAP_TO_TOKEN", DEFAULT_TO_TOKEN)
    amount_eth = os.getenv("SWAP_AMOUNT_ETH", "0.001")
    slippage = float(os.getenv("SWAP_SLIPPAGE", "1"))

    amount_wei = to_base_units(amount_eth, 18)

    with EVMToolkit(load_config()) as toolkit:
        logger.info("Swapping %s ETH (%s wei) for %s on %s", amount_eth, amount_wei, to_token, network)
        result = toolkit.swap_tokens(
            NATIVE_TOKEN_ADDRESS,
            to_token,
            str(amount_wei),
            network=network,
            slippage=slippage,
        )
        print(format_json(result.to_dict()))


if __name__ == "__main__":
    main()

"""Example: Read balances and send a small ETH transfer to an address or ENS name."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from evm_mcp import EVMToolkit, load_config
from evm_mcp.utils import format_json

load_dotenv(".local.env")

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger("transfers_and_reads")


def main() -> None:
    network = os.getenv("TRANSFER_NETWORK", "sepolia")
    recipient = os.getenv("TRANSFER_TO")
    amount = os.getenv("TRANSFER_AMOUNT_ETH", "0.0001")

    with EVMToolkit(load_config()) as toolkit:
        print(format_json(toolkit.get_chain_info(network).to_dict()))

        wallet = toolkit.get_address()
        if not wallet.ok:
            logger.error("No wallet configured: %s", wallet.message)
            return
        address = wallet.payload["address"]
        print(format_json(toolkit.get_balance(address, network).to_dict()))

        if not recipient:
            logger.info("Set TRANSFER_TO to send %s ETH", amount)
            return

        result = toolkit.transfer_eth(recipient, amount, network=network)
        print(format_json(result.to_dict()))


if __name__ == "__main__":
    main()

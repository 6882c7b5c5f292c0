"""Example: Bridge native ETH between two networks with Across and print progress."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from evm_mcp import EVMToolkit, ProgressFeed, load_config
from evm_mcp.types import BridgeProgressEvent
from evm_mcp.utils import format_json

load_dotenv(".local.env")

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger("bridge_native_eth")


def _log_progress(event: BridgeProgressEvent) -> None:
    if event.error_detail:
        logger.error("[%s] %s: %s", event.stage.value, event.status.value, event.error_detail)
    else:
        logger.info("[%s] %s %s", event.stage.value, event.status.value, event.transaction_id or "")


def main() -> None:
    origin = os.getenv("BRIDGE_ORIGIN", "base-sepolia")
    destination = os.getenv("BRIDGE_DESTINATION", "sepolia")
    amount = os.getenv("BRIDGE_AMOUNT_ETH", "0.001")

    feed = ProgressFeed()
    events = feed.stream()

    with EVMToolkit(load_config()) as toolkit:
        logger.info("Bridging %s ETH from %s to %s", amount, origin, destination)
        result = toolkit.bridge_native_eth(origin, destination, amount, feed=feed)
        print(format_json(result.to_dict()))

        # Replays what happened so far, then blocks until the fill is reported
        for event in events:
            _log_progress(event)

        if not result.ok:
            raise SystemExit(1)


if __name__ == "__main__":
    main()

"""Token swap pipeline through a DEX aggregator."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..base import SwapAggregator
from ..constants import MAX_SLIPPAGE, MIN_SLIPPAGE, NATIVE_TOKEN_ADDRESS, SWAP_RATE_LIMIT_DELAY
from ..exceptions import ConfigurationError, InvalidAmountError, SubmissionError
from ..networks import resolve_network
from ..types import SwapOutcome, SwapQuote, SwapState
from ..utils import normalise_private_key, parse_positive_base_units
from .connections import ClientCache
from .ens import AddressResolver
from .transactions import TransactionDispatcher

logger = logging.getLogger(__name__)


def validate_slippage(slippage: float) -> float:
    """Slippage is a percentage between 0.01 and 50 inclusive."""

    if isinstance(slippage, bool):
        raise InvalidAmountError("Slippage must be a number", field="slippage", value=slippage)
    try:
        value = float(slippage)
    except (TypeError, ValueError) as exc:
        raise InvalidAmountError("Slippage must be a number", field="slippage", value=slippage) from exc

    if not MIN_SLIPPAGE <= value <= MAX_SLIPPAGE:
        raise InvalidAmountError(
            f"Slippage must be between {MIN_SLIPPAGE} and {MAX_SLIPPAGE:g} percent",
            field="slippage",
            value=slippage,
        )
    return value


def is_native_token(address: str) -> bool:
    return address.lower() == NATIVE_TOKEN_ADDRESS.lower()


class SwapRun:
    """Tracks the state of one swap call for logging and error staging."""

    def __init__(self, network: str) -> None:
        self.network = network
        self.state = SwapState.VALIDATING

    def advance(self, state: SwapState) -> None:
        logger.debug("Stage SWAP [%s]: %s -> %s", self.network, self.state.value, state.value)
        self.state = state


class SwapOrchestrator:
    """Fetch spender, wait out the rate limit, quote, validate, then submit.

    Token allowance is not checked or granted here. For ERC-20 sources the
    outcome carries a note that the spender must already hold enough allowance.
    """

    def __init__(
        self,
        clients: ClientCache,
        resolver: AddressResolver,
        aggregator: SwapAggregator,
        dispatcher: TransactionDispatcher,
        *,
        api_key: str | None,
        rate_limit_delay: float = SWAP_RATE_LIMIT_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._clients = clients
        self._resolver = resolver
        self._aggregator = aggregator
        self._dispatcher = dispatcher
        self._api_key = api_key
        self._rate_limit_delay = rate_limit_delay
        self._sleep = sleep

    def swap(
        self,
        from_token: str,
        to_token: str,
        amount: str | int,
        private_key: str | None,
        *,
        network: str | int = "ethereum",
        slippage: float = 1.0,
    ) -> SwapOutcome:
        """Swap ``amount`` base units of ``from_token`` into ``to_token``.

        ``amount`` is taken as already expressed in the source token's smallest
        unit; no decimal conversion happens here.
        """

        if not self._api_key:
            raise ConfigurationError("Missing 1inch API key (ONEINCH_API_KEY)", setting="ONEINCH_API_KEY")
        normalise_private_key(private_key)

        raw_amount = parse_positive_base_units(amount)
        slippage_pct = validate_slippage(slippage)
        descriptor = resolve_network(network)
        run = SwapRun(descriptor.name)

        source = self._resolver.resolve(from_token, descriptor.name)
        destination = self._resolver.resolve(to_token, descriptor.name)
        connection = self._clients.get_write_connection(private_key, descriptor.name)

        run.advance(SwapState.FETCHING_SPENDER)
        spender = self._aggregator.get_spender(descriptor.chain_id)

        # The aggregator rate limits consecutive calls
        self._sleep(self._rate_limit_delay)

        allowance_note = None
        if not is_native_token(source):
            allowance_note = (
                "Allowance check and approval are not performed by this swap. "
                f"Ensure {spender} has sufficient allowance for {source}."
            )
            logger.warning("Note: %s", allowance_note)
        else:
            logger.info("Skipping allowance check for native asset")

        run.advance(SwapState.QUOTING_SWAP)
        payload = self._aggregator.get_swap(
            descriptor.chain_id,
            {
                "src": source,
                "dst": destination,
                "amount": str(raw_amount),
                "from": connection.address,
                "slippage": slippage_pct,
            },
        )
        quote = SwapQuote.from_response(spender, payload)

        run.advance(SwapState.SUBMITTING)
        tx: dict[str, object] = {
            "to": quote.call_target,
            "data": quote.call_data,
            "value": quote.call_value,
        }
        if quote.gas is not None:
            tx["gas"] = quote.gas

        try:
            tx_hash = self._dispatcher.send_transaction(connection, tx, action="swap", stage="submitting")
        except SubmissionError:
            run.advance(SwapState.FAILED)
            raise

        run.advance(SwapState.DONE)
        logger.info(
            "Swap transaction submitted. Hash: %s. Expected output: %s %s (raw amount, decimals: %s)",
            tx_hash,
            quote.destination_amount,
            quote.destination_token_symbol,
            quote.destination_token_decimals,
        )
        return SwapOutcome(tx_hash=tx_hash, network=descriptor.name, quote=quote, allowance_note=allowance_note)

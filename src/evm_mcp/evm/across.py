"""Across protocol bridging provider backed by its public HTTP API."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping
from typing import Any

import requests
from web3 import Web3
from web3.logs import DISCARD

from ..base import BridgeProvider, ProgressCallback
from ..constants import ERC20_ABI, SPOKE_POOL_ABI, ZERO_ADDRESS, AcrossDepositStatus
from ..exceptions import DepositError, QuoteError, SubmissionError, UnsupportedNetworkError, ValidationError
from ..networks import resolve_network
from ..results import extract_http_error_detail
from ..types import BridgeQuote, BridgeRoute, ProviderProgress, TokenListing
from .config import BridgeConfig
from .connections import WriteConnection
from .transactions import TransactionDispatcher

logger = logging.getLogger(__name__)


class AcrossBridgeProvider(BridgeProvider):
    """Price routes with ``/suggested-fees``, deposit via ``depositV3``, watch fills via ``/deposit/status``."""

    def __init__(
        self,
        config: BridgeConfig,
        session: requests.Session,
        dispatcher: TransactionDispatcher,
        *,
        request_timeout: float,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._session = session
        self._dispatcher = dispatcher
        self._request_timeout = request_timeout
        self._api_url = config.api_url.rstrip("/")
        self._sleep = sleep
        self._chains: list[Mapping[str, Any]] | None = None
        self._chains_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Quote
    # ------------------------------------------------------------------
    def get_quote(self, route: BridgeRoute, input_amount: int) -> BridgeQuote:
        params = {
            "inputToken": route.input_token,
            "outputToken": route.output_token,
            "originChainId": route.origin_chain_id,
            "destinationChainId": route.destination_chain_id,
            "amount": str(input_amount),
        }
        url = f"{self._api_url}/suggested-fees"
        logger.debug("Fetching Across quote from %s params=%s", url, params)

        try:
            response = self._session.get(url, params=params, timeout=self._request_timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise QuoteError(
                f"Failed to fetch Across quote: {extract_http_error_detail(exc)}",
                details={"route": params},
            ) from exc
        except ValueError as exc:
            raise QuoteError("Across quote response is not valid JSON") from exc

        return self._parse_quote(route, input_amount, payload)

    def _parse_quote(self, route: BridgeRoute, input_amount: int, payload: Any) -> BridgeQuote:
        if not isinstance(payload, Mapping):
            raise QuoteError("Unexpected Across quote format", details={"response": payload})

        if payload.get("isAmountTooLow"):
            limits = payload.get("limits") or {}
            raise QuoteError(
                "Amount is too low for this route",
                details={"minDeposit": limits.get("minDeposit") if isinstance(limits, Mapping) else None},
            )

        spoke_pool = payload.get("spokePoolAddress")
        if not isinstance(spoke_pool, str) or not Web3.is_address(spoke_pool):
            raise QuoteError("Across quote is missing the spoke pool address", details={"response": dict(payload)})

        try:
            total_fee_entry = payload.get("totalRelayFee") or {}
            total_fee = int(total_fee_entry.get("total", 0)) if isinstance(total_fee_entry, Mapping) else 0
            output_amount = (
                int(payload["outputAmount"]) if payload.get("outputAmount") else input_amount - total_fee
            )
            quote_timestamp = int(payload["timestamp"])
            fill_deadline = int(payload.get("fillDeadline") or 0)
            exclusivity_deadline = int(payload.get("exclusivityDeadline") or 0)
        except (KeyError, TypeError, ValueError) as exc:
            raise QuoteError(
                "Across quote has missing or non-numeric fields",
                details={"error": str(exc), "response": dict(payload)},
            ) from exc

        if output_amount <= 0:
            raise QuoteError(
                "Quoted relay fee exceeds or equals bridge amount",
                details={"inputAmount": input_amount, "totalFee": total_fee},
            )

        logger.info(
            "Across quote %s -> %s: input=%s output=%s fee=%s",
            route.origin_chain_id,
            route.destination_chain_id,
            input_amount,
            output_amount,
            total_fee,
        )
        return BridgeQuote(
            route=route,
            input_amount=input_amount,
            output_amount=output_amount,
            total_fee=total_fee,
            spoke_pool=Web3.to_checksum_address(spoke_pool),
            quote_timestamp=quote_timestamp,
            fill_deadline=fill_deadline,
            exclusive_relayer=str(payload.get("exclusiveRelayer") or ZERO_ADDRESS),
            exclusivity_deadline=exclusivity_deadline,
            raw=dict(payload),
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def execute_quote(
        self,
        quote: BridgeQuote,
        connection: WriteConnection,
        on_progress: ProgressCallback,
    ) -> tuple[str, int | None] | None:
        if not quote.route.is_native:
            try:
                self._ensure_allowance(quote, connection, on_progress)
            except SubmissionError as exc:
                on_progress(ProviderProgress("approve", "txError", tx_hash=exc.tx_hash, error=exc.message))
                return None

        try:
            deposit_hash, deposit_id = self._deposit(quote, connection, on_progress)
        except DepositError as exc:
            on_progress(ProviderProgress("deposit", "txError", tx_hash=exc.tx_hash, error=exc.message))
            return None

        on_progress(ProviderProgress("deposit", "txSuccess", tx_hash=deposit_hash, deposit_id=deposit_id))
        return deposit_hash, deposit_id

    def _ensure_allowance(
        self, quote: BridgeQuote, connection: WriteConnection, on_progress: ProgressCallback
    ) -> None:
        token = connection.web3.eth.contract(
            address=Web3.to_checksum_address(quote.route.input_token), abi=ERC20_ABI
        )
        allowance = int(token.functions.allowance(connection.address, quote.spoke_pool).call())
        if allowance >= quote.input_amount:
            logger.debug("Existing allowance %s covers bridge amount %s", allowance, quote.input_amount)
            return

        on_progress(ProviderProgress("approve", "txPending"))
        approve_hash = self._dispatcher.transact(
            connection,
            token.functions.approve(quote.spoke_pool, quote.input_amount),
            action="across_approve",
            stage="approving",
        )
        on_progress(ProviderProgress("approve", "txPending", tx_hash=approve_hash))
        self._dispatcher.wait_for_success(connection, approve_hash, action="across_approve", stage="approving")
        on_progress(ProviderProgress("approve", "txSuccess", tx_hash=approve_hash))

    def _deposit(
        self, quote: BridgeQuote, connection: WriteConnection, on_progress: ProgressCallback
    ) -> tuple[str, int | None]:
        spoke_pool = connection.web3.eth.contract(address=quote.spoke_pool, abi=SPOKE_POOL_ABI)
        depositor = connection.address
        deposit_call = spoke_pool.functions.depositV3(
            depositor,
            depositor,
            Web3.to_checksum_address(quote.route.input_token),
            Web3.to_checksum_address(quote.route.output_token),
            quote.input_amount,
            quote.output_amount,
            quote.route.destination_chain_id,
            Web3.to_checksum_address(quote.exclusive_relayer),
            quote.quote_timestamp,
            quote.fill_deadline,
            quote.exclusivity_deadline,
            b"",
        )

        on_progress(ProviderProgress("deposit", "txPending"))
        deposit_hash = self._dispatcher.transact(
            connection,
            deposit_call,
            action="across_deposit",
            value=quote.input_amount if quote.route.is_native else None,
            stage="depositing",
            error_cls=DepositError,
        )
        on_progress(ProviderProgress("deposit", "txPending", tx_hash=deposit_hash))

        receipt = self._dispatcher.wait_for_success(
            connection, deposit_hash, action="across_deposit", stage="depositing", error_cls=DepositError
        )
        return deposit_hash, self._extract_deposit_id(spoke_pool, receipt)

    def _extract_deposit_id(self, spoke_pool: Any, receipt: Any) -> int | None:
        try:
            events = spoke_pool.events.V3FundsDeposited().process_receipt(receipt, errors=DISCARD)
        except Exception as exc:  # pragma: no cover - informational only
            logger.debug("Could not decode deposit event: %s", exc)
            return None
        for event in events:
            deposit_id = event["args"].get("depositId")
            if deposit_id is not None:
                return int(deposit_id)
        return None

    # ------------------------------------------------------------------
    # Fill tracking
    # ------------------------------------------------------------------
    def watch_fill(
        self,
        quote: BridgeQuote,
        deposit_hash: str,
        deposit_id: int | None,
        on_progress: ProgressCallback,
        stop: threading.Event | None = None,
    ) -> None:
        url = f"{self._api_url}/deposit/status"
        params: dict[str, Any] = {"originChainId": quote.route.origin_chain_id}
        if deposit_id is not None:
            params["depositId"] = deposit_id
        else:
            params["depositTxHash"] = deposit_hash

        on_progress(ProviderProgress("fill", "txPending"))
        max_polls = self._config.fill_max_polls
        for attempt in range(max_polls):
            if stop is not None and stop.is_set():
                logger.info("Stopped watching fill for deposit %s", deposit_hash)
                on_progress(
                    ProviderProgress(
                        "fill", "error", deposit_id=deposit_id, error="Fill watch stopped before completion"
                    )
                )
                return
            try:
                response = self._session.get(url, params=params, timeout=self._request_timeout)
                if response.status_code == 404:
                    logger.debug("Deposit %s not indexed yet (attempt %s/%s)", deposit_hash, attempt + 1, max_polls)
                    self._sleep(self._config.fill_poll_interval)
                    continue
                response.raise_for_status()
                payload = response.json()
            except (requests.RequestException, ValueError) as exc:
                logger.debug("Fill status poll error (attempt %s/%s): %s", attempt + 1, max_polls, exc)
                self._sleep(self._config.fill_poll_interval)
                continue

            status = str(payload.get("status", "")).lower() if isinstance(payload, Mapping) else ""
            if status == AcrossDepositStatus.FILLED:
                fill_tx = payload.get("fillTx") or payload.get("fillTxHash")
                on_progress(ProviderProgress("fill", "txSuccess", tx_hash=fill_tx, deposit_id=deposit_id))
                return
            if status in (AcrossDepositStatus.EXPIRED, AcrossDepositStatus.REFUNDED):
                on_progress(
                    ProviderProgress("fill", "error", deposit_id=deposit_id, error=f"Deposit {status}")
                )
                return

            logger.debug(
                "Fill still %s for %s (attempt %s/%s)", status or "unknown", deposit_hash, attempt + 1, max_polls
            )
            self._sleep(self._config.fill_poll_interval)

        on_progress(
            ProviderProgress(
                "fill",
                "error",
                deposit_id=deposit_id,
                error=f"Timed out waiting for fill after {max_polls * self._config.fill_poll_interval:.0f} seconds",
            )
        )

    # ------------------------------------------------------------------
    # Supported tokens
    # ------------------------------------------------------------------
    def get_supported_chains(self) -> list[Mapping[str, Any]]:
        """Chains Across supports with their input/output tokens, fetched once per provider."""

        with self._chains_lock:
            cached = self._chains
        if cached is not None:
            return cached

        url = f"{self._api_url}/swap/chains"
        logger.debug("Fetching Across supported chains from %s", url)
        try:
            response = self._session.get(url, timeout=self._request_timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise QuoteError(
                f"Failed to fetch Across supported chains: {extract_http_error_detail(exc)}",
                stage="resolving_token",
            ) from exc
        except ValueError as exc:
            raise QuoteError("Across supported chains response is not valid JSON", stage="resolving_token") from exc

        if not isinstance(payload, list):
            raise QuoteError(
                "Unexpected Across supported chains format", details={"response": payload}, stage="resolving_token"
            )
        chains = [
            entry for entry in payload if isinstance(entry, Mapping) and _as_int(entry.get("chainId")) is not None
        ]

        with self._chains_lock:
            if self._chains is None:
                self._chains = chains
            return self._chains

    def get_token_address(self, chain_identifier: str | int, token_symbol: str) -> TokenListing:
        """Find ``token_symbol`` among the chain's input tokens, then its output tokens.

        Raises:
            ValidationError: Empty symbol, or no token with that symbol on the chain.
            UnsupportedNetworkError: Across does not support the chain.
            QuoteError: The supported-chain list could not be fetched.
        """

        symbol = token_symbol.strip() if isinstance(token_symbol, str) else ""
        if not symbol:
            raise ValidationError("Token symbol is required", field="token_symbol", value=token_symbol)

        chain = self._find_chain(self.get_supported_chains(), chain_identifier)
        chain_id = int(chain["chainId"])
        chain_name = str(chain.get("name") or chain_id)

        wanted = symbol.lower()
        for key in ("inputTokens", "outputTokens"):
            for token in chain.get(key) or ():
                if not isinstance(token, Mapping) or str(token.get("symbol", "")).lower() != wanted:
                    continue
                address = token.get("address")
                if not isinstance(address, str) or not Web3.is_address(address):
                    continue
                return TokenListing(
                    chain_id=chain_id,
                    chain_name=chain_name,
                    symbol=str(token["symbol"]),
                    address=Web3.to_checksum_address(address),
                    decimals=_as_int(token.get("decimals")),
                )

        raise ValidationError(
            f"Token symbol '{symbol}' not found on chain '{chain_name}' (ID: {chain_id})",
            field="token_symbol",
            value=token_symbol,
        )

    def _find_chain(self, chains: list[Mapping[str, Any]], identifier: str | int) -> Mapping[str, Any]:
        chain_id: int | None = None
        if isinstance(identifier, int) and not isinstance(identifier, bool):
            chain_id = identifier
        elif isinstance(identifier, str) and identifier.strip().isdigit():
            chain_id = int(identifier.strip())
        elif isinstance(identifier, str):
            name = identifier.strip().lower()
            for chain in chains:
                if str(chain.get("name", "")).lower() == name:
                    return chain
            # Fall back to the registry so aliases such as "arb" or "op" work
            try:
                chain_id = resolve_network(identifier).chain_id
            except UnsupportedNetworkError:
                chain_id = None

        if chain_id is not None:
            for chain in chains:
                if _as_int(chain.get("chainId")) == chain_id:
                    return chain
        raise UnsupportedNetworkError(identifier, details={"provider": "across"})


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def describe_progress(progress: ProviderProgress) -> str:
    detail = f" tx={progress.tx_hash}" if progress.tx_hash else ""
    if progress.error:
        detail += f" error={progress.error}"
    return f"step={progress.step} status={progress.status}{detail}"

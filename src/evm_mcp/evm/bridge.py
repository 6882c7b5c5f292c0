"""Native ETH bridging pipeline: quote, (approve), deposit, fill."""

from __future__ import annotations

import logging
import queue
import threading
import uuid
from collections.abc import Callable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor

from ..base import BridgeProvider
from ..constants import NATIVE_DECIMALS, WETH_ADDRESSES
from ..exceptions import (
    DepositError,
    EVMToolError,
    InvalidAmountError,
    QuoteError,
    SubmissionError,
    UnsupportedNetworkError,
)
from ..networks import NetworkDescriptor, resolve_network
from ..results import describe_exception
from ..types import (
    BridgeOutcome,
    BridgeProgressEvent,
    BridgeQuote,
    BridgeRoute,
    BridgeStage,
    BridgeState,
    ProgressStatus,
    ProviderProgress,
)
from ..utils import normalise_private_key, token_amount, token_amount_from_raw
from .across import describe_progress
from .connections import ClientCache, WriteConnection

logger = logging.getLogger(__name__)

ProgressObserver = Callable[[BridgeProgressEvent], None]

_TRANSITIONS: dict[BridgeState, frozenset[BridgeState]] = {
    BridgeState.QUOTING: frozenset({BridgeState.APPROVING, BridgeState.DEPOSITING, BridgeState.FAILED}),
    BridgeState.APPROVING: frozenset({BridgeState.DEPOSITING, BridgeState.FAILED}),
    BridgeState.DEPOSITING: frozenset({BridgeState.FILLING, BridgeState.FAILED}),
    BridgeState.FILLING: frozenset({BridgeState.DONE, BridgeState.FAILED}),
    BridgeState.DONE: frozenset(),
    BridgeState.FAILED: frozenset(),
}

_STEP_STAGES = {
    "approve": BridgeStage.APPROVE,
    "deposit": BridgeStage.DEPOSIT,
    "fill": BridgeStage.FILL,
}

_EXECUTION_STATES = (BridgeState.APPROVING, BridgeState.DEPOSITING, BridgeState.FILLING)

_STEP_STATES = {
    "approve": BridgeState.APPROVING,
    "deposit": BridgeState.DEPOSITING,
    "fill": BridgeState.FILLING,
}


class Subscription:
    """Handle returned by ``ProgressFeed.subscribe``; ``cancel()`` stops delivery."""

    def __init__(self, feed: ProgressFeed, observer: ProgressObserver) -> None:
        self._feed = feed
        self._observer = observer
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._feed._remove(self)

    def _deliver(self, event: BridgeProgressEvent) -> None:
        if self.active:
            self._observer(event)


class ProgressFeed:
    """Ordered stream of ``BridgeProgressEvent`` for one bridge call.

    Consumers either subscribe a callback or iterate ``stream()``. Events are
    delivered live; nothing is replayed to late subscribers.
    """

    _CLOSED = object()

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._queues: list[queue.Queue] = []
        self._lock = threading.Lock()
        self._closed = False

    def subscribe(self, observer: ProgressObserver) -> Subscription:
        subscription = Subscription(self, observer)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def stream(self) -> Iterator[BridgeProgressEvent]:
        """Iterate over events published from now on until the feed closes."""

        channel: queue.Queue = queue.Queue()
        with self._lock:
            if self._closed:
                return iter(())
            self._queues.append(channel)
        return self._drain(channel)

    def _drain(self, channel: queue.Queue) -> Iterator[BridgeProgressEvent]:
        try:
            while True:
                item = channel.get()
                if item is self._CLOSED:
                    return
                yield item
        finally:
            with self._lock:
                if channel in self._queues:
                    self._queues.remove(channel)

    def publish(self, event: BridgeProgressEvent) -> None:
        with self._lock:
            if self._closed:
                return
            subscriptions = list(self._subscriptions)
            channels = list(self._queues)

        for channel in channels:
            channel.put(event)
        for subscription in subscriptions:
            try:
                subscription._deliver(event)
            except Exception:
                logger.exception("Bridge progress observer raised; continuing")

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            channels = list(self._queues)
            self._subscriptions.clear()
        for channel in channels:
            channel.put(self._CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)


class BridgeRun:
    """State of one bridge call. Resolves on deposit success or on the first error."""

    def __init__(self, run_id: str, feed: ProgressFeed) -> None:
        self.run_id = run_id
        self.feed = feed
        self.state = BridgeState.QUOTING
        self.result: Future[tuple[str, int | None]] = Future()
        self._lock = threading.Lock()

    @property
    def resolved(self) -> bool:
        return self.result.done()

    def transition(self, target: BridgeState) -> None:
        with self._lock:
            if target == self.state:
                return
            if target not in _TRANSITIONS[self.state]:
                logger.debug(
                    "Stage BRIDGE [%s]: ignoring transition %s -> %s", self.run_id, self.state.value, target.value
                )
                return
            logger.debug("Stage BRIDGE [%s]: %s -> %s", self.run_id, self.state.value, target.value)
            self.state = target

    def emit(
        self,
        stage: BridgeStage,
        status: ProgressStatus,
        *,
        transaction_id: str | None = None,
        error_detail: str | None = None,
    ) -> None:
        self.feed.publish(
            BridgeProgressEvent(stage, status, transaction_id=transaction_id, error_detail=error_detail)
        )

    def fail(self, error: EVMToolError) -> None:
        self.transition(BridgeState.FAILED)
        if not self.result.done():
            self.result.set_exception(error)

    def succeed(self, tx_hash: str, deposit_id: int | None) -> None:
        self.transition(BridgeState.DEPOSITING)
        self.transition(BridgeState.FILLING)
        if not self.result.done():
            self.result.set_result((tx_hash, deposit_id))

    def handle(self, progress: ProviderProgress) -> None:
        """React to one provider update."""

        logger.debug("Stage BRIDGE [%s]: provider %s", self.run_id, describe_progress(progress))
        stage = _STEP_STAGES.get(progress.step)
        if stage is None:
            logger.debug("Stage BRIDGE [%s]: unknown provider step %s", self.run_id, progress.step)
            return

        if progress.status in ("txError", "error"):
            reason = progress.error or "Unknown error"
            self.emit(stage, ProgressStatus.ERROR, transaction_id=progress.tx_hash, error_detail=reason)
            if self.resolved:
                logger.warning("Bridge %s failed after deposit at step %s: %s", self.run_id, progress.step, reason)
                return
            self.fail(self._stage_error(progress, reason))
            return

        if progress.status == "txSuccess":
            self.emit(stage, ProgressStatus.SUCCESS, transaction_id=progress.tx_hash)
            if progress.step == "approve":
                logger.info("Approval successful. Tx: %s", progress.tx_hash)
                self.transition(BridgeState.DEPOSITING)
            elif progress.step == "deposit":
                if self.resolved:
                    return
                if not progress.tx_hash:
                    self.fail(DepositError("Deposit transaction successful but no transaction hash found."))
                    return
                logger.info("Deposit successful. Tx: %s Deposit ID: %s", progress.tx_hash, progress.deposit_id)
                self.succeed(progress.tx_hash, progress.deposit_id)
            elif progress.step == "fill":
                logger.info("Fill successful. Tx: %s", progress.tx_hash)
                self.transition(BridgeState.DONE)
            return

        self.emit(stage, ProgressStatus.PENDING, transaction_id=progress.tx_hash)
        if not self.resolved:
            self.transition(_STEP_STATES[progress.step])

    def _stage_error(self, progress: ProviderProgress, reason: str) -> EVMToolError:
        message = f"Bridging failed at step {progress.step}. Reason: {reason}"
        if progress.step == "approve":
            return SubmissionError(message, stage="approving", tx_hash=progress.tx_hash)
        if progress.step == "fill":
            return DepositError(message, stage="filling", tx_hash=progress.tx_hash)
        return DepositError(message, stage="depositing", tx_hash=progress.tx_hash)


class BridgeOrchestrator:
    """Drive native ETH bridges through a ``BridgeProvider``.

    Approve and deposit run on a bounded worker pool, and the call returns once
    the deposit on the origin chain is confirmed. Each fill watch then runs on
    its own daemon thread so a slow relayer never holds a pool worker.
    ``shutdown`` signals the watches to stop at their next poll.
    """

    def __init__(
        self,
        clients: ClientCache,
        provider: BridgeProvider,
        *,
        max_workers: int = 4,
    ) -> None:
        self._clients = clients
        self._provider = provider
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="bridge")
        self._stopping = threading.Event()
        self._watchers: set[threading.Thread] = set()
        self._watchers_lock = threading.Lock()

    def shutdown(self, wait: bool = False) -> None:
        self._stopping.set()
        self._executor.shutdown(wait=wait)
        if wait:
            with self._watchers_lock:
                watchers = list(self._watchers)
            for watcher in watchers:
                watcher.join()

    def bridge_native(
        self,
        origin_network: str | int,
        destination_network: str | int,
        amount_in_eth: str,
        private_key: str | None,
        *,
        observer: ProgressObserver | None = None,
        feed: ProgressFeed | None = None,
    ) -> BridgeOutcome:
        """Bridge native ETH from ``origin_network`` to ``destination_network``.

        Raises:
            InvalidAmountError: Before any I/O, for a malformed or non-positive amount.
            ConfigurationError: Before any I/O, when no private key is available.
            QuoteError: Unsupported network, unknown route, or provider rejection.
            DepositError: Deposit submission failed or reverted.
            SubmissionError: Approval failed (token routes only).
        """

        feed = feed or ProgressFeed()
        subscription = feed.subscribe(observer) if observer is not None else None
        run = BridgeRun(uuid.uuid4().hex[:8], feed)
        handed_off = False

        try:
            amount = token_amount(amount_in_eth, NATIVE_DECIMALS)
            if amount.raw <= 0:
                raise InvalidAmountError("Amount must be positive", field="amount", value=amount_in_eth)
            normalise_private_key(private_key)
            if self._stopping.is_set():
                raise DepositError("Bridge orchestrator is shut down", stage="quoting")

            origin, destination, quote = self._quote(run, origin_network, destination_network, amount.raw)
            connection = self._clients.get_write_connection(private_key, origin.chain_id)
            logger.info(
                "Attempting to bridge %s ETH from %s to %s", amount.formatted, origin.name, destination.name
            )

            if not quote.route.is_native:
                run.transition(BridgeState.APPROVING)
            else:
                run.transition(BridgeState.DEPOSITING)

            self._executor.submit(self._execute, run, quote, connection)
            handed_off = True
            tx_hash, deposit_id = run.result.result()
        except EVMToolError as exc:
            run.fail(exc)
            raise
        finally:
            if subscription is not None and not handed_off:
                subscription.cancel()
            if not handed_off:
                feed.close()

        return BridgeOutcome(
            deposit_tx_hash=tx_hash,
            origin_network=origin.name,
            destination_network=destination.name,
            amount=amount,
            output_amount=token_amount_from_raw(quote.output_amount, NATIVE_DECIMALS),
            deposit_id=deposit_id,
        )

    def _quote(
        self,
        run: BridgeRun,
        origin_network: str | int,
        destination_network: str | int,
        amount_raw: int,
    ) -> tuple[NetworkDescriptor, NetworkDescriptor, BridgeQuote]:
        run.emit(BridgeStage.QUOTE, ProgressStatus.PENDING)
        try:
            origin = resolve_network(origin_network)
            destination = resolve_network(destination_network)
            if origin.chain_id == destination.chain_id:
                raise QuoteError("Origin and destination networks must differ")

            input_token = WETH_ADDRESSES.get(origin.chain_id)
            output_token = WETH_ADDRESSES.get(destination.chain_id)
            if input_token is None:
                raise QuoteError(f"WETH address not configured for origin chain ID: {origin.chain_id}")
            if output_token is None:
                raise QuoteError(f"WETH address not configured for destination chain ID: {destination.chain_id}")

            route = BridgeRoute(
                origin_chain_id=origin.chain_id,
                destination_chain_id=destination.chain_id,
                input_token=input_token,
                output_token=output_token,
                is_native=True,
            )
            logger.debug("Stage BRIDGE [%s]: fetch quote (route=%s, amount=%s)", run.run_id, route, amount_raw)
            quote = self._provider.get_quote(route, amount_raw)
        except UnsupportedNetworkError as exc:
            error = QuoteError(exc.message, details={"network": str(exc.identifier)})
            run.emit(BridgeStage.QUOTE, ProgressStatus.ERROR, error_detail=error.message)
            raise error from exc
        except QuoteError as exc:
            run.emit(BridgeStage.QUOTE, ProgressStatus.ERROR, error_detail=exc.message)
            raise
        except Exception as exc:
            error = QuoteError(f"Failed to fetch bridge quote: {describe_exception(exc)}")
            run.emit(BridgeStage.QUOTE, ProgressStatus.ERROR, error_detail=error.message)
            raise error from exc

        run.emit(BridgeStage.QUOTE, ProgressStatus.SUCCESS)
        return origin, destination, quote

    def _execute(self, run: BridgeRun, quote: BridgeQuote, connection: WriteConnection) -> None:
        watching = False
        try:
            deposit = self._provider.execute_quote(quote, connection, run.handle)
            if deposit is not None and run.resolved and run.result.exception() is None:
                self._start_fill_watch(run, quote, *deposit)
                watching = True
        except EVMToolError as exc:
            logger.error("Error executing quote: %s", exc.message)
            if not run.resolved:
                stage = exc.stage if exc.stage in ("approving", "filling") else "depositing"
                run.fail(DepositError(f"Error executing quote: {exc.message}", stage=stage))
        except Exception as exc:
            logger.exception("Error executing quote")
            if not run.resolved:
                stage = run.state.value if run.state in _EXECUTION_STATES else "depositing"
                run.fail(DepositError(f"Error executing quote: {describe_exception(exc)}", stage=stage))
        finally:
            if not run.resolved:
                run.fail(DepositError("Bridge provider finished without confirming the deposit"))
            if not watching:
                run.feed.close()

    def _start_fill_watch(self, run: BridgeRun, quote: BridgeQuote, deposit_hash: str, deposit_id: int | None) -> None:
        watcher = threading.Thread(
            target=self._watch_fill,
            args=(run, quote, deposit_hash, deposit_id),
            name=f"bridge-fill-{run.run_id}",
            daemon=True,
        )
        with self._watchers_lock:
            self._watchers.add(watcher)
        watcher.start()

    def _watch_fill(self, run: BridgeRun, quote: BridgeQuote, deposit_hash: str, deposit_id: int | None) -> None:
        try:
            self._provider.watch_fill(quote, deposit_hash, deposit_id, run.handle, self._stopping)
        except Exception as exc:
            logger.exception("Fill watch for bridge %s failed", run.run_id)
            run.handle(ProviderProgress("fill", "error", deposit_id=deposit_id, error=describe_exception(exc)))
        finally:
            run.feed.close()
            with self._watchers_lock:
                self._watchers.discard(threading.current_thread())

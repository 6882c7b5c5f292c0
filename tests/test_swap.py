from __future__ import annotations

from collections.abc import Mapping
from types import SimpleNamespace
from typing import Any, cast

import pytest
from requests import Session
from web3 import Web3

from evm_mcp.base import SwapAggregator
from evm_mcp.constants import NATIVE_TOKEN_ADDRESS
from evm_mcp.evm.client import EVMToolkit
from evm_mcp.evm.config import EVMToolkitConfig, SwapConfig
from evm_mcp.evm.connections import ClientCache
from evm_mcp.evm.ens import AddressResolver
from evm_mcp.evm.swap import SwapOrchestrator, validate_slippage
from evm_mcp.evm.transactions import TransactionDispatcher
from evm_mcp.exceptions import (
    ConfigurationError,
    InvalidAmountError,
    MalformedQuoteError,
    SpenderLookupError,
    SubmissionError,
)

TEST_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
WALLET = Web3.to_checksum_address("0x" + "11" * 20)
SPENDER = Web3.to_checksum_address("0x" + "22" * 20)
ROUTER = Web3.to_checksum_address("0x" + "33" * 20)
USDC = Web3.to_checksum_address("0x" + "44" * 20)
DAI = Web3.to_checksum_address("0x" + "55" * 20)


def _swap_payload(**tx_overrides: Any) -> dict[str, Any]:
    tx: dict[str, Any] = {"to": ROUTER, "data": "0x12aa3caf", "value": "100000000000000000", "gas": 210000}
    tx.update(tx_overrides)
    return {
        "toAmount": "2500000000",
        "toToken": {"symbol": "USDC", "decimals": 6},
        "tx": {key: value for key, value in tx.items() if value is not None},
    }


class FakeAggregator(SwapAggregator):
    def __init__(self, payload: Any = None, *, spender_error: Exception | None = None) -> None:
        self.payload = payload if payload is not None else _swap_payload()
        self.spender_error = spender_error
        self.calls: list[tuple[str, Any]] = []

    def get_spender(self, chain_id: int) -> str:
        self.calls.append(("spender", chain_id))
        if self.spender_error is not None:
            raise self.spender_error
        return SPENDER

    def get_swap(self, chain_id: int, params: Mapping[str, Any]) -> Mapping[str, Any]:
        self.calls.append(("swap", dict(params)))
        return self.payload


class FakeDispatcher:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[dict[str, Any]] = []

    def send_transaction(self, connection: Any, tx: Mapping[str, Any], *, action: str, stage: str) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append(dict(tx))
        return "0x" + "ab" * 32


class FakeClients:
    def __init__(self) -> None:
        self.requests: list[Any] = []

    def get_write_connection(self, private_key: str | None, network: Any) -> Any:
        self.requests.append(network)
        return SimpleNamespace(address=WALLET)

    def get_read_connection(self, network: Any) -> Any:
        pytest.fail("addresses must not trigger name lookups")


def _fake_web3(rpc_url: str, timeout: float) -> Any:
    onion = SimpleNamespace(add=lambda middleware: None)
    return SimpleNamespace(middleware_onion=onion, eth=SimpleNamespace(default_account=None))


def _orchestrator(
    aggregator: FakeAggregator,
    dispatcher: FakeDispatcher | None = None,
    sleeps: list[float] | None = None,
    *,
    api_key: str | None = "key",
) -> tuple[SwapOrchestrator, FakeDispatcher, list[float]]:
    clients = FakeClients()
    dispatcher = dispatcher or FakeDispatcher()
    sleeps = sleeps if sleeps is not None else []
    orchestrator = SwapOrchestrator(
        cast(ClientCache, clients),
        AddressResolver(cast(ClientCache, clients)),
        aggregator,
        cast(TransactionDispatcher, dispatcher),
        api_key=api_key,
        sleep=sleeps.append,
    )
    return orchestrator, dispatcher, sleeps


def test_native_swap_happy_path() -> None:
    aggregator = FakeAggregator()
    orchestrator, dispatcher, sleeps = _orchestrator(aggregator)

    outcome = orchestrator.swap(NATIVE_TOKEN_ADDRESS, USDC, "100000000000000000", TEST_KEY, network="base")

    assert sleeps == [pytest.approx(1.1)]
    assert aggregator.calls[0] == ("spender", 8453)
    assert aggregator.calls[1] == (
        "swap",
        {
            "src": NATIVE_TOKEN_ADDRESS,
            "dst": USDC,
            "amount": "100000000000000000",
            "from": WALLET,
            "slippage": 1.0,
        },
    )
    assert dispatcher.sent == [{"to": ROUTER, "data": "0x12aa3caf", "value": 10**17, "gas": 210000}]
    assert outcome.allowance_note is None
    assert outcome.to_dict() == {
        "transactionHash": "0x" + "ab" * 32,
        "network": "base",
        "spender": SPENDER,
        "expectedOutput": {"raw": "2500000000", "formatted": "2500", "symbol": "USDC", "decimals": 6},
        "allowanceNote": None,
    }


def test_erc20_source_carries_allowance_note() -> None:
    orchestrator, dispatcher, _ = _orchestrator(FakeAggregator(_swap_payload(value="0")))

    outcome = orchestrator.swap(USDC, DAI, 5_000_000, TEST_KEY)

    assert outcome.allowance_note is not None
    assert SPENDER in outcome.allowance_note
    assert dispatcher.sent[0]["value"] == 0


@pytest.mark.parametrize("amount", ["0", 0, "-1", "1.5", "abc"])
def test_invalid_amount_rejected_before_http(amount: Any) -> None:
    aggregator = FakeAggregator()
    orchestrator, dispatcher, sleeps = _orchestrator(aggregator)

    with pytest.raises(InvalidAmountError):
        orchestrator.swap(NATIVE_TOKEN_ADDRESS, USDC, amount, TEST_KEY)

    assert aggregator.calls == []
    assert sleeps == []
    assert dispatcher.sent == []


@pytest.mark.parametrize("slippage", [-1, 0, 0.001, 50.5, "lots"])
def test_invalid_slippage_rejected_before_http(slippage: Any) -> None:
    aggregator = FakeAggregator()
    orchestrator, _, _ = _orchestrator(aggregator)

    with pytest.raises(InvalidAmountError) as excinfo:
        orchestrator.swap(NATIVE_TOKEN_ADDRESS, USDC, "1000", TEST_KEY, slippage=slippage)

    assert excinfo.value.field == "slippage"
    assert aggregator.calls == []


@pytest.mark.parametrize("slippage", [0.01, 1, 50])
def test_slippage_bounds_are_inclusive(slippage: float) -> None:
    assert validate_slippage(slippage) == float(slippage)


def test_missing_call_target_is_malformed_and_not_submitted() -> None:
    orchestrator, dispatcher, _ = _orchestrator(FakeAggregator(_swap_payload(to=None)))

    with pytest.raises(MalformedQuoteError) as excinfo:
        orchestrator.swap(NATIVE_TOKEN_ADDRESS, USDC, "1000", TEST_KEY)

    assert excinfo.value.message == "Invalid swap data received (missing tx.to)"
    assert excinfo.value.stage == "quoting_swap"
    assert dispatcher.sent == []


def test_missing_tx_object_is_malformed() -> None:
    orchestrator, dispatcher, _ = _orchestrator(FakeAggregator({"toAmount": "1"}))

    with pytest.raises(MalformedQuoteError):
        orchestrator.swap(NATIVE_TOKEN_ADDRESS, USDC, "1000", TEST_KEY)
    assert dispatcher.sent == []


def test_negative_output_decimals_are_rejected_before_submission() -> None:
    payload = _swap_payload()
    payload["toToken"] = {"symbol": "DAI", "decimals": -1}
    orchestrator, dispatcher, _ = _orchestrator(FakeAggregator(payload))

    with pytest.raises(MalformedQuoteError):
        orchestrator.swap(NATIVE_TOKEN_ADDRESS, DAI, "1000", TEST_KEY)
    assert dispatcher.sent == []


def test_missing_api_key_fails_before_http() -> None:
    aggregator = FakeAggregator()
    orchestrator, _, _ = _orchestrator(aggregator, api_key=None)

    with pytest.raises(ConfigurationError):
        orchestrator.swap(NATIVE_TOKEN_ADDRESS, USDC, "1000", TEST_KEY)
    assert aggregator.calls == []


def test_submission_failure_propagates() -> None:
    dispatcher = FakeDispatcher(error=SubmissionError("Failed to submit transaction for swap: nonce too low"))
    orchestrator, _, _ = _orchestrator(FakeAggregator(), dispatcher)

    with pytest.raises(SubmissionError) as excinfo:
        orchestrator.swap(NATIVE_TOKEN_ADDRESS, USDC, "1000", TEST_KEY)
    assert excinfo.value.stage == "submitting"


class TestToolkitSwap:
    def _toolkit(self, aggregator: FakeAggregator) -> EVMToolkit:
        config = EVMToolkitConfig(private_key=TEST_KEY, swap=SwapConfig(api_key="key"))
        return EVMToolkit(
            config,
            session=Session(),
            web3_factory=_fake_web3,
            swap_aggregator=aggregator,
            sleep=lambda seconds: None,
        )

    def test_zero_amount_result(self) -> None:
        aggregator = FakeAggregator()
        toolkit = self._toolkit(aggregator)

        result = toolkit.swap_tokens(NATIVE_TOKEN_ADDRESS, USDC, "0")
        toolkit.close()

        payload = result.to_dict()
        assert payload["ok"] is False
        assert payload["stage"] == "validating"
        assert payload["kind"] == "InvalidAmount"
        assert aggregator.calls == []

    def test_negative_slippage_result(self) -> None:
        toolkit = self._toolkit(FakeAggregator())

        result = toolkit.swap_tokens(NATIVE_TOKEN_ADDRESS, USDC, "1000", slippage=-1)
        toolkit.close()

        assert (result.stage, result.kind) == ("validating", "InvalidAmount")

    def test_spender_failure_result(self) -> None:
        aggregator = FakeAggregator(spender_error=SpenderLookupError("Error fetching 1inch spender: Unauthorized"))
        toolkit = self._toolkit(aggregator)

        result = toolkit.swap_tokens(NATIVE_TOKEN_ADDRESS, USDC, "1000")
        toolkit.close()

        assert result.to_dict() == {
            "ok": False,
            "stage": "fetching_spender",
            "kind": "SpenderLookupError",
            "message": "Error fetching 1inch spender: Unauthorized",
        }

    def test_out_of_range_output_decimals_result(self) -> None:
        payload = _swap_payload()
        payload["toToken"] = {"symbol": "DAI", "decimals": -1}
        toolkit = self._toolkit(FakeAggregator(payload))

        result = toolkit.swap_tokens(NATIVE_TOKEN_ADDRESS, DAI, "1000")
        toolkit.close()

        assert (result.ok, result.stage, result.kind) == (False, "quoting_swap", "MalformedQuoteError")

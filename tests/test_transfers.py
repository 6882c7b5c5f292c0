from __future__ import annotations

from types import SimpleNamespace
from typing import Any, cast

import pytest
from web3 import Web3

from evm_mcp.evm.connections import ClientCache
from evm_mcp.evm.ens import AddressResolver
from evm_mcp.evm.metadata import TokenMetadata, TokenMetadataCache
from evm_mcp.evm.transactions import TransactionDispatcher
from evm_mcp.evm.transfers import TransferService
from evm_mcp.exceptions import ConfigurationError, InvalidAmountError, SubmissionError

TEST_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
RECIPIENT = Web3.to_checksum_address("0x" + "66" * 20)
TOKEN = Web3.to_checksum_address("0x" + "77" * 20)
TX_HASH = "0x" + "cd" * 32


class FakeContract:
    def __init__(self, address: str) -> None:
        self.address = address
        self.functions = SimpleNamespace(
            transfer=lambda to, amount: ("transfer", address, to, amount),
            approve=lambda spender, amount: ("approve", address, spender, amount),
        )


class FakeClients:
    def __init__(self) -> None:
        self.write_requests: list[Any] = []

    def get_write_connection(self, private_key: str | None, network: Any) -> Any:
        self.write_requests.append(network)
        eth = SimpleNamespace(contract=lambda address, abi: FakeContract(address))
        return SimpleNamespace(address="0x" + "11" * 20, web3=SimpleNamespace(eth=eth))

    def get_read_connection(self, network: Any) -> Any:
        pytest.fail("addresses must not trigger name lookups")


class FakeMetadata:
    def __init__(self, decimals: int = 6, symbol: str = "USDC") -> None:
        self.entry = (symbol, decimals)
        self.requests: list[tuple[str, Any]] = []

    def resolve(self, token_address: str, network: Any) -> TokenMetadata:
        self.requests.append((token_address, network))
        return TokenMetadata(address=token_address, symbol=self.entry[0], decimals=self.entry[1])


class FakeDispatcher:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[tuple[str, Any]] = []

    def send_transaction(self, connection: Any, tx: dict[str, Any], *, action: str) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append((action, tx))
        return TX_HASH

    def transact(self, connection: Any, function: Any, *, action: str) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append((action, function))
        return TX_HASH


def _service(dispatcher: FakeDispatcher | None = None) -> tuple[TransferService, FakeClients, FakeDispatcher]:
    clients = FakeClients()
    dispatcher = dispatcher or FakeDispatcher()
    service = TransferService(
        cast(ClientCache, clients),
        AddressResolver(cast(ClientCache, clients)),
        cast(TokenMetadataCache, FakeMetadata()),
        cast(TransactionDispatcher, dispatcher),
    )
    return service, clients, dispatcher


def test_transfer_eth_sends_value() -> None:
    service, clients, dispatcher = _service()

    outcome = service.transfer_eth(RECIPIENT.lower(), "1.5", TEST_KEY, network="optimism")

    assert dispatcher.sent == [("transfer_eth", {"to": RECIPIENT, "value": 1_500_000_000_000_000_000})]
    assert clients.write_requests == ["optimism"]
    assert outcome.to_dict() == {
        "txHash": TX_HASH,
        "amount": {"raw": "1500000000000000000", "formatted": "1.5", "decimals": 18},
        "token": {"symbol": "ETH", "decimals": 18},
    }


@pytest.mark.parametrize("amount", ["0", "-1", "abc", "0.0000000000000000001"])
def test_transfer_eth_rejects_bad_amount_before_io(amount: str) -> None:
    service, clients, dispatcher = _service()

    with pytest.raises(InvalidAmountError):
        service.transfer_eth(RECIPIENT, amount, TEST_KEY)

    assert clients.write_requests == []
    assert dispatcher.sent == []


def test_transfer_requires_private_key() -> None:
    service, clients, _ = _service()

    with pytest.raises(ConfigurationError):
        service.transfer_eth(RECIPIENT, "1", None)
    assert clients.write_requests == []


def test_transfer_erc20_uses_token_decimals() -> None:
    service, _, dispatcher = _service()

    outcome = service.transfer_erc20(TOKEN, RECIPIENT, "12.5", TEST_KEY, network="base")

    assert dispatcher.sent == [("transfer_erc20", ("transfer", TOKEN, RECIPIENT, 12_500_000))]
    assert outcome.amount.raw == 12_500_000
    assert outcome.token_symbol == "USDC"
    assert outcome.token_decimals == 6


def test_transfer_erc20_rejects_excess_precision() -> None:
    service, _, dispatcher = _service()

    with pytest.raises(InvalidAmountError):
        service.transfer_erc20(TOKEN, RECIPIENT, "1.0000001", TEST_KEY)
    assert dispatcher.sent == []


def test_approve_erc20_calls_approve() -> None:
    service, _, dispatcher = _service()

    outcome = service.approve_erc20(TOKEN, RECIPIENT, "100", TEST_KEY)

    assert dispatcher.sent == [("approve_erc20", ("approve", TOKEN, RECIPIENT, 100_000_000))]
    assert outcome.tx_hash == TX_HASH


def test_submission_failure_propagates() -> None:
    error = SubmissionError("Failed to submit transaction for transfer_eth: insufficient funds")
    service, _, _ = _service(FakeDispatcher(error=error))

    with pytest.raises(SubmissionError) as excinfo:
        service.transfer_eth(RECIPIENT, "1", TEST_KEY)
    assert excinfo.value.stage == "submitting"

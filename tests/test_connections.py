from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace
from typing import Any

import pytest
from eth_account import Account

from evm_mcp.evm.config import ConnectionConfig
from evm_mcp.evm.connections import ClientCache, address_from_private_key
from evm_mcp.exceptions import ConfigurationError, NetworkInitError

TEST_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


class FakeOnion:
    def __init__(self) -> None:
        self.added: list[Any] = []

    def add(self, middleware: Any) -> None:
        self.added.append(middleware)


class FakeWeb3:
    def __init__(self, rpc_url: str, timeout: float) -> None:
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.middleware_onion = FakeOnion()
        self.eth = SimpleNamespace(default_account=None)

    def is_connected(self) -> bool:
        return True


class CountingFactory:
    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, rpc_url: str, timeout: float) -> FakeWeb3:
        with self._lock:
            self.calls.append(rpc_url)
        if self.delay:
            time.sleep(self.delay)
        return FakeWeb3(rpc_url, timeout)


def test_read_connection_is_memoised_per_network() -> None:
    factory = CountingFactory()
    cache = ClientCache(web3_factory=factory)

    first = cache.get_read_connection("arbitrum")
    second = cache.get_read_connection("arb")
    third = cache.get_read_connection(42161)

    assert first is second is third
    assert len(factory.calls) == 1
    assert cache.cached_networks() == ["arbitrum"]


def test_read_connections_differ_between_networks() -> None:
    cache = ClientCache(web3_factory=CountingFactory())

    assert cache.get_read_connection("base") is not cache.get_read_connection("optimism")


def test_concurrent_first_use_yields_single_handle() -> None:
    factory = CountingFactory(delay=0.01)
    cache = ClientCache(web3_factory=factory)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: cache.get_read_connection("base"), range(16)))

    assert len({id(connection) for connection in results}) == 1
    assert results[0] is cache.get_read_connection("base")


def test_rpc_override_is_used() -> None:
    factory = CountingFactory()
    config = ConnectionConfig(rpc_overrides={"base": "https://base.example/rpc"})
    cache = ClientCache(config, web3_factory=factory)

    connection = cache.get_read_connection("base")

    assert connection.rpc_url == "https://base.example/rpc"
    assert factory.calls == ["https://base.example/rpc"]


def test_invalid_url_raises_and_is_not_cached() -> None:
    factory = CountingFactory()
    config = ConnectionConfig(rpc_overrides={"optimism": "not-a-url"})
    cache = ClientCache(config, web3_factory=factory)

    with pytest.raises(NetworkInitError) as excinfo:
        cache.get_read_connection("optimism")

    assert excinfo.value.kind == "NetworkInitError"
    assert excinfo.value.network == "optimism"
    assert factory.calls == []
    assert cache.cached_networks() == []


def test_factory_failure_does_not_poison_cache() -> None:
    attempts: list[str] = []

    def flaky_factory(rpc_url: str, timeout: float) -> FakeWeb3:
        attempts.append(rpc_url)
        if len(attempts) == 1:
            raise RuntimeError("connection refused")
        return FakeWeb3(rpc_url, timeout)

    cache = ClientCache(web3_factory=flaky_factory)

    with pytest.raises(NetworkInitError):
        cache.get_read_connection("base")
    assert cache.cached_networks() == []

    connection = cache.get_read_connection("base")
    assert cache.get_read_connection("base") is connection
    assert len(attempts) == 2


def test_connectivity_check_when_enabled() -> None:
    class OfflineWeb3(FakeWeb3):
        def is_connected(self) -> bool:
            return False

    cache = ClientCache(
        ConnectionConfig(verify_connectivity=True),
        web3_factory=lambda url, timeout: OfflineWeb3(url, timeout),
    )

    with pytest.raises(NetworkInitError):
        cache.get_read_connection("ethereum")
    assert cache.cached_networks() == []


def test_write_connections_are_never_cached() -> None:
    factory = CountingFactory()
    cache = ClientCache(web3_factory=factory)

    first = cache.get_write_connection(TEST_KEY, "base")
    second = cache.get_write_connection(TEST_KEY, "base")

    assert first is not second
    assert first.web3 is not second.web3
    assert cache.cached_networks() == []
    assert len(factory.calls) == 2

    expected = Account.from_key(TEST_KEY).address
    assert first.address == expected
    assert first.web3.eth.default_account == expected
    assert len(first.web3.middleware_onion.added) == 1


def test_write_connection_repr_omits_signer() -> None:
    cache = ClientCache(web3_factory=CountingFactory())

    connection = cache.get_write_connection(TEST_KEY, "ethereum")

    assert "account" not in repr(connection)
    assert TEST_KEY[2:] not in repr(connection)


def test_write_connection_requires_key_before_building_client() -> None:
    factory = CountingFactory()
    cache = ClientCache(web3_factory=factory)

    with pytest.raises(ConfigurationError):
        cache.get_write_connection(None, "ethereum")
    assert factory.calls == []


def test_invalid_key_does_not_leak_into_error() -> None:
    bad_key = "0x1234"

    with pytest.raises(ConfigurationError) as excinfo:
        address_from_private_key(bad_key)

    assert bad_key not in excinfo.value.message
    assert bad_key not in str(excinfo.value.details)


def test_address_from_private_key_accepts_unprefixed_key() -> None:
    assert address_from_private_key(TEST_KEY[2:]) == Account.from_key(TEST_KEY).address

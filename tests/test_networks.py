"""Tests for the network registry."""

import pytest

from evm_mcp.exceptions import UnsupportedNetworkError
from evm_mcp.networks import list_supported_networks, resolve_network


@pytest.mark.parametrize(
    ("identifier", "expected"),
    [
        ("ethereum", "ethereum"),
        ("ETHEREUM", "ethereum"),
        ("mainnet", "ethereum"),
        ("arb", "arbitrum"),
        (" Base ", "base"),
        (10, "optimism"),
        ("10", "optimism"),
        (42161, "arbitrum"),
        ("matic", "polygon"),
        (84532, "base-sepolia"),
    ],
)
def test_resolve_by_name_alias_and_chain_id(identifier, expected):
    assert resolve_network(identifier).name == expected


def test_name_alias_and_id_yield_same_descriptor():
    assert resolve_network("arbitrum") is resolve_network("arb") is resolve_network(42161)


@pytest.mark.parametrize("identifier", ["not-a-chain", 999999, "999999", "", True, None])
def test_unknown_identifier_raises(identifier):
    with pytest.raises(UnsupportedNetworkError) as excinfo:
        resolve_network(identifier)

    assert excinfo.value.kind == "UnsupportedNetwork"
    assert excinfo.value.stage == "resolving_network"


def test_registry_is_consistent():
    names = list_supported_networks()

    assert names[0] == "ethereum"
    assert len(names) == len(set(names))
    chain_ids = [resolve_network(name).chain_id for name in names]
    assert len(chain_ids) == len(set(chain_ids))
    for name in names:
        for alias in resolve_network(name).aliases:
            assert resolve_network(alias).name == name


def test_testnets_resolve_names_on_sepolia():
    assert resolve_network("sepolia").ens_network == "sepolia"
    assert resolve_network("base-sepolia").ens_network == "sepolia"
    assert resolve_network("base").ens_network == "ethereum"
    assert resolve_network("sepolia").testnet is True

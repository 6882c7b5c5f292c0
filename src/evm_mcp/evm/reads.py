"""Read-only chain queries served from the shared read connections."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Any, TypeVar

from web3 import Web3

from ..constants import ERC20_ABI, NATIVE_DECIMALS
from ..exceptions import EVMToolError, RPCError, ValidationError
from ..networks import NetworkDescriptor, resolve_network
from ..utils import redact_url, serialise, to_base_units, token_amount_from_raw
from .connections import ClientCache
from .ens import AddressResolver
from .metadata import TokenMetadataCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

_HASH_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")
_BLOCK_TAGS = frozenset({"latest", "earliest", "pending", "safe", "finalized"})


def _validate_tx_hash(tx_hash: str) -> str:
    if not isinstance(tx_hash, str) or not _HASH_PATTERN.match(tx_hash.strip()):
        raise ValidationError(
            "Transaction hash must be 0x followed by 64 hex characters", field="tx_hash", value=tx_hash
        )
    return tx_hash.strip()


def parse_block_identifier(block: str | int | None) -> str | int:
    """Accept a block number, a block hash, or one of the named tags."""

    if block is None:
        return "latest"
    if isinstance(block, bool):
        raise ValidationError("Invalid block identifier", field="block", value=block)
    if isinstance(block, int):
        if block < 0:
            raise ValidationError("Block number cannot be negative", field="block", value=block)
        return block
    if isinstance(block, str):
        text = block.strip()
        if text.isdigit():
            return int(text)
        if text.lower() in _BLOCK_TAGS:
            return text.lower()
        if _HASH_PATTERN.match(text):
            return text
    raise ValidationError("Invalid block identifier", field="block", value=block)


class ChainReader:
    """Balances, token info, blocks, transactions and gas estimates."""

    def __init__(self, clients: ClientCache, resolver: AddressResolver, metadata: TokenMetadataCache) -> None:
        self._clients = clients
        self._resolver = resolver
        self._metadata = metadata

    def _read(self, descriptor: NetworkDescriptor, what: str, call: Callable[[], T]) -> T:
        try:
            return call()
        except EVMToolError:
            raise
        except Exception as exc:
            logger.error("RPC read %s failed on %s: %s", what, descriptor.name, exc)
            raise RPCError(
                f"Failed to read {what} on {descriptor.name}: {exc}",
                network=descriptor.name,
                details={"error": str(exc)},
            ) from exc

    def _web3(self, network: str | int) -> tuple[NetworkDescriptor, Web3]:
        descriptor = resolve_network(network)
        return descriptor, self._clients.get_read_connection(descriptor.name).web3

    def _address(self, value: str, descriptor: NetworkDescriptor) -> str:
        return Web3.to_checksum_address(self._resolver.resolve(value, descriptor.name))

    # ------------------------------------------------------------------
    # Balances and tokens
    # ------------------------------------------------------------------
    def get_balance(self, address: str, network: str | int = "ethereum") -> dict[str, Any]:
        descriptor, web3 = self._web3(network)
        owner = self._address(address, descriptor)
        wei = int(self._read(descriptor, "balance", lambda: web3.eth.get_balance(owner)))
        return {
            "address": owner,
            "network": descriptor.name,
            "symbol": descriptor.native_currency_symbol,
            "balance": token_amount_from_raw(wei, NATIVE_DECIMALS).to_dict(),
        }

    def get_erc20_balance(self, token: str, owner: str, network: str | int = "ethereum") -> dict[str, Any]:
        descriptor, web3 = self._web3(network)
        token_address = self._address(token, descriptor)
        owner_address = self._address(owner, descriptor)
        metadata = self._metadata.resolve(token_address, descriptor.name)

        contract = web3.eth.contract(address=token_address, abi=ERC20_ABI)
        raw = int(
            self._read(descriptor, "token balance", lambda: contract.functions.balanceOf(owner_address).call())
        )
        return {
            "token": token_address,
            "owner": owner_address,
            "network": descriptor.name,
            "symbol": metadata.symbol,
            "balance": token_amount_from_raw(raw, metadata.decimals).to_dict(),
        }

    def get_token_info(self, token: str, network: str | int = "ethereum") -> dict[str, Any]:
        descriptor, web3 = self._web3(network)
        token_address = self._address(token, descriptor)
        metadata = self._metadata.resolve(token_address, descriptor.name)

        contract = web3.eth.contract(address=token_address, abi=ERC20_ABI)
        name = self._read(descriptor, "token name", lambda: contract.functions.name().call())
        supply = int(self._read(descriptor, "total supply", lambda: contract.functions.totalSupply().call()))
        return {
            "address": token_address,
            "network": descriptor.name,
            "name": str(name),
            "symbol": metadata.symbol,
            "decimals": metadata.decimals,
            "totalSupply": token_amount_from_raw(supply, metadata.decimals).to_dict(),
        }

    # ------------------------------------------------------------------
    # Blocks and transactions
    # ------------------------------------------------------------------
    def get_block_number(self, network: str | int = "ethereum") -> dict[str, Any]:
        descriptor, web3 = self._web3(network)
        number = self._read(descriptor, "block number", lambda: web3.eth.block_number)
        return {"network": descriptor.name, "blockNumber": int(number)}

    def get_block(
        self,
        block: str | int | None = "latest",
        network: str | int = "ethereum",
        *,
        full_transactions: bool = False,
    ) -> dict[str, Any]:
        identifier = parse_block_identifier(block)
        descriptor, web3 = self._web3(network)
        result = self._read(
            descriptor, f"block {identifier}", lambda: web3.eth.get_block(identifier, full_transactions)
        )
        return {"network": descriptor.name, "block": serialise(result)}

    def get_transaction(self, tx_hash: str, network: str | int = "ethereum") -> dict[str, Any]:
        value = _validate_tx_hash(tx_hash)
        descriptor, web3 = self._web3(network)
        result = self._read(descriptor, f"transaction {value}", lambda: web3.eth.get_transaction(value))
        return {"network": descriptor.name, "transaction": serialise(result)}

    def get_transaction_receipt(self, tx_hash: str, network: str | int = "ethereum") -> dict[str, Any]:
        value = _validate_tx_hash(tx_hash)
        descriptor, web3 = self._web3(network)
        result = self._read(descriptor, f"receipt {value}", lambda: web3.eth.get_transaction_receipt(value))
        return {"network": descriptor.name, "receipt": serialise(result)}

    def estimate_gas(
        self,
        to: str,
        value: str = "0",
        data: str | None = None,
        network: str | int = "ethereum",
        *,
        from_address: str | None = None,
    ) -> dict[str, Any]:
        """Estimate gas for a call; ``value`` is a decimal amount of the native currency."""

        wei = to_base_units(value, NATIVE_DECIMALS)
        descriptor, web3 = self._web3(network)

        tx: dict[str, Any] = {"to": self._address(to, descriptor), "value": wei}
        if data:
            tx["data"] = data
        if from_address:
            tx["from"] = self._address(from_address, descriptor)

        gas = self._read(descriptor, "gas estimate", lambda: web3.eth.estimate_gas(tx))  # type: ignore[arg-type]
        return {"network": descriptor.name, "gas": int(gas)}

    def get_chain_info(self, network: str | int = "ethereum") -> dict[str, Any]:
        descriptor, web3 = self._web3(network)
        number = self._read(descriptor, "block number", lambda: web3.eth.block_number)
        return {
            "network": descriptor.name,
            "chainId": descriptor.chain_id,
            "nativeCurrency": descriptor.native_currency_symbol,
            "blockNumber": int(number),
            "rpcUrl": redact_url(self._clients.rpc_url_for(descriptor)),
            "testnet": descriptor.testnet,
        }

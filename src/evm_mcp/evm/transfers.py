"""Native and ERC-20 transfers plus standalone token approvals."""

from __future__ import annotations

import logging

from web3 import Web3

from ..constants import ERC20_ABI, NATIVE_DECIMALS
from ..exceptions import InvalidAmountError
from ..networks import resolve_network
from ..types import TokenAmount, TransferOutcome
from ..utils import normalise_private_key, token_amount
from .connections import ClientCache
from .ens import AddressResolver
from .metadata import TokenMetadataCache
from .transactions import TransactionDispatcher

logger = logging.getLogger(__name__)


def _positive_amount(amount: str, decimals: int) -> TokenAmount:
    value = token_amount(amount, decimals)
    if value.raw <= 0:
        raise InvalidAmountError("Amount must be positive", field="amount", value=amount)
    return value


class TransferService:
    """Submit value transfers, ERC-20 transfers and ERC-20 approvals.

    Recipients, tokens and spenders may be hex addresses or ENS names. Amounts
    are human-readable decimal strings converted with the token's decimals.
    """

    def __init__(
        self,
        clients: ClientCache,
        resolver: AddressResolver,
        metadata: TokenMetadataCache,
        dispatcher: TransactionDispatcher,
    ) -> None:
        self._clients = clients
        self._resolver = resolver
        self._metadata = metadata
        self._dispatcher = dispatcher

    def transfer_eth(
        self,
        to: str,
        amount: str,
        private_key: str | None,
        *,
        network: str | int = "ethereum",
    ) -> TransferOutcome:
        value = _positive_amount(amount, NATIVE_DECIMALS)
        normalise_private_key(private_key)
        descriptor = resolve_network(network)

        recipient = Web3.to_checksum_address(self._resolver.resolve(to, descriptor.name))
        connection = self._clients.get_write_connection(private_key, descriptor.name)

        tx_hash = self._dispatcher.send_transaction(
            connection,
            {"to": recipient, "value": value.raw},
            action="transfer_eth",
        )
        logger.info(
            "Sent %s %s to %s on %s", value.formatted, descriptor.native_currency_symbol, recipient, descriptor.name
        )
        return TransferOutcome(
            tx_hash=tx_hash,
            amount=value,
            token_symbol=descriptor.native_currency_symbol,
            token_decimals=NATIVE_DECIMALS,
        )

    def transfer_erc20(
        self,
        token: str,
        to: str,
        amount: str,
        private_key: str | None,
        *,
        network: str | int = "ethereum",
    ) -> TransferOutcome:
        return self._token_call("transfer", token, to, amount, private_key, network)

    def approve_erc20(
        self,
        token: str,
        spender: str,
        amount: str,
        private_key: str | None,
        *,
        network: str | int = "ethereum",
    ) -> TransferOutcome:
        """Grant ``spender`` an allowance of ``amount`` tokens."""

        return self._token_call("approve", token, spender, amount, private_key, network)

    def _token_call(
        self,
        method: str,
        token: str,
        counterparty: str,
        amount: str,
        private_key: str | None,
        network: str | int,
    ) -> TransferOutcome:
        normalise_private_key(private_key)
        descriptor = resolve_network(network)

        token_address = Web3.to_checksum_address(self._resolver.resolve(token, descriptor.name))
        target = Web3.to_checksum_address(self._resolver.resolve(counterparty, descriptor.name))
        metadata = self._metadata.resolve(token_address, descriptor.name)
        value = _positive_amount(amount, metadata.decimals)

        connection = self._clients.get_write_connection(private_key, descriptor.name)
        contract = connection.web3.eth.contract(address=token_address, abi=ERC20_ABI)
        function = getattr(contract.functions, method)(target, value.raw)

        tx_hash = self._dispatcher.transact(connection, function, action=f"{method}_erc20")
        logger.info(
            "%s %s %s (%s) for %s on %s",
            "Approved" if method == "approve" else "Transferred",
            value.formatted,
            metadata.symbol,
            token_address,
            target,
            descriptor.name,
        )
        return TransferOutcome(
            tx_hash=tx_hash,
            amount=value,
            token_symbol=metadata.symbol,
            token_decimals=metadata.decimals,
        )

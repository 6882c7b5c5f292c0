"""Transaction dispatch helpers shared by transfers, swaps and bridge deposits."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from hexbytes import HexBytes

from ..exceptions import SubmissionError
from ..results import describe_exception
from .connections import WriteConnection

logger = logging.getLogger(__name__)


def to_hex_hash(tx_hash: Any) -> str:
    if isinstance(tx_hash, str):
        return tx_hash if tx_hash.startswith("0x") else f"0x{tx_hash}"
    return HexBytes(tx_hash).to_0x_hex()


class TransactionDispatcher:
    """Submit transactions through a write connection and optionally await receipts."""

    def __init__(self, *, receipt_timeout: float) -> None:
        self._receipt_timeout = receipt_timeout

    def send_transaction(
        self,
        connection: WriteConnection,
        tx: Mapping[str, Any],
        *,
        action: str,
        stage: str = "submitting",
        error_cls: type[SubmissionError] = SubmissionError,
    ) -> str:
        """Sign and submit a raw transaction dict, returning its hash."""

        params = dict(tx)
        params.setdefault("from", connection.address)
        logger.info("Dispatching %s on %s", action, connection.network.name)

        try:
            tx_hash = connection.web3.eth.send_transaction(params)  # type: ignore[arg-type]
        except Exception as exc:
            raise error_cls(
                f"Failed to submit transaction for {action}: {describe_exception(exc)}",
                stage=stage,
                details={"error": str(exc)},
            ) from exc

        tx_hex = to_hex_hash(tx_hash)
        logger.info("Transaction sent for action=%s hash=%s", action, tx_hex)
        return tx_hex

    def transact(
        self,
        connection: WriteConnection,
        contract_function: Any,
        *,
        action: str,
        value: int | None = None,
        stage: str = "submitting",
        error_cls: type[SubmissionError] = SubmissionError,
    ) -> str:
        """Submit a contract function call, returning its hash."""

        params: dict[str, Any] = {"from": connection.address}
        if value:
            params["value"] = value
        logger.info("Dispatching %s on %s", action, connection.network.name)

        try:
            tx_hash = contract_function.transact(params)
        except Exception as exc:
            raise error_cls(
                f"Failed to submit transaction for {action}: {describe_exception(exc)}",
                stage=stage,
                details={"error": str(exc)},
            ) from exc

        tx_hex = to_hex_hash(tx_hash)
        logger.info("Transaction sent for action=%s hash=%s", action, tx_hex)
        return tx_hex

    def wait_for_success(
        self,
        connection: WriteConnection,
        tx_hash: str,
        *,
        action: str,
        stage: str = "submitting",
        error_cls: type[SubmissionError] = SubmissionError,
    ) -> Any:
        """Wait for the receipt of ``tx_hash`` and raise if it reverted."""

        try:
            receipt = connection.web3.eth.wait_for_transaction_receipt(
                HexBytes(tx_hash), timeout=self._receipt_timeout
            )
        except Exception as exc:
            raise error_cls(
                f"Failed waiting for {action} receipt: {describe_exception(exc)}",
                stage=stage,
                tx_hash=tx_hash,
                details={"error": str(exc)},
            ) from exc

        status = receipt.get("status", 1) if isinstance(receipt, Mapping) else getattr(receipt, "status", 1)
        if status != 1:
            raise error_cls(
                f"Transaction for {action} reverted",
                stage=stage,
                tx_hash=tx_hash,
            )

        block_number = receipt.get("blockNumber") if isinstance(receipt, Mapping) else None
        logger.info("Transaction confirmed for action=%s hash=%s block=%s", action, tx_hash, block_number)
        return receipt

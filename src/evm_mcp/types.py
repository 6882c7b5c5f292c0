"""Type definitions and data models for the EVM tool core."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .constants import MAX_TOKEN_DECIMALS
from .exceptions import MalformedQuoteError

Address = str  # Canonical 0x-prefixed address
TxHash = str  # 0x-prefixed transaction hash


@dataclass(frozen=True)
class TokenAmount:
    """An amount held both as integer base units and as a decimal string."""

    raw: int
    formatted: str
    decimals: int

    def to_dict(self) -> dict[str, Any]:
        return {"raw": str(self.raw), "formatted": self.formatted, "decimals": self.decimals}


@dataclass(frozen=True)
class TransferOutcome:
    """Result of a submitted native or token transfer."""

    tx_hash: TxHash
    amount: TokenAmount
    token_symbol: str
    token_decimals: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "txHash": self.tx_hash,
            "amount": self.amount.to_dict(),
            "token": {"symbol": self.token_symbol, "decimals": self.token_decimals},
        }


class BridgeStage(str, Enum):
    """Stages reported on a bridge progress feed."""

    QUOTE = "quote"
    APPROVE = "approve"
    DEPOSIT = "deposit"
    FILL = "fill"


class ProgressStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class BridgeState(str, Enum):
    """States of the bridge pipeline."""

    QUOTING = "quoting"
    APPROVING = "approving"
    DEPOSITING = "depositing"
    FILLING = "filling"
    DONE = "done"
    FAILED = "failed"


class SwapState(str, Enum):
    """States of the swap pipeline."""

    VALIDATING = "validating"
    FETCHING_SPENDER = "fetching_spender"
    QUOTING_SWAP = "quoting_swap"
    SUBMITTING = "submitting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class BridgeProgressEvent:
    """One stage transition observed during a bridge operation."""

    stage: BridgeStage
    status: ProgressStatus
    transaction_id: TxHash | None = None
    error_detail: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "status": self.status.value,
            "transactionId": self.transaction_id,
            "errorDetail": self.error_detail,
        }


@dataclass(frozen=True)
class BridgeRoute:
    """Origin/destination pair for a bridge quote."""

    origin_chain_id: int
    destination_chain_id: int
    input_token: Address
    output_token: Address
    is_native: bool = True


@dataclass(frozen=True)
class BridgeQuote:
    """Priced bridge deposit returned by a bridging provider."""

    route: BridgeRoute
    input_amount: int
    output_amount: int
    total_fee: int
    spoke_pool: Address
    quote_timestamp: int
    fill_deadline: int
    exclusive_relayer: Address
    exclusivity_deadline: int
    raw: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TokenListing:
    """A token a bridge supports on one chain."""

    chain_id: int
    chain_name: str
    symbol: str
    address: Address
    decimals: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "chainName": self.chain_name,
            "symbol": self.symbol,
            "contractAddress": self.address,
            "decimals": self.decimals,
        }


@dataclass(frozen=True)
class ProviderProgress:
    """Progress update as pushed by a bridging provider.

    ``status`` is one of ``txPending``, ``txSuccess``, ``txError`` or ``error``.
    """

    step: str
    status: str
    tx_hash: TxHash | None = None
    deposit_id: int | None = None
    error: str | None = None


@dataclass(frozen=True)
class BridgeOutcome:
    """Result of a bridge call that reached a confirmed deposit."""

    deposit_tx_hash: TxHash
    origin_network: str
    destination_network: str
    amount: TokenAmount
    output_amount: TokenAmount | None = None
    deposit_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "depositTxHash": self.deposit_tx_hash,
            "originNetwork": self.origin_network,
            "destinationNetwork": self.destination_network,
            "amount": self.amount.to_dict(),
            "outputAmount": self.output_amount.to_dict() if self.output_amount else None,
            "depositId": self.deposit_id,
        }


_REQUIRED_TX_FIELDS = ("to", "data", "value")


@dataclass(frozen=True)
class SwapQuote:
    """Executable swap returned by the aggregator, validated at the boundary."""

    spender_address: Address
    destination_amount: int
    destination_token_symbol: str
    destination_token_decimals: int | None
    call_target: Address
    call_data: str
    call_value: int
    gas: int | None = None

    @classmethod
    def from_response(cls, spender_address: Address, payload: Any) -> "SwapQuote":
        """Validate an aggregator ``/swap`` response.

        Raises:
            MalformedQuoteError: If ``tx.to``, ``tx.data`` or ``tx.value`` is
                missing, a numeric field cannot be parsed, ``toAmount`` is
                negative, or the destination decimals fall outside 0..255.
        """
        if not isinstance(payload, Mapping):
            raise MalformedQuoteError(
                "Invalid swap data received (response is not an object)",
                missing=["tx"],
            )

        tx = payload.get("tx")
        if not isinstance(tx, Mapping):
            raise MalformedQuoteError("Invalid swap data received (missing tx)", missing=["tx"])

        missing = [
            f"tx.{name}"
            for name in _REQUIRED_TX_FIELDS
            if tx.get(name) is None or (name != "value" and not tx.get(name))
        ]
        if missing:
            raise MalformedQuoteError(
                f"Invalid swap data received (missing {', '.join(missing)})",
                missing=missing,
            )

        try:
            call_value = int(tx["value"])
            gas = int(tx["gas"]) if tx.get("gas") else None
            destination_amount = int(payload.get("toAmount") or payload.get("dstAmount") or 0)
        except (TypeError, ValueError) as exc:
            raise MalformedQuoteError(
                "Invalid swap data received (non-numeric amount)",
                details={"error": str(exc)},
            ) from exc

        if destination_amount < 0:
            raise MalformedQuoteError(
                "Invalid swap data received (negative toAmount)",
                details={"toAmount": destination_amount},
            )

        to_token = payload.get("toToken") or payload.get("dstToken") or {}
        symbol = "Unknown Token"
        decimals: int | None = None
        if isinstance(to_token, Mapping):
            symbol = str(to_token.get("symbol") or symbol)
            if to_token.get("decimals") is not None:
                try:
                    decimals = int(to_token["decimals"])
                except (TypeError, ValueError):
                    decimals = None
        if decimals is not None and not 0 <= decimals <= MAX_TOKEN_DECIMALS:
            raise MalformedQuoteError(
                "Invalid swap data received (toToken.decimals out of range)",
                details={"decimals": decimals},
            )

        return cls(
            spender_address=spender_address,
            destination_amount=destination_amount,
            destination_token_symbol=symbol,
            destination_token_decimals=decimals,
            call_target=str(tx["to"]),
            call_data=str(tx["data"]),
            call_value=call_value,
            gas=gas,
        )


@dataclass(frozen=True)
class SwapOutcome:
    """Result of a submitted swap transaction."""

    tx_hash: TxHash
    network: str
    quote: SwapQuote
    allowance_note: str | None = None

    @property
    def formatted_destination_amount(self) -> str | None:
        decimals = self.quote.destination_token_decimals
        if decimals is None:
            return None
        from .utils import to_human_units

        return to_human_units(self.quote.destination_amount, decimals)

    def to_dict(self) -> dict[str, Any]:
        return {
            "transactionHash": self.tx_hash,
            "network": self.network,
            "spender": self.quote.spender_address,
            "expectedOutput": {
                "raw": str(self.quote.destination_amount),
                "formatted": self.formatted_destination_amount,
                "symbol": self.quote.destination_token_symbol,
                "decimals": self.quote.destination_token_decimals,
            },
            "allowanceNote": self.allowance_note,
        }

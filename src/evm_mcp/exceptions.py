"""Exception hierarchy for the EVM tool core.

Every exception carries a ``kind`` drawn from a fixed taxonomy and an optional
``stage`` naming the pipeline step that raised it. The facade converts them into
``ToolResult`` objects; nothing below the facade returns error values.
"""

from typing import Any


class EVMToolError(Exception):
    """Base exception for all EVM tool errors."""

    kind = "EVMToolError"

    def __init__(self, message: str, details: dict | None = None, *, stage: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.stage = stage


class ConfigurationError(EVMToolError):
    """Raised when a required secret or setting is absent."""

    kind = "ConfigurationError"

    def __init__(self, message: str, setting: str | None = None, details: dict | None = None):
        super().__init__(message, details, stage="configuring")
        self.setting = setting


class ValidationError(EVMToolError):
    """Raised when input validation fails."""

    kind = "ValidationError"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details, stage="validating")
        self.field = field
        self.value = value


class InvalidAmountError(ValidationError):
    """Raised for malformed, negative or over-precise amounts."""

    kind = "InvalidAmount"


class UnsupportedNetworkError(EVMToolError):
    """Raised when a network identifier matches no known chain."""

    kind = "UnsupportedNetwork"

    def __init__(self, identifier: Any, details: dict | None = None):
        super().__init__(f"Unsupported network: {identifier}", details, stage="resolving_network")
        self.identifier = identifier


class NetworkInitError(EVMToolError):
    """Raised when an RPC client cannot be constructed."""

    kind = "NetworkInitError"

    def __init__(
        self,
        message: str,
        network: str | None = None,
        endpoint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details, stage="connecting")
        self.network = network
        self.endpoint = endpoint


class NameResolutionError(EVMToolError):
    """Raised when a name cannot be resolved to an address."""

    kind = "NameResolutionError"

    def __init__(self, message: str, name: str | None = None, details: dict | None = None):
        super().__init__(message, details, stage="resolving_address")
        self.name = name


class RPCError(EVMToolError):
    """Raised when a read against the RPC provider fails."""

    kind = "RPCError"

    def __init__(
        self,
        message: str,
        network: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details, stage="reading")
        self.network = network


class QuoteError(EVMToolError):
    """Raised when a bridge route cannot be priced."""

    kind = "QuoteError"

    def __init__(self, message: str, details: dict | None = None, stage: str = "quoting"):
        super().__init__(message, details, stage=stage)


class SpenderLookupError(EVMToolError):
    """Raised when the swap aggregator spender address cannot be fetched."""

    kind = "SpenderLookupError"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, details, stage="fetching_spender")


class SwapQuoteError(EVMToolError):
    """Raised when the swap aggregator refuses to build a swap."""

    kind = "SwapQuoteError"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, details, stage="quoting_swap")


class MalformedQuoteError(EVMToolError):
    """Raised when a third-party quote lacks required fields."""

    kind = "MalformedQuoteError"

    def __init__(self, message: str, missing: list[str] | None = None, details: dict | None = None):
        super().__init__(message, details, stage="quoting_swap")
        self.missing = missing or []


class SubmissionError(EVMToolError):
    """Raised when a transaction cannot be submitted or reverts."""

    kind = "SubmissionError"

    def __init__(
        self,
        message: str,
        stage: str = "submitting",
        tx_hash: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details, stage=stage)
        self.tx_hash = tx_hash


class DepositError(SubmissionError):
    """Raised when a bridge deposit fails or reverts."""

    kind = "DepositError"

    def __init__(
        self,
        message: str,
        stage: str = "depositing",
        tx_hash: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, stage=stage, tx_hash=tx_hash, details=details)


ERROR_KINDS = tuple(
    cls.kind
    for cls in (
        UnsupportedNetworkError,
        NetworkInitError,
        NameResolutionError,
        InvalidAmountError,
        ValidationError,
        QuoteError,
        SwapQuoteError,
        SpenderLookupError,
        MalformedQuoteError,
        DepositError,
        SubmissionError,
        ConfigurationError,
        RPCError,
    )
)

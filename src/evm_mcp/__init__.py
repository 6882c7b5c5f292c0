"""EVM MCP tool core - bridge, swap, transfer and read operations for EVM chains.

This library provides the pieces an MCP server needs to act on EVM networks:
a network registry, shared RPC clients, ENS resolution, an exact amount codec,
an Across bridge pipeline with a progress feed, a 1inch swap pipeline, and a
uniform error contract.
"""

from .config import load_config, load_env_files
from .evm.bridge import ProgressFeed, Subscription
from .evm.client import EVMToolkit
from .evm.config import BridgeConfig, ConnectionConfig, EVMToolkitConfig, SwapConfig
from .evm.connections import ClientCache, address_from_private_key
from .evm.ens import AddressResolver
from .exceptions import (
    ConfigurationError,
    DepositError,
    EVMToolError,
    InvalidAmountError,
    MalformedQuoteError,
    NameResolutionError,
    NetworkInitError,
    QuoteError,
    RPCError,
    SpenderLookupError,
    SubmissionError,
    SwapQuoteError,
    UnsupportedNetworkError,
    ValidationError,
)
from .networks import NetworkDescriptor, list_supported_networks, resolve_network
from .results import ToolResult
from .types import (
    Address,
    BridgeOutcome,
    BridgeProgressEvent,
    BridgeStage,
    ProgressStatus,
    SwapOutcome,
    TokenAmount,
    TokenListing,
    TransferOutcome,
    TxHash,
)
from .utils import to_base_units, to_human_units

__version__ = "0.1.0"

__all__ = [
    # Facade
    "EVMToolkit",
    "ToolResult",
    # Configuration
    "load_config",
    "load_env_files",
    "EVMToolkitConfig",
    "ConnectionConfig",
    "BridgeConfig",
    "SwapConfig",
    # Networks and connections
    "NetworkDescriptor",
    "resolve_network",
    "list_supported_networks",
    "ClientCache",
    "AddressResolver",
    "address_from_private_key",
    # Bridge progress
    "ProgressFeed",
    "Subscription",
    # Exceptions
    "EVMToolError",
    "ConfigurationError",
    "ValidationError",
    "InvalidAmountError",
    "UnsupportedNetworkError",
    "NetworkInitError",
    "NameResolutionError",
    "RPCError",
    "QuoteError",
    "SpenderLookupError",
    "SwapQuoteError",
    "MalformedQuoteError",
    "SubmissionError",
    "DepositError",
    # Types
    "Address",
    "TxHash",
    "TokenAmount",
    "TransferOutcome",
    "BridgeStage",
    "ProgressStatus",
    "BridgeProgressEvent",
    "BridgeOutcome",
    "SwapOutcome",
    "TokenListing",
    # Amount codec
    "to_base_units",
    "to_human_units",
]

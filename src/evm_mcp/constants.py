"""Constants shared by the EVM tool core."""

from enum import Enum

NATIVE_DECIMALS = 18

# ERC-20 decimals is a uint8
MAX_TOKEN_DECIMALS = 255

# Placeholder used by aggregators to denote the chain's native asset
NATIVE_TOKEN_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

ACROSS_API_URL = "https://app.across.to/api"
ACROSS_TESTNET_API_URL = "https://testnet.across.to/api"
ONEINCH_API_URL = "https://api.1inch.dev/swap/v6.0"

SWAP_RATE_LIMIT_DELAY = 1.1
MIN_SLIPPAGE = 0.01
MAX_SLIPPAGE = 50.0

# Wrapped native token per chain id, used as Across input/output token for native bridges
WETH_ADDRESSES = {
    1: "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
    10: "0x4200000000000000000000000000000000000006",
    137: "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619",
    8453: "0x4200000000000000000000000000000000000006",
    42161: "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
    84532: "0x4200000000000000000000000000000000000006",
    11155111: "0xfFf9976782d46CC05630D1f6eBAb18b2324d6B14",
}


class AcrossDepositStatus(str, Enum):
    """Fill states reported by the Across deposit status endpoint."""

    PENDING = "pending"
    FILLED = "filled"
    EXPIRED = "expired"
    REFUNDED = "refunded"


ERC20_ABI = (
    {
        "inputs": [],
        "name": "name",
        "outputs": [{"type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "symbol",
        "outputs": [{"type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "totalSupply",
        "outputs": [{"type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
)

SPOKE_POOL_ABI = (
    {
        "inputs": [
            {"name": "depositor", "type": "address"},
            {"name": "recipient", "type": "address"},
            {"name": "inputToken", "type": "address"},
            {"name": "outputToken", "type": "address"},
            {"name": "inputAmount", "type": "uint256"},
            {"name": "outputAmount", "type": "uint256"},
            {"name": "destinationChainId", "type": "uint256"},
            {"name": "exclusiveRelayer", "type": "address"},
            {"name": "quoteTimestamp", "type": "uint32"},
            {"name": "fillDeadline", "type": "uint32"},
            {"name": "exclusivityDeadline", "type": "uint32"},
            {"name": "message", "type": "bytes"},
        ],
        "name": "depositV3",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "name": "inputToken", "type": "address"},
            {"indexed": False, "name": "outputToken", "type": "address"},
            {"indexed": False, "name": "inputAmount", "type": "uint256"},
            {"indexed": False, "name": "outputAmount", "type": "uint256"},
            {"indexed": True, "name": "destinationChainId", "type": "uint256"},
            {"indexed": True, "name": "depositId", "type": "uint32"},
            {"indexed": False, "name": "quoteTimestamp", "type": "uint32"},
            {"indexed": False, "name": "fillDeadline", "type": "uint32"},
            {"indexed": False, "name": "exclusivityDeadline", "type": "uint32"},
            {"indexed": True, "name": "depositor", "type": "address"},
            {"indexed": False, "name": "recipient", "type": "address"},
            {"indexed": False, "name": "exclusiveRelayer", "type": "address"},
            {"indexed": False, "name": "message", "type": "bytes"},
        ],
        "name": "V3FundsDeposited",
        "type": "event",
    },
)

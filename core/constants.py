# PATH: core/constants.py
"""
Constants for the EVM token client.

Contains enums, selector tables and defaults.

SELECTOR TABLES:
- Erc20, Erc721, Erc1155: 4-byte function selectors (keccak256(signature)[:4])
- EthMethod: JSON-RPC method names used by the client
"""

from enum import Enum
from typing import Final

# =============================================================================
# TRANSPORT DEFAULTS
# =============================================================================

JSONRPC_VERSION: Final[str] = "2.0"
DEFAULT_TIMEOUT_SECONDS = 10
DEFAULT_MAX_CONNECTIONS = 10

# Block tags accepted by eth_getBlockByNumber / eth_call
BLOCK_TAG_LATEST: Final[str] = "latest"
BLOCK_TAG_EARLIEST: Final[str] = "earliest"
BLOCK_TAG_PENDING: Final[str] = "pending"
BLOCK_TAGS = frozenset({BLOCK_TAG_LATEST, BLOCK_TAG_EARLIEST, BLOCK_TAG_PENDING})

# Cache alias for block 1
FIRST_BLOCK_ALIAS: Final[str] = "first"
FIRST_BLOCK_NUMBER: Final[int] = 1

# =============================================================================
# RESOLVER DEFAULTS
# =============================================================================

# Extra probes allowed on top of 3 * ceil(log2(chain_length))
DEFAULT_PROBE_MARGIN = 32

# =============================================================================
# TOKEN DEFAULTS
# =============================================================================

ETHER_DECIMALS = 18
WORD_HEX_LENGTH = 64  # one 32-byte ABI word


class EthMethod(str, Enum):
    """JSON-RPC methods used by the client."""
    CALL = "eth_call"
    GET_BALANCE = "eth_getBalance"
    GET_BLOCK_BY_NUMBER = "eth_getBlockByNumber"
    BLOCK_NUMBER = "eth_blockNumber"
    CHAIN_ID = "eth_chainId"


class Erc20(str, Enum):
    """ERC20 function selectors."""
    BALANCE_OF = "0x70a08231"
    TOTAL_SUPPLY = "0x18160ddd"
    NAME = "0x06fdde03"
    SYMBOL = "0x95d89b41"
    DECIMALS = "0x313ce567"


class Erc721(str, Enum):
    """ERC721 function selectors."""
    BALANCE_OF = "0x70a08231"
    OWNER_OF = "0x6352211e"
    TOKEN_URI = "0xc87b56dd"


class Erc1155(str, Enum):
    """ERC1155 function selectors."""
    BALANCE_OF = "0x00fdd58e"
    BALANCE_OF_BATCH = "0x4e1273f4"


class ErrorCode(str, Enum):
    """
    Error codes carried by every client exception.

    String enum so codes serialize directly into structured logs.
    """
    # Upstream / transport
    UPSTREAM_RPC_ERROR = "UPSTREAM_RPC_ERROR"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    UPSTREAM_HTTP_ERROR = "UPSTREAM_HTTP_ERROR"
    UPSTREAM_NO_RESULT = "UPSTREAM_NO_RESULT"
    UPSTREAM_NO_ENDPOINTS = "UPSTREAM_NO_ENDPOINTS"

    # Data
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"

    # Resolver
    INSUFFICIENT_CHAIN_DATA = "INSUFFICIENT_CHAIN_DATA"
    RESOLUTION_TIMEOUT = "RESOLUTION_TIMEOUT"

    # Caller input / setup
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"

    UNKNOWN = "UNKNOWN"

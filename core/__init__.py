"""
core - Core utilities and models for the EVM token client.

This package contains:
- constants.py: Selector tables, RPC method names, defaults, ErrorCode
- exceptions.py: Typed exceptions with error codes
- models.py: Data models (Block, BlockRef, TokenInfo)
- formatting.py: Hex, ABI-word and token-amount formatting (no float)
- logging.py: Structured JSON logging
"""

from core.constants import (
    Erc20,
    Erc721,
    Erc1155,
    ErrorCode,
    EthMethod,
)
from core.exceptions import (
    ConfigError,
    EvmClientError,
    InsufficientChainDataError,
    MalformedResponseError,
    ResolutionTimeoutError,
    UpstreamError,
    ValidationError,
)
from core.logging import get_logger, setup_logging
from core.models import Block, BlockRef, TokenInfo

__all__ = [
    # Constants
    "Erc20",
    "Erc721",
    "Erc1155",
    "ErrorCode",
    "EthMethod",
    # Exceptions
    "ConfigError",
    "EvmClientError",
    "InsufficientChainDataError",
    "MalformedResponseError",
    "ResolutionTimeoutError",
    "UpstreamError",
    "ValidationError",
    # Models
    "Block",
    "BlockRef",
    "TokenInfo",
    # Logging
    "get_logger",
    "setup_logging",
]

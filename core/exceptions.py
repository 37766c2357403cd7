# PATH: core/exceptions.py
"""
Typed exceptions for the EVM token client.

Every exception carries an ErrorCode, a message and a details dict.
Upstream failures (transport, RPC envelope, unparseable payloads) are kept
apart from resolver failures so callers can decide what to retry.
"""

from typing import Optional

from core.constants import ErrorCode


class EvmClientError(Exception):
    """Base exception for the client."""

    default_code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def __str__(self):
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> dict:
        """Serialize for structured logs."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class UpstreamError(EvmClientError):
    """The RPC endpoint or the fetch collaborator failed."""
    default_code = ErrorCode.UPSTREAM_RPC_ERROR


class MalformedResponseError(UpstreamError):
    """Response payload could not be parsed (e.g. non-numeric block number)."""
    default_code = ErrorCode.MALFORMED_RESPONSE


class InsufficientChainDataError(EvmClientError):
    """Chain has fewer than 2 blocks, no average block interval available."""
    default_code = ErrorCode.INSUFFICIENT_CHAIN_DATA


class ResolutionTimeoutError(EvmClientError):
    """Timestamp resolution exceeded its probe ceiling."""
    default_code = ErrorCode.RESOLUTION_TIMEOUT


class ValidationError(EvmClientError):
    """Invalid caller input."""
    default_code = ErrorCode.VALIDATION_ERROR


class ConfigError(EvmClientError):
    """Missing or invalid configuration."""
    default_code = ErrorCode.CONFIG_ERROR

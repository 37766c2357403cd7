"""
chains/providers.py - JSON-RPC provider with failover.

Provides RPC access with:
- Primary endpoint plus optional fallback endpoints
- Bearer API key and additional headers
- Request timeout handling
- Latency and success tracking per endpoint
"""

import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from core.constants import (
    BLOCK_TAG_LATEST,
    DEFAULT_MAX_CONNECTIONS,
    DEFAULT_TIMEOUT_SECONDS,
    ErrorCode,
    EthMethod,
    JSONRPC_VERSION,
)
from core.exceptions import MalformedResponseError, UpstreamError
from core.formatting import construct_eth_method_payload, to_block_param
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RPCStats:
    """Statistics for an RPC endpoint."""
    url: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_latency_ms: int = 0
    last_error: str | None = None
    last_success_ts: int | None = None

    @property
    def avg_latency_ms(self) -> int:
        if self.successful_requests == 0:
            return 0
        return self.total_latency_ms // self.successful_requests

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests


@dataclass
class RPCResponse:
    """Response from an RPC call."""
    result: Any
    latency_ms: int
    endpoint_used: str


def _now_ms() -> int:
    return int(time.time() * 1000)


class RPCProvider:
    """
    JSON-RPC provider with failover support.

    Tries the primary endpoint, then each fallback, until one succeeds.
    Tracks statistics per endpoint for monitoring. Retry policy lives
    here; callers above this layer never retry.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        additional_headers: Optional[dict[str, str]] = None,
        fallback_endpoints: Optional[list[str]] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_urls = [url for url in [endpoint, *(fallback_endpoints or [])] if url]
        self.timeout_seconds = timeout_seconds
        self.headers = {
            **(additional_headers or {}),
            **({"Authorization": f"Bearer {api_key}"} if api_key else {}),
        }
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._request_id = 0

        self.stats: dict[str, RPCStats] = {
            url: RPCStats(url=url) for url in self.rpc_urls
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.headers,
                timeout=httpx.Timeout(self.timeout_seconds),
                limits=httpx.Limits(max_connections=DEFAULT_MAX_CONNECTIONS),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RPCProvider":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def send(self, payload: dict[str, Any]) -> RPCResponse:
        """
        Send a prepared JSON-RPC payload with failover.

        Raises:
            UpstreamError: If every endpoint fails
        """
        if not self.rpc_urls:
            raise UpstreamError(
                "No RPC endpoints configured",
                code=ErrorCode.UPSTREAM_NO_ENDPOINTS,
            )

        client = await self._get_client()
        method = payload.get("method")
        last_error: Exception | None = None
        last_code = ErrorCode.UPSTREAM_RPC_ERROR

        for url in self.rpc_urls:
            stats = self.stats[url]
            stats.total_requests += 1
            start_ms = _now_ms()

            try:
                resp = await client.post(url, json=payload)
                latency_ms = _now_ms() - start_ms
                resp.raise_for_status()
                result = resp.json()

                if not isinstance(result, dict):
                    raise MalformedResponseError(
                        "RPC response is not a JSON object",
                        details={"url": url, "method": method},
                    )

                if result.get("error"):
                    error = result["error"]
                    error_msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                    stats.failed_requests += 1
                    stats.last_error = error_msg
                    last_code = ErrorCode.UPSTREAM_RPC_ERROR
                    last_error = UpstreamError(
                        f"RPC error: {error_msg}",
                        details={"url": url, "method": method, "rpc_error": error},
                    )
                    logger.debug(f"RPC error from {url}: {error_msg}")
                    continue

                stats.successful_requests += 1
                stats.total_latency_ms += latency_ms
                stats.last_success_ts = _now_ms()

                return RPCResponse(
                    result=result.get("result"),
                    latency_ms=latency_ms,
                    endpoint_used=url,
                )

            except httpx.TimeoutException as e:
                latency_ms = _now_ms() - start_ms
                stats.failed_requests += 1
                stats.last_error = f"Timeout after {latency_ms}ms"
                last_code = ErrorCode.UPSTREAM_TIMEOUT
                last_error = e
                logger.debug(f"RPC timeout for {url}: {latency_ms}ms")
                continue

            except httpx.HTTPStatusError as e:
                stats.failed_requests += 1
                stats.last_error = f"HTTP {e.response.status_code}"
                last_code = ErrorCode.UPSTREAM_HTTP_ERROR
                last_error = e
                logger.debug(f"RPC HTTP {e.response.status_code} from {url}")
                continue

            except (httpx.HTTPError, ValueError, MalformedResponseError) as e:
                stats.failed_requests += 1
                stats.last_error = str(e)
                last_code = ErrorCode.UPSTREAM_RPC_ERROR
                last_error = e
                logger.debug(f"RPC failed for {url}: {e}")
                continue

        logger.warning(
            f"All RPC endpoints failed for {method}",
            extra={"context": {"endpoints_tried": len(self.rpc_urls), "last_error": str(last_error)}},
        )
        raise UpstreamError(
            f"All RPC endpoints failed for {method}",
            code=last_code,
            details={
                "method": method,
                "endpoints_tried": len(self.rpc_urls),
                "last_error": str(last_error),
            },
        )

    async def call(
        self,
        method: str,
        params: list | None = None,
    ) -> RPCResponse:
        """
        Make an RPC call with failover.

        Args:
            method: RPC method name
            params: Method parameters

        Returns:
            RPCResponse with result and metadata
        """
        payload = {
            "jsonrpc": JSONRPC_VERSION,
            "method": method,
            "params": params or [],
            "id": self._next_request_id(),
        }
        return await self.send(payload)

    async def get_chain_id(self) -> int:
        """Get chain ID from RPC."""
        response = await self.call(EthMethod.CHAIN_ID.value)
        return _hex_to_int(response.result, "chain id")

    async def get_block_number(self) -> tuple[int, int]:
        """
        Get latest block number.

        Returns:
            (block_number, latency_ms)
        """
        response = await self.call(EthMethod.BLOCK_NUMBER.value)
        return _hex_to_int(response.result, "block number"), response.latency_ms

    async def get_block_by_number(self, block: int | str = BLOCK_TAG_LATEST) -> dict:
        """
        Fetch a block header (without transactions).

        Raises:
            UpstreamError: If the node returns no block
        """
        response = await self.call(
            EthMethod.GET_BLOCK_BY_NUMBER.value,
            [to_block_param(block), False],
        )
        if not response.result:
            raise UpstreamError(
                "No result returned",
                code=ErrorCode.UPSTREAM_NO_RESULT,
                details={"method": EthMethod.GET_BLOCK_BY_NUMBER.value, "block": str(block)},
            )
        return response.result

    async def get_balance(
        self,
        address: str,
        block: int | str = BLOCK_TAG_LATEST,
    ) -> RPCResponse:
        """Get native balance (hex wei) of an address."""
        payload = construct_eth_method_payload(
            address,
            EthMethod.GET_BALANCE.value,
            tag=to_block_param(block),
            request_id=self._next_request_id(),
        )
        return await self.send(payload)

    async def eth_call(
        self,
        to: str,
        data: str,
        block: int | str = BLOCK_TAG_LATEST,
    ) -> RPCResponse:
        """
        Make eth_call.

        Args:
            to: Contract address
            data: Encoded call data
            block: Block number or tag

        Returns:
            RPCResponse with call result
        """
        payload = construct_eth_method_payload(
            {"to": to, "data": data},
            EthMethod.CALL.value,
            tag=to_block_param(block),
            request_id=self._next_request_id(),
        )
        return await self.send(payload)

    def get_stats_summary(self) -> dict:
        """Get statistics summary for all endpoints."""
        return {
            url: {
                "total_requests": s.total_requests,
                "success_rate": round(s.success_rate, 3),
                "avg_latency_ms": s.avg_latency_ms,
                "last_error": s.last_error,
            }
            for url, s in self.stats.items()
        }


def _hex_to_int(value: Any, label: str) -> int:
    if not isinstance(value, str):
        raise MalformedResponseError(f"Invalid {label}: {value!r}")
    try:
        return int(value, 16)
    except ValueError:
        raise MalformedResponseError(f"Invalid {label}: {value!r}") from None

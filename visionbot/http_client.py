"""
Shared async HTTP client for Bot Framework traffic. [PA][RM]

One pooled httpx client serves every outbound call that is not a vision
service call:
- OAuth token requests for the bot identities
- Authenticated download of inline image attachments
- Upload session writes for recognized text
- Connector calls that send and delete activities

Retries with exponential backoff and jitter apply to connection failures and
5xx answers. Callers that must not repeat a request (upload session writes)
pass a RequestConfig with max_retries=0.
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Dict, Optional, Any

import httpx
from httpx import AsyncClient, Response, RequestError, HTTPStatusError, TimeoutException

from .utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RequestConfig:
    """Configuration for individual HTTP requests. [CMV]"""

    connect_timeout: float = 5.0  # seconds
    read_timeout: float = 30.0  # seconds
    write_timeout: float = 30.0  # seconds
    max_retries: int = 2
    retry_delay_base: float = 0.5  # seconds
    retry_delay_max: float = 4.0  # seconds
    retry_exponential_base: float = 2.0


# Upload session writes are not idempotent from the user's point of view
NO_RETRY = RequestConfig(max_retries=0)


@dataclass
class ClientMetrics:
    """HTTP client metrics for monitoring. [PA]"""

    requests_total: int = 0
    requests_success: int = 0
    requests_failed: int = 0
    requests_retried: int = 0
    avg_response_time_ms: float = 0.0


class SharedHttpClient:
    """Shared async HTTP client with pooling and retries. [PA][RM]"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize shared HTTP client with configuration."""
        self.config = config or {}
        self.client: Optional[AsyncClient] = None
        self.metrics = ClientMetrics()

        # Default request configuration
        self.default_config = RequestConfig(
            connect_timeout=float(self.config.get("HTTP_CONNECT_TIMEOUT_MS", 5000)) / 1000,
            read_timeout=float(self.config.get("HTTP_READ_TIMEOUT_MS", 30000)) / 1000,
        )

        self.max_connections = int(self.config.get("HTTP_MAX_CONNECTIONS", 64))
        self.max_keepalive = max(1, self.max_connections // 2)

        logger.info("🌐 SharedHttpClient initialized")

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.stop()

    async def start(self) -> None:
        """Start the HTTP client."""
        if self.client is not None:
            return  # Already started

        limits = httpx.Limits(
            max_connections=self.max_connections,
            max_keepalive_connections=self.max_keepalive,
            keepalive_expiry=30.0,
        )

        timeout = httpx.Timeout(
            connect=self.default_config.connect_timeout,
            read=self.default_config.read_timeout,
            write=self.default_config.write_timeout,
            pool=5.0,
        )

        self.client = AsyncClient(
            limits=limits,
            timeout=timeout,
            headers={"User-Agent": "visionbot/1.0"},
            follow_redirects=True,
            max_redirects=5,
        )

        logger.info("✅ SharedHttpClient started")

    async def stop(self) -> None:
        """Stop the HTTP client and clean up resources."""
        if self.client is not None:
            await self.client.aclose()
            self.client = None
            logger.info("🛑 SharedHttpClient stopped")

    async def _wait_with_jitter(self, delay: float) -> None:
        """Wait with jitter to avoid thundering herds. [REH]"""
        jitter = random.uniform(0.1, 0.3) * delay
        await asyncio.sleep(delay + jitter)

    async def request(
        self, method: str, url: str, config: Optional[RequestConfig] = None, **kwargs
    ) -> Response:
        """
        Make HTTP request with retries. [REH][PA]

        4xx responses are returned to the caller as-is; 5xx responses and
        transport failures are retried, then the last exception is raised.
        """
        if self.client is None:
            await self.start()

        config = config or self.default_config
        last_exception: Optional[Exception] = None

        for attempt in range(config.max_retries + 1):
            start_time = time.time()

            try:
                timeout = httpx.Timeout(
                    connect=config.connect_timeout,
                    read=config.read_timeout,
                    write=config.write_timeout,
                    pool=5.0,
                )

                response = await self.client.request(
                    method=method, url=url, timeout=timeout, **kwargs
                )
                self.metrics.requests_total += 1

                if response.status_code >= 500:
                    # Server error - retryable
                    raise HTTPStatusError(
                        f"HTTP {response.status_code}",
                        request=response.request,
                        response=response,
                    )

                self.metrics.requests_success += 1
                response_time = (time.time() - start_time) * 1000
                self.metrics.avg_response_time_ms = (
                    self.metrics.avg_response_time_ms * (self.metrics.requests_success - 1)
                    + response_time
                ) / self.metrics.requests_success
                return response

            except (RequestError, TimeoutException, HTTPStatusError) as e:
                last_exception = e
                self.metrics.requests_failed += 1

                # Don't retry on the last attempt
                if attempt == config.max_retries:
                    break

                delay = min(
                    config.retry_delay_base * (config.retry_exponential_base**attempt),
                    config.retry_delay_max,
                )

                logger.debug(
                    f"🔄 HTTP {method} failed (attempt {attempt + 1}/{config.max_retries + 1}), "
                    f"retrying in {delay:.1f}s: {e}",
                    extra={
                        "event": "http.retry",
                        "detail": {
                            "method": method,
                            "attempt": attempt + 1,
                            "delay_s": delay,
                            "error": str(e),
                        },
                    },
                )

                self.metrics.requests_retried += 1
                await self._wait_with_jitter(delay)

        logger.error(
            f"❌ HTTP {method} failed after {config.max_retries + 1} attempts: {last_exception}",
            extra={"event": "http.failed", "detail": {"method": method, "error": str(last_exception)}},
        )
        raise last_exception

    async def get(self, url: str, config: Optional[RequestConfig] = None, **kwargs) -> Response:
        """Make GET request."""
        return await self.request("GET", url, config, **kwargs)

    async def post(self, url: str, config: Optional[RequestConfig] = None, **kwargs) -> Response:
        """Make POST request."""
        return await self.request("POST", url, config, **kwargs)

    async def put(self, url: str, config: Optional[RequestConfig] = None, **kwargs) -> Response:
        """Make PUT request."""
        return await self.request("PUT", url, config, **kwargs)

    async def delete(self, url: str, config: Optional[RequestConfig] = None, **kwargs) -> Response:
        """Make DELETE request."""
        return await self.request("DELETE", url, config, **kwargs)

    def get_metrics(self) -> ClientMetrics:
        """Get current HTTP client metrics."""
        return self.metrics


# Global singleton instance
_http_client_instance: Optional[SharedHttpClient] = None


async def get_http_client(config: Optional[Dict[str, Any]] = None) -> SharedHttpClient:
    """Get or create the shared HTTP client instance. [CA]"""
    global _http_client_instance

    if _http_client_instance is None:
        _http_client_instance = SharedHttpClient(config)
        await _http_client_instance.start()

    return _http_client_instance


async def cleanup_http_client() -> None:
    """Clean up the shared HTTP client instance."""
    global _http_client_instance

    if _http_client_instance is not None:
        await _http_client_instance.stop()
        _http_client_instance = None

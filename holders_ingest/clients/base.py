"""
Base API client with connection management and request metrics.
Source-specific clients inherit from this class.

Requests are never retried here: a failed request surfaces as a
SourceUnavailable / SourceMalformed error and the caller decides what
a failure means for the run.
"""
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
import structlog

from holders_ingest.config import Settings, get_settings
from holders_ingest.errors import SourceMalformed, SourceUnavailable

logger = structlog.get_logger()


class BaseAPIClient(ABC):
    """
    Abstract base class for upstream API clients.
    Owns one httpx.AsyncClient between connect() and close().
    """

    SOURCE: str = "unknown"
    BASE_URL: str = ""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        timeout_seconds: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings()
        self._client: Optional[httpx.AsyncClient] = None
        self._timeout = timeout_seconds or self._settings.api_timeout_seconds
        self._transport = transport

        # Metrics
        self._request_count = 0
        self._error_count = 0
        self._bytes_transferred = 0
        self._total_latency_ms = 0.0

    @abstractmethod
    def _get_headers(self) -> dict[str, str]:
        """Get headers for requests."""
        pass

    async def __aenter__(self) -> "BaseAPIClient":
        await self.connect()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def connect(self) -> None:
        """Initialize the HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            timeout=httpx.Timeout(self._timeout),
            headers=self._get_headers(),
            transport=self._transport,
        )
        logger.debug("API client connected", source=self.SOURCE, base_url=self.BASE_URL)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug(
                "API client closed",
                source=self.SOURCE,
                requests_made=self._request_count,
                errors=self._error_count,
            )

    async def _make_request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        **kwargs,
    ) -> httpx.Response:
        """Make a single HTTP request; any transport or status failure is SourceUnavailable."""
        if not self._client:
            raise RuntimeError("Client not connected. Call connect() first.")

        log = logger.bind(source=self.SOURCE, method=method, path=path)
        start = time.monotonic()

        try:
            response = await self._client.request(method, path, params=params, **kwargs)
        except httpx.HTTPError as e:
            self._error_count += 1
            log.warning("API request failed", error=str(e), error_type=type(e).__name__)
            raise SourceUnavailable(f"{type(e).__name__}: {e}") from e

        elapsed_ms = (time.monotonic() - start) * 1000
        self._request_count += 1
        self._total_latency_ms += elapsed_ms
        if response.content:
            self._bytes_transferred += len(response.content)

        log.debug(
            "API request completed",
            status=response.status_code,
            latency_ms=round(elapsed_ms, 2),
        )

        if response.status_code >= 400:
            self._error_count += 1
            log.warning(
                "API error status",
                status=response.status_code,
                body=response.text[:500],
            )
            raise SourceUnavailable(f"HTTP {response.status_code} from {self.SOURCE}")

        return response

    async def get(
        self,
        path: str = "",
        params: Optional[dict[str, Any]] = None,
        **kwargs,
    ) -> Any:
        """Make a GET request and return the parsed JSON body."""
        response = await self._make_request("GET", path, params=params, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            self._error_count += 1
            raise SourceMalformed(f"Response from {self.SOURCE} is not JSON") from e

    def get_metrics(self) -> dict[str, Any]:
        """Get client metrics."""
        avg_latency = (
            self._total_latency_ms / self._request_count
            if self._request_count > 0
            else 0
        )
        return {
            "source": self.SOURCE,
            "requests": self._request_count,
            "errors": self._error_count,
            "bytes_transferred": self._bytes_transferred,
            "avg_latency_ms": round(avg_latency, 2),
        }

"""
Shared aiohttp plumbing for the upstream REST clients.
Maps transport failures onto a small error hierarchy the API layer can
translate into 502/504 responses.
"""

import asyncio
from typing import Any, Optional

import aiohttp

from ..utils.logger import get_logger

logger = get_logger("http")


class UpstreamError(Exception):
    """An upstream API answered with a non-2xx status."""

    def __init__(self, service: str, status_code: int, message: str, details: str = ""):
        super().__init__(message)
        self.service = service
        self.status_code = status_code
        self.message = message
        self.details = details


class UpstreamTimeout(UpstreamError):
    """The upstream API did not answer in time."""

    def __init__(self, service: str, details: str = ""):
        super().__init__(
            service, 504,
            f"Request timeout - {service} took too long to respond.", details
        )


class UpstreamUnavailable(UpstreamError):
    """The upstream API could not be reached."""

    def __init__(self, service: str, details: str = ""):
        super().__init__(
            service, 502,
            f"Network error - could not reach {service}.", details
        )


class HttpClient:
    """
    Base class for JSON-over-HTTP clients.

    Subclasses set SERVICE for error messages and pass their base URL.
    """

    SERVICE = "upstream API"

    def __init__(self, base_url: str, timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Initialize HTTP session."""
        if not self._session:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={"Content-Type": "application/json"},
            )
        logger.debug(f"{self.SERVICE} client initialized")

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def _request(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        method: str = "GET",
        json_body: Any = None,
        timeout_seconds: Optional[float] = None
    ) -> Any:
        """Make HTTP request and decode the JSON body."""
        if not self._session:
            await self.initialize()

        url = endpoint if endpoint.startswith("http") else f"{self.base_url}{endpoint}"
        timeout = aiohttp.ClientTimeout(total=timeout_seconds) if timeout_seconds else None
        if params:
            params = {k: str(v).lower() if isinstance(v, bool) else v
                      for k, v in params.items() if v is not None}

        try:
            async with self._session.request(
                method, url, params=params, json=json_body, timeout=timeout
            ) as response:
                if response.status >= 400:
                    text = await response.text()
                    logger.warning(
                        f"{self.SERVICE} request failed",
                        extra={"url": url, "status": response.status}
                    )
                    raise UpstreamError(
                        self.SERVICE,
                        response.status,
                        f"{self.SERVICE} error ({response.status}): {response.reason}",
                        text[:500],
                    )
                return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            logger.error(f"{self.SERVICE} request timed out", extra={"url": url})
            raise UpstreamTimeout(self.SERVICE, str(e)) from e
        except aiohttp.ClientError as e:
            logger.error(f"{self.SERVICE} request failed: {e}", extra={"url": url})
            raise UpstreamUnavailable(self.SERVICE, str(e)) from e

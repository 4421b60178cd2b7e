"""
Outbound webhook delivery with retry and exponential backoff.

4xx responses are final; 5xx, timeouts and connection errors are retried
after retry_delay_ms * 2^(attempt-1).
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp

from ..utils.logger import NotificationLogger

USER_AGENT = "Alithos Terminal/1.0"
TEST_TIMEOUT_SECONDS = 10

notification_log = NotificationLogger()


@dataclass
class WebhookResult:
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    attempt: Optional[int] = None
    retries: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "statusCode": self.status_code,
            "error": self.error,
            "attempt": self.attempt,
            "retries": self.retries,
        }


@dataclass
class WebhookTestResult:
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    response_time: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "statusCode": self.status_code,
            "error": self.error,
            "responseTime": self.response_time,
        }


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _post(
    session: aiohttp.ClientSession,
    url: str,
    payload: Any,
    timeout_seconds: float
) -> tuple[int, str, str]:
    async with session.post(
        url,
        json=payload,
        headers={"Content-Type": "application/json", "User-Agent": USER_AGENT},
        timeout=aiohttp.ClientTimeout(total=timeout_seconds),
    ) as response:
        text = await response.text()
        return response.status, response.reason or "", text


async def send_webhook(
    url: str,
    payload: dict,
    max_retries: int = 3,
    retry_delay_ms: int = 1000,
    timeout_ms: int = 10000,
    session: Optional[aiohttp.ClientSession] = None
) -> WebhookResult:
    """
    POST a JSON payload to a webhook URL.

    Args:
        url: Target URL
        payload: JSON-serialisable body
        max_retries: Total attempts, including the first
        retry_delay_ms: Base backoff delay
        timeout_ms: Per-attempt timeout
        session: Reuse an existing session instead of opening one

    Returns:
        WebhookResult; never raises for delivery failures
    """
    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession()

    last_error = "Unknown error"
    last_status: Optional[int] = None

    try:
        for attempt in range(1, max_retries + 1):
            try:
                status, reason, text = await _post(session, url, payload, timeout_ms / 1000)
                last_status = status

                if 200 <= status < 300:
                    notification_log.notification_sent("webhook", url, attempt, status_code=status)
                    return WebhookResult(True, status, attempt=attempt, retries=attempt - 1)

                if 400 <= status < 500:
                    error = f"Client error: {status} {text}"
                    notification_log.notification_failed("webhook", url, error, attempt)
                    return WebhookResult(False, status, error, attempt, attempt - 1)

                last_error = f"HTTP {status}: {reason}"
            except asyncio.TimeoutError:
                last_error = "Request timeout"
            except aiohttp.ClientError as e:
                last_error = str(e) or "Unknown error"

            notification_log.notification_failed("webhook", url, last_error, attempt)
            if attempt < max_retries:
                await asyncio.sleep(retry_delay_ms * 2 ** (attempt - 1) / 1000)
    finally:
        if owns_session:
            await session.close()

    return WebhookResult(False, last_status, last_error, max_retries, max_retries - 1)


async def test_webhook(
    url: str,
    session: Optional[aiohttp.ClientSession] = None
) -> WebhookTestResult:
    """Send a single test payload and time the round trip."""
    payload = {
        "alert": "Test Alert",
        "timestamp": _iso_now(),
        "message": "This is a test webhook from Alithos Terminal",
    }

    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession()

    start = time.monotonic()
    try:
        status, _, text = await _post(session, url, payload, TEST_TIMEOUT_SECONDS)
        elapsed = int((time.monotonic() - start) * 1000)
        if 200 <= status < 300:
            return WebhookTestResult(True, status, response_time=elapsed)
        return WebhookTestResult(False, status, f"HTTP {status}: {text}", elapsed)
    except asyncio.TimeoutError:
        elapsed = int((time.monotonic() - start) * 1000)
        return WebhookTestResult(False, error="Request timeout (10s)", response_time=elapsed)
    except aiohttp.ClientError as e:
        elapsed = int((time.monotonic() - start) * 1000)
        return WebhookTestResult(False, error=str(e) or "Unknown error", response_time=elapsed)
    finally:
        if owns_session:
            await session.close()

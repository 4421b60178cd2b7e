"""
Telegram Bot API client for user notifications.
Messages are addressed by @username rather than numeric chat id.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from ..utils.logger import NotificationLogger

API_URL = "https://api.telegram.org"
USERNAME_PATTERN = re.compile(r"^@[a-zA-Z0-9_]{5,32}$")
PARSE_MODES = ("HTML", "Markdown", "MarkdownV2")
TEST_MESSAGE = (
    "✅ <b>Test message from Alithos Terminal</b>\n\n"
    "Your Telegram notifications are working correctly!"
)

ERROR_MESSAGES = {
    400: "Invalid username or message format",
    403: "Bot is blocked by user or user has not started a conversation with the bot",
    404: "User not found. Make sure the username is correct and the user exists",
}

notification_log = NotificationLogger()


class TelegramError(Exception):
    """Bot API rejected the message or could not be reached."""

    def __init__(self, message: str, error_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details


@dataclass
class TelegramResult:
    success: bool
    message_id: Optional[int] = None


def is_valid_username(username: str) -> bool:
    return bool(USERNAME_PATTERN.match(username or ""))


class TelegramClient:
    """Thin async wrapper over the Bot API sendMessage method."""

    def __init__(self, bot_token: str, session: Optional[aiohttp.ClientSession] = None):
        if not bot_token:
            raise ValueError("Telegram bot token is required")
        self.api_url = f"{API_URL}/bot{bot_token}"
        self._session = session

    async def send_message(
        self,
        username: str,
        text: str,
        parse_mode: str = "HTML"
    ) -> TelegramResult:
        """
        Send `text` to a Telegram user.

        Raises:
            TelegramError: with a user-facing message mapped from the API error code
        """
        payload = {"chat_id": username, "text": text, "parse_mode": parse_mode}
        session = self._session or aiohttp.ClientSession()
        try:
            async with session.post(f"{self.api_url}/sendMessage", json=payload) as response:
                body = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            notification_log.notification_failed("telegram", username, str(e))
            raise TelegramError(str(e) or "Failed to send Telegram message") from e
        finally:
            if self._session is None:
                await session.close()

        if not body.get("ok"):
            code = body.get("error_code")
            description = body.get("description") or ""
            message = ERROR_MESSAGES.get(code) or description or f"Telegram API error: {code}"
            notification_log.notification_failed("telegram", username, message)
            raise TelegramError(message, code, body)

        message_id = (body.get("result") or {}).get("message_id")
        notification_log.notification_sent("telegram", username, message_id=message_id)
        return TelegramResult(True, message_id)

    async def send_test_message(self, username: str) -> TelegramResult:
        return await self.send_message(username, TEST_MESSAGE, "HTML")

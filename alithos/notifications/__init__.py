from .email import EmailMessage, send_email
from .telegram import TelegramClient, TelegramError, TelegramResult, is_valid_username
from .webhook import WebhookResult, WebhookTestResult, send_webhook, test_webhook

__all__ = [
    "EmailMessage",
    "send_email",
    "TelegramClient",
    "TelegramError",
    "TelegramResult",
    "is_valid_username",
    "WebhookResult",
    "WebhookTestResult",
    "send_webhook",
    "test_webhook",
]

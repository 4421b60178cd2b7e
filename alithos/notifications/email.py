"""
Email notifications.

No delivery provider is wired in; messages are written to the
notification log so the rest of the pipeline can run unchanged.
"""

from dataclasses import dataclass
from typing import Optional

from ..utils.logger import NotificationLogger

LOGGED_MESSAGE = "Email logged (no provider configured)"

notification_log = NotificationLogger()


@dataclass
class EmailMessage:
    to: str
    subject: str
    body: str
    html: Optional[str] = None


async def send_email(message: EmailMessage) -> dict:
    notification_log.notification_sent(
        "email",
        message.to,
        subject=message.subject,
        body_length=len(message.body),
    )
    return {"success": True, "message": LOGGED_MESSAGE}

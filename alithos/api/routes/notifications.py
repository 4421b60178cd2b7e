"""
Notification channels: webhook tests, Telegram, email and the in-app inbox.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...notifications import webhook
from ...notifications.email import EmailMessage, send_email
from ...notifications.telegram import TelegramError
from ..deps import Services, get_optional_user_id, get_services
from ..errors import ApiError, BadRequest
from ..schemas import EmailBody, TelegramBody, WebhookTestBody

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    limit: int = Query(default=50, ge=1, le=100),
    user_id: Optional[str] = Depends(get_optional_user_id),
    services: Services = Depends(get_services)
):
    """In-app notifications from fired alerts, newest first."""
    inbox = [
        n for n in reversed(services.alert_system.notifications)
        if user_id is None or n.get("userId") in (None, user_id)
    ]
    return {"notifications": inbox[:limit]}


@router.post("/webhook/test")
async def test_webhook(body: WebhookTestBody):
    result = await webhook.test_webhook(body.url)
    return result.to_dict()


@router.post("/telegram")
async def send_telegram(body: TelegramBody, services: Services = Depends(get_services)):
    if services.telegram is None:
        raise ApiError(
            "Telegram bot not configured",
            details="Set TELEGRAM_BOT_TOKEN in the environment to enable Telegram notifications",
            status_code=500,
        )

    try:
        result = await services.telegram.send_message(body.username, body.message, body.parse_mode)
    except TelegramError as e:
        raise BadRequest(e.message, details=e.details)

    return {"success": result.success, "messageId": result.message_id}


@router.post("/email")
async def send_email_notification(body: EmailBody):
    return await send_email(EmailMessage(
        to=body.to,
        subject=body.subject,
        body=body.body,
        html=body.html,
    ))

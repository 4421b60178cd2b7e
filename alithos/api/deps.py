"""
Shared components for the API routes: upstream clients, the anomaly engine,
the alert system, and request identity.
"""
import re
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Header, Query, Request

from ..alerts.models import Alert, NotificationPreferences, parse_datetime
from ..alerts.provider import PolymarketDataProvider
from ..alerts.system import AlertSystem
from ..anomaly.engine import AnomalyEngine
from ..clients.clob_client import ClobClient
from ..clients.data_client import DataApiClient
from ..clients.gamma_client import GammaClient
from ..config import Config, load_config
from ..notifications.telegram import TelegramClient
from ..storage import alerts as alert_store
from ..storage import users as user_store
from .errors import Unauthorized

_CAMEL_BOUNDARY = re.compile(r"_([a-z0-9])")

# Client-authored JSON blobs are returned as stored
OPAQUE_FIELDS = ("config", "attachments", "post_mortem", "preferences", "context")


def _camel(key: str) -> str:
    return _CAMEL_BOUNDARY.sub(lambda m: m.group(1).upper(), key)


def camelize(value: Any) -> Any:
    """Recursively convert snake_case dict keys to camelCase."""
    if isinstance(value, dict):
        return {
            _camel(k) if isinstance(k, str) else k: v if k in OPAQUE_FIELDS else camelize(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [camelize(v) for v in value]
    return value


def get_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
    user_id: Optional[str] = Query(default=None, alias="userId")
) -> str:
    """Caller identity from the X-User-Id header or the userId query parameter."""
    identity = x_user_id or user_id
    if not identity:
        raise Unauthorized("Unauthorized", details="Missing X-User-Id header or userId parameter")
    return identity


def get_optional_user_id(
    x_user_id: Optional[str] = Header(default=None),
    user_id: Optional[str] = Query(default=None, alias="userId")
) -> Optional[str]:
    return x_user_id or user_id


def alert_from_row(row: dict) -> Alert:
    """Build the in-memory alert from a stored row."""
    return Alert.from_dict({
        "id": row["id"],
        "name": row["name"],
        "marketId": row.get("market_id"),
        "conditions": row.get("conditions") or [],
        "actions": row.get("actions") or [],
        "isActive": row.get("is_active", True),
        "cooldownPeriodMinutes": row.get("cooldown_period_minutes"),
        "lastTriggered": row.get("last_triggered"),
        "userId": row.get("user_id"),
    })


def load_user_context(user_id: Optional[str]) -> tuple[Optional[NotificationPreferences], Optional[str]]:
    """Notification preferences and email of an alert owner."""
    if not user_id:
        return None, None
    user = user_store.get_user(user_id)
    if not user:
        return None, None
    return NotificationPreferences.parse(user.get("preferences")), user.get("email")


def persist_trigger(alert: Alert) -> None:
    triggered_at = alert.last_triggered.isoformat() if alert.last_triggered else None
    alert_store.record_trigger(alert.id, triggered_at)


@dataclass
class Services:
    """Long-lived components owned by one app instance."""
    config: Config
    gamma: GammaClient
    clob: ClobClient
    data_api: DataApiClient
    anomaly_engine: AnomalyEngine
    alert_system: AlertSystem
    telegram: Optional[TelegramClient] = None

    @classmethod
    def create(cls, config: Optional[Config] = None) -> "Services":
        config = config or load_config()
        pm = config.polymarket
        gamma = GammaClient(pm.gamma_url, timeout_seconds=30)
        clob = ClobClient(pm.clob_url, timeout_seconds=pm.request_timeout_seconds)
        data_api = DataApiClient(pm.data_api_url, timeout_seconds=pm.request_timeout_seconds)

        notifications = config.notifications
        telegram = TelegramClient(notifications.telegram_bot_token) if notifications.telegram_bot_token else None

        alert_system = AlertSystem(
            provider=PolymarketDataProvider(gamma, clob, data_api),
            check_interval=notifications.alert_check_interval_seconds,
            preferences_loader=load_user_context,
            on_trigger=persist_trigger,
            telegram=telegram,
            webhook_settings={
                "max_retries": notifications.webhook_max_retries,
                "retry_delay_ms": notifications.webhook_retry_delay_ms,
                "timeout_ms": notifications.webhook_timeout_ms,
            },
        )

        return cls(
            config=config,
            gamma=gamma,
            clob=clob,
            data_api=data_api,
            anomaly_engine=AnomalyEngine(),
            alert_system=alert_system,
            telegram=telegram,
        )

    def sync_alerts(self) -> None:
        """Reload the alert system's registry from storage."""
        self.alert_system.load_alerts([alert_from_row(row) for row in alert_store.list_active_alerts()])

    async def close(self) -> None:
        await self.alert_system.stop()
        for client in (self.gamma, self.clob, self.data_api):
            await client.close()


def get_services(request: Request) -> Services:
    return request.app.state.services


def parse_iso(value: Optional[str]):
    """Parse an optional ISO timestamp query parameter; ValueError if malformed."""
    if not value:
        return None
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValueError(f"Invalid timestamp: {value}")
    return parsed

"""
Alert data model: conditions, actions, alerts and notification preferences.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlparse

CONDITION_TYPES = ("price", "volume", "depth", "flow", "spread")
OPERATORS = ("gt", "lt", "gte", "lte", "eq")
ACTION_TYPES = ("notify", "order", "webhook")

EQ_TOLERANCE = 0.001

CONDITION_LABELS = {
    "price": "Price",
    "volume": "Volume (24h)",
    "depth": "Depth",
    "spread": "Spread",
    "flow": "Flow",
}

OPERATOR_SYMBOLS = {
    "gt": ">",
    "lt": "<",
    "gte": "≥",
    "lte": "≤",
    "eq": "=",
}

TELEGRAM_USERNAME_PATTERN = re.compile(r"^@[a-zA-Z0-9_]{5,32}$")


def compare_value(current: float, operator: str, target: float) -> bool:
    """Apply a comparison operator. Unknown operators never match."""
    if operator == "gt":
        return current > target
    if operator == "lt":
        return current < target
    if operator == "gte":
        return current >= target
    if operator == "lte":
        return current <= target
    if operator == "eq":
        return abs(current - target) < EQ_TOLERANCE
    return False


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO string (or pass through a datetime) as an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class AlertCondition:
    type: str
    operator: str
    value: float

    def describe(self, current: float) -> str:
        label = CONDITION_LABELS.get(self.type, self.type)
        symbol = OPERATOR_SYMBOLS.get(self.operator, self.operator)
        return f"{label}: {current:.2f} {symbol} {self.value:.2f}"

    def to_dict(self) -> dict:
        return {"type": self.type, "operator": self.operator, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict) -> "AlertCondition":
        return cls(
            type=data["type"],
            operator=data["operator"],
            value=float(data["value"]),
        )


@dataclass
class AlertAction:
    """An action run when an alert fires. `config` keeps the camelCase wire keys."""
    type: str
    config: dict = field(default_factory=dict)

    @property
    def message(self) -> Optional[str]:
        return self.config.get("message")

    @property
    def webhook_url(self) -> Optional[str]:
        return self.config.get("webhookUrl")

    @property
    def order_params(self) -> Optional[dict]:
        return self.config.get("orderParams")

    def to_dict(self) -> dict:
        return {"type": self.type, "config": dict(self.config)}

    @classmethod
    def from_dict(cls, data: dict) -> "AlertAction":
        config = {k: v for k, v in (data.get("config") or {}).items() if v is not None}
        return cls(type=data["type"], config=config)


@dataclass
class Alert:
    id: str
    name: str
    conditions: list[AlertCondition]
    actions: list[AlertAction]
    market_id: Optional[str] = None  # None for global alerts
    is_active: bool = True
    cooldown_period_minutes: Optional[int] = None
    last_triggered: Optional[datetime] = None
    user_id: Optional[str] = None

    def in_cooldown(self, now: datetime) -> bool:
        """True while the cooldown since the last trigger has not elapsed."""
        if not self.cooldown_period_minutes or self.last_triggered is None:
            return False
        elapsed = (now - self.last_triggered).total_seconds()
        return elapsed < self.cooldown_period_minutes * 60

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "marketId": self.market_id,
            "conditions": [c.to_dict() for c in self.conditions],
            "actions": [a.to_dict() for a in self.actions],
            "isActive": self.is_active,
            "cooldownPeriodMinutes": self.cooldown_period_minutes,
            "lastTriggered": iso(self.last_triggered),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Alert":
        return cls(
            id=data["id"],
            name=data["name"],
            market_id=data.get("marketId"),
            conditions=[AlertCondition.from_dict(c) for c in data.get("conditions", [])],
            actions=[AlertAction.from_dict(a) for a in data.get("actions", [])],
            is_active=bool(data.get("isActive", True)),
            cooldown_period_minutes=data.get("cooldownPeriodMinutes"),
            last_triggered=parse_datetime(data.get("lastTriggered")),
            user_id=data.get("userId"),
        )


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass
class NotificationPreferences:
    browser: bool = True
    email: bool = False
    webhook: bool = False
    webhook_url: Optional[str] = None
    telegram: bool = False
    telegram_username: Optional[str] = None

    @classmethod
    def parse(cls, raw: Any) -> "NotificationPreferences":
        """Build preferences from a stored blob, filling defaults for missing keys."""
        if not isinstance(raw, dict):
            return cls()
        defaults = cls()

        def pick(key: str, default):
            value = raw.get(key)
            return default if value is None else value

        return cls(
            browser=bool(pick("browser", defaults.browser)),
            email=bool(pick("email", defaults.email)),
            webhook=bool(pick("webhook", defaults.webhook)),
            webhook_url=pick("webhookUrl", defaults.webhook_url),
            telegram=bool(pick("telegram", defaults.telegram)),
            telegram_username=pick("telegramUsername", defaults.telegram_username),
        )

    def validate(self) -> Optional[str]:
        """Return an error message, or None when the preferences are consistent."""
        if self.webhook and not self.webhook_url:
            return "Webhook URL is required when webhook notifications are enabled"
        if self.webhook_url and not is_valid_url(self.webhook_url):
            return "Invalid webhook URL format"
        if self.telegram and not self.telegram_username:
            return "Telegram username is required when Telegram notifications are enabled"
        if self.telegram_username and not TELEGRAM_USERNAME_PATTERN.match(self.telegram_username):
            return (
                "Invalid Telegram username format. Must start with @ and be 5-32 "
                "characters (alphanumeric and underscores only)"
            )
        return None

    def to_dict(self) -> dict:
        return {
            "browser": self.browser,
            "email": self.email,
            "webhook": self.webhook,
            "webhookUrl": self.webhook_url,
            "telegram": self.telegram,
            "telegramUsername": self.telegram_username,
        }

"""
Request body models. Field names are snake_case in Python and camelCase
on the wire.
"""
import re
from datetime import datetime
from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..alerts.models import NotificationPreferences, is_valid_url
from ..notifications.telegram import PARSE_MODES, USERNAME_PATTERN

ETH_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ConditionType = Literal["price", "volume", "depth", "flow", "spread"]
Operator = Literal["gt", "lt", "gte", "lte", "eq"]
ActionType = Literal["notify", "order", "webhook"]
WorkspaceType = Literal["SCALPING", "EVENT_DAY", "ARB_DESK", "RESEARCH", "CUSTOM"]
TeamRole = Literal["OWNER", "ADMIN", "MEMBER", "VIEWER"]


def ethereum_address(value: str) -> str:
    """Validate an Ethereum address and normalise it to lowercase."""
    if not ETH_ADDRESS_PATTERN.match(value):
        raise ValueError("Invalid Ethereum address")
    return value.lower()


def url(value: str) -> str:
    if not is_valid_url(value):
        raise ValueError("Invalid URL")
    return value


def email_address(value: str) -> str:
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email address")
    return value


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def provided(self) -> dict:
        """Fields the client actually sent, by Python name."""
        return self.model_dump(exclude_unset=True)


class PartialUpdate(ApiModel):
    """
    Body of a partial update. Omitted fields are left alone; an explicit
    null is accepted only for columns listed in NULLABLE.
    """
    NULLABLE: ClassVar[tuple[str, ...]] = ()

    @field_validator("*")
    @classmethod
    def reject_null(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None and info.field_name not in cls.NULLABLE:
            raise ValueError("Field cannot be null")
        return v


# === Alerts ===

class AlertConditionBody(ApiModel):
    type: ConditionType
    operator: Operator
    value: float = Field(ge=0)


class OrderParams(ApiModel):
    market_id: Optional[str] = None
    outcome: Literal["YES", "NO"]
    amount: float = Field(gt=0)
    type: Literal["buy", "sell"]


class AlertActionConfig(ApiModel):
    message: Optional[str] = None
    order_params: Optional[OrderParams] = None
    webhook_url: Optional[str] = None

    @field_validator("webhook_url")
    @classmethod
    def check_webhook_url(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else url(v)


class AlertActionBody(ApiModel):
    type: ActionType
    config: AlertActionConfig = Field(default_factory=AlertActionConfig)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class CreateAlert(ApiModel):
    name: str = Field(min_length=1, max_length=100)
    market_id: Optional[str] = None
    conditions: list[AlertConditionBody] = Field(min_length=1, max_length=10)
    actions: list[AlertActionBody] = Field(min_length=1, max_length=5)
    cooldown_period_minutes: int = Field(default=5, ge=0)
    is_active: bool = True


class UpdateAlert(PartialUpdate):
    NULLABLE = ("market_id",)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    market_id: Optional[str] = None
    conditions: Optional[list[AlertConditionBody]] = Field(default=None, min_length=1, max_length=10)
    actions: Optional[list[AlertActionBody]] = Field(default=None, min_length=1, max_length=5)
    cooldown_period_minutes: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


# === Workspaces and layouts ===

class CreateWorkspace(ApiModel):
    user_id: Optional[str] = None
    name: str = Field(min_length=1, max_length=100)
    type: WorkspaceType = "CUSTOM"
    is_default: bool = False
    locked: bool = False
    template_id: Optional[str] = None


class UpdateWorkspace(PartialUpdate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[WorkspaceType] = None
    is_default: Optional[bool] = None
    locked: Optional[bool] = None


class CreateLayout(ApiModel):
    workspace_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=100)
    config: dict[str, Any]
    is_default: bool = False
    is_shared: bool = False


class UpdateLayout(PartialUpdate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    config: Optional[dict[str, Any]] = None
    is_default: Optional[bool] = None
    is_shared: Optional[bool] = None


# === Teams ===

class CreateTeam(ApiModel):
    workspace_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=100)


class UpdateTeam(ApiModel):
    name: str = Field(min_length=1, max_length=100)


class AddMember(ApiModel):
    user_id: str = Field(min_length=1)
    role: TeamRole = "MEMBER"


class UpdateMember(ApiModel):
    user_id: str = Field(min_length=1)
    role: TeamRole


# === Templates, themes, comments, journal ===

class CreateTemplate(ApiModel):
    user_id: Optional[str] = None
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    config: Optional[dict[str, Any]] = None
    is_public: bool = False


class CreateTheme(ApiModel):
    name: str = Field(min_length=1, max_length=100)
    config: dict[str, Any]
    is_public: bool = False


class UpdateTheme(PartialUpdate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    config: Optional[dict[str, Any]] = None
    is_public: Optional[bool] = None


class CreateComment(ApiModel):
    market_id: str = Field(min_length=1)
    content: str = Field(min_length=1, max_length=2000)


class UpdateComment(ApiModel):
    content: str = Field(min_length=1, max_length=2000)


class CreateJournalEntry(ApiModel):
    market_id: Optional[str] = None
    timestamp: datetime
    note: str = Field(min_length=1, max_length=10000)
    attachments: Optional[list[Any]] = None
    post_mortem: Optional[dict[str, Any]] = None


class UpdateJournalEntry(PartialUpdate):
    NULLABLE = ("market_id", "attachments", "post_mortem")

    market_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    note: Optional[str] = Field(default=None, min_length=1, max_length=10000)
    attachments: Optional[list[Any]] = None
    post_mortem: Optional[dict[str, Any]] = None


# === User ===

class UpdateUser(ApiModel):
    email: Optional[str] = None
    wallet_address: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else email_address(v)

    @field_validator("wallet_address")
    @classmethod
    def check_wallet(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else ethereum_address(v)


class NotificationPreferencesBody(ApiModel):
    browser: bool = True
    email: bool = False
    webhook: bool = False
    webhook_url: Optional[str] = None
    telegram: bool = False
    telegram_username: Optional[str] = None

    @model_validator(mode="after")
    def check_consistency(self):
        error = self.to_preferences().validate()
        if error:
            raise ValueError(error)
        return self

    def to_preferences(self) -> NotificationPreferences:
        return NotificationPreferences(
            browser=self.browser,
            email=self.email,
            webhook=self.webhook,
            webhook_url=self.webhook_url if self.webhook else None,
            telegram=self.telegram,
            telegram_username=self.telegram_username if self.telegram else None,
        )


# === Notifications ===

class WebhookTestBody(ApiModel):
    url: str

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return url(v)


class TelegramBody(ApiModel):
    username: str
    message: str = Field(min_length=1)
    parse_mode: str = "HTML"

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        if not USERNAME_PATTERN.match(v):
            raise ValueError(
                "Invalid username format. Must start with @ and be 5-32 characters"
            )
        return v

    @field_validator("parse_mode")
    @classmethod
    def check_parse_mode(cls, v: str) -> str:
        if v not in PARSE_MODES:
            raise ValueError(f"parseMode must be one of {', '.join(PARSE_MODES)}")
        return v


class EmailBody(ApiModel):
    to: str
    subject: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1)
    html: Optional[str] = None

    @field_validator("to")
    @classmethod
    def check_to(cls, v: str) -> str:
        return email_address(v)


# === Anomalies ===

class ComputeAnomalies(ApiModel):
    markets: list[dict[str, Any]] = Field(default_factory=list)
    trades: list[dict[str, Any]] = Field(default_factory=list)
    snapshots: list[dict[str, Any]] = Field(default_factory=list)
    window_ms: Optional[float] = Field(default=None, gt=0)
    now: Optional[float] = None
    config: Optional[dict[str, Any]] = None


# === Calculators ===

class KellyBody(ApiModel):
    belief: float = Field(gt=0, lt=1)
    entry: float = Field(gt=0, lt=1)
    fee: float = Field(default=0.02, ge=0, lt=1)
    fraction: float = Field(default=1.0, gt=0, le=1)
    max_position: float = Field(default=1.0, gt=0, le=1)
    bankroll: float = Field(default=1000.0, gt=0)


class PositionSizeBody(ApiModel):
    bankroll: float = Field(gt=0)
    belief: float = Field(gt=0, lt=1)
    entry: float = Field(gt=0, lt=1)
    fee: float = Field(default=0.02, ge=0, lt=1)
    risk_level: Literal["conservative", "moderate", "aggressive"] = "moderate"
    use_kelly: bool = True
    custom_percent: Optional[float] = Field(default=None, ge=0, le=100)


class OddsBody(ApiModel):
    probability: Optional[float] = Field(default=None, gt=0, lt=1)
    decimal: Optional[float] = Field(default=None, gt=1)
    us: Optional[float] = None
    logit: Optional[float] = None

    @model_validator(mode="after")
    def exactly_one(self):
        given = [v for v in (self.probability, self.decimal, self.us, self.logit) if v is not None]
        if len(given) != 1:
            raise ValueError("Provide exactly one of probability, decimal, us or logit")
        if self.us is not None and -100 < self.us < 100:
            raise ValueError("US odds must be <= -100 or >= 100")
        return self


class BookLevel(ApiModel):
    price: float = Field(ge=0, le=1)
    size: float = Field(ge=0)


class LiquidityBody(ApiModel):
    bids: list[BookLevel] = Field(default_factory=list)
    asks: list[BookLevel] = Field(default_factory=list)
    current_price: Optional[float] = Field(default=None, gt=0, le=1)

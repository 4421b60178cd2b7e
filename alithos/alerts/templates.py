"""
Pre-built alert templates for common trading scenarios.
"""

from dataclasses import dataclass, field
from typing import Optional

from .models import AlertAction, AlertCondition

TEMPLATE_CATEGORIES = ("price", "volume", "liquidity", "flow", "spread")


@dataclass
class AlertTemplate:
    id: str
    name: str
    description: str
    category: str
    conditions: list[AlertCondition]
    actions: list[AlertAction] = field(default_factory=list)
    default_cooldown_minutes: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "conditions": [c.to_dict() for c in self.conditions],
            "actions": [a.to_dict() for a in self.actions],
            "defaultCooldownMinutes": self.default_cooldown_minutes,
        }


def _template(
    id: str,
    name: str,
    description: str,
    category: str,
    conditions: list[tuple[str, str, float]],
    message: str,
    cooldown: int
) -> AlertTemplate:
    return AlertTemplate(
        id=id,
        name=name,
        description=description,
        category=category,
        conditions=[AlertCondition(t, op, v) for t, op, v in conditions],
        actions=[AlertAction("notify", {"message": message})],
        default_cooldown_minutes=cooldown,
    )


ALERT_TEMPLATES: list[AlertTemplate] = [
    # Price
    _template(
        "price-breakout-up", "Price Breakout Up",
        "Alert when price breaks above a threshold (bullish signal)", "price",
        [("price", "gt", 70)],
        "Price breakout detected! Price above 70%", 15,
    ),
    _template(
        "price-breakout-down", "Price Breakout Down",
        "Alert when price breaks below a threshold (bearish signal)", "price",
        [("price", "lt", 30)],
        "Price breakdown detected! Price below 30%", 15,
    ),
    _template(
        "price-extreme", "Price Extreme",
        "Alert when price reaches extreme levels (>80% or <20%)", "price",
        [("price", "gte", 80)],
        "Extreme price level reached! Consider taking profit or entering position.", 30,
    ),
    # Volume
    _template(
        "volume-spike", "Volume Spike",
        "Alert when 24h volume exceeds a threshold (high activity)", "volume",
        [("volume", "gt", 10000)],
        "Volume spike detected! High trading activity.", 60,
    ),
    _template(
        "volume-surge", "Volume Surge",
        "Alert when volume exceeds $50K (major activity)", "volume",
        [("volume", "gt", 50000)],
        "Major volume surge! Market moving significantly.", 60,
    ),
    # Liquidity
    _template(
        "low-liquidity", "Low Liquidity Warning",
        "Alert when order book depth is low (hard to trade)", "liquidity",
        [("depth", "lt", 1000)],
        "Low liquidity detected! High slippage risk.", 30,
    ),
    _template(
        "high-liquidity", "High Liquidity Opportunity",
        "Alert when liquidity improves (good trading conditions)", "liquidity",
        [("depth", "gt", 5000)],
        "High liquidity available! Good trading conditions.", 30,
    ),
    # Spread
    _template(
        "wide-spread", "Wide Spread Warning",
        "Alert when spread is wide (>5% = high trading cost)", "spread",
        [("spread", "gt", 5)],
        "Wide spread detected! High trading costs.", 30,
    ),
    _template(
        "tight-spread", "Tight Spread Opportunity",
        "Alert when spread is tight (<2% = good trading conditions)", "spread",
        [("spread", "lt", 2)],
        "Tight spread detected! Good trading conditions.", 30,
    ),
    # Multi-signal
    _template(
        "price-volume-breakout", "Price & Volume Breakout",
        "Alert when price breaks out AND volume spikes (strong signal)", "price",
        [("price", "gt", 65), ("volume", "gt", 5000)],
        "Strong breakout signal! Price and volume both elevated.", 30,
    ),
    _template(
        "perfect-storm", "Perfect Storm (Multi-Signal)",
        "Alert when price, volume, and liquidity all align (optimal conditions)", "price",
        [("price", "gt", 50), ("volume", "gt", 10000), ("depth", "gt", 3000), ("spread", "lt", 3)],
        "Perfect trading conditions! All metrics aligned.", 60,
    ),
]


def get_templates_by_category(category: str) -> list[AlertTemplate]:
    return [t for t in ALERT_TEMPLATES if t.category == category]


def get_template_by_id(template_id: str) -> Optional[AlertTemplate]:
    for template in ALERT_TEMPLATES:
        if template.id == template_id:
            return template
    return None


def template_to_alert(
    template: AlertTemplate,
    market_id: Optional[str] = None,
    custom_name: Optional[str] = None
) -> dict:
    """
    Build an alert creation payload (camelCase, as accepted by the
    alerts API) from a template.
    """
    return {
        "name": custom_name or template.name,
        "marketId": market_id,
        "conditions": [c.to_dict() for c in template.conditions],
        "actions": [a.to_dict() for a in template.actions],
        "isActive": True,
        "cooldownPeriodMinutes": template.default_cooldown_minutes,
    }

"""
Multi-signal market alerts: model, templates, data providers and the
evaluation loop.
"""

from .models import (
    Alert,
    AlertAction,
    AlertCondition,
    NotificationPreferences,
    compare_value,
)
from .provider import MarketDataProvider, PolymarketDataProvider
from .system import AlertSystem
from .templates import (
    ALERT_TEMPLATES,
    AlertTemplate,
    get_template_by_id,
    get_templates_by_category,
    template_to_alert,
)

__all__ = [
    "Alert",
    "AlertAction",
    "AlertCondition",
    "NotificationPreferences",
    "compare_value",
    "MarketDataProvider",
    "PolymarketDataProvider",
    "AlertSystem",
    "ALERT_TEMPLATES",
    "AlertTemplate",
    "get_template_by_id",
    "get_templates_by_category",
    "template_to_alert",
]

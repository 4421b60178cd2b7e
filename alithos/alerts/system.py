"""
Alert system for multi-signal alerts and automation.

Alerts are held in memory and swept on a fixed interval. An alert fires
when every one of its conditions holds against live market values; its
actions then run in order and the trigger time is handed to a persistence
callback.
"""

import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Union

from ..notifications.email import EmailMessage, send_email
from ..notifications.telegram import TelegramClient, TelegramError
from ..notifications.webhook import send_webhook
from ..utils.logger import NotificationLogger, get_logger
from .models import Alert, AlertAction, AlertCondition, NotificationPreferences, compare_value, iso
from .provider import MarketDataProvider

logger = get_logger("alerts")
notification_logger = NotificationLogger()

DEFAULT_MESSAGE = "Alert triggered"
BROWSER_TITLE = "Alithos Terminal Alert"

# (preferences, email) for the alert owner; either may be None
UserContext = tuple[Optional[NotificationPreferences], Optional[str]]
PreferencesLoader = Callable[[Optional[str]], UserContext]
TriggerCallback = Callable[[Alert], Union[None, Awaitable[None]]]


class AlertSystem:
    """
    Evaluates alerts against market data and runs their actions.

    Args:
        provider: Market data source; None evaluates with default values
        check_interval: Seconds between sweeps
        preferences_loader: Returns the owner's notification preferences and email
        on_trigger: Called after an alert fires, to persist last_triggered
        telegram: Client used when the owner enabled Telegram notifications
        webhook_settings: Retry/timeout keyword arguments for send_webhook
    """

    def __init__(
        self,
        provider: Optional[MarketDataProvider] = None,
        check_interval: float = 5.0,
        preferences_loader: Optional[PreferencesLoader] = None,
        on_trigger: Optional[TriggerCallback] = None,
        telegram: Optional[TelegramClient] = None,
        webhook_settings: Optional[dict] = None
    ):
        self.provider = provider
        self.check_interval = check_interval
        self.preferences_loader = preferences_loader
        self.on_trigger = on_trigger
        self.telegram = telegram
        self.webhook_settings = webhook_settings or {}

        self._alerts: dict[str, Alert] = {}
        self._running = False
        self._task: Optional[asyncio.Task] = None

        # In-app notification inbox, newest last
        self.notifications: deque[dict] = deque(maxlen=100)

    # Registry

    def add_alert(self, alert: Alert) -> None:
        self._alerts[alert.id] = alert

    def remove_alert(self, alert_id: str) -> None:
        self._alerts.pop(alert_id, None)

    def update_alert(self, alert_id: str, **updates: Any) -> Optional[Alert]:
        alert = self._alerts.get(alert_id)
        if not alert:
            return None
        for key, value in updates.items():
            setattr(alert, key, value)
        return alert

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    def get_all_alerts(self) -> list[Alert]:
        return list(self._alerts.values())

    def load_alerts(self, alerts: list[Alert]) -> None:
        """Replace the registry with the given alerts."""
        self._alerts = {alert.id: alert for alert in alerts}

    # Loop

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start sweeping alerts in the background."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info("Alert system started", extra={"check_interval": self.check_interval})

    async def stop(self) -> None:
        """Stop the background sweep."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Alert system stopped")

    async def _run(self) -> None:
        while self._running:
            try:
                await self.check_alerts()
            except Exception as e:
                logger.error(f"Error in alert sweep: {e}")
            await asyncio.sleep(self.check_interval)

    async def check_alerts(self, now: Optional[datetime] = None) -> list[Alert]:
        """
        Run one sweep over all alerts.

        Returns:
            Alerts that fired during this sweep
        """
        now = now or datetime.now(timezone.utc)
        fired = []

        for alert in list(self._alerts.values()):
            if not alert.is_active or alert.in_cooldown(now):
                continue

            if not await self.evaluate_conditions(alert):
                continue

            notification_logger.alert_triggered(
                alert.id, alert.name, alert.market_id or "global", len(alert.actions)
            )
            await self.execute_actions(alert)
            alert.last_triggered = now
            fired.append(alert)

            if self.on_trigger:
                try:
                    result = self.on_trigger(alert)
                    if asyncio.iscoroutine(result):
                        await result
                except Exception as e:
                    logger.error(f"Failed to persist trigger for alert {alert.id}: {e}")

        return fired

    # Evaluation

    async def get_value_for_condition(
        self,
        condition: AlertCondition,
        market_id: Optional[str]
    ) -> float:
        """Current market value for a condition; price falls back to 50, everything else to 0."""
        fallback = 50.0 if condition.type == "price" else 0.0
        if not market_id or self.provider is None:
            return fallback

        try:
            if condition.type == "price":
                value = await self.provider.get_price(market_id)
            elif condition.type == "volume":
                value = await self.provider.get_volume(market_id)
            elif condition.type == "depth":
                value = await self.provider.get_depth(market_id)
            elif condition.type == "flow":
                value = await self.provider.get_flow(market_id)
            elif condition.type == "spread":
                value = await self.provider.get_spread(market_id)
                value = value * 100 if value is not None else None
            else:
                value = None
        except Exception as e:
            logger.error(
                f"Error fetching condition value: {e}",
                extra={"market_id": market_id, "condition": condition.type}
            )
            return fallback

        return fallback if value is None else float(value)

    async def evaluate_conditions(self, alert: Alert) -> bool:
        """True when every condition holds."""
        for condition in alert.conditions:
            value = await self.get_value_for_condition(condition, alert.market_id)
            if not compare_value(value, condition.operator, condition.value):
                return False
        return True

    async def test_alert(self, alert: Alert) -> dict:
        """Evaluate each condition now without running any action."""
        results = []
        for condition in alert.conditions:
            current = await self.get_value_for_condition(condition, alert.market_id)
            results.append({
                "condition": condition.to_dict(),
                "currentValue": current,
                "passed": compare_value(current, condition.operator, condition.value),
                "description": condition.describe(current),
            })
        return {
            "wouldTrigger": all(r["passed"] for r in results),
            "conditions": results,
        }

    # Actions

    def _load_user_context(self, alert: Alert) -> UserContext:
        if not self.preferences_loader:
            return None, None
        try:
            return self.preferences_loader(alert.user_id)
        except Exception as e:
            logger.error(f"Failed to load notification preferences: {e}", extra={"alert_id": alert.id})
            return None, None

    async def execute_actions(self, alert: Alert) -> None:
        """Run every action; a failing action is logged and the rest still run."""
        preferences, email = self._load_user_context(alert)

        for action in alert.actions:
            try:
                if action.type == "notify":
                    await self._notify(alert, action, preferences, email)
                elif action.type == "order":
                    self._order(alert, action)
                elif action.type == "webhook":
                    await self._webhook(alert, action, preferences)
                else:
                    logger.warning(f"Unknown action type: {action.type}", extra={"alert_id": alert.id})
            except Exception as e:
                logger.error(
                    f"Alert action failed: {e}",
                    extra={"alert_id": alert.id, "action": action.type}
                )

    def send_browser_notification(self, alert: Alert, message: str) -> None:
        entry = {
            "title": BROWSER_TITLE,
            "body": message,
            "alertId": alert.id,
            "userId": alert.user_id,
            "timestamp": iso(datetime.now(timezone.utc)),
        }
        self.notifications.append(entry)
        notification_logger.notification_sent("browser", alert.user_id or "anonymous")

    async def _notify(
        self,
        alert: Alert,
        action: AlertAction,
        preferences: Optional[NotificationPreferences],
        email: Optional[str]
    ) -> None:
        message = action.message or DEFAULT_MESSAGE

        if preferences is None or preferences.browser:
            self.send_browser_notification(alert, message)

        if preferences and preferences.email and email:
            await send_email(EmailMessage(
                to=email,
                subject=f"Alert Triggered: {alert.name}",
                body=message,
                html=(
                    f"<p>{message}</p><p>Alert: {alert.name}</p>"
                    f"<p>Market: {alert.market_id or 'Global'}</p>"
                ),
            ))

        if preferences and preferences.telegram and preferences.telegram_username and self.telegram:
            try:
                await self.telegram.send_message(
                    preferences.telegram_username,
                    f"<b>{alert.name}</b>\n\n{message}",
                )
            except TelegramError as e:
                notification_logger.notification_failed("telegram", preferences.telegram_username, e.message)

    def _order(self, alert: Alert, action: AlertAction) -> None:
        # Order placement is not wired up; the request is only recorded
        if action.order_params:
            logger.info(
                "Execute order",
                extra={"alert_id": alert.id, "order_params": action.order_params}
            )

    async def _webhook(
        self,
        alert: Alert,
        action: AlertAction,
        preferences: Optional[NotificationPreferences]
    ) -> None:
        if preferences and preferences.webhook and preferences.webhook_url:
            url = preferences.webhook_url
        else:
            url = action.webhook_url

        if not url or (preferences is not None and not preferences.webhook):
            return

        payload = {
            "alert": alert.name,
            "alertId": alert.id,
            "timestamp": iso(datetime.now(timezone.utc)),
            "marketId": alert.market_id,
            "message": action.message or DEFAULT_MESSAGE,
            "conditions": [c.to_dict() for c in alert.conditions],
        }
        result = await send_webhook(url, payload, **self.webhook_settings)
        if not result.success:
            logger.error(f"Webhook delivery failed: {result.error}", extra={"alert_id": alert.id})

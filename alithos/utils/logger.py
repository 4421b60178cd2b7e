"""
Structured logging for Alithos Terminal.
JSON lines by default; uvicorn's own loggers share the same handler.
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from pythonjsonlogger import jsonlogger

from ..config import LogConfig

ROOT_LOGGER = "alithos"
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Adds level, logger, service and a UTC ISO timestamp to every record."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['service'] = ROOT_LOGGER
        log_record['timestamp'] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()


def setup_logging(config: LogConfig) -> None:
    """Send alithos and uvicorn logs to stdout at the configured level."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if config.json_logging:
        handler.setFormatter(CustomJsonFormatter('%(timestamp)s %(level)s %(name)s %(message)s'))
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

    for name in (ROOT_LOGGER,) + UVICORN_LOGGERS:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers = [handler]
        logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a child logger with the given name."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


class NotificationLogger:
    """Specialized logger for alert and notification events."""

    def __init__(self):
        self.logger = get_logger("notifications")

    def alert_triggered(
        self,
        alert_id: str,
        alert_name: str,
        market_id: str,
        actions: int
    ):
        """Log when an alert's conditions are all met."""
        self.logger.info(
            "Alert triggered",
            extra={
                "event": "alert_triggered",
                "alert_id": alert_id,
                "alert_name": alert_name,
                "market_id": market_id,
                "actions": actions
            }
        )

    def notification_sent(
        self,
        channel: str,
        target: str,
        attempt: int = 1,
        **fields: Any
    ):
        """Log a delivered notification."""
        self.logger.info(
            "Notification sent",
            extra={
                "event": "notification_sent",
                "channel": channel,
                "target": target,
                "attempt": attempt,
                **fields
            }
        )

    def notification_failed(
        self,
        channel: str,
        target: str,
        error: Optional[str] = None,
        attempt: int = 1
    ):
        """Log a notification that could not be delivered."""
        self.logger.warning(
            "Notification failed",
            extra={
                "event": "notification_failed",
                "channel": channel,
                "target": target,
                "error": error,
                "attempt": attempt
            }
        )

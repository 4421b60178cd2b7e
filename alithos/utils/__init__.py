# Utilities
from .logger import setup_logging, get_logger, NotificationLogger

__all__ = ["setup_logging", "get_logger", "NotificationLogger"]

"""
Configuration module for Alithos Terminal.
Loads settings from environment variables with sane defaults.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "alithos.db"


@dataclass
class PolymarketConfig:
    """Polymarket API endpoints."""
    gamma_url: str = "https://gamma-api.polymarket.com"
    clob_url: str = "https://clob.polymarket.com"
    data_api_url: str = "https://data-api.polymarket.com"
    request_timeout_seconds: float = 10.0


@dataclass
class DatabaseConfig:
    """SQLite storage location."""
    path: Path = DEFAULT_DB_PATH


@dataclass
class LogConfig:
    """Logging configuration."""
    log_level: str
    json_logging: bool


@dataclass
class ServerConfig:
    """HTTP server settings."""
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = "development"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @property
    def debug(self) -> bool:
        """Stack traces are only exposed in development."""
        return self.environment == "development"


@dataclass
class RateLimitConfig:
    """API rate limiting."""
    enabled: bool = True
    cleanup_interval_seconds: int = 60


@dataclass
class NotificationConfig:
    """Outbound notification channels."""
    telegram_bot_token: Optional[str] = None
    webhook_max_retries: int = 3
    webhook_retry_delay_ms: int = 1000
    webhook_timeout_ms: int = 10000
    alert_check_interval_seconds: float = 5.0
    alerts_enabled: bool = True


@dataclass
class NewsConfig:
    """News provider credentials."""
    newsapi_ai_key: Optional[str] = None
    adjacent_news_key: Optional[str] = None


@dataclass
class Config:
    """Main configuration container."""
    polymarket: PolymarketConfig
    database: DatabaseConfig
    logging: LogConfig
    server: ServerConfig
    rate_limit: RateLimitConfig
    notifications: NotificationConfig
    news: NewsConfig


def get_env(key: str, default: Optional[str] = None, required: bool = True) -> str:
    """Get environment variable with validation."""
    value = os.getenv(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable {key} is not set")
    return value or ""


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes")


def get_env_int(key: str, default: int) -> int:
    """Get integer environment variable."""
    value = os.getenv(key, str(default))
    return int(value)


def get_env_float(key: str, default: float) -> float:
    """Get float environment variable."""
    value = os.getenv(key, str(default))
    return float(value)


def get_env_list(key: str, default: list[str]) -> list[str]:
    """Get comma-separated list environment variable."""
    value = os.getenv(key)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config() -> Config:
    """Load configuration from environment."""
    return Config(
        polymarket=PolymarketConfig(
            gamma_url=get_env("GAMMA_API_URL", "https://gamma-api.polymarket.com", required=False),
            clob_url=get_env("CLOB_API_URL", "https://clob.polymarket.com", required=False),
            data_api_url=get_env("DATA_API_URL", "https://data-api.polymarket.com", required=False),
            request_timeout_seconds=get_env_float("POLYMARKET_TIMEOUT_SECONDS", 10.0),
        ),
        database=DatabaseConfig(
            path=Path(get_env("ALITHOS_DB_PATH", str(DEFAULT_DB_PATH), required=False)),
        ),
        logging=LogConfig(
            log_level=get_env("LOG_LEVEL", "INFO", required=False),
            json_logging=get_env_bool("JSON_LOGGING", True),
        ),
        server=ServerConfig(
            host=get_env("HOST", "0.0.0.0", required=False),
            port=get_env_int("PORT", 8000),
            environment=get_env("ALITHOS_ENV", "development", required=False),
            cors_origins=get_env_list("CORS_ORIGINS", ["*"]),
        ),
        rate_limit=RateLimitConfig(
            enabled=get_env_bool("RATE_LIMIT_ENABLED", True),
            cleanup_interval_seconds=get_env_int("RATE_LIMIT_CLEANUP_SECONDS", 60),
        ),
        notifications=NotificationConfig(
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
            webhook_max_retries=get_env_int("WEBHOOK_MAX_RETRIES", 3),
            webhook_retry_delay_ms=get_env_int("WEBHOOK_RETRY_DELAY_MS", 1000),
            webhook_timeout_ms=get_env_int("WEBHOOK_TIMEOUT_MS", 10000),
            alert_check_interval_seconds=get_env_float("ALERT_CHECK_INTERVAL_SECONDS", 5.0),
            alerts_enabled=get_env_bool("ALERTS_ENABLED", True),
        ),
        news=NewsConfig(
            newsapi_ai_key=os.getenv("NEWSAPI_AI_API_KEY") or None,
            adjacent_news_key=os.getenv("ADJACENT_NEWS_API_KEY") or None,
        ),
    )

"""
Shared fixtures: an isolated SQLite file per test and an API client.
"""

import pytest
from fastapi.testclient import TestClient

from alithos.api.server import create_app
from alithos.config import load_config
from alithos.storage import db


USER_ID = "user-1"
OTHER_USER_ID = "user-2"


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    """Point storage at a fresh database file."""
    path = tmp_path / "alithos-test.db"
    monkeypatch.setattr(db, "DB_PATH", path)
    db.init_db()
    return path


@pytest.fixture
def config(db_path):
    """Environment config with network side effects switched off."""
    config = load_config()
    config.database.path = db_path
    config.rate_limit.enabled = False
    config.notifications.alerts_enabled = False
    config.notifications.telegram_bot_token = None
    config.news.newsapi_ai_key = None
    config.news.adjacent_news_key = None
    config.server.environment = "test"
    return config


@pytest.fixture
def app(config):
    return create_app(config)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def services(app):
    return app.state.services


@pytest.fixture
def auth():
    return {"X-User-Id": USER_ID}


@pytest.fixture
def other_auth():
    return {"X-User-Id": OTHER_USER_ID}

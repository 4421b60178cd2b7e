"""
FastAPI server for the Alithos Terminal dashboard.
Wires the resource routers, rate limiting, error handling and the
background alert loop into one app.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import Config, load_config
from ..storage import db
from ..utils.logger import get_logger, setup_logging
from .deps import Services
from .errors import install_error_handlers
from .rate_limit import RateLimiters, RateLimitStore, rate_limit_middleware
from .routes import (
    alerts,
    anomalies,
    calculators,
    content,
    news,
    notifications,
    polymarket,
    positions,
    teams,
    templates,
    user,
    workspaces,
)

logger = get_logger("server")

ROUTERS = (
    alerts.router,
    teams.router,
    templates.router,
    workspaces.router,
    content.router,
    user.router,
    notifications.router,
    polymarket.router,
    positions.router,
    news.router,
    anomalies.router,
    calculators.router,
)


def create_app(config: Optional[Config] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build an app instance with its own services and rate limit counters.

    Args:
        config: Settings; loaded from the environment when omitted
        services: Pre-built clients and engines, e.g. with test doubles
    """
    config = config or load_config()
    db.DB_PATH = config.database.path
    services = services or Services.create(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db.init_db()
        services.sync_alerts()
        if config.notifications.alerts_enabled:
            await services.alert_system.start()
        logger.info(
            "Alithos Terminal API started",
            extra={"environment": config.server.environment, "alerts": len(services.alert_system.get_all_alerts())}
        )
        yield
        await services.close()
        logger.info("Alithos Terminal API stopped")

    app = FastAPI(title="Alithos Terminal API", lifespan=lifespan)
    app.state.config = config
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if config.rate_limit.enabled:
        store = RateLimitStore(cleanup_interval_ms=config.rate_limit.cleanup_interval_seconds * 1000)
        app.state.rate_limiters = RateLimiters(store)
        app.middleware("http")(rate_limit_middleware(app.state.rate_limiters))

    install_error_handlers(app, debug=config.server.debug)

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    for router in ROUTERS:
        app.include_router(router)

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None):
    """Run the API server."""
    config = load_config()
    setup_logging(config.logging)
    uvicorn.run(
        create_app(config),
        host=host or config.server.host,
        port=port or config.server.port,
    )


if __name__ == "__main__":
    run_server()

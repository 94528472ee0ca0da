"""FastAPI application factory"""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from card_ledger.api.middleware import (
    FixedWindowRateLimiter,
    MetricsMiddleware,
    RateLimitMiddleware,
    RequestIDMiddleware,
)
from card_ledger.api.v1 import accounts, payments, statements, webhooks
from card_ledger.config import Settings, settings
from card_ledger.infrastructure.database.store import LedgerStore
from card_ledger.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level, settings.service_name)


def create_app(store: Optional[LedgerStore] = None, app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure FastAPI application

    Args:
        store: Ledger store to serve; built from settings when omitted
        app_settings: Settings override (tests pass their own)
    """
    app_settings = app_settings or settings
    store = store or LedgerStore.from_settings(app_settings)

    app = FastAPI(
        title="Card Ledger",
        description="Credit card authorization, settlement, payment and statement service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.store = store
    app.state.settings = app_settings

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    if app_settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            limiter=FixedWindowRateLimiter(
                max_requests=app_settings.rate_limit_max_requests,
                window_seconds=app_settings.rate_limit_window_seconds,
            ),
        )
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": app_settings.service_name}

    # Readiness: the database must answer
    @app.get("/ready")
    def readiness_check():
        try:
            app.state.store.ping()
        except Exception as e:
            logging.error(f"Readiness check failed: {e}")
            return JSONResponse(status_code=503, content={"status": "unavailable", "database": "unreachable"})
        return {"status": "ready", "database": "ok"}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(webhooks.router, prefix="/v1", tags=["webhooks"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(statements.router, prefix="/v1", tags=["statements"])

    return app


app = create_app()


def serve() -> None:
    """Run the API under uvicorn (console script `card-ledger-api`)"""
    uvicorn.run(
        "card_ledger.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )


if __name__ == "__main__":
    serve()

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from order_sync.api.middlewares import CorrelationIdMiddleware
from order_sync.api.routers import gateway_webhooks, health, metrics, webhook_logs
from order_sync.infrastructure.conversions.factory import create_conversions_adapter
from order_sync.shared.config import load_settings
from order_sync.shared.logging import configure_logging, get_logger

log = get_logger(__name__)


def create_app() -> FastAPI:
    settings = load_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="py-order-sync",
        version="0.1.0",
        openapi_url="/openapi.json",
        docs_url="/docs",
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.conversions = create_conversions_adapter(settings)

    app.add_middleware(CorrelationIdMiddleware)

    cors_origins = settings.cors_origins
    if not cors_origins and settings.app_env == "local":
        cors_origins = ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(gateway_webhooks.router)
    app.include_router(webhook_logs.router)
    app.include_router(health.router)
    app.include_router(metrics.router)

    @app.on_event("startup")
    def _startup() -> None:
        from order_sync.infrastructure.db.session import init_db
        from order_sync.infrastructure.redis.client import init_redis

        init_db(settings)
        init_redis(settings)
        if not settings.appmax_webhook_secret:
            log.warning("APPMAX_WEBHOOK_SECRET not configured; webhook signatures will not be verified")
        log.info("startup complete")

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        from order_sync.infrastructure.redis.client import close_redis

        await close_redis()

    return app


app = create_app()

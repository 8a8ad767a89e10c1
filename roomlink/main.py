from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from roomlink.api.v1.router import router as api_v1_router
from roomlink.config.logging import setup_logging
from roomlink.config.settings import Settings, get_settings
from roomlink.core.events import create_event_bus
from roomlink.core.middleware import register_exception_handlers, register_middlewares
from roomlink.core.notifications import LoggingNotifier
from roomlink.db.init_db import init_db
from roomlink.integrations import MpesaGateway, StripeGateway
from roomlink.models.enums import PaymentProvider


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory for the RoomLink API.

    - Configures logging, CORS, core middleware and exception handlers.
    - Wires the event bus, notifier and payment gateways onto ``app.state``.
    - Includes the versioned API router under /api/v1.
    """
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        version=settings.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_middlewares(app, include_security=settings.is_production())
    register_exception_handlers(app)

    app.state.event_bus = create_event_bus()
    app.state.notifier = LoggingNotifier()
    app.state.payment_gateways = {
        PaymentProvider.MPESA: MpesaGateway(settings),
        PaymentProvider.CARD: StripeGateway(settings),
    }

    app.include_router(api_v1_router, prefix=settings.API_V1_STR)

    @app.get("/health", tags=["Health"])
    def health() -> dict:
        return {"status": "healthy", "service": settings.APP_NAME, "version": settings.API_VERSION}

    # Production schemas are managed with migrations.
    @app.on_event("startup")
    async def on_startup() -> None:
        if settings.is_development():
            init_db()

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        for gateway in app.state.payment_gateways.values():
            close = getattr(gateway, "close", None)
            if close is not None:
                close()

    return app


app = create_app()

"""
EarnSpark Payments: STK push initiation and status reconciliation API.

Backs the activation fee, task package and withdrawal flows of the EarnSpark
web client. The client starts a payment, then polls the status endpoint until
the provider reports a final result.

Start the server:
    uvicorn earnspark.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from earnspark.api.errors import register_exception_handlers
from earnspark.api.health import router as health_router
from earnspark.api.payments import router as payments_router
from earnspark.api.trace import router as trace_router
from earnspark.config import Settings, get_settings
from earnspark.providers import build_gateway
from earnspark.providers.base import PaymentGateway
from earnspark.store import PaymentStore

logger = logging.getLogger("earnspark.main")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[PaymentGateway] = None,
    store: Optional[PaymentStore] = None,
) -> FastAPI:
    """
    Build the application around one settings object.

    The gateway and store are constructed here unless supplied, and live on
    `app.state` for the life of the process. A missing provider or database
    configuration leaves the slot empty; the endpoints then answer 500 naming
    the missing subsystem instead of failing at startup.
    """
    settings = settings or get_settings()

    if gateway is None and settings.missing_provider_config() is None:
        gateway = build_gateway(settings)
    if store is None and settings.missing_database_config() is None:
        store = PaymentStore.from_url(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables on startup; release connections on shutdown."""
        if store is not None:
            await store.init()
        if gateway is None:
            logger.warning("Payment provider is not configured: %s", settings.missing_provider_config())
        yield
        if gateway is not None:
            await gateway.aclose()
        if store is not None:
            await store.dispose()

    app = FastAPI(
        title="EarnSpark Payments",
        description=(
            "M-Pesa STK push initiation and status reconciliation for EarnSpark "
            "activation fees, task packages and withdrawals."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.gateway = gateway
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(payments_router, prefix="/api")
    app.include_router(trace_router, prefix="/api")
    return app


_settings = get_settings()
configure_logging(_settings)
app = create_app(_settings)

"""BotStore FastAPI application.

Serves the storefront catalog, purchase and custom orders, payment evidence
endpoints and the operator WebSocket feed. Components come from the
container built in ``container.py``.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog.api import admin_router as catalog_admin_router
from catalog.api import router as catalog_router
from container import get_container, reset_container
from ordering.api import admin_router, custom_order_router, order_router
from payments.api import payment_router
from realtime.api import router as realtime_router
from shared.http import install_error_handlers
from shared.logging import add_context, clear_context, configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    container = get_container()
    configure_logging(container.settings)
    container.notifier.start()
    logger.info("BotStore started", env=container.settings.env)
    yield
    reset_container()
    logger.info("BotStore stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="BotStore API",
        description="Digital-goods storefront: catalog, orders, payment reconciliation",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    @app.middleware("http")
    async def log_context_middleware(request: Request, call_next):
        """Bind the request method and path to every log line emitted while serving it."""
        clear_context()
        add_context(method=request.method, path=request.url.path)
        try:
            return await call_next(request)
        finally:
            clear_context()

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------
    app.include_router(catalog_router)
    app.include_router(catalog_admin_router)
    app.include_router(order_router)
    app.include_router(custom_order_router)
    app.include_router(admin_router)
    app.include_router(payment_router)
    app.include_router(realtime_router)

    @app.get("/health")
    async def health():
        container = get_container()
        return JSONResponse(
            content={
                "status": "ok",
                "env": container.settings.env,
                "operators_connected": container.fanout.subscriber_count,
            }
        )

    return app


app = create_app()

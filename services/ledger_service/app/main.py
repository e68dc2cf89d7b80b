"""FastAPI application for the Ledger Service."""

from fastapi import FastAPI
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.ledger_service.routers import (
    admin_router,
    internal_router,
    ledger_router,
    webhooks_router,
)


def create_app() -> FastAPI:
    """Create and configure the Ledger Service FastAPI app."""
    app = FastAPI(
        title="Companion Ledger Service",
        version="0.1.0",
        description="Tokens, creator earnings, bonus wallets and withdrawals.",
    )
    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "ledger"}

    # Member-facing routes
    app.include_router(ledger_router)

    # Admin routes
    app.include_router(admin_router)

    # Payment provider callbacks (signature-authenticated, no JWT)
    app.include_router(webhooks_router)

    # Internal service-to-service routes (service-role JWT only)
    app.include_router(internal_router)

    return app


app = create_app()

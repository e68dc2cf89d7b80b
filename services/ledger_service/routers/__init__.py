"""Ledger service routers."""

from services.ledger_service.routers.admin import router as admin_router
from services.ledger_service.routers.internal import router as internal_router
from services.ledger_service.routers.member import router as ledger_router
from services.ledger_service.routers.webhooks import router as webhooks_router

__all__ = [
    "admin_router",
    "internal_router",
    "ledger_router",
    "webhooks_router",
]

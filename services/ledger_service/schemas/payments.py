"""Payment provider webhook schemas."""

import uuid
from typing import Optional

from pydantic import BaseModel
from services.ledger_service.models.enums import PaymentStatus

SUCCESS_EVENTS = frozenset({"checkout.session.completed", "payment.succeeded"})
FAILURE_EVENTS = frozenset(
    {"checkout.session.expired", "checkout.session.async_payment_failed", "payment.failed"}
)


class PaymentWebhookEvent(BaseModel):
    type: str
    session_id: str


class PaymentEventResponse(BaseModel):
    received: bool = True
    payment_id: Optional[uuid.UUID] = None
    status: Optional[PaymentStatus] = None
    tokens_credited: int = 0
    commission_levels: int = 0

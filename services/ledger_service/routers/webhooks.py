"""Payment provider webhooks."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from pydantic import ValidationError
from services.ledger_service.schemas import (
    FAILURE_EVENTS,
    SUCCESS_EVENTS,
    PaymentEventResponse,
    PaymentWebhookEvent,
)
from services.ledger_service.services.payment_events import (
    apply_payment_event,
    verify_signature,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/ledger/webhooks", tags=["ledger-webhooks"])


@router.post("/payments", response_model=PaymentEventResponse)
async def payment_webhook(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
):
    """Credit tokens for a completed checkout.

    The signature covers the raw body, so it is read before parsing.
    Duplicate deliveries come back as 200 with ``already_processed``.
    """
    settings = get_settings()
    payload = await request.body()
    signature = request.headers.get(settings.PAYMENT_WEBHOOK_SIGNATURE_HEADER)

    if not verify_signature(payload, signature, settings.PAYMENT_WEBHOOK_SECRET):
        logger.warning("Rejected payment webhook with invalid signature")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
        )

    try:
        event = PaymentWebhookEvent.model_validate_json(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed event payload"
        ) from exc

    if event.type not in SUCCESS_EVENTS and event.type not in FAILURE_EVENTS:
        logger.info("Ignoring payment webhook event type %s", event.type)
        return PaymentEventResponse()

    result = await apply_payment_event(
        db,
        provider_session_id=event.session_id,
        succeeded=event.type in SUCCESS_EVENTS,
    )
    return PaymentEventResponse(
        payment_id=result.payment_id,
        status=result.status,
        tokens_credited=result.tokens_credited,
        commission_levels=len(result.commissions),
    )

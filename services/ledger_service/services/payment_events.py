"""Payment provider events: at-most-once token credit and commission trigger.

The payment row is claimed with ``UPDATE ... WHERE status = 'pending'``
as the first statement of the crediting transaction. A duplicate delivery
either blocks on that row and then matches zero rows, or sees a
non-pending status up front; both surface as ``AlreadyProcessed``.
"""

import hashlib
import hmac
import uuid
from dataclasses import dataclass, field
from typing import Optional

from libs.common.currency import ZERO
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.db.unit_of_work import unit_of_work
from services.ledger_service.errors import AlreadyProcessed, LedgerError, NotFound
from services.ledger_service.models import (
    PaymentStatus,
    PaymentTransaction,
    TokenTransactionType,
)
from services.ledger_service.services.commission_service import (
    CreditedLevel,
    distribute_commission,
    resolve_payment_amount,
)
from services.ledger_service.services.config_provider import LedgerConfig
from services.ledger_service.services.token_ops import apply_credit
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class PaymentEventResult:
    payment_id: uuid.UUID
    status: PaymentStatus
    tokens_credited: int = 0
    commissions: list[CreditedLevel] = field(default_factory=list)


def verify_signature(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """HMAC-SHA256 hex digest of the raw body, compared in constant time."""
    if not signature:
        return False
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(digest, signature)


async def get_payment_by_session(
    db: AsyncSession, provider_session_id: str
) -> Optional[PaymentTransaction]:
    result = await db.execute(
        select(PaymentTransaction).where(
            PaymentTransaction.provider_session_id == provider_session_id
        )
    )
    return result.scalar_one_or_none()


async def apply_payment_event(
    db: AsyncSession,
    *,
    provider_session_id: str,
    succeeded: bool,
    config: Optional[LedgerConfig] = None,
) -> PaymentEventResult:
    """Mirror a provider outcome into the ledger exactly once."""
    payment = await get_payment_by_session(db, provider_session_id)
    if payment is None:
        raise NotFound(f"No payment for session {provider_session_id}")

    payment_id = payment.id
    user_id = payment.user_id
    tokens = payment.tokens
    amount = resolve_payment_amount(payment.amount, payment.txn_metadata)
    if payment.status is not PaymentStatus.PENDING:
        logger.info(
            "Payment %s already %s; ignoring duplicate event",
            payment_id,
            payment.status.value,
        )
        raise AlreadyProcessed(
            f"Payment {payment_id} already processed",
            details={"payment_id": str(payment_id)},
        )

    target = PaymentStatus.COMPLETED if succeeded else PaymentStatus.FAILED
    values = {"status": target, "updated_at": utc_now()}
    if succeeded:
        values["completed_at"] = utc_now()

    async with unit_of_work(db):
        claimed = await db.execute(
            update(PaymentTransaction)
            .where(
                PaymentTransaction.id == payment_id,
                PaymentTransaction.status == PaymentStatus.PENDING,
            )
            .values(**values)
        )
        if claimed.rowcount != 1:
            raise AlreadyProcessed(
                f"Payment {payment_id} claimed by a concurrent delivery",
                details={"payment_id": str(payment_id)},
            )
        if succeeded and tokens > 0:
            await apply_credit(
                db,
                user_id=user_id,
                amount=tokens,
                transaction_type=TokenTransactionType.PURCHASE,
                reason=f"Token purchase {payment_id}",
                idempotency_key=f"payment-{payment_id}",
                metadata={"payment_id": str(payment_id)},
            )

    result = PaymentEventResult(payment_id=payment_id, status=target)
    if not succeeded:
        logger.info("Payment %s marked failed", payment_id)
        return result

    result.tokens_credited = tokens
    logger.info("Payment %s completed; credited %d tokens to %s", payment_id, tokens, user_id)

    if amount > ZERO:
        try:
            result.commissions = await distribute_commission(
                db,
                payment_id=str(payment_id),
                buyer_id=user_id,
                amount=amount,
                config=config,
            )
        except (LedgerError, SQLAlchemyError):
            # The payment itself is settled; the commission sweep retries.
            logger.exception("Commission distribution failed for payment %s", payment_id)
    return result

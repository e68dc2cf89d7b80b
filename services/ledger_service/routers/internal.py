"""Internal service-to-service ledger endpoints.

Called by the generation, chat and payment services via service-role JWT,
not by frontend clients directly.
"""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_service_role
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.ledger_service.schemas import (
    BalanceCheckRequest,
    BalanceCheckResponse,
    CreditRequest,
    DebitCreditResponse,
    DebitRequest,
    DistributeCommissionRequest,
    DistributeCommissionResponse,
    EarningsCalculationResponse,
    RefundRequest,
    UsageEventRequest,
)
from services.ledger_service.services.commission_service import (
    distribute_commission,
)
from services.ledger_service.services.earnings_engine import record_usage
from services.ledger_service.services.token_ops import (
    check_balance,
    credit_tokens,
    debit_tokens,
    refund_tokens,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/internal/ledger", tags=["internal-ledger"])


@router.post("/tokens/debit", response_model=DebitCreditResponse)
async def internal_debit(
    body: DebitRequest,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Deduct tokens before a paid action."""
    txn = await debit_tokens(
        db,
        user_id=body.user_id,
        amount=body.amount,
        reason=body.reason,
        metadata=body.metadata,
        idempotency_key=body.idempotency_key,
    )
    return DebitCreditResponse(transaction_id=txn.id, balance_after=txn.balance_after)


@router.post("/tokens/credit", response_model=DebitCreditResponse)
async def internal_credit(
    body: CreditRequest,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Credit tokens (purchase, bonus grant, manual adjustment)."""
    txn = await credit_tokens(
        db,
        user_id=body.user_id,
        amount=body.amount,
        transaction_type=body.transaction_type,
        reason=body.reason,
        metadata=body.metadata,
        idempotency_key=body.idempotency_key,
    )
    return DebitCreditResponse(transaction_id=txn.id, balance_after=txn.balance_after)


@router.post("/tokens/refund", response_model=DebitCreditResponse)
async def internal_refund(
    body: RefundRequest,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Return tokens for a paid action that failed downstream."""
    txn = await refund_tokens(
        db,
        user_id=body.user_id,
        amount=body.amount,
        reason=body.reason,
        metadata=body.metadata,
        reversal_of=body.reversal_of,
    )
    return DebitCreditResponse(transaction_id=txn.id, balance_after=txn.balance_after)


@router.post("/tokens/check-balance", response_model=BalanceCheckResponse)
async def internal_check_balance(
    body: BalanceCheckRequest,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    sufficient, balance = await check_balance(db, body.user_id, body.required_amount)
    return BalanceCheckResponse(
        sufficient=sufficient,
        current_balance=balance,
        required_amount=body.required_amount,
    )


@router.post("/usage", response_model=EarningsCalculationResponse)
async def internal_record_usage(
    body: UsageEventRequest,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Accrue creator earnings for one model use.

    Never fails the caller's flow: an inactive model, disabled
    monetization or a storage error come back as ``accrued: false``.
    """
    calc = await record_usage(
        db,
        user_id=body.user_id,
        model_id=body.model_id,
        tokens_consumed=body.tokens_consumed,
        usage_type=body.usage_type,
        metadata=body.metadata,
        event_id=body.event_id,
    )
    if calc is None:
        return EarningsCalculationResponse(accrued=False, model_id=body.model_id)
    return EarningsCalculationResponse(
        accrued=True,
        replayed=calc.replayed,
        model_id=calc.model_id,
        creator_id=calc.creator_id,
        base_earnings=calc.base_earnings,
        multiplier=calc.multiplier,
        total_earnings=calc.total_earnings,
        tokens_consumed=calc.tokens_consumed,
        usage_count=calc.usage_count,
    )


@router.post("/commissions/distribute", response_model=DistributeCommissionResponse)
async def internal_distribute_commission(
    body: DistributeCommissionRequest,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Pay referrers for a completed purchase. Safe to repeat."""
    credited = await distribute_commission(
        db,
        payment_id=body.payment_id,
        buyer_id=body.buyer_id,
        amount=body.amount,
    )
    return DistributeCommissionResponse(
        payment_id=body.payment_id, credited_levels=credited
    )

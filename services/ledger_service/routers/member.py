"""Member-facing ledger endpoints: balances, history and withdrawals."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.ledger_service.errors import NotFound
from services.ledger_service.models import CompanionModel
from services.ledger_service.schemas import (
    AvailableEarningsResponse,
    BonusTransactionResponse,
    BonusWalletResponse,
    DownlineLevelCount,
    DownlineResponse,
    DownlinesResponse,
    ModelUsageStatsResponse,
    TokenBalanceResponse,
    TokenTransactionResponse,
    WithdrawalCreateRequest,
    WithdrawalResponse,
)
from services.ledger_service.services.commission_service import (
    MAX_DOWNLINE_DEPTH,
    get_bonus_transactions,
    get_bonus_wallet,
    get_downlines,
)
from services.ledger_service.services.earnings_engine import (
    get_available_earnings,
    get_model_usage_stats,
)
from services.ledger_service.services.token_ops import get_account, get_transactions
from services.ledger_service.services.withdrawal_service import (
    get_withdrawal,
    list_user_withdrawals,
    request_withdrawal,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/ledger", tags=["ledger"])


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


@router.get("/tokens/balance", response_model=TokenBalanceResponse)
async def get_my_token_balance(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Current token balance. Users who never transacted read as zero."""
    account = await get_account(db, current_user.user_id)
    if account is None:
        return TokenBalanceResponse(user_id=current_user.user_id, balance=0)
    return account


@router.get("/tokens/transactions", response_model=list[TokenTransactionResponse])
async def list_my_token_transactions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await get_transactions(
        db, current_user.user_id, limit=limit, offset=offset
    )


# ---------------------------------------------------------------------------
# Creator earnings
# ---------------------------------------------------------------------------


@router.get("/earnings", response_model=AvailableEarningsResponse)
async def get_my_earnings(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    summary = await get_available_earnings(db, current_user.user_id)
    return AvailableEarningsResponse(
        creator_id=summary.creator_id,
        total_earnings=summary.total_earnings,
        models=summary.records,
    )


@router.get(
    "/earnings/models/{model_id}/stats", response_model=ModelUsageStatsResponse
)
async def get_my_model_stats(
    model_id: uuid.UUID,
    days: int = Query(30, ge=1, le=365),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Usage stats for a model. Only its creator (or an admin) may look."""
    model = await db.get(CompanionModel, model_id)
    if model is None:
        raise NotFound(f"Model {model_id} not found")
    if model.creator_id != current_user.user_id and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not the creator of this model",
        )
    stats = await get_model_usage_stats(db, model_id, days=days)
    return ModelUsageStatsResponse(
        model_id=model_id,
        days=days,
        total_usage=stats.total_usage,
        unique_users=stats.unique_users,
        total_tokens=stats.total_tokens,
        avg_usage_per_user=stats.avg_usage_per_user,
        earnings_per_use=stats.earnings_per_use,
        total_earnings=stats.total_earnings,
    )


# ---------------------------------------------------------------------------
# Bonus wallet
# ---------------------------------------------------------------------------


@router.get("/bonus-wallet", response_model=BonusWalletResponse)
async def get_my_bonus_wallet(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    wallet = await get_bonus_wallet(db, current_user.user_id)
    if wallet is None:
        return BonusWalletResponse(user_id=current_user.user_id)
    return wallet


@router.get(
    "/bonus-wallet/transactions", response_model=list[BonusTransactionResponse]
)
async def list_my_bonus_transactions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await get_bonus_transactions(
        db, current_user.user_id, limit=limit, offset=offset
    )


@router.get("/affiliate/downlines", response_model=DownlinesResponse)
async def list_my_downlines(
    depth: int = Query(MAX_DOWNLINE_DEPTH, ge=1, le=MAX_DOWNLINE_DEPTH),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Users the caller referred, directly or indirectly, up to ``depth`` levels."""
    report = await get_downlines(db, current_user.user_id, depth)
    return DownlinesResponse(
        downlines=[DownlineResponse.model_validate(d) for d in report.downlines],
        levels=[
            DownlineLevelCount(level=level, count=count)
            for level, count in sorted(report.counts.items())
        ],
        total=report.total,
    )


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------


@router.post(
    "/withdrawals",
    response_model=WithdrawalResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_withdrawal(
    body: WithdrawalCreateRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Request a payout. One open request per user at a time."""
    return await request_withdrawal(
        db,
        user_id=current_user.user_id,
        kind=body.kind,
        amount=body.amount,
        method=body.payout_method,
        details=body.payment_details,
    )


@router.get("/withdrawals", response_model=list[WithdrawalResponse])
async def list_my_withdrawals(
    limit: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_user_withdrawals(db, current_user.user_id, limit=limit)


@router.get("/withdrawals/{request_id}", response_model=WithdrawalResponse)
async def get_my_withdrawal(
    request_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    req = await get_withdrawal(db, request_id)
    if req.user_id != current_user.user_id:
        # Do not reveal other users' requests.
        raise NotFound(f"Withdrawal request {request_id} not found")
    return req

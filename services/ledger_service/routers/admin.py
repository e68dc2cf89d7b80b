"""Admin ledger endpoints: withdrawal adjudication, settings, repair."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.ledger_service.models import WithdrawalKind, WithdrawalStatus
from services.ledger_service.schemas import (
    AdjudicateWithdrawalRequest,
    AdminAddEarningsRequest,
    AdminSettingResponse,
    AdminSettingsListResponse,
    BonusWalletResponse,
    CommissionSweepResponse,
    EarningsTransactionResponse,
    ReconciliationResponse,
    TokenBalanceResponse,
    UpdateSettingRequest,
    WithdrawalResponse,
    WithdrawalSummaryResponse,
)
from services.ledger_service.services.commission_service import (
    sweep_missing_commissions,
)
from services.ledger_service.services.config_provider import (
    ConfigProvider,
    get_config_provider,
)
from services.ledger_service.services.earnings_engine import add_admin_earnings
from services.ledger_service.services.reconciliation import (
    ReconciliationReport,
    reconcile_bonus_wallet,
    reconcile_token_account,
    unfreeze_bonus_wallet,
)
from services.ledger_service.services.token_ops import unfreeze_account
from services.ledger_service.services.withdrawal_service import (
    adjudicate_withdrawal,
    get_withdrawal,
    list_withdrawals,
    withdrawal_summary,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/admin/ledger", tags=["admin-ledger"])


def _report_response(report: ReconciliationReport) -> ReconciliationResponse:
    return ReconciliationResponse(
        user_id=report.user_id,
        ledger_sum=str(report.ledger_sum),
        stored_balance=str(report.stored_balance),
        consistent=report.consistent,
    )


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------


@router.get("/withdrawals", response_model=list[WithdrawalResponse])
async def admin_list_withdrawals(
    status_filter: Optional[WithdrawalStatus] = Query(None, alias="status"),
    kind: Optional[WithdrawalKind] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_withdrawals(
        db, status=status_filter, kind=kind, limit=limit, offset=offset
    )


@router.get("/withdrawals/summary", response_model=WithdrawalSummaryResponse)
async def admin_withdrawal_summary(
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await withdrawal_summary(db)


@router.get("/withdrawals/{request_id}", response_model=WithdrawalResponse)
async def admin_get_withdrawal(
    request_id: uuid.UUID,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await get_withdrawal(db, request_id)


@router.post("/withdrawals/{request_id}/adjudicate", response_model=WithdrawalResponse)
async def admin_adjudicate_withdrawal(
    request_id: uuid.UUID,
    body: AdjudicateWithdrawalRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Approve, reject, process or complete a withdrawal request."""
    return await adjudicate_withdrawal(
        db,
        request_id=request_id,
        action=body.action,
        admin_id=admin.user_id,
        notes=body.notes,
        rejection_reason=body.rejection_reason,
        transaction_hash=body.transaction_hash,
    )


# ---------------------------------------------------------------------------
# Earnings and commissions
# ---------------------------------------------------------------------------


@router.post(
    "/earnings",
    response_model=EarningsTransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def admin_add_earnings(
    body: AdminAddEarningsRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Manually credit a creator (bonus or adjustment)."""
    return await add_admin_earnings(
        db,
        creator_id=body.creator_id,
        model_id=body.model_id,
        amount=body.amount,
        admin_id=admin.user_id,
        description=body.description,
        transaction_type=body.transaction_type,
    )


@router.post("/commissions/sweep", response_model=CommissionSweepResponse)
async def admin_sweep_commissions(
    limit: int = Query(50, ge=1, le=500),
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Distribute commissions for completed payments that have none."""
    return await sweep_missing_commissions(db, limit=limit)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


@router.post("/reconcile/tokens/{user_id}", response_model=ReconciliationResponse)
async def admin_reconcile_tokens(
    user_id: str,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Verify a token account; a mismatch freezes it and returns 500."""
    return _report_response(await reconcile_token_account(db, user_id))


@router.post("/reconcile/bonus/{user_id}", response_model=ReconciliationResponse)
async def admin_reconcile_bonus(
    user_id: str,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return _report_response(await reconcile_bonus_wallet(db, user_id))


@router.post("/tokens/{user_id}/unfreeze", response_model=TokenBalanceResponse)
async def admin_unfreeze_tokens(
    user_id: str,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await unfreeze_account(db, user_id=user_id, admin_id=admin.user_id)


@router.post("/bonus-wallet/{user_id}/unfreeze", response_model=BonusWalletResponse)
async def admin_unfreeze_bonus_wallet(
    user_id: str,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await unfreeze_bonus_wallet(db, user_id=user_id, admin_id=admin.user_id)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@router.get("/settings", response_model=AdminSettingsListResponse)
async def admin_list_settings(
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    provider: ConfigProvider = Depends(get_config_provider),
):
    """Stored settings plus the effective values after defaults."""
    settings = await provider.list_settings(db)
    config = await provider.get(db)
    return AdminSettingsListResponse(settings=settings, effective=config.as_dict())


@router.put("/settings/{key}", response_model=AdminSettingResponse)
async def admin_update_setting(
    key: str,
    body: UpdateSettingRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    provider: ConfigProvider = Depends(get_config_provider),
):
    return await provider.update_setting(
        db, key=key, value=body.value, updated_by=admin.user_id
    )

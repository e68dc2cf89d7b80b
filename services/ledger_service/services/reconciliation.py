"""Ledger-versus-balance reconciliation.

A mismatch means money was created or destroyed outside the ledger. The
account is frozen (every later write fails with ``AccountFrozen``) until
an admin has reviewed it and unfreezes it.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from libs.common.currency import quantize_usd, to_decimal
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.db.unit_of_work import unit_of_work
from services.ledger_service.errors import InvariantViolation, NotFound
from services.ledger_service.models import (
    BonusTransaction,
    BonusTransactionType,
    BonusWallet,
    TokenTransaction,
)
from services.ledger_service.services.token_ops import freeze_account, get_account
from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

COMMISSION_TYPES = (
    BonusTransactionType.COMMISSION_LEVEL1,
    BonusTransactionType.COMMISSION_LEVEL2,
    BonusTransactionType.COMMISSION_LEVEL3,
)


@dataclass(frozen=True)
class ReconciliationReport:
    user_id: str
    ledger_sum: Union[int, Decimal]
    stored_balance: Union[int, Decimal]
    consistent: bool


async def reconcile_token_account(
    db: AsyncSession, user_id: str
) -> ReconciliationReport:
    """Check ``sum(token_transactions.amount) == user_tokens.balance``."""
    ledger_sum = int(
        await db.scalar(
            select(func.coalesce(func.sum(TokenTransaction.amount), 0)).where(
                TokenTransaction.user_id == user_id
            )
        )
        or 0
    )
    account = await get_account(db, user_id)
    if account is not None:
        await db.refresh(account)
    stored = account.balance if account is not None else 0

    report = ReconciliationReport(
        user_id=user_id,
        ledger_sum=ledger_sum,
        stored_balance=stored,
        consistent=ledger_sum == stored,
    )
    if report.consistent:
        return report

    reason = f"Reconciliation mismatch: ledger={ledger_sum} balance={stored}"
    logger.critical("Token ledger invariant violated for %s: %s", user_id, reason)
    if account is not None:
        await freeze_account(db, user_id=user_id, reason=reason)
    raise InvariantViolation(
        reason,
        details={"user_id": user_id, "ledger_sum": ledger_sum, "balance": stored},
    )


async def reconcile_bonus_wallet(
    db: AsyncSession, user_id: str
) -> ReconciliationReport:
    """Check the bonus ledger against ``balance`` and ``lifetime_earnings``."""
    result = await db.execute(select(BonusWallet).where(BonusWallet.user_id == user_id))
    wallet = result.scalar_one_or_none()
    if wallet is None:
        raise NotFound(f"Bonus wallet for {user_id} not found")
    await db.refresh(wallet)

    totals = await db.execute(
        select(
            func.coalesce(func.sum(BonusTransaction.amount), 0),
            func.coalesce(
                func.sum(
                    case(
                        (
                            BonusTransaction.transaction_type.in_(COMMISSION_TYPES),
                            BonusTransaction.amount,
                        ),
                        else_=0,
                    )
                ),
                0,
            ),
        ).where(BonusTransaction.user_id == user_id)
    )
    ledger_sum, commission_sum = totals.one()
    ledger_sum = quantize_usd(to_decimal(ledger_sum))
    commission_sum = quantize_usd(to_decimal(commission_sum))
    balance = quantize_usd(wallet.balance)
    lifetime = quantize_usd(wallet.lifetime_earnings)

    consistent = ledger_sum == balance and commission_sum == lifetime
    report = ReconciliationReport(
        user_id=user_id,
        ledger_sum=ledger_sum,
        stored_balance=balance,
        consistent=consistent,
    )
    if consistent:
        return report

    reason = (
        f"Reconciliation mismatch: ledger={ledger_sum} balance={balance} "
        f"commissions={commission_sum} lifetime={lifetime}"
    )
    logger.critical("Bonus ledger invariant violated for %s: %s", user_id, reason)
    async with unit_of_work(db):
        await db.execute(
            update(BonusWallet)
            .where(BonusWallet.user_id == user_id)
            .values(is_frozen=True, frozen_reason=reason, updated_at=utc_now())
        )
    raise InvariantViolation(
        reason,
        details={
            "user_id": user_id,
            "ledger_sum": str(ledger_sum),
            "balance": str(balance),
            "commission_sum": str(commission_sum),
            "lifetime_earnings": str(lifetime),
        },
    )


async def unfreeze_bonus_wallet(
    db: AsyncSession, *, user_id: str, admin_id: str
) -> BonusWallet:
    result = await db.execute(select(BonusWallet).where(BonusWallet.user_id == user_id))
    wallet = result.scalar_one_or_none()
    if wallet is None:
        raise NotFound(f"Bonus wallet for {user_id} not found")
    async with unit_of_work(db):
        wallet.is_frozen = False
        wallet.frozen_reason = None
    logger.info("Admin %s unfroze bonus wallet %s", admin_id, user_id)
    return wallet

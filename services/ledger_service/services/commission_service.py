"""Multi-level affiliate commissions paid into bonus wallets.

``(payment_id, level)`` is unique in ``bonus_transactions``; a payment seen
twice (webhook retry, reconciliation sweep) credits referrers once.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.currency import MAX_USD, ZERO, quantize_usd, to_decimal
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.db.unit_of_work import unit_of_work
from services.ledger_service.errors import AccountFrozen, InvalidAmount, LedgerError
from services.ledger_service.models import (
    BonusTransaction,
    BonusTransactionStatus,
    BonusTransactionType,
    BonusWallet,
    PaymentStatus,
    PaymentTransaction,
    UserProfile,
)
from services.ledger_service.services.config_provider import (
    LedgerConfig,
    resolve_config,
)
from sqlalchemy import exists, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

COMMISSION_ATTEMPTS = 2
MAX_DOWNLINE_DEPTH = 3


@dataclass(frozen=True)
class CreditedLevel:
    level: int
    referrer_id: str
    rate: Decimal
    amount: Decimal


@dataclass(frozen=True)
class Downline:
    user_id: str
    level: int
    referrer_id: str
    joined_at: datetime


@dataclass
class DownlineReport:
    downlines: list[Downline] = field(default_factory=list)
    counts: dict[int, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.downlines)


@dataclass
class SweepResult:
    scanned: int = 0
    fixed: int = 0
    skipped: int = 0
    errors: int = 0
    fixed_ids: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Referrer chain
# ---------------------------------------------------------------------------


async def get_referrer_chain(
    db: AsyncSession, buyer_id: str, depth: int
) -> list[str]:
    """Referrers of ``buyer_id``, nearest first, at most ``depth`` long.

    Stops at the first user without a referrer, or on a cycle.
    """
    chain: list[str] = []
    seen = {buyer_id}
    current = buyer_id
    while len(chain) < depth:
        referrer = await db.scalar(
            select(UserProfile.referrer_id).where(UserProfile.user_id == current)
        )
        if not referrer:
            break
        if referrer in seen:
            logger.warning(
                "Referrer cycle at %s while walking chain for %s", referrer, buyer_id
            )
            break
        chain.append(referrer)
        seen.add(referrer)
        current = referrer
    return chain


async def get_downlines(
    db: AsyncSession, user_id: str, depth: int = MAX_DOWNLINE_DEPTH
) -> DownlineReport:
    """Users referred by ``user_id``, directly or through others, by level.

    Level 1 is people ``user_id`` referred, level 2 is the people they
    referred, and so on down to ``depth``.
    """
    report = DownlineReport(counts={level: 0 for level in range(1, depth + 1)})
    seen = {user_id}
    frontier = [user_id]
    for level in range(1, depth + 1):
        if not frontier:
            break
        result = await db.execute(
            select(UserProfile.user_id, UserProfile.referrer_id, UserProfile.created_at)
            .where(UserProfile.referrer_id.in_(frontier))
            .order_by(UserProfile.created_at, UserProfile.user_id)
        )
        frontier = []
        for member_id, referrer_id, joined_at in result.all():
            if member_id in seen:
                logger.warning(
                    "Referrer cycle at %s while walking downlines of %s",
                    member_id,
                    user_id,
                )
                continue
            seen.add(member_id)
            frontier.append(member_id)
            report.downlines.append(Downline(member_id, level, referrer_id, joined_at))
            report.counts[level] += 1
    return report


async def commissions_exist(db: AsyncSession, payment_id: str) -> bool:
    return bool(
        await db.scalar(
            select(exists().where(BonusTransaction.payment_id == payment_id))
        )
    )


# ---------------------------------------------------------------------------
# Bonus wallet
# ---------------------------------------------------------------------------


async def get_bonus_wallet(db: AsyncSession, user_id: str) -> Optional[BonusWallet]:
    result = await db.execute(
        select(BonusWallet)
        .where(BonusWallet.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_bonus_transactions(
    db: AsyncSession, user_id: str, *, limit: int = 50, offset: int = 0
) -> list[BonusTransaction]:
    result = await db.execute(
        select(BonusTransaction)
        .where(BonusTransaction.user_id == user_id)
        .order_by(BonusTransaction.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


async def _credit_bonus_wallet(
    db: AsyncSession, *, user_id: str, amount: Decimal
) -> None:
    result = await db.execute(
        update(BonusWallet)
        .where(BonusWallet.user_id == user_id, BonusWallet.is_frozen.is_(False))
        .values(
            balance=BonusWallet.balance + amount,
            lifetime_earnings=BonusWallet.lifetime_earnings + amount,
            updated_at=utc_now(),
        )
    )
    if result.rowcount == 1:
        return
    wallet = await get_bonus_wallet(db, user_id)
    if wallet is not None:
        raise AccountFrozen(user_id, wallet.frozen_reason)
    db.add(BonusWallet(user_id=user_id, balance=amount, lifetime_earnings=amount))
    await db.flush()


async def _write_commissions(
    db: AsyncSession,
    *,
    payment_id: str,
    buyer_id: str,
    amount: Decimal,
    chain: list[str],
    rates: tuple[Decimal, ...],
) -> list[CreditedLevel]:
    credited: list[CreditedLevel] = []
    async with unit_of_work(db):
        for level, (referrer_id, rate) in enumerate(zip(chain, rates), start=1):
            commission = quantize_usd(amount * rate)
            if commission <= ZERO:
                continue
            await _credit_bonus_wallet(db, user_id=referrer_id, amount=commission)
            db.add(
                BonusTransaction(
                    user_id=referrer_id,
                    transaction_type=BonusTransactionType.for_level(level),
                    amount=commission,
                    status=BonusTransactionStatus.COMPLETED,
                    from_user_id=buyer_id,
                    payment_id=payment_id,
                    level=level,
                    description=f"Level {level} commission from payment {payment_id}",
                )
            )
            credited.append(CreditedLevel(level, referrer_id, rate, commission))
        await db.flush()
    return credited


# ---------------------------------------------------------------------------
# Distribution
# ---------------------------------------------------------------------------


async def distribute_commission(
    db: AsyncSession,
    *,
    payment_id: str,
    buyer_id: str,
    amount: Decimal,
    config: Optional[LedgerConfig] = None,
) -> list[CreditedLevel]:
    """Credit tiered commissions up the buyer's referrer chain.

    Returns the credited levels; empty when the payment was already
    distributed, the buyer has no referrer, or a referrer's bonus wallet
    is frozen. A payment deferred for a frozen wallet has no commission
    rows, so ``sweep_missing_commissions`` pays it once the wallet is
    unfrozen.
    """
    try:
        amount = quantize_usd(amount)
    except ValueError as exc:
        raise InvalidAmount(str(exc)) from exc
    if amount <= ZERO or amount > MAX_USD:
        raise InvalidAmount(f"Payment amount must be between 0.01 and {MAX_USD}")

    if await commissions_exist(db, payment_id):
        logger.info("Commissions for payment %s already distributed", payment_id)
        return []

    config = await resolve_config(db, config)
    chain = await get_referrer_chain(db, buyer_id, len(config.commission_rates))
    if not chain:
        return []

    for attempt in range(1, COMMISSION_ATTEMPTS + 1):
        try:
            credited = await _write_commissions(
                db,
                payment_id=payment_id,
                buyer_id=buyer_id,
                amount=amount,
                chain=chain,
                rates=config.commission_rates,
            )
        except AccountFrozen as exc:
            logger.warning(
                "Deferring commissions for payment %s: bonus wallet of %s is frozen",
                payment_id,
                exc.user_id,
            )
            return []
        except IntegrityError:
            if await commissions_exist(db, payment_id):
                logger.info(
                    "Commissions for payment %s written concurrently; skipping",
                    payment_id,
                )
                return []
            # Lost a race creating a referrer's first bonus wallet; the retry
            # takes the update path.
            if attempt == COMMISSION_ATTEMPTS:
                raise
            logger.warning(
                "Retrying commissions for payment %s after conflict", payment_id
            )
            continue
        break

    for item in credited:
        logger.info(
            "Level %d commission %s credited to %s (payment %s, buyer %s)",
            item.level,
            item.amount,
            item.referrer_id,
            payment_id,
            buyer_id,
        )
    return credited


# ---------------------------------------------------------------------------
# Reconciliation sweep
# ---------------------------------------------------------------------------


def resolve_payment_amount(
    amount: Optional[Decimal], metadata: Optional[dict]
) -> Decimal:
    """Stored amount, falling back to ``metadata.price`` for legacy rows."""
    if amount is not None and to_decimal(amount) > ZERO:
        return quantize_usd(amount)
    price = (metadata or {}).get("price")
    if price in (None, ""):
        return ZERO
    try:
        return quantize_usd(price)
    except (ArithmeticError, ValueError):
        return ZERO


async def sweep_missing_commissions(
    db: AsyncSession, *, limit: int = 50, config: Optional[LedgerConfig] = None
) -> SweepResult:
    """Distribute commissions for recent completed payments that have none."""
    config = await resolve_config(db, config)
    result = await db.execute(
        select(
            PaymentTransaction.id,
            PaymentTransaction.user_id,
            PaymentTransaction.amount,
            PaymentTransaction.txn_metadata,
        )
        .where(PaymentTransaction.status == PaymentStatus.COMPLETED)
        .order_by(PaymentTransaction.completed_at.desc())
        .limit(limit)
    )
    payments = result.all()

    sweep = SweepResult(scanned=len(payments))
    for payment_id, user_id, amount, metadata in payments:
        payment_key = str(payment_id)
        payment_amount = resolve_payment_amount(amount, metadata)
        if payment_amount <= ZERO or await commissions_exist(db, payment_key):
            sweep.skipped += 1
            continue
        try:
            credited = await distribute_commission(
                db,
                payment_id=payment_key,
                buyer_id=user_id,
                amount=payment_amount,
                config=config,
            )
        except (LedgerError, SQLAlchemyError):
            logger.exception("Commission sweep failed for payment %s", payment_key)
            sweep.errors += 1
            continue
        if credited:
            sweep.fixed += 1
            sweep.fixed_ids.append(payment_key)
        else:
            sweep.skipped += 1

    logger.info(
        "Commission sweep scanned=%d fixed=%d skipped=%d errors=%d",
        sweep.scanned,
        sweep.fixed,
        sweep.skipped,
        sweep.errors,
    )
    return sweep

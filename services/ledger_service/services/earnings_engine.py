"""Usage earnings engine: accrue creator earnings from model usage.

Accrual is best-effort from the user's point of view: the token debit for
the usage has already succeeded, so database failures here are logged and
swallowed, never propagated back into the user-facing action.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from libs.common.currency import MAX_EARNINGS, ZERO, quantize_earnings, to_decimal
from libs.common.datetime_utils import days_ago, utc_now, utc_today
from libs.common.logging import get_logger
from libs.db.unit_of_work import unit_of_work
from services.ledger_service.errors import InvalidAmount, NotFound
from services.ledger_service.models import (
    CompanionModel,
    EarningsSource,
    EarningsTransaction,
    EarningsTransactionType,
    ModelAnalytics,
    ModelCreatorEarnings,
    ModelUsageLog,
    UsageType,
)
from services.ledger_service.services.config_provider import (
    LedgerConfig,
    resolve_config,
)
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

TYPE_MULTIPLIERS: dict[UsageType, Decimal] = {
    UsageType.IMAGE_GENERATION: Decimal("1.0"),
    UsageType.CHAT: Decimal("0.8"),
    UsageType.OTHER: Decimal("0.6"),
}
# Flat by decision; there is no volume curve.
USAGE_MULTIPLIER = Decimal("1.0")

WRITE_ATTEMPTS = 2


@dataclass(frozen=True)
class EarningsCalculation:
    model_id: uuid.UUID
    creator_id: str
    base_earnings: Decimal
    multiplier: Decimal
    total_earnings: Decimal
    tokens_consumed: int
    usage_count: int = 0
    replayed: bool = False


@dataclass(frozen=True)
class ModelUsageStats:
    total_usage: int
    unique_users: int
    total_tokens: int
    avg_usage_per_user: Decimal
    earnings_per_use: Decimal
    total_earnings: Decimal


@dataclass(frozen=True)
class CreatorEarningsSummary:
    creator_id: str
    total_earnings: Decimal
    records: list[ModelCreatorEarnings]


# ---------------------------------------------------------------------------
# Calculation
# ---------------------------------------------------------------------------


def coerce_usage_type(usage_type: Union[UsageType, str]) -> UsageType:
    """Unknown usage types earn at the ``other`` rate."""
    try:
        return UsageType(usage_type)
    except ValueError:
        return UsageType.OTHER


def calculate_earnings(
    model: CompanionModel,
    tokens_consumed: int,
    usage_type: Union[UsageType, str],
    *,
    default_earnings_per_token: Decimal,
) -> EarningsCalculation:
    per_use = to_decimal(model.earnings_per_use or ZERO)
    per_token = (
        to_decimal(model.earnings_per_token)
        if model.earnings_per_token is not None
        else default_earnings_per_token
    )
    base = per_use + tokens_consumed * per_token
    multiplier = USAGE_MULTIPLIER * TYPE_MULTIPLIERS[coerce_usage_type(usage_type)]
    return EarningsCalculation(
        model_id=model.id,
        creator_id=model.creator_id,
        base_earnings=base,
        multiplier=multiplier,
        total_earnings=quantize_earnings(base * multiplier),
        tokens_consumed=tokens_consumed,
    )


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


async def _upsert_creator_earnings(
    db: AsyncSession,
    *,
    model_id: uuid.UUID,
    creator_id: str,
    amount: Decimal,
    tokens: int = 0,
    usage_delta: int = 0,
) -> int:
    """Increment the (model, creator) aggregate; returns its usage count."""
    now = utc_now()
    values = {
        "total_usage_count": ModelCreatorEarnings.total_usage_count + usage_delta,
        "total_tokens_consumed": ModelCreatorEarnings.total_tokens_consumed + tokens,
        "total_earnings": ModelCreatorEarnings.total_earnings + amount,
        "updated_at": now,
    }
    if usage_delta:
        values["last_usage_at"] = now

    result = await db.execute(
        update(ModelCreatorEarnings)
        .where(
            ModelCreatorEarnings.model_id == model_id,
            ModelCreatorEarnings.creator_id == creator_id,
        )
        .values(**values)
    )
    if result.rowcount == 0:
        db.add(
            ModelCreatorEarnings(
                model_id=model_id,
                creator_id=creator_id,
                total_usage_count=usage_delta,
                total_tokens_consumed=tokens,
                total_earnings=amount,
                last_usage_at=now if usage_delta else None,
            )
        )
        await db.flush()

    count = await db.execute(
        select(ModelCreatorEarnings.total_usage_count).where(
            ModelCreatorEarnings.model_id == model_id,
            ModelCreatorEarnings.creator_id == creator_id,
        )
    )
    return count.scalar_one()


async def _bump_daily_analytics(
    db: AsyncSession,
    *,
    model_id: uuid.UUID,
    earnings: Decimal,
    tokens: int = 0,
    usage_delta: int = 0,
) -> None:
    today = utc_today()
    for attempt in range(1, WRITE_ATTEMPTS + 1):
        try:
            async with unit_of_work(db):
                result = await db.execute(
                    update(ModelAnalytics)
                    .where(
                        ModelAnalytics.model_id == model_id,
                        ModelAnalytics.usage_date == today,
                    )
                    .values(
                        usage_count=ModelAnalytics.usage_count + usage_delta,
                        tokens_consumed=ModelAnalytics.tokens_consumed + tokens,
                        earnings_generated=ModelAnalytics.earnings_generated
                        + earnings,
                        updated_at=utc_now(),
                    )
                )
                if result.rowcount == 0:
                    db.add(
                        ModelAnalytics(
                            model_id=model_id,
                            usage_date=today,
                            usage_count=usage_delta,
                            tokens_consumed=tokens,
                            earnings_generated=earnings,
                        )
                    )
            return
        except IntegrityError:
            if attempt == WRITE_ATTEMPTS:
                raise


async def _record_analytics_quietly(db: AsyncSession, **kwargs) -> None:
    """Analytics are bookkeeping; failing them must not unwind the credit."""
    try:
        await _bump_daily_analytics(db, **kwargs)
    except SQLAlchemyError:
        logger.exception(
            "Daily analytics update failed for model %s", kwargs.get("model_id")
        )


# ---------------------------------------------------------------------------
# Usage accrual
# ---------------------------------------------------------------------------


async def _find_usage_log(
    db: AsyncSession, event_id: Optional[str]
) -> Optional[ModelUsageLog]:
    if not event_id:
        return None
    result = await db.execute(
        select(ModelUsageLog).where(ModelUsageLog.event_id == event_id)
    )
    return result.scalar_one_or_none()


def _replayed(log: ModelUsageLog, creator_id: str) -> EarningsCalculation:
    return EarningsCalculation(
        model_id=log.model_id,
        creator_id=creator_id,
        base_earnings=log.base_earnings,
        multiplier=log.multiplier,
        total_earnings=log.earnings_generated,
        tokens_consumed=log.tokens_consumed,
        replayed=True,
    )


async def _accrue(
    db: AsyncSession,
    *,
    user_id: str,
    calc: EarningsCalculation,
    usage_type: str,
    metadata: Optional[dict],
    event_id: Optional[str],
) -> EarningsCalculation:
    """Log + earnings transaction + aggregate, in one unit of work."""
    for attempt in range(1, WRITE_ATTEMPTS + 1):
        existing = await _find_usage_log(db, event_id)
        if existing is not None:
            logger.info("Usage event %s already accrued; skipping", event_id)
            return _replayed(existing, calc.creator_id)
        try:
            async with unit_of_work(db):
                log = ModelUsageLog(
                    event_id=event_id,
                    user_id=user_id,
                    model_id=calc.model_id,
                    usage_type=usage_type,
                    tokens_consumed=calc.tokens_consumed,
                    base_earnings=calc.base_earnings,
                    multiplier=calc.multiplier,
                    earnings_generated=calc.total_earnings,
                    usage_metadata=metadata,
                )
                db.add(log)
                await db.flush()
                db.add(
                    EarningsTransaction(
                        creator_id=calc.creator_id,
                        model_id=calc.model_id,
                        amount=calc.total_earnings,
                        transaction_type=EarningsTransactionType.USAGE,
                        source=EarningsSource.USAGE,
                        usage_log_id=log.id,
                        description=f"{usage_type} usage ({calc.tokens_consumed} tokens)",
                    )
                )
                usage_count = await _upsert_creator_earnings(
                    db,
                    model_id=calc.model_id,
                    creator_id=calc.creator_id,
                    amount=calc.total_earnings,
                    tokens=calc.tokens_consumed,
                    usage_delta=1,
                )
        except IntegrityError:
            # Same event_id or first aggregate row written concurrently.
            if attempt == WRITE_ATTEMPTS:
                raise
            continue
        return EarningsCalculation(
            model_id=calc.model_id,
            creator_id=calc.creator_id,
            base_earnings=calc.base_earnings,
            multiplier=calc.multiplier,
            total_earnings=calc.total_earnings,
            tokens_consumed=calc.tokens_consumed,
            usage_count=usage_count,
        )
    raise AssertionError("unreachable")


async def record_usage(
    db: AsyncSession,
    *,
    user_id: str,
    model_id: uuid.UUID,
    tokens_consumed: int,
    usage_type: Union[UsageType, str] = UsageType.IMAGE_GENERATION,
    metadata: Optional[dict] = None,
    event_id: Optional[str] = None,
    config: Optional[LedgerConfig] = None,
) -> Optional[EarningsCalculation]:
    """Accrue creator earnings for one usage event.

    Returns ``None`` when nothing was accrued: monetization disabled, unknown
    or inactive model, or a storage failure (logged). A replayed
    ``event_id`` returns the original calculation with ``replayed=True``.
    """
    if isinstance(tokens_consumed, bool) or not isinstance(tokens_consumed, int):
        raise InvalidAmount(f"tokens_consumed must be an integer, got {tokens_consumed!r}")
    if tokens_consumed < 0:
        raise InvalidAmount("tokens_consumed cannot be negative")
    usage_type_value = (
        usage_type.value if isinstance(usage_type, UsageType) else str(usage_type)
    )

    try:
        config = await resolve_config(db, config)
        if not config.monetization_enabled:
            logger.info("Monetization disabled; skipping earnings for model %s", model_id)
            return None

        model = await db.get(CompanionModel, model_id)
        if model is None or not model.is_active:
            logger.warning(
                "Usage for unknown or inactive model %s by %s; no earnings accrued",
                model_id,
                user_id,
            )
            return None

        calc = calculate_earnings(
            model,
            tokens_consumed,
            usage_type_value,
            default_earnings_per_token=config.default_earnings_per_token,
        )
        result = await _accrue(
            db,
            user_id=user_id,
            calc=calc,
            usage_type=usage_type_value,
            metadata=metadata,
            event_id=event_id,
        )
    except SQLAlchemyError:
        logger.exception(
            "Earnings accrual failed for model %s (user %s); usage not credited",
            model_id,
            user_id,
        )
        return None

    if not result.replayed:
        await _record_analytics_quietly(
            db,
            model_id=result.model_id,
            earnings=result.total_earnings,
            tokens=result.tokens_consumed,
            usage_delta=1,
        )
        logger.info(
            "Accrued %s to creator %s for model %s (%s, %d tokens)",
            result.total_earnings,
            result.creator_id,
            result.model_id,
            usage_type_value,
            tokens_consumed,
        )
    return result


# ---------------------------------------------------------------------------
# Admin credit
# ---------------------------------------------------------------------------


async def add_admin_earnings(
    db: AsyncSession,
    *,
    creator_id: str,
    model_id: uuid.UUID,
    amount: Decimal,
    admin_id: str,
    description: Optional[str] = None,
    transaction_type: EarningsTransactionType = EarningsTransactionType.BONUS,
) -> EarningsTransaction:
    """Privileged credit to a creator's earnings for one of their models."""
    try:
        amount = quantize_earnings(amount)
    except ValueError as exc:
        raise InvalidAmount(str(exc)) from exc
    if amount <= ZERO or amount > MAX_EARNINGS:
        raise InvalidAmount(f"Amount must be between 0.0001 and {MAX_EARNINGS}")
    if transaction_type not in (
        EarningsTransactionType.BONUS,
        EarningsTransactionType.ADJUSTMENT,
    ):
        raise InvalidAmount(f"Unsupported admin transaction type {transaction_type.value}")

    model = await db.get(CompanionModel, model_id)
    if model is None or model.creator_id != creator_id:
        raise NotFound(f"Model {model_id} not found for creator {creator_id}")

    async with unit_of_work(db):
        txn = EarningsTransaction(
            creator_id=creator_id,
            model_id=model_id,
            amount=amount,
            transaction_type=transaction_type,
            source=EarningsSource.ADMIN,
            added_by=admin_id,
            description=description or f"Manual {transaction_type.value} by admin",
        )
        db.add(txn)
        await _upsert_creator_earnings(
            db, model_id=model_id, creator_id=creator_id, amount=amount
        )

    await _record_analytics_quietly(db, model_id=model_id, earnings=amount)
    logger.info(
        "Admin %s added %s earnings to creator %s (model %s)",
        admin_id,
        amount,
        creator_id,
        model_id,
    )
    return txn


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_available_earnings(
    db: AsyncSession, creator_id: str
) -> CreatorEarningsSummary:
    result = await db.execute(
        select(ModelCreatorEarnings)
        .where(ModelCreatorEarnings.creator_id == creator_id)
        .order_by(ModelCreatorEarnings.created_at, ModelCreatorEarnings.id)
    )
    records = list(result.scalars().all())
    total = sum((to_decimal(r.total_earnings) for r in records), ZERO)
    return CreatorEarningsSummary(
        creator_id=creator_id,
        total_earnings=quantize_earnings(total),
        records=records,
    )


async def get_model_usage_stats(
    db: AsyncSession, model_id: uuid.UUID, *, days: int = 30
) -> ModelUsageStats:
    model = await db.get(CompanionModel, model_id)
    if model is None:
        raise NotFound(f"Model {model_id} not found")

    since = days_ago(days)
    result = await db.execute(
        select(
            func.count(ModelUsageLog.id),
            func.count(func.distinct(ModelUsageLog.user_id)),
            func.coalesce(func.sum(ModelUsageLog.tokens_consumed), 0),
            func.coalesce(func.sum(ModelUsageLog.earnings_generated), 0),
        ).where(
            ModelUsageLog.model_id == model_id,
            ModelUsageLog.created_at >= since,
        )
    )
    total_usage, unique_users, total_tokens, total_earnings = result.one()
    avg = (
        (Decimal(total_usage) / Decimal(unique_users)).quantize(Decimal("0.01"))
        if unique_users
        else ZERO
    )
    return ModelUsageStats(
        total_usage=total_usage,
        unique_users=unique_users,
        total_tokens=int(total_tokens),
        avg_usage_per_user=avg,
        earnings_per_use=to_decimal(model.earnings_per_use or ZERO),
        total_earnings=quantize_earnings(to_decimal(total_earnings)),
    )

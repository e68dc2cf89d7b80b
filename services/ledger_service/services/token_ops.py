"""Token account operations: conditional debit/credit with an append-only ledger.

Balance changes are single conditional UPDATE statements
(``SET balance = balance - n WHERE balance >= n``); the row stays locked
until the surrounding unit of work commits, so concurrent debits can
never overdraw.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.db.unit_of_work import unit_of_work
from services.ledger_service.errors import (
    AccountFrozen,
    InsufficientFunds,
    InvalidAmount,
    NotFound,
)
from services.ledger_service.models import (
    TokenTransaction,
    TokenTransactionType,
    UserToken,
)
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

CREDIT_ATTEMPTS = 2


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_account(db: AsyncSession, user_id: str) -> Optional[UserToken]:
    """The stored account row, reloaded over anything cached in the session."""
    result = await db.execute(
        select(UserToken)
        .where(UserToken.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_balance(db: AsyncSession, user_id: str) -> int:
    """Current balance; 0 when the user has no account. Never creates one."""
    result = await db.execute(
        select(UserToken.balance).where(UserToken.user_id == user_id)
    )
    return result.scalar_one_or_none() or 0


async def check_balance(
    db: AsyncSession, user_id: str, required: int
) -> tuple[bool, int]:
    """Return ``(sufficient, balance)`` without mutating anything."""
    _validate_amount(required)
    balance = await get_balance(db, user_id)
    return balance >= required, balance


async def get_transactions(
    db: AsyncSession, user_id: str, *, limit: int = 50, offset: int = 0
) -> list[TokenTransaction]:
    result = await db.execute(
        select(TokenTransaction)
        .where(TokenTransaction.user_id == user_id)
        .order_by(TokenTransaction.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validate_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(f"Token amount must be a positive integer, got {amount!r}")


async def _find_by_idempotency_key(
    db: AsyncSession, idempotency_key: Optional[str]
) -> Optional[TokenTransaction]:
    if not idempotency_key:
        return None
    result = await db.execute(
        select(TokenTransaction).where(
            TokenTransaction.idempotency_key == idempotency_key
        )
    )
    return result.scalar_one_or_none()


async def _current_balance(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(UserToken.balance).where(UserToken.user_id == user_id)
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# In-transaction primitives (caller owns the unit of work)
# ---------------------------------------------------------------------------


async def apply_debit(
    db: AsyncSession,
    *,
    user_id: str,
    amount: int,
    transaction_type: TokenTransactionType,
    reason: str,
    metadata: Optional[dict] = None,
    idempotency_key: Optional[str] = None,
    insufficient_error: type[InsufficientFunds] = InsufficientFunds,
) -> TokenTransaction:
    """Conditional decrement + negative ledger row. Does not commit."""
    _validate_amount(amount)
    result = await db.execute(
        update(UserToken)
        .where(
            UserToken.user_id == user_id,
            UserToken.balance >= amount,
            UserToken.is_frozen.is_(False),
        )
        .values(balance=UserToken.balance - amount, updated_at=utc_now())
    )
    if result.rowcount != 1:
        account = await get_account(db, user_id)
        if account is not None and account.is_frozen:
            raise AccountFrozen(user_id, account.frozen_reason)
        # Fail closed: a missing account has balance 0.
        balance = account.balance if account is not None else 0
        raise insufficient_error(
            f"Insufficient tokens: need {amount}, have {balance}",
            balance=balance,
            required=amount,
        )

    txn = TokenTransaction(
        user_id=user_id,
        amount=-amount,
        transaction_type=transaction_type,
        balance_after=await _current_balance(db, user_id),
        description=reason,
        idempotency_key=idempotency_key,
        txn_metadata=metadata,
    )
    db.add(txn)
    await db.flush()
    return txn


async def apply_credit(
    db: AsyncSession,
    *,
    user_id: str,
    amount: int,
    transaction_type: TokenTransactionType,
    reason: str,
    metadata: Optional[dict] = None,
    idempotency_key: Optional[str] = None,
    reversal_of: Optional[uuid.UUID] = None,
) -> TokenTransaction:
    """Increment (creating the account if absent) + ledger row. Does not commit."""
    _validate_amount(amount)
    result = await db.execute(
        update(UserToken)
        .where(UserToken.user_id == user_id, UserToken.is_frozen.is_(False))
        .values(balance=UserToken.balance + amount, updated_at=utc_now())
    )
    if result.rowcount != 1:
        account = await get_account(db, user_id)
        if account is not None:
            raise AccountFrozen(user_id, account.frozen_reason)
        db.add(UserToken(user_id=user_id, balance=amount))
        await db.flush()

    txn = TokenTransaction(
        user_id=user_id,
        amount=amount,
        transaction_type=transaction_type,
        balance_after=await _current_balance(db, user_id),
        description=reason,
        idempotency_key=idempotency_key,
        reversal_of_transaction_id=reversal_of,
        txn_metadata=metadata,
    )
    db.add(txn)
    await db.flush()
    return txn


# ---------------------------------------------------------------------------
# Debit
# ---------------------------------------------------------------------------


async def debit_tokens(
    db: AsyncSession,
    *,
    user_id: str,
    amount: int,
    reason: str,
    metadata: Optional[dict] = None,
    idempotency_key: Optional[str] = None,
    transaction_type: TokenTransactionType = TokenTransactionType.USAGE,
) -> TokenTransaction:
    """Atomically take ``amount`` tokens from ``user_id``.

    1. Validate amount (before any storage access)
    2. Idempotency check: return the original transaction on replay
    3. Conditional UPDATE guarded by ``balance >= amount`` and not frozen
    4. Zero rows: missing account (balance 0), frozen, or insufficient
    5. Append the negative ledger row and commit
    """
    _validate_amount(amount)

    existing = await _find_by_idempotency_key(db, idempotency_key)
    if existing:
        logger.info("Idempotent debit replay key=%s -> txn=%s", idempotency_key, existing.id)
        return existing

    try:
        async with unit_of_work(db):
            txn = await apply_debit(
                db,
                user_id=user_id,
                amount=amount,
                transaction_type=transaction_type,
                reason=reason,
                metadata=metadata,
                idempotency_key=idempotency_key,
            )
    except IntegrityError:
        # A concurrent request with the same key won; our debit rolled back.
        existing = await _find_by_idempotency_key(db, idempotency_key)
        if existing:
            return existing
        raise

    logger.info(
        "Debited %d tokens from %s (%s) balance %d -> %d",
        amount,
        user_id,
        reason,
        txn.balance_after + amount,
        txn.balance_after,
    )
    return txn


# ---------------------------------------------------------------------------
# Credit / refund
# ---------------------------------------------------------------------------


async def credit_tokens(
    db: AsyncSession,
    *,
    user_id: str,
    amount: int,
    transaction_type: TokenTransactionType,
    reason: str,
    metadata: Optional[dict] = None,
    idempotency_key: Optional[str] = None,
    reversal_of: Optional[uuid.UUID] = None,
) -> TokenTransaction:
    """Add ``amount`` tokens, creating the account on first credit."""
    _validate_amount(amount)

    for attempt in range(1, CREDIT_ATTEMPTS + 1):
        existing = await _find_by_idempotency_key(db, idempotency_key)
        if existing:
            logger.info(
                "Idempotent credit replay key=%s -> txn=%s", idempotency_key, existing.id
            )
            return existing
        try:
            async with unit_of_work(db):
                txn = await apply_credit(
                    db,
                    user_id=user_id,
                    amount=amount,
                    transaction_type=transaction_type,
                    reason=reason,
                    metadata=metadata,
                    idempotency_key=idempotency_key,
                    reversal_of=reversal_of,
                )
        except IntegrityError:
            # Lost a race creating the account or writing the same key; retry
            # once so the update path (or the replay check) picks it up.
            if attempt == CREDIT_ATTEMPTS:
                raise
            logger.warning("Retrying token credit for %s after conflict", user_id)
            continue

        logger.info(
            "Credited %d tokens to %s (%s, %s) balance -> %d",
            amount,
            user_id,
            transaction_type.value,
            reason,
            txn.balance_after,
        )
        return txn

    raise AssertionError("unreachable")


async def refund_tokens(
    db: AsyncSession,
    *,
    user_id: str,
    amount: int,
    reason: str,
    metadata: Optional[dict] = None,
    reversal_of: Optional[uuid.UUID] = None,
) -> TokenTransaction:
    """Reverse a previously successful debit.

    With ``reversal_of`` the refund is tied to that debit: it is idempotent
    and may not exceed what the debit took.
    """
    _validate_amount(amount)
    idempotency_key = None
    if reversal_of is not None:
        debit = await db.get(TokenTransaction, reversal_of)
        if debit is None or debit.user_id != user_id or debit.amount >= 0:
            raise NotFound(f"Debit transaction {reversal_of} not found for {user_id}")
        if amount > -debit.amount:
            raise InvalidAmount(
                f"Refund of {amount} exceeds original debit of {-debit.amount}"
            )
        idempotency_key = f"refund-{reversal_of}"

    return await credit_tokens(
        db,
        user_id=user_id,
        amount=amount,
        transaction_type=TokenTransactionType.REFUND,
        reason=reason,
        metadata=metadata,
        idempotency_key=idempotency_key,
        reversal_of=reversal_of,
    )


@asynccontextmanager
async def token_charge(
    db: AsyncSession,
    *,
    user_id: str,
    amount: int,
    reason: str,
    metadata: Optional[dict] = None,
    idempotency_key: Optional[str] = None,
) -> AsyncIterator[TokenTransaction]:
    """Debit on entry; refund automatically if the wrapped block fails.

    Usage:
        async with token_charge(db, user_id=uid, amount=5, reason="image"):
            await generate_image(...)
    """
    debit = await debit_tokens(
        db,
        user_id=user_id,
        amount=amount,
        reason=reason,
        metadata=metadata,
        idempotency_key=idempotency_key,
    )
    debit_id = debit.id
    try:
        yield debit
    except Exception:
        logger.warning(
            "Charged action failed for %s; refunding %d tokens (debit %s)",
            user_id,
            amount,
            debit_id,
        )
        # Discard whatever the failed block left pending before refunding.
        await db.rollback()
        await refund_tokens(
            db,
            user_id=user_id,
            amount=amount,
            reason=f"Refund: {reason}",
            reversal_of=debit_id,
        )
        raise


# ---------------------------------------------------------------------------
# Freeze
# ---------------------------------------------------------------------------


async def freeze_account(db: AsyncSession, *, user_id: str, reason: str) -> None:
    """Block all writes to the account until an admin unfreezes it."""
    async with unit_of_work(db):
        await db.execute(
            update(UserToken)
            .where(UserToken.user_id == user_id)
            .values(is_frozen=True, frozen_reason=reason, frozen_at=utc_now())
        )
    logger.warning("Froze token account %s: %s", user_id, reason)


async def unfreeze_account(
    db: AsyncSession, *, user_id: str, admin_id: str
) -> UserToken:
    account = await get_account(db, user_id)
    if account is None:
        raise NotFound(f"Token account for {user_id} not found")
    async with unit_of_work(db):
        account.is_frozen = False
        account.frozen_reason = None
        account.frozen_at = None
    logger.info("Admin %s unfroze token account %s", admin_id, user_id)
    return account

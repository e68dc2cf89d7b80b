"""Withdrawal workflow: request, adjudication and settlement.

Deduction policy per withdrawal kind:

- ``creator_earnings``: nothing is taken at request time. Approval drains
  ``model_creator_earnings`` oldest record first and records one
  allocation per record; rejecting after approval restores exactly those
  allocations.
- ``bonus``: the bonus wallet is debited at request time
  (``reserved_amount``); rejection credits back exactly that amount.
- ``tokens``: tokens are debited at request time at the current rate; the
  token count and rate are stored on the request and rejection refunds
  exactly that token count.

Every status change is a conditional UPDATE on the current status, and
writes one ``withdrawal_history`` row in the same transaction.
"""

import uuid
from decimal import Decimal
from typing import Any, Optional, Union

from libs.common.currency import (
    MAX_USD,
    ZERO,
    percent_of,
    quantize_usd,
    to_decimal,
    usd_to_tokens,
)
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.db.unit_of_work import unit_of_work
from services.ledger_service.errors import (
    AccountFrozen,
    DuplicateRequest,
    InsufficientBalance,
    InvalidAmount,
    InvalidPaymentDetails,
    InvalidTransition,
    MonetizationDisabled,
    NotFound,
)
from services.ledger_service.models import (
    OPEN_WITHDRAWAL_STATUSES,
    BonusTransaction,
    BonusTransactionStatus,
    BonusTransactionType,
    BonusWallet,
    EarningsSource,
    EarningsTransaction,
    EarningsTransactionType,
    ModelCreatorEarnings,
    PayoutMethod,
    SettlementStatus,
    TokenTransactionType,
    WithdrawalAction,
    WithdrawalAllocation,
    WithdrawalHistory,
    WithdrawalKind,
    WithdrawalRequest,
    WithdrawalStatus,
    WithdrawalTransaction,
)
from services.ledger_service.services.commission_service import get_bonus_wallet
from services.ledger_service.services.config_provider import (
    LedgerConfig,
    resolve_config,
)
from services.ledger_service.services.token_ops import (
    apply_credit,
    apply_debit,
    get_account,
)
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

TRANSITIONS: dict[WithdrawalStatus, dict[WithdrawalAction, WithdrawalStatus]] = {
    WithdrawalStatus.PENDING: {
        WithdrawalAction.APPROVE: WithdrawalStatus.APPROVED,
        WithdrawalAction.REJECT: WithdrawalStatus.REJECTED,
    },
    WithdrawalStatus.APPROVED: {
        WithdrawalAction.PROCESS: WithdrawalStatus.PROCESSING,
        WithdrawalAction.REJECT: WithdrawalStatus.REJECTED,
    },
    WithdrawalStatus.PROCESSING: {
        WithdrawalAction.COMPLETE: WithdrawalStatus.COMPLETED,
        WithdrawalAction.REJECT: WithdrawalStatus.REJECTED,
    },
    WithdrawalStatus.COMPLETED: {},
    # Admin override: re-open a rejected request.
    WithdrawalStatus.REJECTED: {
        WithdrawalAction.APPROVE: WithdrawalStatus.APPROVED,
    },
}

REQUIRED_DETAIL_FIELD: dict[PayoutMethod, str] = {
    PayoutMethod.PAYPAL: "email",
    PayoutMethod.USDT_TRC20: "wallet_address",
}


def next_status(
    current: WithdrawalStatus, action: WithdrawalAction
) -> WithdrawalStatus:
    target = TRANSITIONS[current].get(action)
    if target is None:
        raise InvalidTransition(
            f"Cannot {action.value} a withdrawal that is {current.value}",
            details={"status": current.value, "action": action.value},
        )
    return target


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_payout_details(
    method: Union[PayoutMethod, str], details: Optional[dict[str, Any]]
) -> tuple[PayoutMethod, dict[str, Any]]:
    try:
        method = PayoutMethod(method)
    except ValueError:
        supported = ", ".join(m.value for m in PayoutMethod)
        raise InvalidPaymentDetails(
            f"Unsupported payout method {method!r}; expected one of {supported}"
        )

    details = dict(details or {})
    required = REQUIRED_DETAIL_FIELD[method]
    value = details.get(required)
    if not isinstance(value, str) or not value.strip():
        raise InvalidPaymentDetails(f"{method.value} payouts require '{required}'")
    details[required] = value.strip()
    if method is PayoutMethod.PAYPAL and "@" not in details[required]:
        raise InvalidPaymentDetails("PayPal payouts require a valid email")
    return method, details


async def _creator_total(db: AsyncSession, creator_id: str) -> Decimal:
    total = await db.scalar(
        select(func.coalesce(func.sum(ModelCreatorEarnings.total_earnings), 0)).where(
            ModelCreatorEarnings.creator_id == creator_id
        )
    )
    return to_decimal(total or 0)


async def _open_request(db: AsyncSession, user_id: str) -> Optional[WithdrawalRequest]:
    result = await db.execute(
        select(WithdrawalRequest).where(
            WithdrawalRequest.user_id == user_id,
            WithdrawalRequest.status.in_(OPEN_WITHDRAWAL_STATUSES),
        )
    )
    return result.scalars().first()


async def _check_available(
    db: AsyncSession,
    *,
    user_id: str,
    kind: WithdrawalKind,
    amount: Decimal,
    config: LedgerConfig,
) -> None:
    if kind is WithdrawalKind.CREATOR_EARNINGS:
        available = await _creator_total(db, user_id)
        if available < amount:
            raise InsufficientBalance(
                f"Requested {amount} exceeds available earnings {available}",
                balance=available,
                required=amount,
            )
    elif kind is WithdrawalKind.BONUS:
        wallet = await get_bonus_wallet(db, user_id)
        if wallet is not None and wallet.is_frozen:
            raise AccountFrozen(user_id, wallet.frozen_reason)
        available = quantize_usd(wallet.balance) if wallet is not None else ZERO
        if available < amount:
            raise InsufficientBalance(
                f"Requested {amount} exceeds bonus balance {available}",
                balance=available,
                required=amount,
            )
    else:
        account = await get_account(db, user_id)
        if account is not None and account.is_frozen:
            raise AccountFrozen(user_id, account.frozen_reason)
        balance = account.balance if account is not None else 0
        required = usd_to_tokens(amount, config.token_to_usd_rate)
        if balance < required:
            raise InsufficientBalance(
                f"Requested {amount} needs {required} tokens; balance is {balance}",
                balance=balance,
                required=required,
            )


# ---------------------------------------------------------------------------
# Ledger effects (all run inside the caller's unit of work)
# ---------------------------------------------------------------------------


def _history(
    req_id: uuid.UUID,
    *,
    action: WithdrawalAction,
    from_status: Optional[WithdrawalStatus],
    to_status: WithdrawalStatus,
    performed_by: str,
    notes: Optional[str] = None,
) -> WithdrawalHistory:
    return WithdrawalHistory(
        withdrawal_request_id=req_id,
        action=action,
        from_status=from_status,
        to_status=to_status,
        performed_by=performed_by,
        notes=notes,
    )


async def _reserve_bonus(
    db: AsyncSession, *, req_id: uuid.UUID, user_id: str, amount: Decimal
) -> None:
    result = await db.execute(
        update(BonusWallet)
        .where(
            BonusWallet.user_id == user_id,
            BonusWallet.balance >= amount,
            BonusWallet.is_frozen.is_(False),
        )
        .values(balance=BonusWallet.balance - amount, updated_at=utc_now())
    )
    if result.rowcount != 1:
        wallet = await get_bonus_wallet(db, user_id)
        if wallet is not None and wallet.is_frozen:
            raise AccountFrozen(user_id, wallet.frozen_reason)
        balance = quantize_usd(wallet.balance) if wallet is not None else ZERO
        raise InsufficientBalance(
            f"Requested {amount} exceeds bonus balance {balance}",
            balance=balance,
            required=amount,
        )
    db.add(
        BonusTransaction(
            user_id=user_id,
            transaction_type=BonusTransactionType.WITHDRAWAL,
            amount=-amount,
            status=BonusTransactionStatus.PENDING,
            withdrawal_request_id=req_id,
            description=f"Withdrawal reservation {req_id}",
        )
    )


async def _release_bonus(
    db: AsyncSession, *, req_id: uuid.UUID, user_id: str, amount: Decimal
) -> None:
    await db.execute(
        update(BonusWallet)
        .where(BonusWallet.user_id == user_id)
        .values(balance=BonusWallet.balance + amount, updated_at=utc_now())
    )
    await db.execute(
        update(BonusTransaction)
        .where(
            BonusTransaction.withdrawal_request_id == req_id,
            BonusTransaction.transaction_type == BonusTransactionType.WITHDRAWAL,
            BonusTransaction.status == BonusTransactionStatus.PENDING,
        )
        .values(status=BonusTransactionStatus.REJECTED)
    )
    db.add(
        BonusTransaction(
            user_id=user_id,
            transaction_type=BonusTransactionType.WITHDRAWAL_REFUND,
            amount=amount,
            status=BonusTransactionStatus.COMPLETED,
            withdrawal_request_id=req_id,
            description=f"Withdrawal {req_id} rejected; reservation returned",
        )
    )


async def _settle_bonus(
    db: AsyncSession, *, req_id: uuid.UUID, user_id: str, amount: Decimal
) -> None:
    await db.execute(
        update(BonusWallet)
        .where(BonusWallet.user_id == user_id)
        .values(
            withdrawn_amount=BonusWallet.withdrawn_amount + amount,
            updated_at=utc_now(),
        )
    )
    await db.execute(
        update(BonusTransaction)
        .where(
            BonusTransaction.withdrawal_request_id == req_id,
            BonusTransaction.transaction_type == BonusTransactionType.WITHDRAWAL,
            BonusTransaction.status == BonusTransactionStatus.PENDING,
        )
        .values(status=BonusTransactionStatus.COMPLETED)
    )


async def _reserve_tokens(
    db: AsyncSession, *, req_id: uuid.UUID, user_id: str, tokens: int
) -> None:
    await apply_debit(
        db,
        user_id=user_id,
        amount=tokens,
        transaction_type=TokenTransactionType.WITHDRAWAL,
        reason=f"Withdrawal reservation {req_id}",
        metadata={"withdrawal_request_id": str(req_id)},
        insufficient_error=InsufficientBalance,
    )


async def _release_tokens(
    db: AsyncSession, *, req_id: uuid.UUID, user_id: str, tokens: int
) -> None:
    await apply_credit(
        db,
        user_id=user_id,
        amount=tokens,
        transaction_type=TokenTransactionType.REFUND,
        reason=f"Withdrawal {req_id} rejected; tokens returned",
        metadata={"withdrawal_request_id": str(req_id)},
    )


async def _drain_creator_earnings(
    db: AsyncSession, *, req_id: uuid.UUID, creator_id: str, amount: Decimal
) -> None:
    """Take ``amount`` from the creator's records, oldest first."""
    result = await db.execute(
        select(ModelCreatorEarnings)
        .where(ModelCreatorEarnings.creator_id == creator_id)
        .order_by(ModelCreatorEarnings.created_at, ModelCreatorEarnings.id)
        .with_for_update()
    )
    records = list(result.scalars().all())
    current_total = sum((to_decimal(r.total_earnings) for r in records), ZERO)
    if amount > current_total:
        raise InsufficientBalance(
            f"Withdrawal of {amount} exceeds current earnings {quantize_usd(current_total)}",
            balance=quantize_usd(current_total),
            required=amount,
        )

    remaining = amount
    for record in records:
        if remaining <= ZERO:
            break
        available = to_decimal(record.total_earnings)
        if available <= ZERO:
            continue
        take = min(available, remaining)
        drained = await db.execute(
            update(ModelCreatorEarnings)
            .where(
                ModelCreatorEarnings.id == record.id,
                ModelCreatorEarnings.total_earnings >= take,
            )
            .values(
                total_earnings=ModelCreatorEarnings.total_earnings - take,
                updated_at=utc_now(),
            )
        )
        if drained.rowcount != 1:
            raise InsufficientBalance(
                "Earnings changed while approving the withdrawal",
                balance=quantize_usd(current_total),
                required=amount,
            )
        db.add(
            WithdrawalAllocation(
                withdrawal_request_id=req_id, earnings_id=record.id, amount=take
            )
        )
        db.add(
            EarningsTransaction(
                creator_id=creator_id,
                model_id=record.model_id,
                amount=-take,
                transaction_type=EarningsTransactionType.WITHDRAWAL,
                source=EarningsSource.WITHDRAWAL,
                withdrawal_request_id=req_id,
                description=f"Withdrawal {req_id}",
            )
        )
        remaining -= take


async def _restore_creator_earnings(
    db: AsyncSession, *, req_id: uuid.UUID, creator_id: str
) -> Decimal:
    """Put back every unrestored allocation of the request, exactly."""
    result = await db.execute(
        select(WithdrawalAllocation, ModelCreatorEarnings.model_id)
        .join(
            ModelCreatorEarnings,
            ModelCreatorEarnings.id == WithdrawalAllocation.earnings_id,
        )
        .where(
            WithdrawalAllocation.withdrawal_request_id == req_id,
            WithdrawalAllocation.restored_at.is_(None),
        )
    )
    restored = ZERO
    now = utc_now()
    for allocation, model_id in result.all():
        await db.execute(
            update(ModelCreatorEarnings)
            .where(ModelCreatorEarnings.id == allocation.earnings_id)
            .values(
                total_earnings=ModelCreatorEarnings.total_earnings + allocation.amount,
                updated_at=now,
            )
        )
        allocation.restored_at = now
        db.add(
            EarningsTransaction(
                creator_id=creator_id,
                model_id=model_id,
                amount=allocation.amount,
                transaction_type=EarningsTransactionType.WITHDRAWAL_REVERSAL,
                source=EarningsSource.WITHDRAWAL,
                withdrawal_request_id=req_id,
                description=f"Withdrawal {req_id} rejected; earnings restored",
            )
        )
        restored += to_decimal(allocation.amount)
    return restored


async def _close_settlement(
    db: AsyncSession,
    *,
    req_id: uuid.UUID,
    status: SettlementStatus,
    transaction_hash: Optional[str] = None,
    processed_by: Optional[str] = None,
) -> None:
    values: dict[str, Any] = {"status": status, "processed_by": processed_by}
    if status is SettlementStatus.COMPLETED:
        values.update(completed_at=utc_now(), transaction_hash=transaction_hash)
    await db.execute(
        update(WithdrawalTransaction)
        .where(
            WithdrawalTransaction.withdrawal_request_id == req_id,
            WithdrawalTransaction.status == SettlementStatus.PENDING,
        )
        .values(**values)
    )


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


async def request_withdrawal(
    db: AsyncSession,
    *,
    user_id: str,
    kind: WithdrawalKind,
    amount: Decimal,
    method: Union[PayoutMethod, str],
    details: Optional[dict[str, Any]],
    config: Optional[LedgerConfig] = None,
) -> WithdrawalRequest:
    """Create a pending withdrawal request.

    Checked in order: amount vs. minimum, payout details, available
    balance, and finally the one-open-request-per-user rule.
    """
    config = await resolve_config(db, config)
    if not config.monetization_enabled:
        raise MonetizationDisabled()

    kind = WithdrawalKind(kind)
    try:
        amount = quantize_usd(amount)
    except ValueError as exc:
        raise InvalidAmount(str(exc)) from exc
    if amount > MAX_USD:
        raise InvalidAmount(f"Withdrawal amount exceeds {MAX_USD}")
    minimum = config.minimum_for(kind)
    if amount <= ZERO or amount < minimum:
        raise InvalidAmount(
            f"Minimum {kind.value} withdrawal is {minimum}",
            details={"minimum": str(minimum)},
        )
    method, details = validate_payout_details(method, details)
    await _check_available(db, user_id=user_id, kind=kind, amount=amount, config=config)
    if await _open_request(db, user_id) is not None:
        raise DuplicateRequest("A withdrawal request is already in progress")

    fee = percent_of(amount, config.withdrawal_fee_percent)
    req = WithdrawalRequest(
        id=uuid.uuid4(),
        user_id=user_id,
        kind=kind,
        amount=amount,
        fee_amount=fee,
        net_amount=amount - fee,
        payout_method=method,
        payment_details=details,
        status=WithdrawalStatus.PENDING,
    )
    try:
        async with unit_of_work(db):
            db.add(req)
            await db.flush()
            if kind is WithdrawalKind.BONUS:
                await _reserve_bonus(db, req_id=req.id, user_id=user_id, amount=amount)
                req.reserved_amount = amount
            elif kind is WithdrawalKind.TOKENS:
                tokens = usd_to_tokens(amount, config.token_to_usd_rate)
                await _reserve_tokens(db, req_id=req.id, user_id=user_id, tokens=tokens)
                req.token_amount = tokens
                req.token_rate = config.token_to_usd_rate
            db.add(
                _history(
                    req.id,
                    action=WithdrawalAction.REQUEST,
                    from_status=None,
                    to_status=WithdrawalStatus.PENDING,
                    performed_by=user_id,
                )
            )
    except IntegrityError as exc:
        # Partial unique index: a concurrent request for the same user won.
        raise DuplicateRequest("A withdrawal request is already in progress") from exc

    await db.refresh(req)
    logger.info(
        "Withdrawal %s requested by %s: %s %s via %s",
        req.id,
        user_id,
        kind.value,
        amount,
        method.value,
    )
    return req


# ---------------------------------------------------------------------------
# Adjudication
# ---------------------------------------------------------------------------


async def adjudicate_withdrawal(
    db: AsyncSession,
    *,
    request_id: uuid.UUID,
    action: Union[WithdrawalAction, str],
    admin_id: str,
    notes: Optional[str] = None,
    rejection_reason: Optional[str] = None,
    transaction_hash: Optional[str] = None,
) -> WithdrawalRequest:
    """Apply one admin action and its ledger effects atomically."""
    try:
        action = WithdrawalAction(action)
    except ValueError:
        raise InvalidTransition(f"Unknown withdrawal action {action!r}")
    if action is WithdrawalAction.REQUEST:
        raise InvalidTransition("Requests are created by the user, not adjudicated")

    req = await db.get(WithdrawalRequest, request_id, populate_existing=True)
    if req is None:
        raise NotFound(f"Withdrawal request {request_id} not found")

    from_status = req.status
    to_status = next_status(from_status, action)
    req_id, user_id, kind = req.id, req.user_id, req.kind
    amount = to_decimal(req.amount)
    now = utc_now()

    values: dict[str, Any] = {"status": to_status, "updated_at": now}
    if notes:
        values["admin_notes"] = notes
    if action is WithdrawalAction.APPROVE:
        values.update(approved_by=admin_id, approved_at=now)
    elif action is WithdrawalAction.PROCESS:
        values["processed_at"] = now
    elif action is WithdrawalAction.COMPLETE:
        values.update(completed_at=now, transaction_hash=transaction_hash)
    elif action is WithdrawalAction.REJECT:
        values.update(rejected_at=now, rejection_reason=rejection_reason or notes)

    try:
        async with unit_of_work(db):
            claimed = await db.execute(
                update(WithdrawalRequest)
                .where(
                    WithdrawalRequest.id == req_id,
                    WithdrawalRequest.status == from_status,
                )
                .values(**values)
            )
            if claimed.rowcount != 1:
                raise InvalidTransition(
                    f"Withdrawal {req_id} changed state concurrently; reload and retry"
                )

            if action is WithdrawalAction.APPROVE:
                await _apply_approval(
                    db,
                    req=req,
                    from_status=from_status,
                    amount=amount,
                    admin_id=admin_id,
                )
            elif action is WithdrawalAction.COMPLETE:
                await _close_settlement(
                    db,
                    req_id=req_id,
                    status=SettlementStatus.COMPLETED,
                    transaction_hash=transaction_hash,
                    processed_by=admin_id,
                )
                if kind is WithdrawalKind.BONUS:
                    await _settle_bonus(db, req_id=req_id, user_id=user_id, amount=amount)
            elif action is WithdrawalAction.REJECT:
                await _apply_rejection(
                    db, req=req, from_status=from_status, admin_id=admin_id
                )

            db.add(
                _history(
                    req_id,
                    action=action,
                    from_status=from_status,
                    to_status=to_status,
                    performed_by=admin_id,
                    notes=notes or rejection_reason,
                )
            )
    except IntegrityError as exc:
        # Re-opening while the user already has another open request.
        raise DuplicateRequest(
            "User already has another withdrawal in progress"
        ) from exc

    await db.refresh(req)
    logger.info(
        "Withdrawal %s %s by %s: %s -> %s",
        req_id,
        action.value,
        admin_id,
        from_status.value,
        to_status.value,
    )
    return req


async def _apply_approval(
    db: AsyncSession,
    *,
    req: WithdrawalRequest,
    from_status: WithdrawalStatus,
    amount: Decimal,
    admin_id: str,
) -> None:
    reopened = from_status is WithdrawalStatus.REJECTED
    if req.kind is WithdrawalKind.CREATOR_EARNINGS:
        await _drain_creator_earnings(
            db, req_id=req.id, creator_id=req.user_id, amount=amount
        )
    elif req.kind is WithdrawalKind.BONUS and reopened:
        await _reserve_bonus(db, req_id=req.id, user_id=req.user_id, amount=amount)
        req.reserved_amount = amount
    elif req.kind is WithdrawalKind.TOKENS and reopened:
        # Same token count as originally reserved; the rate is not re-read.
        await _reserve_tokens(
            db, req_id=req.id, user_id=req.user_id, tokens=req.token_amount
        )

    db.add(
        WithdrawalTransaction(
            withdrawal_request_id=req.id,
            user_id=req.user_id,
            amount=amount,
            net_amount=req.net_amount,
            payout_method=req.payout_method,
            status=SettlementStatus.PENDING,
            processed_by=admin_id,
        )
    )


async def _apply_rejection(
    db: AsyncSession,
    *,
    req: WithdrawalRequest,
    from_status: WithdrawalStatus,
    admin_id: str,
) -> None:
    if req.kind is WithdrawalKind.CREATOR_EARNINGS:
        if from_status is not WithdrawalStatus.PENDING:
            await _restore_creator_earnings(
                db, req_id=req.id, creator_id=req.user_id
            )
    elif req.kind is WithdrawalKind.BONUS:
        await _release_bonus(
            db,
            req_id=req.id,
            user_id=req.user_id,
            amount=to_decimal(req.reserved_amount),
        )
    else:
        await _release_tokens(
            db, req_id=req.id, user_id=req.user_id, tokens=req.token_amount
        )

    await _close_settlement(
        db, req_id=req.id, status=SettlementStatus.REVERSED, processed_by=admin_id
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_withdrawal(db: AsyncSession, request_id: uuid.UUID) -> WithdrawalRequest:
    req = await db.get(WithdrawalRequest, request_id)
    if req is None:
        raise NotFound(f"Withdrawal request {request_id} not found")
    return req


async def list_user_withdrawals(
    db: AsyncSession, user_id: str, *, limit: int = 50
) -> list[WithdrawalRequest]:
    result = await db.execute(
        select(WithdrawalRequest)
        .where(WithdrawalRequest.user_id == user_id)
        .order_by(WithdrawalRequest.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_withdrawals(
    db: AsyncSession,
    *,
    status: Optional[WithdrawalStatus] = None,
    kind: Optional[WithdrawalKind] = None,
    limit: int = 100,
    offset: int = 0,
) -> list[WithdrawalRequest]:
    query = select(WithdrawalRequest)
    if status is not None:
        query = query.where(WithdrawalRequest.status == status)
    if kind is not None:
        query = query.where(WithdrawalRequest.kind == kind)
    result = await db.execute(
        query.order_by(WithdrawalRequest.created_at.desc()).offset(offset).limit(limit)
    )
    return list(result.scalars().all())


async def withdrawal_summary(db: AsyncSession) -> dict[str, Any]:
    result = await db.execute(
        select(
            WithdrawalRequest.status,
            func.count(WithdrawalRequest.id),
            func.coalesce(func.sum(WithdrawalRequest.amount), 0),
        ).group_by(WithdrawalRequest.status)
    )
    counts = {status.value: 0 for status in WithdrawalStatus}
    open_amount = ZERO
    completed_amount = ZERO
    for status, count, total in result.all():
        counts[status.value] = count
        if status in OPEN_WITHDRAWAL_STATUSES:
            open_amount += to_decimal(total)
        elif status is WithdrawalStatus.COMPLETED:
            completed_amount += to_decimal(total)
    return {
        "counts": counts,
        "open_amount": quantize_usd(open_amount),
        "completed_amount": quantize_usd(completed_amount),
    }

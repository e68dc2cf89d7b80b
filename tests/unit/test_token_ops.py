"""Unit tests for token_ops: debits, credits, refunds and freezing.

Tests call token_ops functions directly with the db_session fixture.
"""

import uuid

import pytest
from services.ledger_service.errors import (
    AccountFrozen,
    InsufficientFunds,
    InvalidAmount,
    NotFound,
)
from services.ledger_service.models import TokenTransactionType
from services.ledger_service.services.reconciliation import reconcile_token_account
from services.ledger_service.services.token_ops import (
    check_balance,
    credit_tokens,
    debit_tokens,
    freeze_account,
    get_balance,
    get_transactions,
    refund_tokens,
    token_charge,
    unfreeze_account,
)
from tests.factories import seed_token_account


# ---------------------------------------------------------------------------
# debit_tokens
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_debit_success_writes_negative_ledger_row(db_session):
    account = await seed_token_account(db_session, balance=100)

    txn = await debit_tokens(
        db_session, user_id=account.user_id, amount=30, reason="image generation"
    )

    assert txn.amount == -30
    assert txn.balance_after == 70
    assert txn.transaction_type == TokenTransactionType.USAGE
    assert await get_balance(db_session, account.user_id) == 70


@pytest.mark.asyncio
@pytest.mark.unit
async def test_debit_insufficient_leaves_balance_untouched(db_session):
    """Balance 10, debit 15: rejected, balance still 10, no new ledger row."""
    account = await seed_token_account(db_session, balance=10)
    user_id = account.user_id

    with pytest.raises(InsufficientFunds) as exc_info:
        await debit_tokens(db_session, user_id=user_id, amount=15, reason="chat")

    assert exc_info.value.balance == 10
    assert exc_info.value.required == 15
    assert exc_info.value.status_code == 400
    assert await get_balance(db_session, user_id) == 10
    txns = await get_transactions(db_session, user_id)
    assert len(txns) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_debit_missing_account_fails_closed(db_session):
    with pytest.raises(InsufficientFunds) as exc_info:
        await debit_tokens(db_session, user_id="nobody", amount=1, reason="chat")
    assert exc_info.value.balance == 0


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("amount", [0, -5])
async def test_debit_rejects_non_positive_amount(db_session, amount):
    account = await seed_token_account(db_session, balance=10)
    with pytest.raises(InvalidAmount):
        await debit_tokens(
            db_session, user_id=account.user_id, amount=amount, reason="chat"
        )
    assert await get_balance(db_session, account.user_id) == 10


@pytest.mark.asyncio
@pytest.mark.unit
async def test_debit_idempotent_replay_returns_original(db_session):
    account = await seed_token_account(db_session, balance=50)
    key = f"debit-{uuid.uuid4().hex[:8]}"

    first = await debit_tokens(
        db_session, user_id=account.user_id, amount=20, reason="chat", idempotency_key=key
    )
    second = await debit_tokens(
        db_session, user_id=account.user_id, amount=20, reason="chat", idempotency_key=key
    )

    assert first.id == second.id
    assert await get_balance(db_session, account.user_id) == 30


@pytest.mark.asyncio
@pytest.mark.unit
async def test_debit_on_frozen_account_raises(db_session):
    account = await seed_token_account(db_session, balance=50)
    user_id = account.user_id
    await freeze_account(db_session, user_id=user_id, reason="audit")

    with pytest.raises(AccountFrozen) as exc_info:
        await debit_tokens(db_session, user_id=user_id, amount=5, reason="chat")

    assert exc_info.value.status_code == 423
    assert await get_balance(db_session, user_id) == 50


# ---------------------------------------------------------------------------
# credit / refund
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_credit_creates_account_on_first_credit(db_session):
    txn = await credit_tokens(
        db_session,
        user_id="new-user",
        amount=250,
        transaction_type=TokenTransactionType.PURCHASE,
        reason="Starter pack",
    )

    assert txn.balance_after == 250
    assert await get_balance(db_session, "new-user") == 250


@pytest.mark.asyncio
@pytest.mark.unit
async def test_credit_idempotency_key_applies_once(db_session):
    account = await seed_token_account(db_session, balance=10)
    for _ in range(2):
        await credit_tokens(
            db_session,
            user_id=account.user_id,
            amount=40,
            transaction_type=TokenTransactionType.BONUS,
            reason="Promo",
            idempotency_key="promo-1",
        )
    assert await get_balance(db_session, account.user_id) == 50


@pytest.mark.asyncio
@pytest.mark.unit
async def test_refund_linked_to_debit_is_idempotent(db_session):
    account = await seed_token_account(db_session, balance=100)
    debit = await debit_tokens(
        db_session, user_id=account.user_id, amount=25, reason="image"
    )

    first = await refund_tokens(
        db_session,
        user_id=account.user_id,
        amount=25,
        reason="generation failed",
        reversal_of=debit.id,
    )
    second = await refund_tokens(
        db_session,
        user_id=account.user_id,
        amount=25,
        reason="generation failed",
        reversal_of=debit.id,
    )

    assert first.id == second.id
    assert first.reversal_of_transaction_id == debit.id
    assert first.transaction_type == TokenTransactionType.REFUND
    assert await get_balance(db_session, account.user_id) == 100


@pytest.mark.asyncio
@pytest.mark.unit
async def test_refund_cannot_exceed_original_debit(db_session):
    account = await seed_token_account(db_session, balance=100)
    debit = await debit_tokens(db_session, user_id=account.user_id, amount=5, reason="x")

    with pytest.raises(InvalidAmount):
        await refund_tokens(
            db_session, user_id=account.user_id, amount=6, reason="x", reversal_of=debit.id
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_refund_of_unknown_debit_not_found(db_session):
    account = await seed_token_account(db_session, balance=100)
    with pytest.raises(NotFound):
        await refund_tokens(
            db_session,
            user_id=account.user_id,
            amount=1,
            reason="x",
            reversal_of=uuid.uuid4(),
        )


# ---------------------------------------------------------------------------
# token_charge
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_token_charge_refunds_when_action_fails(db_session):
    account = await seed_token_account(db_session, balance=40)

    with pytest.raises(RuntimeError):
        async with token_charge(
            db_session, user_id=account.user_id, amount=15, reason="image"
        ):
            raise RuntimeError("provider timeout")

    assert await get_balance(db_session, account.user_id) == 40
    report = await reconcile_token_account(db_session, account.user_id)
    assert report.consistent


@pytest.mark.asyncio
@pytest.mark.unit
async def test_token_charge_keeps_debit_on_success(db_session):
    account = await seed_token_account(db_session, balance=40)

    async with token_charge(
        db_session, user_id=account.user_id, amount=15, reason="image"
    ) as debit:
        assert debit.amount == -15

    assert await get_balance(db_session, account.user_id) == 25


# ---------------------------------------------------------------------------
# check_balance / conservation / freeze
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_check_balance_reports_without_writing(db_session):
    account = await seed_token_account(db_session, balance=12)

    assert await check_balance(db_session, account.user_id, 12) == (True, 12)
    assert await check_balance(db_session, account.user_id, 13) == (False, 12)
    assert await check_balance(db_session, "ghost", 1) == (False, 0)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_ledger_sum_matches_balance_after_mixed_operations(db_session):
    account = await seed_token_account(db_session, balance=100)
    user_id = account.user_id

    debit = await debit_tokens(db_session, user_id=user_id, amount=30, reason="a")
    await credit_tokens(
        db_session,
        user_id=user_id,
        amount=15,
        transaction_type=TokenTransactionType.BONUS,
        reason="b",
    )
    await refund_tokens(
        db_session, user_id=user_id, amount=10, reason="c", reversal_of=debit.id
    )
    with pytest.raises(InsufficientFunds):
        await debit_tokens(db_session, user_id=user_id, amount=1000, reason="d")

    report = await reconcile_token_account(db_session, user_id)
    assert report.consistent
    assert report.stored_balance == 95


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unfreeze_restores_debits(db_session):
    account = await seed_token_account(db_session, balance=20)
    await freeze_account(db_session, user_id=account.user_id, reason="audit")

    unfrozen = await unfreeze_account(
        db_session, user_id=account.user_id, admin_id="user-admin"
    )
    assert unfrozen.is_frozen is False

    txn = await debit_tokens(db_session, user_id=account.user_id, amount=5, reason="x")
    assert txn.balance_after == 15

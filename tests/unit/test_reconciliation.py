"""Unit tests for ledger reconciliation and account freezing."""

from decimal import Decimal

import pytest
from services.ledger_service.errors import AccountFrozen, InvariantViolation, NotFound
from services.ledger_service.models import BonusWallet, UserToken
from services.ledger_service.services.reconciliation import (
    reconcile_bonus_wallet,
    reconcile_token_account,
    unfreeze_bonus_wallet,
)
from services.ledger_service.services.token_ops import debit_tokens
from sqlalchemy import select, update
from tests.factories import seed_bonus_wallet, seed_token_account


async def _tamper_token_balance(db, user_id, balance):
    await db.execute(
        update(UserToken).where(UserToken.user_id == user_id).values(balance=balance)
    )
    await db.commit()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_token_mismatch_freezes_account(db_session):
    account = await seed_token_account(db_session, balance=100)
    user_id = account.user_id
    await _tamper_token_balance(db_session, user_id, 250)

    with pytest.raises(InvariantViolation) as exc_info:
        await reconcile_token_account(db_session, user_id)

    assert exc_info.value.details["ledger_sum"] == 100
    assert exc_info.value.details["balance"] == 250
    frozen, reason = (
        await db_session.execute(
            select(UserToken.is_frozen, UserToken.frozen_reason).where(
                UserToken.user_id == user_id
            )
        )
    ).one()
    assert frozen is True
    assert "ledger=100" in reason


@pytest.mark.asyncio
@pytest.mark.unit
async def test_frozen_account_rejects_debits(db_session):
    account = await seed_token_account(db_session, balance=100)
    user_id = account.user_id
    await _tamper_token_balance(db_session, user_id, 90)
    with pytest.raises(InvariantViolation):
        await reconcile_token_account(db_session, user_id)

    with pytest.raises(AccountFrozen):
        await debit_tokens(db_session, user_id=user_id, amount=1, reason="chat")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_missing_token_account_reconciles_to_zero(db_session):
    report = await reconcile_token_account(db_session, "nobody")
    assert report.consistent
    assert report.stored_balance == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_bonus_balance_mismatch_freezes_wallet(db_session):
    wallet = await seed_bonus_wallet(db_session, balance=Decimal("30"))
    user_id = wallet.user_id
    await db_session.execute(
        update(BonusWallet)
        .where(BonusWallet.user_id == user_id)
        .values(balance=Decimal("45"))
    )
    await db_session.commit()

    with pytest.raises(InvariantViolation) as exc_info:
        await reconcile_bonus_wallet(db_session, user_id)

    assert exc_info.value.details["ledger_sum"] == "30.00"
    assert exc_info.value.details["balance"] == "45.00"
    frozen = await db_session.scalar(
        select(BonusWallet.is_frozen).where(BonusWallet.user_id == user_id)
    )
    assert frozen is True


@pytest.mark.asyncio
@pytest.mark.unit
async def test_bonus_lifetime_mismatch_is_detected(db_session):
    """Balance agrees, but lifetime earnings no longer match commissions."""
    wallet = await seed_bonus_wallet(db_session, balance=Decimal("30"))
    user_id = wallet.user_id
    await db_session.execute(
        update(BonusWallet)
        .where(BonusWallet.user_id == user_id)
        .values(lifetime_earnings=Decimal("80"))
    )
    await db_session.commit()

    with pytest.raises(InvariantViolation) as exc_info:
        await reconcile_bonus_wallet(db_session, user_id)

    assert exc_info.value.details["commission_sum"] == "30.00"
    assert exc_info.value.details["lifetime_earnings"] == "80.00"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unfreeze_bonus_wallet(db_session):
    wallet = await seed_bonus_wallet(db_session, balance=Decimal("30"))
    user_id = wallet.user_id
    await db_session.execute(
        update(BonusWallet)
        .where(BonusWallet.user_id == user_id)
        .values(is_frozen=True, frozen_reason="manual hold")
    )
    await db_session.commit()

    unfrozen = await unfreeze_bonus_wallet(
        db_session, user_id=user_id, admin_id="user-admin"
    )

    assert unfrozen.is_frozen is False
    assert unfrozen.frozen_reason is None
    assert (await reconcile_bonus_wallet(db_session, user_id)).consistent


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reconcile_unknown_bonus_wallet(db_session):
    with pytest.raises(NotFound):
        await reconcile_bonus_wallet(db_session, "nobody")
    with pytest.raises(NotFound):
        await unfreeze_bonus_wallet(db_session, user_id="nobody", admin_id="user-admin")

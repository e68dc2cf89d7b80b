"""Integration tests for member-facing ledger endpoints."""

import uuid
from decimal import Decimal

import pytest
from services.ledger_service.services.withdrawal_service import request_withdrawal
from tests.factories import (
    CompanionModelFactory,
    UserProfileFactory,
    seed_bonus_wallet,
    seed_creator_earnings,
    seed_referral_chain,
    seed_token_account,
)

PAYPAL = {"email": "member@example.com"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(ledger_client):
    response = await ledger_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "ledger"}


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_token_balance_defaults_to_zero(ledger_client):
    """GET /ledger/tokens/balance with no account yet."""
    response = await ledger_client.get("/ledger/tokens/balance")
    assert response.status_code == 200
    assert response.json()["balance"] == 0
    assert response.json()["user_id"] == "user-member"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_token_balance_and_history(ledger_client, db_session):
    await seed_token_account(db_session, balance=250, user_id="user-member")

    balance = await ledger_client.get("/ledger/tokens/balance")
    history = await ledger_client.get("/ledger/tokens/transactions")

    assert balance.json()["balance"] == 250
    assert history.status_code == 200
    rows = history.json()
    assert len(rows) == 1
    assert rows[0]["amount"] == 250
    assert rows[0]["transaction_type"] == "purchase"


# ---------------------------------------------------------------------------
# Earnings
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_available_earnings(ledger_client, db_session):
    await seed_creator_earnings(
        db_session,
        creator_id="user-member",
        amounts=(Decimal("30"), Decimal("12.5")),
    )

    response = await ledger_client.get("/ledger/earnings")

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["total_earnings"]) == Decimal("42.5")
    assert len(data["models"]) == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_model_stats_only_for_creator(ledger_client, db_session):
    mine = CompanionModelFactory.create(creator_id="user-member")
    theirs = CompanionModelFactory.create(creator_id="someone-else")
    db_session.add_all([mine, theirs])
    await db_session.commit()

    ok = await ledger_client.get(f"/ledger/earnings/models/{mine.id}/stats")
    forbidden = await ledger_client.get(f"/ledger/earnings/models/{theirs.id}/stats")
    missing = await ledger_client.get(f"/ledger/earnings/models/{uuid.uuid4()}/stats")

    assert ok.status_code == 200
    assert ok.json()["total_usage"] == 0
    assert forbidden.status_code == 403
    assert missing.status_code == 404


# ---------------------------------------------------------------------------
# Bonus wallet
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_bonus_wallet_defaults_to_empty(ledger_client):
    response = await ledger_client.get("/ledger/bonus-wallet")
    assert response.status_code == 200
    assert Decimal(response.json()["balance"]) == Decimal("0")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_bonus_wallet_and_transactions(ledger_client, db_session):
    await seed_bonus_wallet(db_session, balance=Decimal("30"), user_id="user-member")

    wallet = await ledger_client.get("/ledger/bonus-wallet")
    txns = await ledger_client.get("/ledger/bonus-wallet/transactions")

    assert Decimal(wallet.json()["balance"]) == Decimal("30")
    assert [t["transaction_type"] for t in txns.json()] == ["commission_level1"]


# ---------------------------------------------------------------------------
# Affiliate
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_downlines_with_level_counts(ledger_client, db_session):
    """GET /ledger/affiliate/downlines for the caller's referral tree."""
    await seed_referral_chain(db_session, "grandchild", "child", "user-member")
    db_session.add(
        UserProfileFactory.create(user_id="other-child", referrer_id="user-member")
    )
    await db_session.commit()

    response = await ledger_client.get("/ledger/affiliate/downlines")
    limited = await ledger_client.get("/ledger/affiliate/downlines?depth=1")
    too_deep = await ledger_client.get("/ledger/affiliate/downlines?depth=4")

    assert response.status_code == 200
    data = response.json()
    assert sorted((d["level"], d["user_id"]) for d in data["downlines"]) == [
        (1, "child"),
        (1, "other-child"),
        (2, "grandchild"),
    ]
    assert data["levels"] == [
        {"level": 1, "count": 2},
        {"level": 2, "count": 1},
        {"level": 3, "count": 0},
    ]
    assert data["total"] == 3
    assert limited.json()["total"] == 2
    assert too_deep.status_code == 422


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_and_read_withdrawal(ledger_client, db_session):
    """POST /ledger/withdrawals then GET it back with its history."""
    await seed_creator_earnings(
        db_session, creator_id="user-member", amounts=(Decimal("100"),)
    )

    created = await ledger_client.post(
        "/ledger/withdrawals",
        json={"amount": "60", "payout_method": "paypal", "payment_details": PAYPAL},
    )

    assert created.status_code == 201
    data = created.json()
    assert data["status"] == "pending"
    assert data["kind"] == "creator_earnings"
    assert Decimal(data["amount"]) == Decimal("60")
    assert [h["action"] for h in data["history"]] == ["request"]

    fetched = await ledger_client.get(f"/ledger/withdrawals/{data['id']}")
    listed = await ledger_client.get("/ledger/withdrawals")
    assert fetched.status_code == 200
    assert [w["id"] for w in listed.json()] == [data["id"]]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_withdrawal_errors_map_to_status_codes(ledger_client, db_session):
    await seed_creator_earnings(
        db_session, creator_id="user-member", amounts=(Decimal("50"),)
    )

    too_much = await ledger_client.post(
        "/ledger/withdrawals",
        json={"amount": "60", "payout_method": "paypal", "payment_details": PAYPAL},
    )
    bad_details = await ledger_client.post(
        "/ledger/withdrawals",
        json={"amount": "50", "payout_method": "paypal", "payment_details": {}},
    )
    too_small = await ledger_client.post(
        "/ledger/withdrawals",
        json={"amount": "5", "payout_method": "paypal", "payment_details": PAYPAL},
    )

    assert too_much.status_code == 400
    assert too_much.json()["error"] == "insufficient_balance"
    assert bad_details.status_code == 400
    assert bad_details.json()["error"] == "invalid_payment_details"
    assert too_small.status_code == 400
    assert too_small.json()["error"] == "invalid_amount"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_withdrawal_amount_outside_column_range_is_rejected(
    ledger_client, db_session
):
    await seed_creator_earnings(
        db_session, creator_id="user-member", amounts=(Decimal("100"),)
    )

    huge = await ledger_client.post(
        "/ledger/withdrawals",
        json={"amount": "1e30", "payout_method": "paypal", "payment_details": PAYPAL},
    )
    sub_cent = await ledger_client.post(
        "/ledger/withdrawals",
        json={"amount": "50.001", "payout_method": "paypal", "payment_details": PAYPAL},
    )

    assert huge.status_code == 422
    assert sub_cent.status_code == 422
    listed = await ledger_client.get("/ledger/withdrawals")
    assert listed.json() == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_second_open_withdrawal_conflicts(ledger_client, db_session):
    await seed_creator_earnings(
        db_session, creator_id="user-member", amounts=(Decimal("200"),)
    )
    body = {"amount": "50", "payout_method": "paypal", "payment_details": PAYPAL}

    first = await ledger_client.post("/ledger/withdrawals", json=body)
    second = await ledger_client.post("/ledger/withdrawals", json=body)

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["error"] == "duplicate_request"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_other_users_withdrawal_is_hidden(ledger_client, db_session):
    creator_id, _ = await seed_creator_earnings(db_session, amounts=(Decimal("100"),))

    req = await request_withdrawal(
        db_session,
        user_id=creator_id,
        kind="creator_earnings",
        amount=Decimal("50"),
        method="paypal",
        details={"email": "other@example.com"},
    )

    response = await ledger_client.get(f"/ledger/withdrawals/{req.id}")
    assert response.status_code == 404

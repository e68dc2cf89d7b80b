"""Integration tests for admin ledger endpoints."""

from decimal import Decimal

import pytest
from services.ledger_service.models import PaymentStatus, UserToken
from services.ledger_service.services.withdrawal_service import request_withdrawal
from sqlalchemy import update
from tests.factories import (
    CompanionModelFactory,
    PaymentTransactionFactory,
    seed_creator_earnings,
    seed_referral_chain,
    seed_token_account,
)


@pytest.fixture(autouse=True)
def _as_admin(caller, admin_user):
    caller.as_(admin_user)


async def _pending_withdrawal(db, amount="60"):
    creator_id, _ = await seed_creator_earnings(db, amounts=(Decimal("100"),))
    req = await request_withdrawal(
        db,
        user_id=creator_id,
        kind="creator_earnings",
        amount=Decimal(amount),
        method="paypal",
        details={"email": "creator@example.com"},
    )
    return creator_id, req.id


@pytest.mark.asyncio
@pytest.mark.integration
async def test_members_cannot_use_admin_endpoints(ledger_client, caller, member_user):
    caller.as_(member_user)
    response = await ledger_client.get("/admin/ledger/withdrawals")
    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_withdrawals_filtered_by_status(ledger_client, db_session):
    _, req_id = await _pending_withdrawal(db_session)

    pending = await ledger_client.get("/admin/ledger/withdrawals?status=pending")
    completed = await ledger_client.get("/admin/ledger/withdrawals?status=completed")

    assert [w["id"] for w in pending.json()] == [str(req_id)]
    assert completed.json() == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_adjudicate_through_completion(ledger_client, db_session):
    """POST /admin/ledger/withdrawals/{id}/adjudicate for each step."""
    creator_id, req_id = await _pending_withdrawal(db_session)
    url = f"/admin/ledger/withdrawals/{req_id}/adjudicate"

    approved = await ledger_client.post(url, json={"action": "approve"})
    processing = await ledger_client.post(url, json={"action": "process"})
    completed = await ledger_client.post(
        url, json={"action": "complete", "transaction_hash": "0xfeed"}
    )

    assert approved.status_code == 200
    assert approved.json()["approved_by"] == "user-admin"
    assert processing.json()["status"] == "processing"
    data = completed.json()
    assert data["status"] == "completed"
    assert data["transaction_hash"] == "0xfeed"
    assert [h["action"] for h in data["history"]] == [
        "request",
        "approve",
        "process",
        "complete",
    ]

    summary = await ledger_client.get("/admin/ledger/withdrawals/summary")
    assert summary.json()["counts"]["completed"] == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_invalid_transition_conflicts(ledger_client, db_session):
    _, req_id = await _pending_withdrawal(db_session)

    response = await ledger_client.post(
        f"/admin/ledger/withdrawals/{req_id}/adjudicate", json={"action": "complete"}
    )

    assert response.status_code == 409
    assert response.json()["error"] == "invalid_transition"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reject_with_reason(ledger_client, db_session):
    _, req_id = await _pending_withdrawal(db_session)

    response = await ledger_client.post(
        f"/admin/ledger/withdrawals/{req_id}/adjudicate",
        json={"action": "reject", "rejection_reason": "Payout email bounced"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert response.json()["rejection_reason"] == "Payout email bounced"


# ---------------------------------------------------------------------------
# Earnings and commissions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_adds_creator_bonus(ledger_client, db_session):
    model = CompanionModelFactory.create(creator_id="creator-7")
    db_session.add(model)
    await db_session.commit()

    response = await ledger_client.post(
        "/admin/ledger/earnings",
        json={
            "creator_id": "creator-7",
            "model_id": str(model.id),
            "amount": "25.00",
            "description": "Launch bonus",
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["source"] == "admin"
    assert data["added_by"] == "user-admin"
    assert Decimal(data["amount"]) == Decimal("25.00")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_earnings_amount_outside_column_range_is_rejected(
    ledger_client, db_session
):
    model = CompanionModelFactory.create(creator_id="creator-8")
    db_session.add(model)
    await db_session.commit()
    body = {"creator_id": "creator-8", "model_id": str(model.id)}

    huge = await ledger_client.post(
        "/admin/ledger/earnings", json={**body, "amount": "1e30"}
    )
    negative = await ledger_client.post(
        "/admin/ledger/earnings", json={**body, "amount": "-5"}
    )

    assert huge.status_code == 422
    assert negative.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_commission_sweep(ledger_client, db_session):
    await seed_referral_chain(db_session, "buyer", "ref-a")
    payment = PaymentTransactionFactory.create(
        user_id="buyer", status=PaymentStatus.COMPLETED
    )
    db_session.add(payment)
    await db_session.commit()

    response = await ledger_client.post("/admin/ledger/commissions/sweep")

    assert response.status_code == 200
    data = response.json()
    assert data["fixed"] == 1
    assert data["fixed_ids"] == [str(payment.id)]


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reconcile_then_unfreeze(ledger_client, db_session):
    await seed_token_account(db_session, balance=100, user_id="u1")

    ok = await ledger_client.post("/admin/ledger/reconcile/tokens/u1")
    assert ok.status_code == 200
    assert ok.json()["consistent"] is True

    await db_session.execute(
        update(UserToken).where(UserToken.user_id == "u1").values(balance=300)
    )
    await db_session.commit()

    broken = await ledger_client.post("/admin/ledger/reconcile/tokens/u1")
    assert broken.status_code == 500
    assert broken.json()["error"] == "invariant_violation"

    unfrozen = await ledger_client.post("/admin/ledger/tokens/u1/unfreeze")
    assert unfrozen.status_code == 200
    assert unfrozen.json()["is_frozen"] is False


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_and_list_settings(ledger_client):
    updated = await ledger_client.put(
        "/admin/ledger/settings/minimum_withdrawal_amount", json={"value": 25}
    )
    assert updated.status_code == 200
    assert updated.json()["value"] == 25

    listed = await ledger_client.get("/admin/ledger/settings")
    data = listed.json()
    assert [s["key"] for s in data["settings"]] == ["minimum_withdrawal_amount"]
    assert Decimal(data["effective"]["min_creator_withdrawal"]) == Decimal("25")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_invalid_setting_rejected(ledger_client):
    response = await ledger_client.put(
        "/admin/ledger/settings/token_to_usd_rate", json={"value": "free"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_setting"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_disabling_monetization_blocks_withdrawals(
    ledger_client, db_session, caller, member_user
):
    await ledger_client.put(
        "/admin/ledger/settings/monetization_enabled", json={"value": False}
    )
    await seed_creator_earnings(
        db_session, creator_id="user-member", amounts=(Decimal("100"),)
    )

    caller.as_(member_user)
    response = await ledger_client.post(
        "/ledger/withdrawals",
        json={
            "amount": "60",
            "payout_method": "paypal",
            "payment_details": {"email": "member@example.com"},
        },
    )

    assert response.status_code == 403
    assert response.json()["error"] == "monetization_disabled"

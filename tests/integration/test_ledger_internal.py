"""Integration tests for service-to-service ledger endpoints."""

import uuid
from decimal import Decimal

import pytest
from services.ledger_service.services.commission_service import get_bonus_wallet
from tests.factories import (
    CompanionModelFactory,
    seed_referral_chain,
    seed_token_account,
)


@pytest.fixture(autouse=True)
def _as_service(caller, service_user):
    caller.as_(service_user)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_members_cannot_call_internal_endpoints(ledger_client, caller, member_user):
    caller.as_(member_user)
    response = await ledger_client.post(
        "/internal/ledger/tokens/debit",
        json={"user_id": "user-member", "amount": 5, "reason": "chat"},
    )
    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_debit_then_refund(ledger_client, db_session):
    await seed_token_account(db_session, balance=100, user_id="u1")

    debit = await ledger_client.post(
        "/internal/ledger/tokens/debit",
        json={"user_id": "u1", "amount": 30, "reason": "image generation"},
    )
    assert debit.status_code == 200
    assert debit.json()["balance_after"] == 70

    refund = await ledger_client.post(
        "/internal/ledger/tokens/refund",
        json={
            "user_id": "u1",
            "amount": 30,
            "reason": "generation failed",
            "reversal_of": debit.json()["transaction_id"],
        },
    )
    assert refund.status_code == 200
    assert refund.json()["balance_after"] == 100


@pytest.mark.asyncio
@pytest.mark.integration
async def test_debit_over_balance_is_rejected(ledger_client, db_session):
    await seed_token_account(db_session, balance=10, user_id="u1")

    response = await ledger_client.post(
        "/internal/ledger/tokens/debit",
        json={"user_id": "u1", "amount": 15, "reason": "chat"},
    )

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "insufficient_funds"
    assert data["balance"] == "10"
    assert data["required"] == "15"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_non_positive_debit_fails_validation(ledger_client):
    response = await ledger_client.post(
        "/internal/ledger/tokens/debit",
        json={"user_id": "u1", "amount": 0, "reason": "chat"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_idempotent_credit(ledger_client):
    body = {
        "user_id": "u2",
        "amount": 500,
        "reason": "purchase",
        "idempotency_key": "order-42",
    }

    first = await ledger_client.post("/internal/ledger/tokens/credit", json=body)
    second = await ledger_client.post("/internal/ledger/tokens/credit", json=body)

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json()["transaction_id"] == second.json()["transaction_id"]
    assert second.json()["balance_after"] == 500


@pytest.mark.asyncio
@pytest.mark.integration
async def test_check_balance(ledger_client, db_session):
    await seed_token_account(db_session, balance=40, user_id="u1")

    enough = await ledger_client.post(
        "/internal/ledger/tokens/check-balance",
        json={"user_id": "u1", "required_amount": 40},
    )
    short = await ledger_client.post(
        "/internal/ledger/tokens/check-balance",
        json={"user_id": "u1", "required_amount": 41},
    )

    assert enough.json() == {"sufficient": True, "current_balance": 40, "required_amount": 40}
    assert short.json()["sufficient"] is False


# ---------------------------------------------------------------------------
# Usage and commissions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_usage_accrues_creator_earnings(ledger_client, db_session):
    model = CompanionModelFactory.create(
        creator_id="creator-1", earnings_per_use=Decimal("0")
    )
    db_session.add(model)
    await db_session.commit()
    body = {
        "user_id": "u1",
        "model_id": str(model.id),
        "tokens_consumed": 100,
        "usage_type": "chat",
        "event_id": "evt-1",
    }

    first = await ledger_client.post("/internal/ledger/usage", json=body)
    replay = await ledger_client.post("/internal/ledger/usage", json=body)

    assert first.status_code == 200
    data = first.json()
    assert data["accrued"] is True
    assert data["creator_id"] == "creator-1"
    assert Decimal(data["total_earnings"]) == Decimal("0.008")
    assert replay.json()["replayed"] is True


@pytest.mark.asyncio
@pytest.mark.integration
async def test_usage_for_unknown_model_does_not_fail(ledger_client):
    response = await ledger_client.post(
        "/internal/ledger/usage",
        json={"user_id": "u1", "model_id": str(uuid.uuid4()), "tokens_consumed": 10},
    )
    assert response.status_code == 200
    assert response.json()["accrued"] is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_distribute_commission_is_repeatable(ledger_client, db_session):
    await seed_referral_chain(db_session, "buyer", "ref-a", "ref-b")
    body = {"payment_id": "pay-9", "buyer_id": "buyer", "amount": "20.00"}

    first = await ledger_client.post("/internal/ledger/commissions/distribute", json=body)
    second = await ledger_client.post("/internal/ledger/commissions/distribute", json=body)

    levels = first.json()["credited_levels"]
    assert [(lvl["level"], Decimal(lvl["amount"])) for lvl in levels] == [
        (1, Decimal("10.00")),
        (2, Decimal("1.00")),
    ]
    assert second.json()["credited_levels"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_distribute_commission_rejects_out_of_range_amounts(
    ledger_client, db_session
):
    await seed_referral_chain(db_session, "buyer", "ref-a")

    for amount in ("1e30", "0", "12345678901.00"):
        response = await ledger_client.post(
            "/internal/ledger/commissions/distribute",
            json={"payment_id": "pay-big", "buyer_id": "buyer", "amount": amount},
        )
        assert response.status_code == 422, amount

    assert await get_bonus_wallet(db_session, "ref-a") is None

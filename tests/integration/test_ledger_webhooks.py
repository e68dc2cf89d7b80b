"""Integration tests for the payment provider webhook."""

import hashlib
import hmac
import json

import pytest
from services.ledger_service.models import PaymentStatus, PaymentTransaction
from services.ledger_service.services.token_ops import get_balance
from sqlalchemy import select
from tests.factories import PaymentTransactionFactory

SECRET = "test-webhook-secret"
URL = "/ledger/webhooks/payments"


def _signed(event: dict) -> tuple[bytes, dict]:
    body = json.dumps(event).encode()
    signature = hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest()
    return body, {"x-webhook-signature": signature, "content-type": "application/json"}


async def _seed_payment(db, **overrides):
    payment = PaymentTransactionFactory.create(**overrides)
    db.add(payment)
    await db.commit()
    return payment.provider_session_id, payment.id


@pytest.mark.asyncio
@pytest.mark.integration
async def test_completed_checkout_credits_tokens(ledger_client, db_session):
    session_id, payment_id = await _seed_payment(db_session, user_id="buyer")
    body, headers = _signed(
        {"type": "checkout.session.completed", "session_id": session_id}
    )

    response = await ledger_client.post(URL, content=body, headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "completed"
    assert data["tokens_credited"] == 2000
    assert data["payment_id"] == str(payment_id)
    assert await get_balance(db_session, "buyer") == 2000


@pytest.mark.asyncio
@pytest.mark.integration
async def test_duplicate_delivery_is_acknowledged_once(ledger_client, db_session):
    session_id, _ = await _seed_payment(db_session, user_id="buyer")
    body, headers = _signed({"type": "payment.succeeded", "session_id": session_id})

    first = await ledger_client.post(URL, content=body, headers=headers)
    second = await ledger_client.post(URL, content=body, headers=headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["already_processed"] is True
    assert await get_balance(db_session, "buyer") == 2000


@pytest.mark.asyncio
@pytest.mark.integration
async def test_expired_checkout_marks_payment_failed(ledger_client, db_session):
    session_id, payment_id = await _seed_payment(db_session, user_id="buyer")
    body, headers = _signed({"type": "checkout.session.expired", "session_id": session_id})

    response = await ledger_client.post(URL, content=body, headers=headers)

    assert response.json()["status"] == "failed"
    status = await db_session.scalar(
        select(PaymentTransaction.status).where(PaymentTransaction.id == payment_id)
    )
    assert status == PaymentStatus.FAILED
    assert await get_balance(db_session, "buyer") == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_bad_signature_rejected(ledger_client, db_session):
    session_id, _ = await _seed_payment(db_session, user_id="buyer")
    body, _ = _signed({"type": "payment.succeeded", "session_id": session_id})

    response = await ledger_client.post(
        URL, content=body, headers={"x-webhook-signature": "deadbeef"}
    )
    unsigned = await ledger_client.post(URL, content=body)

    assert response.status_code == 401
    assert unsigned.status_code == 401
    assert await get_balance(db_session, "buyer") == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_event_type_is_ignored(ledger_client):
    body, headers = _signed({"type": "customer.created", "session_id": "cs_x"})

    response = await ledger_client.post(URL, content=body, headers=headers)

    assert response.status_code == 200
    assert response.json()["payment_id"] is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_malformed_payload(ledger_client):
    body, headers = _signed({"type": "payment.succeeded"})

    response = await ledger_client.post(URL, content=body, headers=headers)

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_session(ledger_client):
    body, headers = _signed({"type": "payment.succeeded", "session_id": "cs_missing"})

    response = await ledger_client.post(URL, content=body, headers=headers)

    assert response.status_code == 404

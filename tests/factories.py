"""
Model factories for creating valid ledger test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    account = UserTokenFactory.create(balance=100)
    db_session.add(account)
    await db_session.commit()
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _user_id() -> str:
    return f"user-{uuid.uuid4().hex[:8]}"


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class UserTokenFactory:
    @staticmethod
    def create(**overrides):
        from services.ledger_service.models import UserToken

        defaults = {
            "id": _uuid(),
            "user_id": _user_id(),
            "balance": 100,
            "is_frozen": False,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return UserToken(**defaults)


class TokenTransactionFactory:
    """Ledger row matching an account's opening balance."""

    @staticmethod
    def create(user_id: str, amount: int, **overrides):
        from services.ledger_service.models import (
            TokenTransaction,
            TokenTransactionType,
        )

        defaults = {
            "id": _uuid(),
            "user_id": user_id,
            "amount": amount,
            "transaction_type": TokenTransactionType.PURCHASE,
            "balance_after": amount,
            "description": "Opening balance",
            "created_at": _now(),
        }
        defaults.update(overrides)
        return TokenTransaction(**defaults)


async def seed_token_account(db, *, balance: int = 100, user_id=None):
    """Insert a token account whose ledger already reconciles."""
    account = UserTokenFactory.create(user_id=user_id or _user_id(), balance=balance)
    db.add(account)
    if balance:
        db.add(TokenTransactionFactory.create(account.user_id, balance))
    await db.commit()
    return account


# ---------------------------------------------------------------------------
# Creator earnings
# ---------------------------------------------------------------------------


class CompanionModelFactory:
    @staticmethod
    def create(**overrides):
        from services.ledger_service.models import CompanionModel

        defaults = {
            "id": _uuid(),
            "creator_id": _user_id(),
            "name": "Test Companion",
            "earnings_per_use": Decimal("0.05"),
            "earnings_per_token": None,
            "is_active": True,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return CompanionModel(**defaults)


class ModelCreatorEarningsFactory:
    @staticmethod
    def create(model_id, creator_id, **overrides):
        from services.ledger_service.models import ModelCreatorEarnings

        defaults = {
            "id": _uuid(),
            "model_id": model_id,
            "creator_id": creator_id,
            "total_usage_count": 0,
            "total_tokens_consumed": 0,
            "total_earnings": Decimal("0"),
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return ModelCreatorEarnings(**defaults)


async def seed_creator_earnings(db, *, creator_id=None, amounts=(Decimal("100"),)):
    """One model per amount, each with an earnings record holding that amount.

    Records are created a second apart, in the order given.
    """
    creator_id = creator_id or _user_id()
    records = []
    base = _now()
    for index, amount in enumerate(amounts):
        model = CompanionModelFactory.create(creator_id=creator_id)
        db.add(model)
        record = ModelCreatorEarningsFactory.create(
            model.id,
            creator_id,
            total_earnings=Decimal(amount),
            created_at=base + timedelta(seconds=index),
        )
        db.add(record)
        records.append(record)
    await db.commit()
    return creator_id, records


# ---------------------------------------------------------------------------
# Affiliate
# ---------------------------------------------------------------------------


class UserProfileFactory:
    @staticmethod
    def create(**overrides):
        from services.ledger_service.models import UserProfile

        defaults = {
            "user_id": _user_id(),
            "referrer_id": None,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return UserProfile(**defaults)


class BonusWalletFactory:
    @staticmethod
    def create(**overrides):
        from services.ledger_service.models import BonusWallet

        defaults = {
            "id": _uuid(),
            "user_id": _user_id(),
            "balance": Decimal("0"),
            "withdrawn_amount": Decimal("0"),
            "lifetime_earnings": Decimal("0"),
            "is_frozen": False,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return BonusWallet(**defaults)


async def seed_bonus_wallet(db, *, balance=Decimal("30"), user_id=None):
    """A bonus wallet funded by one level-1 commission so its ledger reconciles."""
    from services.ledger_service.models import (
        BonusTransaction,
        BonusTransactionType,
    )

    wallet = BonusWalletFactory.create(
        user_id=user_id or _user_id(),
        balance=Decimal(balance),
        lifetime_earnings=Decimal(balance),
    )
    db.add(wallet)
    db.add(
        BonusTransaction(
            user_id=wallet.user_id,
            transaction_type=BonusTransactionType.COMMISSION_LEVEL1,
            amount=Decimal(balance),
            payment_id=f"seed-{uuid.uuid4().hex[:8]}",
            level=1,
            from_user_id=_user_id(),
        )
    )
    await db.commit()
    return wallet


async def seed_referral_chain(db, *user_ids):
    """``seed_referral_chain(db, buyer, a, b)``: buyer was referred by a, a by b."""
    for user_id, referrer_id in zip(user_ids, list(user_ids[1:]) + [None]):
        db.add(UserProfileFactory.create(user_id=user_id, referrer_id=referrer_id))
    await db.commit()


# ---------------------------------------------------------------------------
# Payments / settings
# ---------------------------------------------------------------------------


class PaymentTransactionFactory:
    @staticmethod
    def create(**overrides):
        from services.ledger_service.models import PaymentStatus, PaymentTransaction

        defaults = {
            "id": _uuid(),
            "provider": "stripe",
            "provider_session_id": f"cs_test_{uuid.uuid4().hex[:12]}",
            "user_id": _user_id(),
            "amount": Decimal("20.00"),
            "tokens": 2000,
            "status": PaymentStatus.PENDING,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return PaymentTransaction(**defaults)


class AdminSettingFactory:
    @staticmethod
    def create(key: str, value, **overrides):
        from services.ledger_service.models import AdminSetting

        defaults = {
            "key": key,
            "value": value,
            "description": None,
            "updated_by": "seed",
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return AdminSetting(**defaults)

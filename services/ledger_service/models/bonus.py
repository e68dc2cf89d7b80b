"""Affiliate models: referrer links, bonus wallets and their ledger."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.ledger_service.models.enums import (
    BonusTransactionStatus,
    BonusTransactionType,
    enum_values,
)
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

Money = Numeric(12, 2)


class UserProfile(Base):
    """Referral graph node. Owned by the profile service; read here."""

    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    referrer_id: Mapped[Optional[str]] = mapped_column(
        String, index=True, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<UserProfile {self.user_id} referrer={self.referrer_id}>"


class BonusWallet(Base):
    """Affiliate commission balance, separate from creator earnings."""

    __tablename__ = "bonus_wallets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    balance: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    withdrawn_amount: Mapped[Decimal] = mapped_column(
        Money, default=Decimal("0"), nullable=False
    )
    lifetime_earnings: Mapped[Decimal] = mapped_column(
        Money, default=Decimal("0"), nullable=False
    )
    is_frozen: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    frozen_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (CheckConstraint("balance >= 0", name="balance_non_negative"),)

    def __repr__(self) -> str:
        return f"<BonusWallet user_id={self.user_id} balance={self.balance}>"


class BonusTransaction(Base):
    """Bonus wallet ledger. ``sum(amount)`` per user equals the wallet balance.

    Commission rows are keyed by ``(payment_id, level)``; withdrawal
    reservations are negative rows linked to their request.
    """

    __tablename__ = "bonus_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    transaction_type: Mapped[BonusTransactionType] = mapped_column(
        SAEnum(
            BonusTransactionType,
            name="bonus_transaction_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[BonusTransactionStatus] = mapped_column(
        SAEnum(
            BonusTransactionStatus,
            name="bonus_transaction_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=BonusTransactionStatus.COMPLETED,
        nullable=False,
    )
    from_user_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    payment_id: Mapped[Optional[str]] = mapped_column(String, index=True, nullable=True)
    level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    withdrawal_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, nullable=True, index=True
    )
    description: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("payment_id", "level", name="uq_bonus_transactions_payment_level"),
    )

    def __repr__(self) -> str:
        return f"<BonusTransaction {self.id} {self.transaction_type.value} {self.amount}>"

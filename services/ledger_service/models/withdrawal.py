"""Withdrawal models: requests, their audit trail and settlement records."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.ledger_service.models.enums import (
    OPEN_WITHDRAWAL_STATUSES,
    PayoutMethod,
    SettlementStatus,
    WithdrawalAction,
    WithdrawalKind,
    WithdrawalStatus,
    enum_values,
)
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

Money = Numeric(12, 2)

_OPEN_STATUS_SQL = text(
    "status IN (%s)" % ", ".join(f"'{s.value}'" for s in OPEN_WITHDRAWAL_STATUSES)
)


def _status_enum(enum_cls, name: str) -> SAEnum:
    return SAEnum(
        enum_cls, name=name, values_callable=enum_values, validate_strings=True
    )


class WithdrawalRequest(Base):
    """A user's claim to pay out earnings, bonus balance or tokens."""

    __tablename__ = "withdrawal_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    kind: Mapped[WithdrawalKind] = mapped_column(
        _status_enum(WithdrawalKind, "withdrawal_kind_enum"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    fee_amount: Mapped[Decimal] = mapped_column(
        Money, default=Decimal("0"), nullable=False
    )
    net_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    payout_method: Mapped[PayoutMethod] = mapped_column(
        _status_enum(PayoutMethod, "payout_method_enum"), nullable=False
    )
    payment_details: Mapped[dict] = mapped_column(JSONType, nullable=False)
    status: Mapped[WithdrawalStatus] = mapped_column(
        _status_enum(WithdrawalStatus, "withdrawal_status_enum"),
        default=WithdrawalStatus.PENDING,
        nullable=False,
    )

    # Captured at reservation time so a reversal restores exactly this much.
    reserved_amount: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    token_amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    token_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 6), nullable=True
    )

    approved_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rejected_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transaction_hash: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    history: Mapped[list["WithdrawalHistory"]] = relationship(
        back_populates="withdrawal_request",
        lazy="selectin",
        order_by="WithdrawalHistory.created_at",
    )
    allocations: Mapped[list["WithdrawalAllocation"]] = relationship(
        back_populates="withdrawal_request", lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        # Single-flight: at most one open request per user.
        Index(
            "uq_withdrawal_requests_one_open_per_user",
            "user_id",
            unique=True,
            postgresql_where=_OPEN_STATUS_SQL,
            sqlite_where=_OPEN_STATUS_SQL,
        ),
        Index("ix_withdrawal_requests_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<WithdrawalRequest {self.id} {self.kind.value} "
            f"{self.amount} {self.status.value}>"
        )


class WithdrawalHistory(Base):
    """One audit row per withdrawal state transition."""

    __tablename__ = "withdrawal_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    withdrawal_request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("withdrawal_requests.id"), nullable=False, index=True
    )
    action: Mapped[WithdrawalAction] = mapped_column(
        _status_enum(WithdrawalAction, "withdrawal_action_enum"), nullable=False
    )
    from_status: Mapped[Optional[WithdrawalStatus]] = mapped_column(
        _status_enum(WithdrawalStatus, "withdrawal_status_enum"), nullable=True
    )
    to_status: Mapped[WithdrawalStatus] = mapped_column(
        _status_enum(WithdrawalStatus, "withdrawal_status_enum"), nullable=False
    )
    performed_by: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    withdrawal_request: Mapped["WithdrawalRequest"] = relationship(
        back_populates="history"
    )


class WithdrawalAllocation(Base):
    """How much of one earnings record a creator withdrawal drained."""

    __tablename__ = "withdrawal_allocations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    withdrawal_request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("withdrawal_requests.id"), nullable=False, index=True
    )
    earnings_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("model_creator_earnings.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    restored_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    withdrawal_request: Mapped["WithdrawalRequest"] = relationship(
        back_populates="allocations"
    )


class WithdrawalTransaction(Base):
    """Settlement record created when funds leave a ledger for payout."""

    __tablename__ = "withdrawal_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    withdrawal_request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("withdrawal_requests.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    payout_method: Mapped[PayoutMethod] = mapped_column(
        _status_enum(PayoutMethod, "payout_method_enum"), nullable=False
    )
    status: Mapped[SettlementStatus] = mapped_column(
        _status_enum(SettlementStatus, "settlement_status_enum"),
        default=SettlementStatus.PENDING,
        nullable=False,
    )
    transaction_hash: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    processed_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

"""Creator-earnings models: monetized companion models and their ledgers."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.ledger_service.models.enums import (
    EarningsSource,
    EarningsTransactionStatus,
    EarningsTransactionType,
    enum_values,
)
from sqlalchemy import BigInteger, Boolean, CheckConstraint, Date, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

# Sub-cent precision: a single chat turn can earn 0.008.
EarningsAmount = Numeric(14, 4)


class CompanionModel(Base):
    """A creator-owned model/character whose usage accrues earnings."""

    __tablename__ = "models"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    creator_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    earnings_per_use: Mapped[Decimal] = mapped_column(
        EarningsAmount, default=Decimal("0"), nullable=False
    )
    # NULL means "use the platform default_earnings_per_token".
    earnings_per_token: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(14, 6), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<CompanionModel {self.id} creator={self.creator_id}>"


class ModelCreatorEarnings(Base):
    """Running earnings aggregate, one row per (model, creator)."""

    __tablename__ = "model_creator_earnings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    model_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("models.id"), nullable=False, index=True
    )
    creator_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    total_usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_tokens_consumed: Mapped[int] = mapped_column(
        BigInteger, default=0, nullable=False
    )
    total_earnings: Mapped[Decimal] = mapped_column(
        EarningsAmount, default=Decimal("0"), nullable=False
    )
    last_usage_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("model_id", "creator_id", name="uq_model_creator_earnings"),
        CheckConstraint("total_earnings >= 0", name="total_earnings_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<ModelCreatorEarnings model={self.model_id} "
            f"creator={self.creator_id} total={self.total_earnings}>"
        )


class EarningsTransaction(Base):
    """Append-only audit trail behind every ModelCreatorEarnings change."""

    __tablename__ = "earnings_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    creator_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    model_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("models.id"), nullable=True, index=True
    )
    # Signed: withdrawal deductions are negative.
    amount: Mapped[Decimal] = mapped_column(EarningsAmount, nullable=False)
    transaction_type: Mapped[EarningsTransactionType] = mapped_column(
        SAEnum(
            EarningsTransactionType,
            name="earnings_transaction_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    source: Mapped[EarningsSource] = mapped_column(
        SAEnum(
            EarningsSource,
            name="earnings_source_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=EarningsSource.USAGE,
        nullable=False,
    )
    status: Mapped[EarningsTransactionStatus] = mapped_column(
        SAEnum(
            EarningsTransactionStatus,
            name="earnings_transaction_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=EarningsTransactionStatus.COMPLETED,
        nullable=False,
    )
    added_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    usage_log_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    withdrawal_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, nullable=True, index=True
    )
    description: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    txn_metadata: Mapped[Optional[dict]] = mapped_column(
        "metadata", JSONType, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<EarningsTransaction {self.id} {self.transaction_type.value} {self.amount}>"


class ModelUsageLog(Base):
    """One row per usage event. ``event_id`` makes accrual at-most-once."""

    __tablename__ = "model_usage_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[Optional[str]] = mapped_column(String, unique=True, nullable=True)
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    model_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("models.id"), nullable=False
    )
    usage_type: Mapped[str] = mapped_column(String, nullable=False)
    tokens_consumed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    base_earnings: Mapped[Decimal] = mapped_column(
        Numeric(18, 6), default=Decimal("0"), nullable=False
    )
    multiplier: Mapped[Decimal] = mapped_column(
        Numeric(6, 3), default=Decimal("1"), nullable=False
    )
    earnings_generated: Mapped[Decimal] = mapped_column(
        EarningsAmount, default=Decimal("0"), nullable=False
    )
    usage_metadata: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_model_usage_logs_model_created", "model_id", "created_at"),
    )


class ModelAnalytics(Base):
    """Daily per-model rollup keyed by (model_id, date)."""

    __tablename__ = "model_analytics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    model_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("models.id"), nullable=False
    )
    usage_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tokens_consumed: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    earnings_generated: Mapped[Decimal] = mapped_column(
        EarningsAmount, default=Decimal("0"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("model_id", "date", name="uq_model_analytics_model_date"),
    )

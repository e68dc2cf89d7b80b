"""Creator earnings schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.ledger_service.models.enums import (
    EarningsSource,
    EarningsTransactionType,
    UsageType,
)


class UsageEventRequest(BaseModel):
    user_id: str
    model_id: uuid.UUID
    tokens_consumed: int = Field(..., ge=0)
    # Unknown types are accepted and earn at the "other" rate.
    usage_type: str = UsageType.IMAGE_GENERATION.value
    metadata: Optional[dict] = None
    event_id: Optional[str] = None


class EarningsCalculationResponse(BaseModel):
    accrued: bool
    replayed: bool = False
    model_id: Optional[uuid.UUID] = None
    creator_id: Optional[str] = None
    base_earnings: Decimal = Decimal("0")
    multiplier: Decimal = Decimal("0")
    total_earnings: Decimal = Decimal("0")
    tokens_consumed: int = 0
    usage_count: int = 0


class CreatorEarningsRecord(BaseModel):
    id: uuid.UUID
    model_id: uuid.UUID
    total_usage_count: int
    total_tokens_consumed: int
    total_earnings: Decimal
    last_usage_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AvailableEarningsResponse(BaseModel):
    creator_id: str
    total_earnings: Decimal
    models: list[CreatorEarningsRecord]


class ModelUsageStatsResponse(BaseModel):
    model_id: uuid.UUID
    days: int
    total_usage: int
    unique_users: int
    total_tokens: int
    avg_usage_per_user: Decimal
    earnings_per_use: Decimal
    total_earnings: Decimal


class AdminAddEarningsRequest(BaseModel):
    creator_id: str
    model_id: uuid.UUID
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=4)
    description: Optional[str] = None
    transaction_type: EarningsTransactionType = EarningsTransactionType.BONUS


class EarningsTransactionResponse(BaseModel):
    id: uuid.UUID
    creator_id: str
    model_id: Optional[uuid.UUID] = None
    amount: Decimal
    transaction_type: EarningsTransactionType
    source: EarningsSource
    added_by: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

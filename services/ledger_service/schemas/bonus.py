"""Bonus wallet and commission schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.ledger_service.models.enums import (
    BonusTransactionStatus,
    BonusTransactionType,
)


class BonusWalletResponse(BaseModel):
    user_id: str
    balance: Decimal = Decimal("0")
    withdrawn_amount: Decimal = Decimal("0")
    lifetime_earnings: Decimal = Decimal("0")
    is_frozen: bool = False

    model_config = ConfigDict(from_attributes=True)


class BonusTransactionResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    transaction_type: BonusTransactionType
    amount: Decimal
    status: BonusTransactionStatus
    from_user_id: Optional[str] = None
    payment_id: Optional[str] = None
    level: Optional[int] = None
    withdrawal_request_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DistributeCommissionRequest(BaseModel):
    payment_id: str
    buyer_id: str
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class CreditedLevelResponse(BaseModel):
    level: int
    referrer_id: str
    rate: Decimal
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class DistributeCommissionResponse(BaseModel):
    payment_id: str
    credited_levels: list[CreditedLevelResponse]


class CommissionSweepResponse(BaseModel):
    scanned: int
    fixed: int
    skipped: int
    errors: int
    fixed_ids: list[str]

    model_config = ConfigDict(from_attributes=True)


class DownlineResponse(BaseModel):
    user_id: str
    level: int
    referrer_id: str
    joined_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DownlineLevelCount(BaseModel):
    level: int
    count: int


class DownlinesResponse(BaseModel):
    """Everyone below the caller in the referral tree, with per-level counts."""

    downlines: list[DownlineResponse]
    levels: list[DownlineLevelCount]
    total: int

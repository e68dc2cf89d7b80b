"""Withdrawal request schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from services.ledger_service.models.enums import (
    PayoutMethod,
    WithdrawalAction,
    WithdrawalKind,
    WithdrawalStatus,
)


class WithdrawalCreateRequest(BaseModel):
    """Minimums, method and details are validated by the workflow so that
    callers get the ledger's error codes. Only the column range is
    enforced here."""

    kind: WithdrawalKind = WithdrawalKind.CREATOR_EARNINGS
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    payout_method: str
    payment_details: dict[str, Any] = Field(default_factory=dict)


class WithdrawalHistoryResponse(BaseModel):
    id: uuid.UUID
    action: WithdrawalAction
    from_status: Optional[WithdrawalStatus] = None
    to_status: WithdrawalStatus
    performed_by: str
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WithdrawalResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    kind: WithdrawalKind
    amount: Decimal
    fee_amount: Decimal
    net_amount: Decimal
    payout_method: PayoutMethod
    payment_details: dict[str, Any]
    status: WithdrawalStatus
    reserved_amount: Optional[Decimal] = None
    token_amount: Optional[int] = None
    token_rate: Optional[Decimal] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    transaction_hash: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    history: list[WithdrawalHistoryResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class AdjudicateWithdrawalRequest(BaseModel):
    action: str
    notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    transaction_hash: Optional[str] = None


class WithdrawalSummaryResponse(BaseModel):
    counts: dict[str, int]
    open_amount: Decimal
    completed_amount: Decimal

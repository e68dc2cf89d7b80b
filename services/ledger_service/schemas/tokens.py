"""Token account schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.ledger_service.models.enums import TokenTransactionType


class TokenBalanceResponse(BaseModel):
    user_id: str
    balance: int
    is_frozen: bool = False
    frozen_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TokenTransactionResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    amount: int
    transaction_type: TokenTransactionType
    balance_after: int
    description: Optional[str] = None
    metadata: Optional[dict] = Field(default=None, validation_alias="txn_metadata")
    reversal_of_transaction_id: Optional[uuid.UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DebitRequest(BaseModel):
    """Used by generation/chat services before performing a paid action."""

    user_id: str
    amount: int = Field(..., gt=0)
    reason: str
    metadata: Optional[dict] = None
    idempotency_key: Optional[str] = None


class CreditRequest(BaseModel):
    user_id: str
    amount: int = Field(..., gt=0)
    transaction_type: TokenTransactionType = TokenTransactionType.PURCHASE
    reason: str
    metadata: Optional[dict] = None
    idempotency_key: Optional[str] = None


class RefundRequest(BaseModel):
    """Reverse a debit after the paid-for action failed."""

    user_id: str
    amount: int = Field(..., gt=0)
    reason: str
    reversal_of: Optional[uuid.UUID] = None
    metadata: Optional[dict] = None


class DebitCreditResponse(BaseModel):
    success: bool = True
    transaction_id: uuid.UUID
    balance_after: int


class BalanceCheckRequest(BaseModel):
    user_id: str
    required_amount: int = Field(..., gt=0)


class BalanceCheckResponse(BaseModel):
    sufficient: bool
    current_balance: int
    required_amount: int

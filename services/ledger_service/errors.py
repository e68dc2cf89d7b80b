"""Ledger error taxonomy.

Every error is a ``ServiceError`` so ``add_exception_handlers`` renders it
without routers catching anything.
"""

from decimal import Decimal
from typing import Optional, Union

from fastapi import status
from libs.common.exceptions import ServiceError


class LedgerError(ServiceError):
    code = "ledger_error"


class InvalidAmount(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_amount"


class InsufficientFunds(LedgerError):
    """Debit or withdrawal exceeds the available balance. Never clamped."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "insufficient_funds"

    def __init__(
        self,
        message: str,
        *,
        balance: Union[int, Decimal],
        required: Union[int, Decimal],
    ):
        super().__init__(
            message, details={"balance": str(balance), "required": str(required)}
        )
        self.balance = balance
        self.required = required


class InsufficientBalance(InsufficientFunds):
    code = "insufficient_balance"


class InvalidPaymentDetails(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_payment_details"


class DuplicateRequest(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_request"


class NotFound(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class InvalidTransition(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_transition"


class AlreadyProcessed(LedgerError):
    """Idempotent replay. Callers see success."""

    status_code = status.HTTP_200_OK
    code = "already_processed"
    treat_as_success = True


class MonetizationDisabled(LedgerError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "monetization_disabled"

    def __init__(self, message: str = "Monetization is currently disabled"):
        super().__init__(message)


class AccountFrozen(LedgerError):
    status_code = status.HTTP_423_LOCKED
    code = "account_frozen"

    def __init__(self, user_id: str, reason: Optional[str] = None):
        super().__init__(
            f"Account {user_id} is frozen pending review",
            details={"reason": reason} if reason else None,
        )
        self.user_id = user_id


class InvariantViolation(LedgerError):
    """Ledger sum and stored balance disagree. The account is frozen."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "invariant_violation"


class InvalidSetting(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_setting"

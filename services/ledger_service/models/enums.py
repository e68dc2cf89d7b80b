"""Enums for the Ledger Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class TokenTransactionType(str, enum.Enum):
    USAGE = "usage"
    PURCHASE = "purchase"
    REFUND = "refund"
    BONUS = "bonus"
    WITHDRAWAL = "withdrawal"


class UsageType(str, enum.Enum):
    IMAGE_GENERATION = "image_generation"
    CHAT = "chat"
    OTHER = "other"


class EarningsTransactionType(str, enum.Enum):
    USAGE = "usage"
    BONUS = "bonus"
    ADJUSTMENT = "adjustment"
    WITHDRAWAL = "withdrawal"
    WITHDRAWAL_REVERSAL = "withdrawal_reversal"


class EarningsSource(str, enum.Enum):
    USAGE = "usage"
    ADMIN = "admin"
    WITHDRAWAL = "withdrawal"


class EarningsTransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class BonusTransactionType(str, enum.Enum):
    COMMISSION_LEVEL1 = "commission_level1"
    COMMISSION_LEVEL2 = "commission_level2"
    COMMISSION_LEVEL3 = "commission_level3"
    WITHDRAWAL = "withdrawal"
    WITHDRAWAL_REFUND = "withdrawal_refund"

    @classmethod
    def for_level(cls, level: int) -> "BonusTransactionType":
        return cls(f"commission_level{level}")


class BonusTransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"


class WithdrawalKind(str, enum.Enum):
    CREATOR_EARNINGS = "creator_earnings"
    BONUS = "bonus"
    TOKENS = "tokens"


class WithdrawalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"


OPEN_WITHDRAWAL_STATUSES = (
    WithdrawalStatus.PENDING,
    WithdrawalStatus.APPROVED,
    WithdrawalStatus.PROCESSING,
)


class WithdrawalAction(str, enum.Enum):
    REQUEST = "request"
    APPROVE = "approve"
    REJECT = "reject"
    PROCESS = "process"
    COMPLETE = "complete"


class PayoutMethod(str, enum.Enum):
    PAYPAL = "paypal"
    USDT_TRC20 = "usdt_trc20"


class SettlementStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REVERSED = "reversed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

"""Ledger Service models package.

Re-exports all models and enums so that:
  - ``from services.ledger_service.models import UserToken`` works
  - Alembic env.py sees every table on import

When adding a new model, add both its import and its __all__ entry.
"""

from services.ledger_service.models.bonus import (  # noqa: F401
    BonusTransaction,
    BonusWallet,
    UserProfile,
)
from services.ledger_service.models.earnings import (  # noqa: F401
    CompanionModel,
    EarningsTransaction,
    ModelAnalytics,
    ModelCreatorEarnings,
    ModelUsageLog,
)
from services.ledger_service.models.enums import (  # noqa: F401
    OPEN_WITHDRAWAL_STATUSES,
    BonusTransactionStatus,
    BonusTransactionType,
    EarningsSource,
    EarningsTransactionStatus,
    EarningsTransactionType,
    PaymentStatus,
    PayoutMethod,
    SettlementStatus,
    TokenTransactionType,
    UsageType,
    WithdrawalAction,
    WithdrawalKind,
    WithdrawalStatus,
)
from services.ledger_service.models.payment import PaymentTransaction  # noqa: F401
from services.ledger_service.models.settings import AdminSetting  # noqa: F401
from services.ledger_service.models.token import (  # noqa: F401
    TokenTransaction,
    UserToken,
)
from services.ledger_service.models.withdrawal import (  # noqa: F401
    WithdrawalAllocation,
    WithdrawalHistory,
    WithdrawalRequest,
    WithdrawalTransaction,
)

__all__ = [
    # Enums
    "OPEN_WITHDRAWAL_STATUSES",
    "BonusTransactionStatus",
    "BonusTransactionType",
    "EarningsSource",
    "EarningsTransactionStatus",
    "EarningsTransactionType",
    "PaymentStatus",
    "PayoutMethod",
    "SettlementStatus",
    "TokenTransactionType",
    "UsageType",
    "WithdrawalAction",
    "WithdrawalKind",
    "WithdrawalStatus",
    # Tokens
    "UserToken",
    "TokenTransaction",
    # Creator earnings
    "CompanionModel",
    "ModelCreatorEarnings",
    "EarningsTransaction",
    "ModelUsageLog",
    "ModelAnalytics",
    # Affiliate
    "UserProfile",
    "BonusWallet",
    "BonusTransaction",
    # Withdrawals
    "WithdrawalRequest",
    "WithdrawalHistory",
    "WithdrawalAllocation",
    "WithdrawalTransaction",
    # Payments & settings
    "PaymentTransaction",
    "AdminSetting",
]

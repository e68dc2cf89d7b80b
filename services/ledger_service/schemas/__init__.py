"""Ledger Service schemas package.

Re-exports all schemas so routers import from one place.
When adding a new schema, add its import and __all__ entry.
"""

from services.ledger_service.schemas.admin import (  # noqa: F401
    AdminSettingResponse,
    AdminSettingsListResponse,
    ReconciliationResponse,
    UpdateSettingRequest,
)
from services.ledger_service.schemas.bonus import (  # noqa: F401
    BonusTransactionResponse,
    BonusWalletResponse,
    CommissionSweepResponse,
    CreditedLevelResponse,
    DistributeCommissionRequest,
    DistributeCommissionResponse,
    DownlineLevelCount,
    DownlineResponse,
    DownlinesResponse,
)
from services.ledger_service.schemas.earnings import (  # noqa: F401
    AdminAddEarningsRequest,
    AvailableEarningsResponse,
    CreatorEarningsRecord,
    EarningsCalculationResponse,
    EarningsTransactionResponse,
    ModelUsageStatsResponse,
    UsageEventRequest,
)
from services.ledger_service.schemas.payments import (  # noqa: F401
    FAILURE_EVENTS,
    SUCCESS_EVENTS,
    PaymentEventResponse,
    PaymentWebhookEvent,
)
from services.ledger_service.schemas.tokens import (  # noqa: F401
    BalanceCheckRequest,
    BalanceCheckResponse,
    CreditRequest,
    DebitCreditResponse,
    DebitRequest,
    RefundRequest,
    TokenBalanceResponse,
    TokenTransactionResponse,
)
from services.ledger_service.schemas.withdrawal import (  # noqa: F401
    AdjudicateWithdrawalRequest,
    WithdrawalCreateRequest,
    WithdrawalHistoryResponse,
    WithdrawalResponse,
    WithdrawalSummaryResponse,
)

__all__ = [
    # Admin
    "AdminSettingResponse",
    "AdminSettingsListResponse",
    "ReconciliationResponse",
    "UpdateSettingRequest",
    # Bonus / commissions
    "BonusTransactionResponse",
    "BonusWalletResponse",
    "CommissionSweepResponse",
    "CreditedLevelResponse",
    "DistributeCommissionRequest",
    "DistributeCommissionResponse",
    "DownlineLevelCount",
    "DownlineResponse",
    "DownlinesResponse",
    # Earnings
    "AdminAddEarningsRequest",
    "AvailableEarningsResponse",
    "CreatorEarningsRecord",
    "EarningsCalculationResponse",
    "EarningsTransactionResponse",
    "ModelUsageStatsResponse",
    "UsageEventRequest",
    # Payments
    "FAILURE_EVENTS",
    "SUCCESS_EVENTS",
    "PaymentEventResponse",
    "PaymentWebhookEvent",
    # Tokens
    "BalanceCheckRequest",
    "BalanceCheckResponse",
    "CreditRequest",
    "DebitCreditResponse",
    "DebitRequest",
    "RefundRequest",
    "TokenBalanceResponse",
    "TokenTransactionResponse",
    # Withdrawals
    "AdjudicateWithdrawalRequest",
    "WithdrawalCreateRequest",
    "WithdrawalHistoryResponse",
    "WithdrawalResponse",
    "WithdrawalSummaryResponse",
]

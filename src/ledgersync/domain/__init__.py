"""Domain layer - pure models with no external dependencies."""

from ledgersync.domain.models import (
    Loan,
    Installment,
    PaymentMethod,
    CacheEntry,
    LoanType,
    LoanStatus,
    DateFilterPreset,
    MutationState,
)

__all__ = [
    "Loan",
    "Installment",
    "PaymentMethod",
    "CacheEntry",
    "LoanType",
    "LoanStatus",
    "DateFilterPreset",
    "MutationState",
]

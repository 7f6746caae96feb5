"""Domain models package."""

from ledgersync.domain.models.enums import (
    LoanType,
    LoanStatus,
    DateFilterPreset,
    MutationState,
)
from ledgersync.domain.models.loan import Loan, Installment, DEFAULT_PAYMENT_METHOD_NAME
from ledgersync.domain.models.payment_method import PaymentMethod
from ledgersync.domain.models.cache import CacheEntry

__all__ = [
    "LoanType",
    "LoanStatus",
    "DateFilterPreset",
    "MutationState",
    "Loan",
    "Installment",
    "DEFAULT_PAYMENT_METHOD_NAME",
    "PaymentMethod",
    "CacheEntry",
]

"""Business logic services."""

from ledgersync.services.normalizer import (
    normalize_loan,
    normalize_loans,
    normalize_installment,
    normalize_payment_method,
    build_payment_method_index,
)
from ledgersync.services.batch import BatchResult, BatchFailure, run_batch
from ledgersync.services.loan_resource import LoanResourceService
from ledgersync.services.mutation_orchestrator import (
    LoanMutationOrchestrator,
    LoanDraft,
    InstallmentDraft,
)
from ledgersync.services.preferences_service import PreferenceService

__all__ = [
    "normalize_loan",
    "normalize_loans",
    "normalize_installment",
    "normalize_payment_method",
    "build_payment_method_index",
    "BatchResult",
    "BatchFailure",
    "run_batch",
    "LoanResourceService",
    "LoanMutationOrchestrator",
    "LoanDraft",
    "InstallmentDraft",
    "PreferenceService",
]

"""View models for service outputs."""

from ledgersync.domain.views.loans import LoanAnalytics, Notice, MutationResult

__all__ = [
    "LoanAnalytics",
    "Notice",
    "MutationResult",
]

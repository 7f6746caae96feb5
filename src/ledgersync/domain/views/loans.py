"""View models for loan service outputs."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from ledgersync.domain.models import Loan, MutationState


@dataclass(frozen=True)
class LoanAnalytics:
    """Aggregate loan totals."""

    total_loans_taken: Decimal = field(default_factory=lambda: Decimal("0"))
    total_loans_given: Decimal = field(default_factory=lambda: Decimal("0"))
    total_outstanding: Decimal = field(default_factory=lambda: Decimal("0"))
    total_received_for_given_loans: Decimal = field(default_factory=lambda: Decimal("0"))
    total_paid_for_taken_loans: Decimal = field(default_factory=lambda: Decimal("0"))


@dataclass(frozen=True)
class Notice:
    """User-facing notification (toast)."""

    message: str
    kind: str = "success"  # "success" | "error"

    @property
    def is_error(self) -> bool:
        return self.kind == "error"


@dataclass
class MutationResult:
    """
    Outcome of one orchestrated mutation.

    `keep_editing` tells the editing surface to stay open (validation or
    partial failure). `failures` lists per-sub-operation messages in input
    order and `pending` holds the inputs behind them, kept for a retry.
    """

    state: MutationState
    message: Optional[str] = None
    loan: Optional[Loan] = None
    failures: list[str] = field(default_factory=list)
    keep_editing: bool = False
    pending: list[Any] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Return True if the mutation fully committed (or was a no-op)."""
        return self.state in (MutationState.COMMITTED, MutationState.IDLE)

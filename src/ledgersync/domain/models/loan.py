"""Loan and Installment domain models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from ledgersync.domain.models.enums import LoanType, LoanStatus

DEFAULT_PAYMENT_METHOD_NAME = "Cash/Default"


@dataclass(frozen=True)
class Installment:
    """
    A single payment against a loan.

    Owned by exactly one Loan. `payment_method_name` is derived at
    normalization time from the payment method lookup; it is never sent
    back to the server.
    """

    id: Any
    loan_id: Any
    amount_paid: Decimal
    payment_date: Optional[date] = None
    payment_method_id: Any = None
    payment_method_name: str = DEFAULT_PAYMENT_METHOD_NAME
    notes: Optional[str] = None


@dataclass(frozen=True)
class Loan:
    """
    Normalized in-memory projection of a server loan.

    Records are immutable; the client replaces whole records instead of
    editing fields so a snapshot taken before a mutation stays exact.
    """

    id: Any
    type: LoanType
    person_name: str
    original_amount: Decimal
    remaining_amount: Decimal
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    interest_rate: Optional[Decimal] = None
    notes: Optional[str] = None
    status: LoanStatus = LoanStatus.ACTIVE
    installments: tuple[Installment, ...] = field(default_factory=tuple)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if isinstance(self.type, str) and not isinstance(self.type, LoanType):
            object.__setattr__(self, "type", LoanType(self.type))
        if isinstance(self.status, str) and not isinstance(self.status, LoanStatus):
            object.__setattr__(self, "status", LoanStatus(self.status))
        if isinstance(self.installments, list):
            object.__setattr__(self, "installments", tuple(self.installments))

    @property
    def is_closed(self) -> bool:
        """Return True if the loan is CLOSED."""
        return self.status == LoanStatus.CLOSED

    @property
    def is_deletable(self) -> bool:
        """A loan can be deleted only when it has no installments."""
        return len(self.installments) == 0

    @property
    def total_paid(self) -> Decimal:
        """Sum of all installment payments."""
        return sum((i.amount_paid for i in self.installments), Decimal("0"))

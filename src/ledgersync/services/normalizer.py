"""
Reconciliation of server payloads into canonical loan records.

The backend is not consistent about field names (loanId vs id,
installmentId vs id, a nested paymentMethod object vs a flat
paymentMethodId) or about collection shapes (null, a single object, or a
list). Everything here is pure: the same input and payment method index
always produce an equal result, and feeding a canonical Loan back in
returns an equal Loan.
"""

from dataclasses import asdict, is_dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from ledgersync.core.timezone import parse_datetime, to_date
from ledgersync.domain.models import (
    DEFAULT_PAYMENT_METHOD_NAME,
    Installment,
    Loan,
    LoanStatus,
    LoanType,
    PaymentMethod,
)

PaymentMethodIndex = Mapping[str, PaymentMethod]

_EMPTY_INDEX: dict[str, PaymentMethod] = {}


def _as_mapping(raw: Any) -> Mapping[str, Any]:
    if is_dataclass(raw) and not isinstance(raw, type):
        return asdict(raw)
    if isinstance(raw, Mapping):
        return raw
    return {}


def _pick(raw: Mapping[str, Any], *names: str) -> Any:
    """First non-None value among the given field names."""
    for name in names:
        value = raw.get(name)
        if value is not None:
            return value
    return None


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce numbers and numeric strings to Decimal; None when not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None


def coerce_list(value: Any) -> list[Any]:
    """None -> [], a single object -> [object], any sequence -> list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _index_key(identifier: Any) -> Optional[str]:
    return None if identifier is None else str(identifier)


# =============================================================================
# PAYMENT METHODS
# =============================================================================


def normalize_payment_method(raw: Any) -> PaymentMethod:
    """Canonical PaymentMethod from methodId/id payloads."""
    if isinstance(raw, PaymentMethod):
        return raw
    data = _as_mapping(raw)
    return PaymentMethod(
        id=_pick(data, "methodId", "id"),
        name=str(_pick(data, "name") or ""),
        provider=_pick(data, "provider"),
    )


def build_payment_method_index(methods: Iterable[Any]) -> dict[str, PaymentMethod]:
    """Index payment methods by stringified id for joins."""
    index: dict[str, PaymentMethod] = {}
    for raw in methods:
        method = normalize_payment_method(raw)
        key = _index_key(method.id)
        if key is not None:
            index[key] = method
    return index


# =============================================================================
# INSTALLMENTS
# =============================================================================


def normalize_installment(
    raw: Any,
    loan_id: Any,
    payment_methods: Optional[PaymentMethodIndex] = None,
) -> Installment:
    """Canonical Installment with the payment method joined in."""
    index = payment_methods if payment_methods is not None else _EMPTY_INDEX
    data = _as_mapping(raw)

    nested = data.get("paymentMethod")
    nested = nested if isinstance(nested, Mapping) else {}
    method_id = _pick(nested, "methodId", "id")
    if method_id is None:
        method_id = _pick(data, "paymentMethodId", "payment_method_id")

    indexed = index.get(_index_key(method_id)) if method_id is not None else None
    method_name = (
        _pick(nested, "name")
        or _pick(data, "paymentMethodName", "payment_method_name")
        or (indexed.name if indexed else None)
        or DEFAULT_PAYMENT_METHOD_NAME
    )

    return Installment(
        id=_pick(data, "installmentId", "id"),
        loan_id=_pick(data, "loanId", "loan_id") if loan_id is None else loan_id,
        amount_paid=to_decimal(_pick(data, "amountPaid", "amount_paid")) or Decimal("0"),
        payment_date=to_date(_pick(data, "paymentDate", "payment_date")),
        payment_method_id=method_id,
        payment_method_name=str(method_name),
        notes=_pick(data, "notes"),
    )


def sort_installments(installments: Iterable[Installment]) -> tuple[Installment, ...]:
    """Most recent payment first; undated payments last."""
    return tuple(
        sorted(
            installments,
            key=lambda i: (i.payment_date is not None, i.payment_date or date.min),
            reverse=True,
        )
    )


# =============================================================================
# LOANS
# =============================================================================


def derive_remaining_amount(
    original_amount: Decimal,
    installments: Iterable[Installment],
    authoritative: Optional[Decimal],
    status: LoanStatus,
) -> Decimal:
    """
    Remaining balance for a loan.

    A closed loan is pinned to zero. Otherwise the server's value wins when
    present, else original minus the sum of installment payments.
    """
    if status == LoanStatus.CLOSED:
        return Decimal("0")
    if authoritative is not None:
        return authoritative
    paid = sum((i.amount_paid for i in installments), Decimal("0"))
    return original_amount - paid


def normalize_loan(raw: Any, payment_methods: Optional[PaymentMethodIndex] = None) -> Loan:
    """
    Convert one server loan payload (or an already canonical Loan) into a Loan.

    Never raises on installment shape mismatches; a missing installments
    field yields an empty tuple.
    """
    data = _as_mapping(raw)
    loan_id = _pick(data, "loanId", "id")

    installments = sort_installments(
        normalize_installment(item, loan_id, payment_methods)
        for item in coerce_list(data.get("installments"))
        if item is not None
    )

    status = LoanStatus(_pick(data, "status") or LoanStatus.ACTIVE)
    original_amount = to_decimal(_pick(data, "originalAmount", "original_amount")) or Decimal("0")
    authoritative = to_decimal(
        _pick(data, "remainingAmount", "remaining_amount", "remainingBalance")
    )

    return Loan(
        id=loan_id,
        type=LoanType(_pick(data, "type") or LoanType.TAKEN),
        person_name=str(_pick(data, "personName", "person_name") or ""),
        original_amount=original_amount,
        remaining_amount=derive_remaining_amount(
            original_amount, installments, authoritative, status
        ),
        start_date=to_date(_pick(data, "startDate", "start_date")),
        due_date=to_date(_pick(data, "dueDate", "due_date")),
        interest_rate=to_decimal(_pick(data, "interestRate", "interest_rate")),
        notes=_pick(data, "notes"),
        status=status,
        installments=installments,
        created_at=parse_datetime(_pick(data, "createdAt", "created_at")),
        updated_at=parse_datetime(_pick(data, "updatedAt", "updated_at")),
    )


def sort_loans(loans: Iterable[Loan]) -> list[Loan]:
    """Newest created first; loans without created_at sort as the oldest."""
    return sorted(
        loans,
        key=lambda loan: (loan.created_at is not None, loan.created_at or 0),
        reverse=True,
    )


def normalize_loans(
    raw_loans: Iterable[Any],
    payment_methods: Optional[PaymentMethodIndex] = None,
) -> list[Loan]:
    """Normalize and sort a loan collection."""
    return sort_loans(normalize_loan(raw, payment_methods) for raw in raw_loans if raw is not None)

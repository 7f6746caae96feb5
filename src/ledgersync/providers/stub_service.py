"""In-memory loan service for offline/testing use."""

import copy
import re
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from ledgersync.core.exceptions import RemoteValidationError, NotFoundError
from ledgersync.core.timezone import Clock, now_utc, is_blank, to_date

_DEFAULT_METHODS = [
    {"methodId": 1, "name": "Cash", "provider": None},
    {"methodId": 2, "name": "Debit Card", "provider": "HDFC"},
    {"methodId": 3, "name": "UPI", "provider": "GPay"},
]

_LOAN_PATH = re.compile(r"^loans/(\d+)$")
_CLOSE_PATH = re.compile(r"^loans/(\d+)/close$")
_INSTALLMENTS_PATH = re.compile(r"^loans/(\d+)/installments$")
_INSTALLMENT_PATH = re.compile(r"^loans/(\d+)/installments/(\d+)$")


def _rejected(message: str) -> RemoteValidationError:
    return RemoteValidationError(message, body={"message": message}, status_code=400)


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def _money(value: Decimal) -> float:
    return float(value)


class InMemoryLoanService:
    """
    Stub implementation of the remote resource service.

    Mirrors the backend's observable behaviour: camelCase payloads with
    loanId/installmentId/methodId, server-side remaining-amount bookkeeping,
    auto-close when a payment clears the balance, the "Cash" method as the
    default, and the same rejection messages. Responses are deep copies so
    callers can never alias server state.
    """

    def __init__(
        self,
        payment_methods: Optional[list[dict[str, Any]]] = None,
        clock: Optional[Clock] = None,
    ):
        self._clock = clock or now_utc
        self._methods = copy.deepcopy(payment_methods if payment_methods is not None else _DEFAULT_METHODS)
        self._loans: dict[int, dict[str, Any]] = {}
        self._next_loan_id = 1
        self._next_installment_id = 1

    # -------------------------------------------------------------------------
    # Request routing
    # -------------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Route a request to the matching handler."""
        method = method.upper()
        path = path.strip("/")
        params = params or {}
        body = json or {}

        if path == "payment-methods" and method == "GET":
            return copy.deepcopy(self._methods)
        if path == "loans" and method == "GET":
            return self._list_loans(params)
        if path == "loans" and method == "POST":
            return self._create_loan(body)
        if path == "loans/analytics" and method == "GET":
            return self._analytics()

        match = _LOAN_PATH.match(path)
        if match:
            loan_id = int(match.group(1))
            if method == "GET":
                return self._to_dto(self._require(loan_id))
            if method == "PUT":
                return self._update_loan(loan_id, body)
            if method == "DELETE":
                return self._delete_loan(loan_id)

        match = _CLOSE_PATH.match(path)
        if match and method == "PUT":
            return self._update_loan(int(match.group(1)), {"status": "CLOSED"})

        match = _INSTALLMENTS_PATH.match(path)
        if match and method == "POST":
            return self._add_installment(int(match.group(1)), body)

        match = _INSTALLMENT_PATH.match(path)
        if match and method == "DELETE":
            return self._delete_installment(int(match.group(1)), int(match.group(2)))

        raise NotFoundError("Route", f"{method} {path}")

    async def aclose(self) -> None:
        """Nothing to release."""

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _list_loans(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        include_closed = str(params.get("includeClosed", "false")).lower() == "true"
        window = self._date_window(params)

        loans = []
        for loan in self._loans.values():
            if not include_closed and loan["status"] == "CLOSED":
                continue
            if window is not None:
                start = to_date(loan["startDate"])
                if start is None or not (window[0] <= start <= window[1]):
                    continue
            loans.append(self._to_dto(loan))
        return loans

    def _date_window(self, params: dict[str, Any]) -> Optional[tuple[date, date]]:
        start_raw, end_raw = params.get("startDate"), params.get("endDate")
        if not is_blank(start_raw) and not is_blank(end_raw):
            start, end = to_date(start_raw), to_date(end_raw)
            if start is None or end is None:
                raise _rejected("Invalid date format.")
            if end < start:
                raise _rejected("End date cannot be before start date.")
            return start, end

        preset = params.get("filter")
        if is_blank(preset):
            return None
        today = self._clock().date()
        preset = str(preset).strip().lower()
        if preset == "lastweek":
            return today - timedelta(days=6), today
        if preset == "lastmonth":
            first_this_month = today.replace(day=1)
            last_prev = first_this_month - timedelta(days=1)
            return last_prev.replace(day=1), last_prev
        if preset == "lastyear":
            return today - timedelta(days=365), today
        return None

    def _create_loan(self, body: dict[str, Any]) -> dict[str, Any]:
        if is_blank(body.get("personName")):
            raise _rejected("Person name cannot be empty.")
        amount = body.get("originalAmount")
        if amount is None or _decimal(amount) <= 0:
            raise _rejected("Original amount must be greater than 0.")

        loan_id = self._next_loan_id
        self._next_loan_id += 1
        original = _decimal(amount)
        now = self._clock()
        loan = {
            "loanId": loan_id,
            "type": body.get("type") or "TAKEN",
            "personName": body["personName"],
            "originalAmount": original,
            "remainingAmount": original,
            "interestRate": body.get("interestRate"),
            "startDate": body.get("startDate"),
            "dueDate": body.get("dueDate"),
            "notes": body.get("notes"),
            "status": "ACTIVE",
            "installments": [],
            "createdAt": now.isoformat(),
            "updatedAt": now.isoformat(),
        }
        self._loans[loan_id] = loan
        return self._to_dto(loan)

    def _update_loan(self, loan_id: int, body: dict[str, Any]) -> dict[str, Any]:
        loan = self._require(loan_id)

        if not is_blank(body.get("personName")):
            loan["personName"] = body["personName"]
        if body.get("originalAmount") is not None:
            new_original = _decimal(body["originalAmount"])
            if new_original <= 0:
                raise _rejected("Original amount must be greater than 0.")
            paid = loan["originalAmount"] - loan["remainingAmount"]
            loan["originalAmount"] = new_original
            loan["remainingAmount"] = max(new_original - paid, Decimal("0"))
            if loan["remainingAmount"] <= 0:
                loan["status"] = "CLOSED"
        for field in ("type", "notes", "dueDate", "interestRate"):
            if body.get(field) is not None:
                loan[field] = body[field]
        if body.get("status") == "CLOSED":
            if loan["status"] != "ACTIVE":
                raise _rejected("Cannot close a loan that is already closed.")
            loan["remainingAmount"] = Decimal("0")
            loan["status"] = "CLOSED"

        loan["updatedAt"] = self._clock().isoformat()
        return self._to_dto(loan)

    def _delete_loan(self, loan_id: int) -> None:
        loan = self._require(loan_id)
        if loan["installments"]:
            raise _rejected("Loan cannot be deleted because it has installment records.")
        del self._loans[loan_id]
        return None

    def _add_installment(self, loan_id: int, body: dict[str, Any]) -> dict[str, Any]:
        loan = self._require(loan_id)
        if loan["status"] == "CLOSED":
            raise _rejected("Cannot add installment to a closed loan.")
        amount = body.get("amountPaid")
        if amount is None or _decimal(amount) <= 0:
            raise _rejected("Installment amount must be greater than 0.")

        method_id = body.get("paymentMethodId")
        if method_id is None:
            method = next((m for m in self._methods if m["name"] == "Cash"), None)
            if method is None:
                raise _rejected("Default 'Cash' payment method not found for user.")
        else:
            method = next((m for m in self._methods if m["methodId"] == method_id), None)
            if method is None:
                raise _rejected("Payment method not found or access denied.")

        installment_id = self._next_installment_id
        self._next_installment_id += 1
        paid = _decimal(amount)
        loan["installments"].append(
            {
                "installmentId": installment_id,
                "amountPaid": paid,
                "paymentDate": body.get("paymentDate"),
                "paymentMethod": copy.deepcopy(method),
                "notes": body.get("notes"),
            }
        )
        loan["remainingAmount"] -= paid
        if loan["remainingAmount"] <= 0:
            loan["remainingAmount"] = Decimal("0")
            loan["status"] = "CLOSED"
        return self._to_dto(loan)

    def _delete_installment(self, loan_id: int, installment_id: int) -> dict[str, Any]:
        loan = self._require(loan_id)
        installment = next(
            (i for i in loan["installments"] if i["installmentId"] == installment_id),
            None,
        )
        if installment is None:
            raise _rejected("Installment not found.")
        loan["installments"].remove(installment)
        loan["remainingAmount"] += installment["amountPaid"]
        if loan["status"] == "CLOSED" and loan["remainingAmount"] > 0:
            loan["status"] = "ACTIVE"
        return self._to_dto(loan)

    def _analytics(self) -> dict[str, Any]:
        totals = {
            "totalLoansTaken": Decimal("0"),
            "totalLoansGiven": Decimal("0"),
            "totalOutstanding": Decimal("0"),
            "totalReceivedForGivenLoans": Decimal("0"),
            "totalPaidForTakenLoans": Decimal("0"),
        }
        for loan in self._loans.values():
            settled = loan["originalAmount"] - loan["remainingAmount"]
            if loan["type"] == "TAKEN":
                totals["totalLoansTaken"] += loan["originalAmount"]
                totals["totalPaidForTakenLoans"] += settled
            else:
                totals["totalLoansGiven"] += loan["originalAmount"]
                totals["totalReceivedForGivenLoans"] += settled
            totals["totalOutstanding"] += loan["remainingAmount"]
        return {k: _money(v) for k, v in totals.items()}

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require(self, loan_id: int) -> dict[str, Any]:
        loan = self._loans.get(loan_id)
        if loan is None:
            raise _rejected("Loan not found or access denied.")
        return loan

    @staticmethod
    def _to_dto(loan: dict[str, Any]) -> dict[str, Any]:
        dto = copy.deepcopy(loan)
        dto["originalAmount"] = _money(loan["originalAmount"])
        dto["remainingAmount"] = _money(loan["remainingAmount"])
        dto["installments"] = [
            {**copy.deepcopy(i), "amountPaid": _money(i["amountPaid"])}
            for i in loan["installments"]
        ]
        return dto

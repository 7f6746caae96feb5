"""Resource access layer for loans, installments and payment methods."""

import logging
from decimal import Decimal
from typing import Any, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ledgersync.api.schemas import (
    InstallmentCreateRequest,
    LoanCreateRequest,
    LoanUpdateRequest,
)
from ledgersync.cache import MemoizedCall, TtlCacheStore, make_cache_key, operation_key
from ledgersync.core.exceptions import LocalValidationError
from ledgersync.core.timezone import is_blank, to_date
from ledgersync.domain.models import DateFilterPreset
from ledgersync.domain.views import LoanAnalytics
from ledgersync.providers.remote_service import RemoteResourceService
from ledgersync.services.normalizer import coerce_list, normalize_loans, to_decimal

logger = logging.getLogger(__name__)

LOANS_TAG = "loans"
LOANS_LIST_OPERATION = "loans_all"
LOAN_DETAIL_OPERATION = "loans_detail"
ANALYTICS_KEY = "loans_analytics"
PAYMENT_METHODS_KEY = "payment_methods"

M = TypeVar("M", bound=BaseModel)

Payload = Union[BaseModel, Mapping[str, Any]]


def _unwrap(body: Any, envelope_key: str) -> list[Any]:
    """Accept either a bare list or {envelope_key: [...]}."""
    if isinstance(body, Mapping):
        return coerce_list(body.get(envelope_key))
    return coerce_list(body)


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts) or "Invalid input"


def build_request(model: Type[M], data: Payload) -> M:
    """Validate data into a request model, raising LocalValidationError."""
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model.model_validate(dict(data))
    except ValidationError as exc:
        raise LocalValidationError(_validation_message(exc)) from exc


def resolve_date_query(
    filter: Optional[str] = None,
    start_date: Any = None,
    end_date: Any = None,
) -> dict[str, str]:
    """
    Date constraint to send with a loan listing.

    A complete start/end pair wins over a preset; an unknown preset is
    dropped; otherwise there is no constraint.
    """
    if not is_blank(start_date) and not is_blank(end_date):
        start, end = to_date(start_date), to_date(end_date)
        if start is not None and end is not None:
            return {"startDate": start.isoformat(), "endDate": end.isoformat()}

    if not is_blank(filter):
        preset = str(filter).strip().lower()
        if preset in {p.value for p in DateFilterPreset}:
            return {"filter": preset}

    return {}


class LoanResourceService:
    """
    Typed operations over the remote loan resources.

    Reads go through the response cache; every successful write drops the
    whole "loans" family so the next read refetches. Errors from the remote
    service propagate unchanged.
    """

    def __init__(
        self,
        remote: RemoteResourceService,
        store: TtlCacheStore,
        loan_ttl_seconds: int = 300,
        payment_method_ttl_seconds: int = 600,
        analytics_ttl_seconds: int = 300,
    ):
        self._remote = remote
        self._store = store
        self._cached_loans = MemoizedCall(
            self._fetch_loans, operation_key(LOANS_LIST_OPERATION), store, loan_ttl_seconds
        )
        self._cached_loan = MemoizedCall(
            self._fetch_loan, operation_key(LOAN_DETAIL_OPERATION), store, loan_ttl_seconds
        )
        self._cached_payment_methods = MemoizedCall(
            self._fetch_payment_methods,
            operation_key(PAYMENT_METHODS_KEY),
            store,
            payment_method_ttl_seconds,
        )
        self._cached_analytics = MemoizedCall(
            self._fetch_analytics, operation_key(ANALYTICS_KEY), store, analytics_ttl_seconds
        )

    @property
    def store(self) -> TtlCacheStore:
        return self._store

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_loans(
        self,
        include_closed: bool = True,
        filter: Optional[str] = None,
        start_date: Any = None,
        end_date: Any = None,
    ) -> list[dict[str, Any]]:
        """
        Raw loan payloads for the given listing arguments.

        Equivalent argument sets (None, "", "null", a datetime on the same
        day) share one cache entry.
        """
        query = resolve_date_query(filter, start_date, end_date)
        return await self._cached_loans(
            bool(include_closed),
            query.get("filter"),
            query.get("startDate"),
            query.get("endDate"),
        )

    async def get_loan(self, loan_id: Any) -> dict[str, Any]:
        """Raw payload for one loan."""
        return await self._cached_loan(loan_id)

    async def list_payment_methods(self) -> list[dict[str, Any]]:
        """Raw payment method payloads."""
        return await self._cached_payment_methods()

    async def get_analytics(self) -> LoanAnalytics:
        """Loan totals across every loan the user has."""
        return await self._cached_analytics()

    async def remaining_total(self) -> Decimal:
        """Sum of remaining balances over active loans."""
        loans = normalize_loans(await self.list_loans(include_closed=False))
        return sum((loan.remaining_amount for loan in loans if not loan.is_closed), Decimal("0"))

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_loan(self, data: Payload) -> Any:
        """Create a loan header."""
        request = build_request(LoanCreateRequest, data)
        result = await self._remote.request("POST", "loans", json=request.to_payload())
        self._invalidate_loans()
        logger.info("Created loan for %s", request.person_name)
        return result

    async def update_loan(self, loan_id: Any, patch: Payload) -> Any:
        """Partially update a loan; fields never given are not sent, cleared ones go out as null."""
        request = build_request(LoanUpdateRequest, patch)
        result = await self._remote.request(
            "PUT", f"loans/{loan_id}", json=request.to_payload(exclude_unset=True)
        )
        self._invalidate_loans()
        logger.info("Updated loan %s", loan_id)
        return result

    async def close_loan(self, loan_id: Any) -> Any:
        """Close a loan through the dedicated endpoint."""
        result = await self._remote.request("PUT", f"loans/{loan_id}/close")
        self._invalidate_loans()
        logger.info("Closed loan %s", loan_id)
        return result

    async def delete_loan(self, loan_id: Any) -> None:
        """Delete a loan."""
        await self._remote.request("DELETE", f"loans/{loan_id}")
        self._invalidate_loans()
        logger.info("Deleted loan %s", loan_id)

    async def add_installment(self, loan_id: Any, data: Payload) -> Any:
        """Record one installment against a loan."""
        request = build_request(InstallmentCreateRequest, data)
        result = await self._remote.request(
            "POST", f"loans/{loan_id}/installments", json=request.to_payload()
        )
        self._invalidate_loans()
        logger.info("Added installment of %s to loan %s", request.amount_paid, loan_id)
        return result

    async def delete_installment(self, loan_id: Any, installment_id: Any) -> Any:
        """Delete one installment of a loan."""
        result = await self._remote.request(
            "DELETE", f"loans/{loan_id}/installments/{installment_id}"
        )
        self._invalidate_loans()
        logger.info("Deleted installment %s of loan %s", installment_id, loan_id)
        return result

    # =========================================================================
    # Cache keys
    # =========================================================================

    def loans_cache_key(
        self,
        include_closed: bool = True,
        filter: Optional[str] = None,
        start_date: Any = None,
        end_date: Any = None,
    ) -> str:
        """Key a list_loans call with these arguments is cached under."""
        query = resolve_date_query(filter, start_date, end_date)
        return make_cache_key(
            LOANS_LIST_OPERATION,
            bool(include_closed),
            query.get("filter"),
            query.get("startDate"),
            query.get("endDate"),
        )

    def _invalidate_loans(self) -> None:
        removed = self._store.invalidate(LOANS_TAG)
        logger.debug("Invalidated %d cached loan entries", removed)

    # =========================================================================
    # Remote fetches
    # =========================================================================

    async def _fetch_loans(
        self,
        include_closed: bool,
        filter: Optional[str],
        start_date: Optional[str],
        end_date: Optional[str],
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"includeClosed": "true" if include_closed else "false"}
        if start_date and end_date:
            params["startDate"] = start_date
            params["endDate"] = end_date
        elif filter:
            params["filter"] = filter
        body = await self._remote.request("GET", "loans", params=params)
        return _unwrap(body, "loans")

    async def _fetch_loan(self, loan_id: Any) -> dict[str, Any]:
        body = await self._remote.request("GET", f"loans/{loan_id}")
        if isinstance(body, Mapping) and isinstance(body.get("loan"), Mapping):
            return body["loan"]
        return body

    async def _fetch_payment_methods(self) -> list[dict[str, Any]]:
        body = await self._remote.request("GET", "payment-methods")
        return _unwrap(body, "paymentMethods")

    async def _fetch_analytics(self) -> LoanAnalytics:
        body = await self._remote.request("GET", "loans/analytics")
        data = body if isinstance(body, Mapping) else {}

        def total(name: str) -> Decimal:
            return to_decimal(data.get(name)) or Decimal("0")

        return LoanAnalytics(
            total_loans_taken=total("totalLoansTaken"),
            total_loans_given=total("totalLoansGiven"),
            total_outstanding=total("totalOutstanding"),
            total_received_for_given_loans=total("totalReceivedForGivenLoans"),
            total_paid_for_taken_loans=total("totalPaidForTakenLoans"),
        )

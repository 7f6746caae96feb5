"""
Optimistic mutations over the in-memory loan collection.

Each mutation captures the current collection, applies a tentative change
right away, then talks to the service. Success is followed by a refetch;
failure restores the captured collection exactly. The collection is an
immutable tuple and is only ever replaced whole.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional

from ledgersync.api.schemas import (
    InstallmentCreateRequest,
    LoanCreateRequest,
    LoanUpdateRequest,
)
from ledgersync.core.exceptions import (
    LocalValidationError,
    NotFoundError,
    PartialBatchError,
)
from ledgersync.core.messages import extract_error_message
from ledgersync.domain.models import (
    Installment,
    Loan,
    LoanStatus,
    LoanType,
    MutationState,
    PaymentMethod,
)
from ledgersync.domain.views import MutationResult, Notice
from ledgersync.services.batch import run_batch
from ledgersync.services.loan_resource import LoanResourceService, build_request
from ledgersync.services.normalizer import (
    build_payment_method_index,
    coerce_list,
    normalize_installment,
    normalize_loan,
    normalize_loans,
)

logger = logging.getLogger(__name__)

Notifier = Callable[[Notice], None]

DELETE_BLOCKED_MESSAGE = "Remove all installments before deleting the loan."


@dataclass
class InstallmentDraft:
    """An installment as entered; `id` is set once the service has it."""

    amount_paid: Any
    payment_date: Any = None
    payment_method_id: Any = None
    notes: Optional[str] = None
    id: Any = None

    @property
    def is_persisted(self) -> bool:
        return self.id is not None


@dataclass
class LoanDraft:
    """A loan header plus its installments as entered in the editing surface."""

    person_name: str
    original_amount: Any
    start_date: Any = None
    type: LoanType = LoanType.TAKEN
    due_date: Any = None
    interest_rate: Any = None
    notes: Optional[str] = None
    id: Any = None
    installments: list[InstallmentDraft] = field(default_factory=list)

    @property
    def is_new(self) -> bool:
        return self.id is None


@dataclass
class _Query:
    filter: Optional[str] = None
    start_date: Any = None
    end_date: Any = None


class LoanMutationOrchestrator:
    """
    Owns the loan collection shown to the user and every change made to it.

    Notifications go to the injected callback as Notice records. Nothing is
    retried automatically; a failed installment stays in the result's
    `pending` list for the caller to resubmit.
    """

    def __init__(
        self,
        resources: LoanResourceService,
        notify: Optional[Notifier] = None,
    ):
        self._resources = resources
        self._notify = notify
        self._loans: tuple[Loan, ...] = ()
        self._payment_methods: dict[str, PaymentMethod] = {}
        self._query = _Query()
        self._state = MutationState.IDLE

    @property
    def loans(self) -> tuple[Loan, ...]:
        return self._loans

    @property
    def payment_methods(self) -> dict[str, PaymentMethod]:
        return dict(self._payment_methods)

    @property
    def state(self) -> MutationState:
        """State of the most recent mutation."""
        return self._state

    def find_loan(self, loan_id: Any) -> Loan:
        """Loan from the local collection, or NotFoundError."""
        for loan in self._loans:
            if loan.id == loan_id:
                return loan
        raise NotFoundError("Loan", str(loan_id))

    # =========================================================================
    # Loading
    # =========================================================================

    async def refresh(
        self,
        filter: Optional[str] = None,
        start_date: Any = None,
        end_date: Any = None,
    ) -> MutationResult:
        """
        Load loans and payment methods together and replace the collection.

        On failure the collection is emptied and the error surfaced.
        """
        self._query = _Query(filter, start_date, end_date)
        try:
            await self._reload()
        except Exception as exc:
            self._loans = ()
            self._payment_methods = {}
            message = f"Failed to load loans: {extract_error_message(exc)}"
            logger.warning(message)
            self._emit(message, "error")
            return MutationResult(MutationState.ROLLED_BACK, message=message)
        return MutationResult(MutationState.COMMITTED)

    async def _reload(self) -> None:
        raw_loans, raw_methods = await asyncio.gather(
            self._resources.list_loans(
                True, self._query.filter, self._query.start_date, self._query.end_date
            ),
            self._resources.list_payment_methods(),
        )
        index = build_payment_method_index(raw_methods)
        loans = tuple(normalize_loans(raw_loans, index))
        self._payment_methods = index
        self._loans = loans
        logger.debug("Loaded %d loans", len(loans))

    async def _reload_after_commit(self) -> None:
        # The write already succeeded; a failed refetch leaves the tentative
        # collection in place until the next refresh.
        try:
            await self._reload()
        except Exception as exc:
            logger.warning("Refetch after commit failed: %s", exc)

    # =========================================================================
    # Delete loan
    # =========================================================================

    async def delete_loan(self, loan_id: Any) -> MutationResult:
        """Delete a loan that has no installments."""
        try:
            loan = self.find_loan(loan_id)
            if not loan.is_deletable:
                raise LocalValidationError(DELETE_BLOCKED_MESSAGE)
        except (LocalValidationError, NotFoundError) as exc:
            return self._reject(exc)

        snapshot = self._begin()
        self._loans = tuple(item for item in snapshot if item.id != loan_id)

        try:
            await self._resources.delete_loan(loan_id)
        except Exception as exc:
            return self._rollback(snapshot, "Failed to delete loan", exc)

        await self._reload_after_commit()
        return self._commit("Loan deleted successfully.")

    # =========================================================================
    # Close loan
    # =========================================================================

    async def close_loan(self, loan_id: Any) -> MutationResult:
        """
        Close an active loan.

        The remaining amount is zeroed locally before the request goes out.
        Closing an already closed loan does nothing.
        """
        try:
            loan = self.find_loan(loan_id)
        except NotFoundError as exc:
            return self._reject(exc)
        if loan.is_closed:
            return MutationResult(MutationState.IDLE, loan=loan)

        snapshot = self._begin()
        closed = dataclasses.replace(
            loan, status=LoanStatus.CLOSED, remaining_amount=Decimal("0")
        )
        self._loans = self._with_loan(snapshot, closed)

        try:
            await self._resources.update_loan(
                loan_id,
                LoanUpdateRequest(person_name=loan.person_name, status=LoanStatus.CLOSED),
            )
        except Exception as exc:
            return self._rollback(snapshot, "Failed to close loan", exc)

        await self._reload_after_commit()
        return self._commit("Loan closed successfully.", self._lookup(loan_id))

    # =========================================================================
    # Delete installment
    # =========================================================================

    async def delete_installment(self, loan_id: Any, installment_id: Any) -> MutationResult:
        """Remove one installment and give its amount back to the balance."""
        try:
            loan = self.find_loan(loan_id)
            removed = next((i for i in loan.installments if i.id == installment_id), None)
            if removed is None:
                raise NotFoundError("Installment", str(installment_id))
        except NotFoundError as exc:
            return self._reject(exc)

        snapshot = self._begin()
        self._loans = self._with_loan(snapshot, _without_installment(loan, removed))

        try:
            await self._resources.delete_installment(loan_id, installment_id)
        except Exception as exc:
            return self._rollback(snapshot, "Failed to delete installment", exc)

        await self._reload_after_commit()
        return self._commit("Installment deleted successfully.", self._lookup(loan_id))

    # =========================================================================
    # Save loan with installments
    # =========================================================================

    async def save_loan(self, draft: LoanDraft) -> MutationResult:
        """
        Create or update a loan header, then add every unsaved installment.

        Installments are submitted concurrently and each reports on its own.
        When some fail the loan is still saved, the result is PARTIAL, the
        editing surface stays open and the failed drafts come back in
        `pending`. The draft and every installment that was saved get their
        server ids, so submitting the same draft again only retries the
        failed installments.
        """
        verb = "created" if draft.is_new else "updated"
        new_drafts = [d for d in draft.installments if not d.is_persisted]

        try:
            header = self._header_request(draft)
            requests = [build_request(InstallmentCreateRequest, _installment_fields(d)) for d in new_drafts]
        except LocalValidationError as exc:
            return self._reject(exc, keep_editing=True)

        self._state = MutationState.PENDING
        try:
            if draft.is_new:
                saved = await self._resources.create_loan(header)
            else:
                saved = await self._resources.update_loan(draft.id, header)
        except Exception as exc:
            message = f"Failed to save loan: {extract_error_message(exc)}"
            logger.warning(message)
            self._state = MutationState.ROLLED_BACK
            return MutationResult(MutationState.ROLLED_BACK, message=message, keep_editing=True)

        loan_id = draft.id if not draft.is_new else normalize_loan(saved).id
        # From here on a resubmit of the same draft updates this loan
        draft.id = loan_id
        pairs = list(zip(new_drafts, requests))
        batch = await run_batch(
            pairs,
            lambda pair: self._resources.add_installment(loan_id, pair[1]),
        )

        claimed = {d.id for d in draft.installments if d.is_persisted}
        for (installment_draft, request), response in batch.succeeded:
            installment_draft.id = _new_installment_id(response, request, loan_id, claimed)
            if installment_draft.id is not None:
                claimed.add(installment_draft.id)

        loan = await self._refetch_loan(loan_id, saved)

        if batch.failed:
            failures = [
                f"Installment {f.input[0].amount_paid}: {extract_error_message(f.error)}"
                for f in batch.failed
            ]
            error = PartialBatchError(
                f"Loan {verb}, but some installments failed: {'; '.join(failures)}",
                failures,
            )
            logger.warning(error.message)
            self._state = MutationState.PARTIAL
            return MutationResult(
                MutationState.PARTIAL,
                message=error.message,
                loan=loan,
                failures=error.failures,
                keep_editing=True,
                pending=[f.input[0] for f in batch.failed],
            )

        await self._reload_after_commit()
        name = loan.person_name if loan is not None else None
        if name:
            message = f"Loan for {name} has been {verb} successfully."
        else:
            message = "Loan saved successfully."
        return self._commit(message, loan)

    def _header_request(self, draft: LoanDraft):
        if draft.is_new:
            return build_request(
                LoanCreateRequest,
                {
                    "type": draft.type,
                    "person_name": draft.person_name,
                    "original_amount": draft.original_amount,
                    "start_date": draft.start_date,
                    "due_date": draft.due_date,
                    "interest_rate": draft.interest_rate,
                    "notes": draft.notes,
                },
            )
        return build_request(
            LoanUpdateRequest,
            {
                "person_name": draft.person_name,
                "original_amount": draft.original_amount,
                "type": draft.type,
                "notes": draft.notes,
                "due_date": draft.due_date,
                "interest_rate": draft.interest_rate,
            },
        )

    async def _refetch_loan(self, loan_id: Any, saved: Any) -> Optional[Loan]:
        try:
            raw = await self._resources.get_loan(loan_id)
        except Exception as exc:
            logger.warning("Refetch of loan %s failed: %s", loan_id, exc)
            raw = saved
        if raw is None:
            return None
        loan = normalize_loan(raw, self._payment_methods)
        self._loans = self._with_loan(self._loans, loan, insert=True)
        return loan

    # =========================================================================
    # State transitions
    # =========================================================================

    def _begin(self) -> tuple[Loan, ...]:
        self._state = MutationState.PENDING
        return self._loans

    def _commit(self, message: str, loan: Optional[Loan] = None) -> MutationResult:
        self._state = MutationState.COMMITTED
        logger.info(message)
        self._emit(message, "success")
        return MutationResult(MutationState.COMMITTED, message=message, loan=loan)

    def _rollback(
        self, snapshot: tuple[Loan, ...], action: str, error: Exception
    ) -> MutationResult:
        self._loans = snapshot
        self._state = MutationState.ROLLED_BACK
        message = f"{action}: {extract_error_message(error)}"
        logger.warning("Rolled back: %s", message)
        self._emit(message, "error")
        return MutationResult(MutationState.ROLLED_BACK, message=message)

    def _reject(self, error: Exception, keep_editing: bool = False) -> MutationResult:
        self._state = MutationState.REJECTED
        message = extract_error_message(error)
        self._emit(message, "error")
        return MutationResult(MutationState.REJECTED, message=message, keep_editing=keep_editing)

    def _emit(self, message: str, kind: str) -> None:
        if self._notify is not None:
            self._notify(Notice(message, kind))

    def _lookup(self, loan_id: Any) -> Optional[Loan]:
        return next((item for item in self._loans if item.id == loan_id), None)

    @staticmethod
    def _with_loan(
        loans: tuple[Loan, ...], replacement: Loan, insert: bool = False
    ) -> tuple[Loan, ...]:
        if any(item.id == replacement.id for item in loans):
            return tuple(replacement if item.id == replacement.id else item for item in loans)
        return (replacement,) + loans if insert else loans


def _installment_fields(draft: InstallmentDraft) -> dict[str, Any]:
    return {
        "amount_paid": draft.amount_paid,
        "payment_date": draft.payment_date,
        "payment_method_id": draft.payment_method_id,
        "notes": draft.notes,
    }


def _new_installment_id(
    response: Any,
    request: InstallmentCreateRequest,
    loan_id: Any,
    claimed: set,
) -> Any:
    """
    Server id of the installment a successful add created.

    The service answers with either the installment or the whole parent
    loan. For a loan, the match is the first unclaimed installment with the
    same amount and payment date.
    """
    if not isinstance(response, Mapping):
        return None
    if "installments" not in response:
        return normalize_installment(response, loan_id).id
    for raw in coerce_list(response.get("installments")):
        candidate = normalize_installment(raw, loan_id)
        if (
            candidate.id not in claimed
            and candidate.amount_paid == request.amount_paid
            and candidate.payment_date == request.payment_date
        ):
            return candidate.id
    return None


def _without_installment(loan: Loan, removed: Installment) -> Loan:
    """Loan as it looks once the service has dropped the installment."""
    remaining = loan.remaining_amount + removed.amount_paid
    status = loan.status
    if status == LoanStatus.CLOSED and remaining > 0:
        status = LoanStatus.ACTIVE
    return dataclasses.replace(
        loan,
        installments=tuple(i for i in loan.installments if i.id != removed.id),
        remaining_amount=remaining,
        status=status,
    )

"""Pydantic schemas for loan request payloads sent to the remote service."""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ledgersync.core.timezone import is_blank, to_date
from ledgersync.domain.models.enums import LoanType, LoanStatus


class _CamelModel(BaseModel):
    """Base for wire payloads: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self, exclude_unset: bool = False) -> dict[str, Any]:
        """
        Serialize for the wire (camelCase keys, ISO dates, string decimals).

        With exclude_unset, only fields given explicitly are sent; one given
        as None goes out as null.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_unset=exclude_unset)


def _blank_to_none(v: Any) -> Any:
    return None if is_blank(v) else v


def _strip_notes(v: Any) -> Optional[str]:
    if is_blank(v):
        return None
    return str(v).strip()


class LoanCreateRequest(_CamelModel):
    """Request schema for creating a loan header."""

    type: LoanType = Field(default=LoanType.TAKEN, description="TAKEN or GIVEN")
    person_name: str = Field(..., min_length=1, max_length=255, description="Counterparty")
    original_amount: Decimal = Field(..., gt=0, description="Principal")
    start_date: date = Field(..., description="Loan start date")
    due_date: Optional[date] = Field(default=None, description="Optional due date")
    interest_rate: Optional[Decimal] = Field(default=None, ge=0, description="Percent")
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("person_name", mode="before")
    @classmethod
    def strip_person_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("start_date", "due_date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Optional[date]:
        return to_date(v)

    @field_validator("interest_rate", mode="before")
    @classmethod
    def blank_rate(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("notes", mode="before")
    @classmethod
    def clean_notes(cls, v: Any) -> Optional[str]:
        return _strip_notes(v)


class LoanUpdateRequest(_CamelModel):
    """Request schema for updating a loan (partial update)."""

    person_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    original_amount: Optional[Decimal] = Field(default=None, gt=0)
    type: Optional[LoanType] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    due_date: Optional[date] = None
    interest_rate: Optional[Decimal] = Field(default=None, ge=0)
    status: Optional[LoanStatus] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Optional[date]:
        return to_date(v)

    @field_validator("interest_rate", "original_amount", mode="before")
    @classmethod
    def blank_decimal(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("notes", mode="before")
    @classmethod
    def clean_notes(cls, v: Any) -> Optional[str]:
        return _strip_notes(v)


class InstallmentCreateRequest(_CamelModel):
    """Request schema for adding an installment to a loan."""

    amount_paid: Decimal = Field(..., gt=0, description="Payment amount")
    payment_date: date = Field(..., description="Date the payment was made")
    payment_method_id: Optional[int] = Field(
        default=None,
        description="Payment method; the service defaults to Cash when absent",
    )
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("payment_date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Optional[date]:
        return to_date(v)

    @field_validator("payment_method_id", mode="before")
    @classmethod
    def blank_method(cls, v: Any) -> Any:
        # "" and "0" come from an unselected dropdown
        if is_blank(v) or v in (0, "0"):
            return None
        return v

    @field_validator("notes", mode="before")
    @classmethod
    def clean_notes(cls, v: Any) -> Optional[str]:
        return _strip_notes(v)

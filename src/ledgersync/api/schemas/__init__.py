"""Pydantic schemas for remote service request payloads."""

from ledgersync.api.schemas.loan import (
    LoanCreateRequest,
    LoanUpdateRequest,
    InstallmentCreateRequest,
)

__all__ = [
    "LoanCreateRequest",
    "LoanUpdateRequest",
    "InstallmentCreateRequest",
]

"""Enumerations for domain models."""

from enum import Enum


class LoanType(str, Enum):
    """Direction of a loan relative to the user."""

    TAKEN = "TAKEN"  # user borrowed
    GIVEN = "GIVEN"  # user lent


class LoanStatus(str, Enum):
    """Lifecycle status of a loan."""

    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"  # reopened only when removing an installment leaves a balance


class DateFilterPreset(str, Enum):
    """Named date windows understood by the loan list endpoint."""

    LAST_WEEK = "lastweek"
    LAST_MONTH = "lastmonth"
    LAST_YEAR = "lastyear"


class MutationState(str, Enum):
    """States of a single optimistic mutation."""

    IDLE = "IDLE"
    PENDING = "PENDING"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"
    # Parent persisted, one or more independent sub-operations failed
    PARTIAL = "PARTIAL"
    # Precondition failed before any network call; nothing was applied
    REJECTED = "REJECTED"

"""Core utilities and shared functionality."""

from ledgersync.core.timezone import (
    UTC,
    Clock,
    now_utc,
    to_utc,
    is_blank,
    parse_datetime,
    to_date,
)
from ledgersync.core.exceptions import (
    AppError,
    LocalValidationError,
    RemoteValidationError,
    TransportError,
    PartialBatchError,
    NotFoundError,
)

__all__ = [
    "UTC",
    "Clock",
    "now_utc",
    "to_utc",
    "is_blank",
    "parse_datetime",
    "to_date",
    "AppError",
    "LocalValidationError",
    "RemoteValidationError",
    "TransportError",
    "PartialBatchError",
    "NotFoundError",
]

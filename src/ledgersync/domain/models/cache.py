"""Cache entry model for the response cache."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class CacheEntry:
    """
    A cached response and the instant it stops being valid.

    IMPORTANT: Never read past expires_at; an expired entry is the same as a
    missing one.
    """

    value: Any
    expires_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        """Return True while now is strictly before expires_at."""
        return now < self.expires_at

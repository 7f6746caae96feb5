"""In-memory response cache with time-based expiry and tag invalidation."""

import logging
from datetime import datetime, timedelta
from typing import Any, Iterator, Optional, Union

from ledgersync.core.timezone import Clock, now_utc
from ledgersync.domain.models import CacheEntry

logger = logging.getLogger(__name__)

TAG_DELIMITER = "_"

Ttl = Union[int, float, timedelta]


class TtlCacheStore:
    """
    Key/value store mapping a cache key to (value, expiry).

    Keys are plain strings whose leading segment names a resource family
    ("loans_all_[...]", "loans_analytics"); invalidating the family tag
    drops every key in it. The clock is injected so expiry can be driven
    deterministically.
    """

    def __init__(self, clock: Optional[Clock] = None, delimiter: str = TAG_DELIMITER):
        self._clock = clock or now_utc
        self._delimiter = delimiter
        self._entries: dict[str, CacheEntry] = {}
        # Bumped on every invalidation so in-flight fetches can tell their
        # result may already be stale.
        self._version = 0

    @property
    def version(self) -> int:
        """Invalidation counter."""
        return self._version

    def now(self) -> datetime:
        """Current time according to the injected clock."""
        return self._clock()

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for key, purging it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock()):
            del self._entries[key]
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or default when missing or expired."""
        entry = self.get_entry(key)
        return entry.value if entry is not None else default

    def set(self, key: str, value: Any, ttl: Ttl) -> CacheEntry:
        """Store value under key for ttl (seconds or timedelta), overwriting."""
        if not isinstance(ttl, timedelta):
            ttl = timedelta(seconds=ttl)
        entry = CacheEntry(value=value, expires_at=self._clock() + ttl)
        self._entries[key] = entry
        return entry

    def invalidate(self, tag_or_key: str) -> int:
        """
        Remove the exact key and every key in the tag's family.

        invalidate("loans") removes "loans", "loans_all_[...]" and
        "loans_analytics" but not "loan_methods". Returns the number of
        entries removed.
        """
        prefix = tag_or_key + self._delimiter
        doomed = [k for k in self._entries if k == tag_or_key or k.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        self._version += 1
        logger.debug("Invalidated %d cache entries for %r", len(doomed), tag_or_key)
        return len(doomed)

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()
        self._version += 1

    def purge_expired(self) -> int:
        """Eagerly drop expired entries; returns the number removed."""
        now = self._clock()
        doomed = [k for k, e in self._entries.items() if not e.is_fresh(now)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def keys(self) -> list[str]:
        """Keys of live entries."""
        now = self._clock()
        return [k for k, e in self._entries.items() if e.is_fresh(now)]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get_entry(key) is not None

    def __len__(self) -> int:
        return len(self.keys())

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

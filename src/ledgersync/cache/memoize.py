"""Memoizing wrapper for asynchronous fetch functions."""

import asyncio
import functools
import json
import logging
import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

from ledgersync.cache.ttl_store import Ttl, TtlCacheStore
from ledgersync.core.timezone import is_blank, to_date

logger = logging.getLogger(__name__)

T = TypeVar("T")

KeyFunc = Callable[..., str]

_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}([T ].*)?$")


def normalize_key_arg(value: Any) -> Any:
    """
    Reduce an argument to a JSON-safe canonical form.

    None, "", whitespace and "null" all collapse to None; dates, datetimes and
    ISO date/datetime strings collapse to "YYYY-MM-DD".
    """
    if is_blank(value):
        return None
    if isinstance(value, Enum):
        return normalize_key_arg(value.value)
    if isinstance(value, (datetime, date)):
        return to_date(value).isoformat()
    if isinstance(value, str):
        text = value.strip()
        if _ISO_DATE_PREFIX.match(text):
            parsed = to_date(text)
            if parsed is not None:
                return parsed.isoformat()
        return text
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if isinstance(value, dict):
        return {str(k): normalize_key_arg(v) for k, v in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [normalize_key_arg(v) for v in value]
        return sorted(items, key=str) if isinstance(value, (set, frozenset)) else items
    return value


def make_cache_key(operation: str, *args: Any) -> str:
    """
    Derive a deterministic cache key from an operation name and its arguments.

    make_cache_key("loans_all", True, None, "", "null") and
    make_cache_key("loans_all", True, "", None, None) are equal.
    """
    normalized = [normalize_key_arg(a) for a in args]
    if not normalized:
        return operation
    return f"{operation}_{json.dumps(normalized, separators=(',', ':'), sort_keys=True, default=str)}"


class MemoizedCall(Generic[T]):
    """
    Wraps an async producer so equal keys short-circuit to a cached value.

    - An unexpired cached value is returned without calling the producer.
    - A successful result is stored under the key with the configured TTL.
    - Failures are never cached and leave any prior value untouched.
    - Concurrent calls for the same key share one in-flight task, unless the
      store was invalidated after that task started.
    """

    def __init__(
        self,
        func: Callable[..., Awaitable[T]],
        key_func: KeyFunc,
        store: TtlCacheStore,
        ttl: Ttl,
    ):
        self._func = func
        self._key_func = key_func
        self._store = store
        self._ttl = ttl
        self._in_flight: dict[str, tuple[int, "asyncio.Future[T]"]] = {}

    @property
    def store(self) -> TtlCacheStore:
        return self._store

    def cache_key(self, *args: Any, **kwargs: Any) -> str:
        """Key this call would be cached under."""
        return self._key_func(*args, **kwargs)

    async def __call__(self, *args: Any, **kwargs: Any) -> T:
        key = self._key_func(*args, **kwargs)

        entry = self._store.get_entry(key)
        if entry is not None:
            logger.debug("Cache hit: %s", key)
            return entry.value

        version = self._store.version
        shared = self._in_flight.get(key)
        if shared is not None and shared[0] == version and not shared[1].done():
            logger.debug("Joining in-flight request: %s", key)
            return await asyncio.shield(shared[1])

        logger.debug("Cache miss: %s", key)
        task = asyncio.ensure_future(self._fetch(key, version, args, kwargs))
        self._in_flight[key] = (version, task)
        task.add_done_callback(functools.partial(self._forget, key))
        return await asyncio.shield(task)

    async def _fetch(self, key: str, version: int, args: tuple, kwargs: dict) -> T:
        result = await self._func(*args, **kwargs)
        if self._store.version == version:
            self._store.set(key, result, self._ttl)
        else:
            # A write invalidated the family while this read was in flight
            logger.debug("Skipping cache store for %s (invalidated in flight)", key)
        return result

    def _forget(self, key: str, task: "asyncio.Future[T]") -> None:
        current = self._in_flight.get(key)
        if current is not None and current[1] is task:
            del self._in_flight[key]


def memoize(
    store: TtlCacheStore,
    key_func: KeyFunc,
    ttl: Ttl,
) -> Callable[[Callable[..., Awaitable[T]]], MemoizedCall[T]]:
    """Decorator form of MemoizedCall."""

    def decorator(func: Callable[..., Awaitable[T]]) -> MemoizedCall[T]:
        return MemoizedCall(func, key_func, store, ttl)

    return decorator


def operation_key(operation: str) -> KeyFunc:
    """Key function that derives keys from positional arguments only."""

    def _key(*args: Any, **kwargs: Any) -> str:
        if kwargs:
            return make_cache_key(operation, *args, dict(kwargs))
        return make_cache_key(operation, *args)

    return _key

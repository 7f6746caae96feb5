"""Response cache: TTL store and memoizing call wrapper."""

from ledgersync.cache.ttl_store import TtlCacheStore, TAG_DELIMITER
from ledgersync.cache.memoize import (
    MemoizedCall,
    memoize,
    make_cache_key,
    normalize_key_arg,
    operation_key,
)

__all__ = [
    "TtlCacheStore",
    "TAG_DELIMITER",
    "MemoizedCall",
    "memoize",
    "make_cache_key",
    "normalize_key_arg",
    "operation_key",
]

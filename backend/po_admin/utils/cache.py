from __future__ import annotations
"""Explicit query cache for REST reads.

One instance lives on the Flask app (``app.extensions['po_cache']``) and is handed to the
data client; nothing reaches it as module-level state. Entries expire after ``ttl_seconds``
and are dropped early by ``invalidate_po`` whenever a PO changes upstream.

Keys (scope is a digest of the caller's bearer token, see ``token_scope``):
    ('po', po_id, scope)
    ('audit_log', po_id, scope)
    ('po_list', params, scope)   params is a sorted tuple of (name, value) pairs
"""
import hashlib
import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

PO = 'po'
AUDIT_LOG = 'audit_log'
PO_LIST = 'po_list'


def token_scope(token: Optional[str]) -> str:
    if not token:
        return 'anonymous'
    return hashlib.sha256(token.encode('utf-8')).hexdigest()[:32]


def list_key(params: Optional[Mapping[str, Any]], scope: str = 'anonymous') -> Tuple[str, Tuple, str]:
    items = tuple(sorted((k, str(v)) for k, v in (params or {}).items() if v is not None))
    return (PO_LIST, items, scope)


class QueryCache:
    def __init__(self, ttl_seconds: float = 30, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._data: Dict[Hashable, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            hit = self._data.get(key)
            if hit is None:
                return default
            expires_at, value = hit
            if expires_at <= self._clock():
                del self._data[key]
                return default
            return value

    def set(self, key: Hashable, value: Any) -> Any:
        if self.ttl_seconds <= 0:
            return value
        with self._lock:
            self._data[key] = (self._clock() + self.ttl_seconds, value)
        return value

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        # loader runs outside the lock; two concurrent misses may both load, last write wins
        missing = object()
        value = self.get(key, missing)
        if value is missing:
            value = self.set(key, loader())
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._data.pop(key, None)

    def invalidate_po(self, po_id: str) -> None:
        """Drop every scope's detail and audit log for this PO, and every list page."""
        po_id = str(po_id)
        own = ((PO, po_id), (AUDIT_LOG, po_id))
        with self._lock:
            stale = [k for k in self._data
                     if isinstance(k, tuple) and (k[:2] in own or k[:1] == (PO_LIST,))]
            for k in stale:
                del self._data[k]
        logger.debug('Invalidated %d cache entries for PO %s', len(stale), po_id)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


__all__ = ['QueryCache', 'list_key', 'token_scope', 'PO', 'AUDIT_LOG', 'PO_LIST']

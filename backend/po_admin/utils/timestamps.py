from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Optional


def canonicalize_timestamp(dt: datetime) -> datetime:
    """Return UTC tz-aware timestamp (naive values are assumed to already be UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 string (``Z`` suffix allowed) or datetime. None when unparseable."""
    if isinstance(value, datetime):
        return canonicalize_timestamp(value)
    if not isinstance(value, str) or not value:
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    except ValueError:
        return None
    return canonicalize_timestamp(dt)


def isoformat_z(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return canonicalize_timestamp(dt).isoformat().replace('+00:00', 'Z')


__all__ = ['canonicalize_timestamp', 'parse_timestamp', 'isoformat_z']

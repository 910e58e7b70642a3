from __future__ import annotations
"""Reusable validation helpers for PO records.

Status parsing lives here so REST payloads, JWT-driven requests and tests share one
notion of what a valid status spelling is.
"""
from typing import Any, Iterable, Mapping, Sequence
from flask import abort

from po_admin.constants.permissions import POStatus, STATUS_ALIASES


class UnknownStatusError(ValueError):
    """Raised for a status value outside the POStatus enumeration."""


class InvalidRecordError(ValueError):
    """Raised when an upstream record lacks fields the model cannot do without."""


def parse_status(value: Any) -> POStatus:
    if isinstance(value, POStatus):
        return value
    if not isinstance(value, str) or not value.strip():
        raise UnknownStatusError(f"Unknown PO status {value!r}")
    key = value.strip().upper()
    if key in STATUS_ALIASES:
        return STATUS_ALIASES[key]
    try:
        return POStatus(key)
    except ValueError:
        raise UnknownStatusError(f"Unknown PO status {value!r}") from None


def validate_status(new_status: Any, allowed: Iterable[POStatus] = tuple(POStatus), field_name: str = 'status') -> POStatus:
    """Parse a client-supplied status and check it is inside allowed.

    Returns the parsed status (to enable inline usage) or aborts with 400.
    """
    try:
        status = parse_status(new_status)
    except UnknownStatusError:
        abort(400, description=f"{field_name} invalid")
    if status not in set(allowed):
        abort(400, description=f"{field_name} invalid")
    return status


def require_fields(data: Mapping[str, Any], fields: Sequence[str], record: str) -> None:
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise InvalidRecordError(f"{record} missing required fields: {', '.join(missing)}")

__all__ = ['UnknownStatusError', 'InvalidRecordError', 'parse_status', 'validate_status', 'require_fields']

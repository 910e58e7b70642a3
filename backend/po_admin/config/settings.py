from __future__ import annotations
import os
from typing import Any, Dict, Optional, Tuple

from po_admin.constants.permissions import Permission

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def load_settings() -> Dict[str, Any]:
    """Environment-derived defaults; ``create_app(config=...)`` overrides win over these."""
    return {
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        'PO_API_URL': os.getenv('PO_API_URL', 'http://localhost:3001/api'),
        'PO_API_TIMEOUT': float(os.getenv('PO_API_TIMEOUT', '10')),
        'PO_CACHE_TTL': float(os.getenv('PO_CACHE_TTL', '30')),
        'PO_CANCEL_CAPABILITY': os.getenv('PO_CANCEL_CAPABILITY', ''),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO'),
    }


def cancel_capability(value: Any) -> Optional[Permission]:
    """Empty means cancelling is ungated; anything else must be a permission code."""
    if not value:
        return None
    if isinstance(value, Permission):
        return value
    try:
        return Permission(value)
    except ValueError:
        raise ValueError(f'PO_CANCEL_CAPABILITY {value!r} is not a permission code') from None


def normalize_pagination(limit_raw, offset_raw) -> Tuple[int, int]:
    try:
        limit = int(limit_raw) if limit_raw is not None else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    limit = max(1, min(limit, MAX_LIMIT))
    offset = max(0, offset)
    return limit, offset

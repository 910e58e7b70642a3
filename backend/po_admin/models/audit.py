from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from po_admin.utils.timestamps import parse_timestamp
from po_admin.utils.validation import require_fields, InvalidRecordError


@dataclass(frozen=True)
class AuditLogEntry:
    id: str
    action: str
    timestamp: datetime
    po_id: Optional[str] = None
    description: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    field_name: Optional[str] = None
    old_value: Any = None
    new_value: Any = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def has_old_value(self) -> bool:
        return self.old_value is not None

    @property
    def has_new_value(self) -> bool:
        return self.new_value is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditLogEntry':
        if not isinstance(data, dict):
            raise InvalidRecordError('AuditLogEntry must be an object')
        require_fields(data, ['id', 'action', 'timestamp'], 'AuditLogEntry')
        ts = parse_timestamp(data['timestamp'])
        if ts is None:
            raise InvalidRecordError(f"AuditLogEntry {data['id']} has unparseable timestamp {data['timestamp']!r}")
        metadata = data.get('metadata') or {}
        if not isinstance(metadata, dict):
            raise InvalidRecordError(f"AuditLogEntry {data['id']} metadata must be an object")
        po_id = data.get('poId')
        user_id = data.get('userId')
        return cls(
            id=str(data['id']),
            action=str(data['action']),
            timestamp=ts,
            po_id=str(po_id) if po_id is not None else None,
            description=data.get('description'),
            user_id=str(user_id) if user_id is not None else None,
            user_name=data.get('userName'),
            field_name=data.get('fieldName'),
            old_value=data.get('oldValue'),
            new_value=data.get('newValue'),
            metadata=dict(metadata),
        )

__all__ = ['AuditLogEntry']

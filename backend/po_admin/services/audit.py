from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from po_admin.constants.permissions import MASK
from po_admin.models.audit import AuditLogEntry
from po_admin.utils.timestamps import canonicalize_timestamp, isoformat_z
from po_admin.utils.validation import InvalidRecordError

logger = logging.getLogger(__name__)

RawEntry = Union[AuditLogEntry, Dict[str, Any]]


@dataclass(frozen=True)
class AggregationResult:
    entries: Tuple[AuditLogEntry, ...]
    skipped: int = 0


def aggregate_report(raw_entries: Iterable[RawEntry]) -> AggregationResult:
    """Normalise, validate and order raw audit entries.

    Malformed entries (missing id/action/timestamp or an unparseable timestamp) are
    skipped and counted instead of failing the whole log. Ordering is timestamp
    ascending; ``sorted`` is stable so equal timestamps keep their feed order.
    """
    entries: List[AuditLogEntry] = []
    skipped = 0
    for raw in raw_entries:
        if isinstance(raw, AuditLogEntry):
            entries.append(raw)
            continue
        try:
            entries.append(AuditLogEntry.from_dict(raw))
        except InvalidRecordError as e:
            skipped += 1
            logger.debug('Skipping audit entry: %s', e)
    if skipped:
        logger.warning('Skipped %d malformed audit log entries', skipped)
    return AggregationResult(tuple(sorted(entries, key=lambda e: canonicalize_timestamp(e.timestamp))), skipped)


def aggregate(raw_entries: Iterable[RawEntry]) -> List[AuditLogEntry]:
    return list(aggregate_report(raw_entries).entries)


def display_value(value: Any) -> Any:
    """Objects and arrays become canonical JSON; scalars pass through unchanged."""
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, sort_keys=True, separators=(',', ':'), default=str)
    return value


def change_pair(entry: AuditLogEntry) -> Optional[Tuple[Any, Any]]:
    if not entry.has_old_value and not entry.has_new_value:
        return None
    # the headline already says it
    if entry.has_new_value and entry.metadata.get('description') == entry.new_value:
        return None
    return display_value(entry.old_value), display_value(entry.new_value)


def metadata_lines(entry: AuditLogEntry) -> List[str]:
    return [f"{k}: {v}" for k, v in entry.metadata.items()]


def headline(entry: AuditLogEntry) -> str:
    return entry.description or entry.metadata.get('description') or f"{entry.action} action performed"


def display_row(entry: AuditLogEntry, hidden_fields: Iterable[str] = ()) -> Dict[str, Any]:
    """Render one entry; changes to a field in hidden_fields show the mask marker on both sides."""
    pair = change_pair(entry)
    if pair and entry.field_name in set(hidden_fields):
        pair = (MASK, MASK)
    return {
        'id': entry.id,
        'poId': entry.po_id,
        'action': entry.action,
        'headline': headline(entry),
        'actor': {'id': entry.user_id, 'name': entry.user_name or entry.user_id},
        'timestamp': isoformat_z(entry.timestamp),
        'fieldName': entry.field_name,
        'change': {'from': pair[0], 'to': pair[1]} if pair else None,
        'metadata': metadata_lines(entry),
    }


@dataclass(frozen=True)
class AuditLogState:
    """Loading, Error and Ready are mutually exclusive; Ready may hold zero entries."""
    LOADING = 'loading'
    ERROR = 'error'
    READY = 'ready'

    kind: str
    entries: Tuple[AuditLogEntry, ...] = field(default_factory=tuple)
    skipped: int = 0
    message: Optional[str] = None

    @classmethod
    def loading(cls) -> 'AuditLogState':
        return cls(cls.LOADING)

    @classmethod
    def error(cls, message: str) -> 'AuditLogState':
        return cls(cls.ERROR, message=message)

    @classmethod
    def ready(cls, raw_entries: Iterable[RawEntry]) -> 'AuditLogState':
        result = aggregate_report(raw_entries)
        return cls(cls.READY, result.entries, result.skipped)

    @property
    def is_empty(self) -> bool:
        return self.kind == self.READY and not self.entries

    def to_json(self, hidden_fields: Iterable[str] = ()) -> Dict[str, Any]:
        body: Dict[str, Any] = {'state': self.kind}
        if self.kind == self.ERROR:
            body['message'] = self.message
        elif self.kind == self.READY:
            body['entries'] = [display_row(e, hidden_fields) for e in self.entries]
            body['skipped'] = self.skipped
            body['empty'] = self.is_empty
        return body

__all__ = [
    'AggregationResult', 'aggregate', 'aggregate_report', 'display_value', 'change_pair',
    'metadata_lines', 'headline', 'display_row', 'AuditLogState',
]

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from po_admin.constants.permissions import POStatus
from po_admin.utils.timestamps import parse_timestamp, isoformat_z
from po_admin.utils.validation import parse_status, require_fields, InvalidRecordError
from .vendor import Vendor


def _amount(value: Any) -> Decimal:
    # Decimal(str(..)) keeps 0.1 + 0.2 style float noise out of total comparisons
    try:
        return Decimal(str(value if value is not None else 0))
    except ArithmeticError:
        raise InvalidRecordError(f"Invalid amount {value!r}") from None


def _number(value: Decimal):
    return int(value) if value == value.to_integral_value() else float(value)


@dataclass(frozen=True)
class POItem:
    id: str
    name: str
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal
    unit: str = ''
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'POItem':
        # older payloads call the name field productName
        name = data.get('name') or data.get('productName')
        require_fields({'id': data.get('id'), 'name': name}, ['id', 'name'], 'POItem')
        return cls(
            id=str(data['id']),
            name=name,
            quantity=_amount(data.get('quantity')),
            unit_price=_amount(data.get('unitPrice')),
            total_price=_amount(data.get('totalPrice')),
            unit=data.get('unit') or '',
            description=data.get('description'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'quantity': _number(self.quantity),
            'unitPrice': _number(self.unit_price),
            'totalPrice': _number(self.total_price),
            'unit': self.unit,
        }


@dataclass(frozen=True)
class StatusHistoryEntry:
    status: POStatus
    changed_at: Optional[datetime] = None
    changed_by: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StatusHistoryEntry':
        return cls(
            status=parse_status(data.get('status')),
            changed_at=parse_timestamp(data.get('statusDate') or data.get('timestamp')),
            changed_by=data.get('updatedBy') or data.get('userName'),
            notes=data.get('description') or data.get('notes'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'statusDate': isoformat_z(self.changed_at),
            'updatedBy': self.changed_by,
            'notes': self.notes,
        }


@dataclass(frozen=True)
class PurchaseOrder:
    """A PO as delivered by the REST backend.

    The PO owns its items and status history; both are tuples so the history stays
    append-only from this side (a fresh fetch replaces the whole record).
    """
    id: str
    po_number: str
    vendor: Vendor
    status: POStatus
    created_by: str
    items: Tuple[POItem, ...] = ()
    status_history: Tuple[StatusHistoryEntry, ...] = ()
    total_amount: Decimal = Decimal('0')
    currency: str = 'THB'
    title: Optional[str] = None
    remarks: Optional[str] = None
    required_date: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    email_sent_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PurchaseOrder':
        require_fields(data, ['id', 'poNumber', 'vendor', 'createdBy'], 'PurchaseOrder')
        # two backend generations: {"status": "DRAFT"} and {"currentStatus": {"status": "draft", ...}}
        current = data.get('currentStatus')
        raw_status = current.get('status') if isinstance(current, dict) else data.get('status')
        if raw_status is None:
            raise InvalidRecordError('PurchaseOrder missing required fields: status')
        history = data.get('statusHistory') or []
        return cls(
            id=str(data['id']),
            po_number=str(data['poNumber']),
            vendor=Vendor.from_dict(data['vendor']),
            status=parse_status(raw_status),
            created_by=str(data['createdBy']),
            items=tuple(POItem.from_dict(i) for i in data.get('items') or []),
            status_history=tuple(StatusHistoryEntry.from_dict(h) for h in history),
            total_amount=_amount(data.get('totalAmount')),
            currency=data.get('currency') or 'THB',
            title=data.get('title'),
            remarks=data.get('remarks') or data.get('notes'),
            required_date=data.get('requiredDate'),
            created_at=parse_timestamp(data.get('createdAt')),
            updated_at=parse_timestamp(data.get('updatedAt')),
            email_sent_at=parse_timestamp(data.get('emailSentAt')),
            acknowledged_at=parse_timestamp(data.get('acknowledgedAt')),
            acknowledged_by=data.get('acknowledgedBy'),
        )

    @property
    def items_total(self) -> Decimal:
        return sum((i.total_price for i in self.items), Decimal('0'))

    def total_matches_items(self) -> bool:
        return self.total_amount == self.items_total

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'poNumber': self.po_number,
            'title': self.title,
            'status': self.status.value,
            'vendor': self.vendor.to_dict(),
            'items': [i.to_dict() for i in self.items],
            'totalAmount': _number(self.total_amount),
            'currency': self.currency,
            'remarks': self.remarks,
            'requiredDate': self.required_date,
            'statusHistory': [h.to_dict() for h in self.status_history],
            'createdBy': self.created_by,
            'createdAt': isoformat_z(self.created_at),
            'updatedAt': isoformat_z(self.updated_at),
            'emailSentAt': isoformat_z(self.email_sent_at),
            'acknowledgedAt': isoformat_z(self.acknowledged_at),
            'acknowledgedBy': self.acknowledged_by,
        }

__all__ = ['POItem', 'StatusHistoryEntry', 'PurchaseOrder']

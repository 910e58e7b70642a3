from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from po_admin.utils.validation import require_fields, InvalidRecordError


@dataclass(frozen=True)
class Vendor:
    id: str
    name: str
    email: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Vendor':
        if not isinstance(data, dict):
            raise InvalidRecordError('Vendor must be an object')
        require_fields(data, ['id', 'name'], 'Vendor')
        return cls(
            id=str(data['id']),
            name=data['name'],
            email=data.get('email'),
            contact_person=data.get('contactPerson'),
            phone=data.get('phone'),
            address=data.get('address'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'contactPerson': self.contact_person,
            'phone': self.phone,
            'address': self.address,
        }

__all__ = ["Vendor"]

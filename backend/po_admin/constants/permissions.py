"""Central enum-like definitions to avoid typos in role/permission/status strings.
Extend cautiously; never rename codes silently since JWT claims and the REST backend carry them verbatim.
"""
from __future__ import annotations
from enum import Enum
from typing import Dict, FrozenSet, List, Tuple

SERVICES = ['PO', 'FIN']

SERVICE_ACTIONS = {
    'PO': ['VIEW_ALL', 'VIEW_OWN', 'CREATE', 'EDIT', 'DELETE', 'APPROVE', 'SEND_EMAIL', 'ACKNOWLEDGE'],
    'FIN': ['VIEW'],
}


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()


class Role(str, Enum):
    ADMIN = 'Admin'
    MATERIAL_CONTROL = 'MaterialControl'
    APP_USER = 'AppUser'
    VENDOR = 'Vendor'


class Permission(str, Enum):
    VIEW_ALL_PO = 'PO.VIEW_ALL'
    VIEW_OWN_PO = 'PO.VIEW_OWN'
    CREATE_PO = 'PO.CREATE'
    EDIT_PO = 'PO.EDIT'
    DELETE_PO = 'PO.DELETE'
    APPROVE_PO = 'PO.APPROVE'
    SEND_PO_EMAIL = 'PO.SEND_EMAIL'
    ACKNOWLEDGE_PO = 'PO.ACKNOWLEDGE'
    VIEW_FINANCIAL_DATA = 'FIN.VIEW'


CapabilitySet = FrozenSet[Permission]


class POStatus(str, Enum):
    DRAFT = 'DRAFT'
    PENDING_APPROVAL = 'PENDING_APPROVAL'
    APPROVED = 'APPROVED'
    SENT_TO_VENDOR = 'SENT_TO_VENDOR'
    ACKNOWLEDGED = 'ACKNOWLEDGED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


# Linear progression used for ordinal comparison; CANCELLED sits outside it.
STATUS_PROGRESSION = (
    POStatus.DRAFT,
    POStatus.PENDING_APPROVAL,
    POStatus.APPROVED,
    POStatus.SENT_TO_VENDOR,
    POStatus.ACKNOWLEDGED,
    POStatus.COMPLETED,
)

TERMINAL_STATUSES = frozenset({POStatus.COMPLETED, POStatus.CANCELLED})

# Spellings still emitted by older backend builds
STATUS_ALIASES = {
    'PENDING': POStatus.PENDING_APPROVAL,
    'SENT': POStatus.SENT_TO_VENDOR,
}

ROLE_PRESETS: Dict[Role, List[Permission]] = {
    Role.ADMIN: list(Permission),
    # MaterialControl: runs day-to-day purchasing but cannot approve or delete
    Role.MATERIAL_CONTROL: [
        Permission.VIEW_ALL_PO, Permission.VIEW_OWN_PO,
        Permission.CREATE_PO, Permission.EDIT_PO,
        Permission.SEND_PO_EMAIL, Permission.ACKNOWLEDGE_PO,
        Permission.VIEW_FINANCIAL_DATA,
    ],
    Role.APP_USER: [Permission.VIEW_OWN_PO],
    Role.VENDOR: [Permission.VIEW_OWN_PO, Permission.ACKNOWLEDGE_PO],
}

# Every recognised role keeps at least this, whatever the explicit grants say
ROLE_MINIMUM: FrozenSet[Permission] = frozenset({Permission.VIEW_OWN_PO})

FINANCIAL_FIELDS = ('unitPrice', 'totalPrice', 'totalAmount')
# Hidden from a role whatever its grants
ROLE_HIDDEN_FIELDS: Dict[Role, Tuple[str, ...]] = {
    Role.VENDOR: ('createdBy',),
}
MASK = '***'


class AuditAction:
    CREATE = 'CREATE'
    UPDATE = 'UPDATE'
    STATUS_CHANGE = 'STATUS_CHANGE'
    EMAIL_SENT = 'EMAIL_SENT'
    CANCEL = 'CANCEL'
    ACKNOWLEDGE = 'ACKNOWLEDGE'

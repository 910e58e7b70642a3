from __future__ import annotations
"""Capability resolution for the PO console.

Every UI or route decision about what a user may see or do goes through ``resolve``
and the ``can_*`` accessors below. The accessors are plain membership tests: do not
add role-specific exceptions here, extend ROLE_PRESETS instead.

The backend remains the authority; this mirrors its rules for UX only.
"""
import logging
from functools import lru_cache
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union

from flask_jwt_extended import get_jwt, get_jwt_identity

from po_admin.constants.permissions import (
    CapabilitySet, FINANCIAL_FIELDS, MASK, Permission, ROLE_HIDDEN_FIELDS, ROLE_MINIMUM, ROLE_PRESETS, Role,
)

logger = logging.getLogger(__name__)

EMPTY_CAPABILITIES: CapabilitySet = frozenset()


def parse_role(role: Union[Role, str, None]) -> Optional[Role]:
    if isinstance(role, Role):
        return role
    if not isinstance(role, str):
        return None
    try:
        return Role(role.strip())
    except ValueError:
        return None


def _parse_grants(grants: Optional[Iterable[Union[Permission, str]]]) -> FrozenSet[Permission]:
    if not grants:
        return frozenset()
    out = set()
    for g in grants:
        try:
            out.add(Permission(g))
        except ValueError:
            logger.debug('Ignoring unknown permission grant %r', g)
    return frozenset(out)


@lru_cache(maxsize=256)
def _resolve_cached(role: Role, grants: FrozenSet[Permission]) -> CapabilitySet:
    return frozenset(ROLE_PRESETS.get(role, ())) | ROLE_MINIMUM | grants


def resolve(role: Union[Role, str, None], explicit_grants: Optional[Iterable[Union[Permission, str]]] = None) -> CapabilitySet:
    """Return the capability set for a role plus any explicit grants.

    Role defaults are the floor; explicit grants can only add to them. An unrecognised
    role resolves to the empty set (fail-closed), grants notwithstanding.
    """
    parsed = parse_role(role)
    if parsed is None:
        logger.info('Unrecognised role %r resolved to empty capability set', role)
        return EMPTY_CAPABILITIES
    return _resolve_cached(parsed, _parse_grants(explicit_grants))


# --- Accessors: each is a direct membership test ---

def can_view_financial_data(caps: CapabilitySet) -> bool:
    return Permission.VIEW_FINANCIAL_DATA in caps


def can_edit(caps: CapabilitySet) -> bool:
    return Permission.EDIT_PO in caps


def can_send_email(caps: CapabilitySet) -> bool:
    return Permission.SEND_PO_EMAIL in caps


def can_acknowledge(caps: CapabilitySet) -> bool:
    return Permission.ACKNOWLEDGE_PO in caps


def can_delete(caps: CapabilitySet) -> bool:
    return Permission.DELETE_PO in caps


def can_approve(caps: CapabilitySet) -> bool:
    return Permission.APPROVE_PO in caps


def can_create(caps: CapabilitySet) -> bool:
    return Permission.CREATE_PO in caps


def can_view_po(caps: CapabilitySet) -> bool:
    return Permission.VIEW_ALL_PO in caps or Permission.VIEW_OWN_PO in caps


def capability_flags(caps: CapabilitySet) -> Dict[str, bool]:
    return {
        'canView': can_view_po(caps),
        'canViewAll': Permission.VIEW_ALL_PO in caps,
        'canCreate': can_create(caps),
        'canEdit': can_edit(caps),
        'canDelete': can_delete(caps),
        'canApprove': can_approve(caps),
        'canSendEmail': can_send_email(caps),
        'canAcknowledge': can_acknowledge(caps),
        'canViewFinancialData': can_view_financial_data(caps),
    }


def permission_codes(caps: CapabilitySet) -> List[str]:
    return sorted(p.value for p in caps)


# --- Field masking ---

def masked_fields(caps: CapabilitySet, role: Union[Role, str, None] = None) -> List[str]:
    """Financial fields unless the caller holds FIN.VIEW, plus whatever the role always hides."""
    hidden = [] if can_view_financial_data(caps) else list(FINANCIAL_FIELDS)
    return hidden + list(ROLE_HIDDEN_FIELDS.get(parse_role(role), ()))


def mask_po_payload(payload: Dict[str, Any], caps: CapabilitySet, role: Union[Role, str, None] = None) -> Dict[str, Any]:
    """Return a copy of a PO dict with masked fields replaced by the mask marker."""
    hidden = masked_fields(caps, role)
    if not hidden:
        return payload
    out = {k: (MASK if k in hidden else v) for k, v in payload.items()}
    if isinstance(payload.get('items'), list):
        out['items'] = [
            {k: (MASK if k in hidden else v) for k, v in item.items()} if isinstance(item, dict) else item
            for item in payload['items']
        ]
    return out


# --- Record visibility ---

def can_view_record(po, caps: CapabilitySet, user_id: Optional[str], vendor_id: Optional[str] = None) -> bool:
    """ViewAllPO sees every PO; ViewOwnPO sees POs the user created or that address their vendor."""
    if Permission.VIEW_ALL_PO in caps:
        return True
    if Permission.VIEW_OWN_PO not in caps:
        return False
    if user_id is not None and po.created_by == str(user_id):
        return True
    return vendor_id is not None and po.vendor.id == str(vendor_id)


# --- Session helpers (JWT claims supplied by the auth provider) ---

def current_capabilities() -> CapabilitySet:
    claims = get_jwt()
    return resolve(claims.get('role'), claims.get('perms', []))


def current_role() -> Optional[Role]:
    return parse_role(get_jwt().get('role'))


def has_capabilities(*perms: Permission, match=all) -> bool:
    caps = current_capabilities()
    return match(p in caps for p in perms)


def current_user_id() -> Optional[str]:
    ident = get_jwt_identity()
    return str(ident) if ident is not None else None


def current_vendor_id() -> Optional[str]:
    vendor_id = get_jwt().get('vendor_id')
    return str(vendor_id) if vendor_id is not None else None


def assert_can_view_record(po) -> None:
    caps = current_capabilities()
    if not can_view_record(po, caps, current_user_id(), current_vendor_id()):
        from flask import abort
        abort(403, description='Record ownership required')

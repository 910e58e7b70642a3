from __future__ import annotations
"""Route-level access and menu visibility per role.

Route patterns use ``[id]`` for a single dynamic path segment, matching how the
browser app names its pages.
"""
import re
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from po_admin.constants.permissions import Role
from po_admin.services.policy import parse_role

ALL_ROLES = frozenset(Role)
UNAUTHORIZED_ROUTE = '/auth/unauthorized'

ROUTE_ROLES: Dict[str, FrozenSet[Role]] = {
    '/': ALL_ROLES,
    '/po/list': frozenset({Role.APP_USER, Role.ADMIN}),
    '/po/material': frozenset({Role.MATERIAL_CONTROL, Role.ADMIN}),
    '/po/[id]/edit': frozenset({Role.MATERIAL_CONTROL, Role.ADMIN}),
    '/po/[id]/send-email': frozenset({Role.MATERIAL_CONTROL, Role.ADMIN}),
    '/po/[id]/acknowledge-status': frozenset({Role.MATERIAL_CONTROL, Role.ADMIN}),
    '/components-showcase': frozenset({Role.ADMIN}),
    '/vendor/portal': frozenset({Role.VENDOR, Role.ADMIN}),
}

DEFAULT_ROUTES: Dict[Role, str] = {
    Role.APP_USER: '/po/list',
    Role.MATERIAL_CONTROL: '/po/material',
    Role.ADMIN: '/',
    Role.VENDOR: '/vendor/portal',
}


def _compile(pattern: str):
    return re.compile('^' + re.escape(pattern).replace(re.escape('[id]'), '[^/]+') + '/?$')

_DYNAMIC_ROUTES = [(_compile(p), roles) for p, roles in ROUTE_ROLES.items() if '[id]' in p]


def can_access_route(role: Union[Role, str, None], route: str) -> bool:
    parsed = parse_role(role)
    if parsed is None:
        return False
    if route in ROUTE_ROLES:
        return parsed in ROUTE_ROLES[route]
    for regex, roles in _DYNAMIC_ROUTES:
        if regex.match(route):
            return parsed in roles
    # unlisted routes are Admin-only
    return parsed == Role.ADMIN


def default_route_for_role(role: Union[Role, str, None]) -> str:
    parsed = parse_role(role)
    return DEFAULT_ROUTES.get(parsed, UNAUTHORIZED_ROUTE) if parsed else UNAUTHORIZED_ROUTE


def redirect_route(role: Union[Role, str, None], current_route: str) -> Optional[str]:
    """None when the current route is fine, otherwise where to send the user."""
    if can_access_route(role, current_route):
        return None
    return default_route_for_role(role)


@dataclass(frozen=True)
class MenuItem:
    id: str
    title: str
    path: str
    roles: FrozenSet[Role]
    description: str = ''
    children: Tuple['MenuItem', ...] = field(default_factory=tuple)

    def to_json(self) -> dict:
        body = {'id': self.id, 'title': self.title, 'path': self.path, 'description': self.description}
        if self.children:
            body['children'] = [c.to_json() for c in self.children]
        return body


def _item(id, title, path, roles, description='', children=()):
    return MenuItem(id, title, path, frozenset(roles), description, tuple(children))

_STAFF = (Role.ADMIN, Role.MATERIAL_CONTROL, Role.APP_USER)
_PURCHASING = (Role.ADMIN, Role.MATERIAL_CONTROL)

MENU: Tuple[MenuItem, ...] = (
    _item('home', 'Home', '/', ALL_ROLES, 'System home'),
    _item('po-management', 'Purchase Orders', '/po', _STAFF, 'Manage purchase orders', [
        _item('po-list', 'PO List', '/po/list', _STAFF, 'Browse all purchase orders'),
        _item('po-create', 'New PO', '/po/create', _PURCHASING, 'Create a purchase order'),
    ]),
    _item('email-management', 'Vendor Email', '/email', _PURCHASING, 'Send POs to vendors', [
        _item('email-send', 'Send PO Email', '/po/[id]/send-email', _PURCHASING, 'Email a PO to its vendor'),
        _item('email-tracking', 'Vendor Tracking', '/po/[id]/acknowledge-status', _PURCHASING, 'Follow vendor acknowledgement'),
    ]),
    _item('reports', 'Reports & Status', '/reports', _STAFF, 'Reports and status views', [
        _item('status-timeline', 'Status Timeline', '/reports/timeline', _STAFF, 'PO status changes'),
        _item('audit-log', 'Audit Log', '/reports/audit-log', _PURCHASING, 'Change history'),
    ]),
    _item('vendor-portal', 'Vendor Portal', '/vendor', (Role.VENDOR,), 'Portal for vendors', [
        _item('vendor-po', 'Received POs', '/vendor/po', (Role.VENDOR,), 'POs sent to you'),
        _item('vendor-acknowledge', 'Acknowledge PO', '/vendor/acknowledge', (Role.VENDOR,), 'Confirm receipt of a PO'),
    ]),
    _item('admin', 'Administration', '/admin', (Role.ADMIN,), 'Admin only', [
        _item('user-management', 'Users', '/admin/users', (Role.ADMIN,), 'Manage user accounts'),
        _item('system-settings', 'Settings', '/admin/settings', (Role.ADMIN,), 'System settings'),
    ]),
)


def _filter_menu(items: Tuple[MenuItem, ...], role: Role) -> List[MenuItem]:
    out = []
    for item in items:
        if role not in item.roles:
            continue
        if item.children:
            children = _filter_menu(item.children, role)
            # parent with nothing left to show is dropped
            if not children:
                continue
            item = replace(item, children=tuple(children))
        out.append(item)
    return out


def menu_for_role(role: Union[Role, str, None], items: Tuple[MenuItem, ...] = MENU) -> List[MenuItem]:
    parsed = parse_role(role)
    if parsed is None:
        return []
    return _filter_menu(items, parsed)


def _find_path(items, target: str, trail: List[MenuItem]) -> Optional[List[MenuItem]]:
    for item in items:
        path = trail + [item]
        if item.path == target:
            return path
        if item.children:
            found = _find_path(item.children, target, path)
            if found:
                return found
    return None


def breadcrumb(path: str, role: Union[Role, str, None]) -> List[MenuItem]:
    return _find_path(menu_for_role(role), path, []) or []


__all__ = [
    'ROUTE_ROLES', 'DEFAULT_ROUTES', 'UNAUTHORIZED_ROUTE', 'MenuItem', 'MENU', 'can_access_route',
    'default_route_for_role', 'redirect_route', 'menu_for_role', 'breadcrumb',
]

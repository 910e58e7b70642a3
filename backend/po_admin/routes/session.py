from __future__ import annotations
from flask import Blueprint, request, abort
from flask_jwt_extended import jwt_required, get_jwt
from po_admin.services.policy import (
    capability_flags, current_capabilities, current_user_id, masked_fields, parse_role, permission_codes,
)
from po_admin.services.access import (
    breadcrumb, can_access_route, default_route_for_role, menu_for_role, redirect_route,
)

session_bp = Blueprint('session', __name__)


def _role():
    return get_jwt().get('role')


@session_bp.get('/capabilities')
@jwt_required()
def get_capabilities():
    caps = current_capabilities()
    role = parse_role(_role())
    return {
        'user_id': current_user_id(),
        'role': role.value if role else None,
        'permissions': permission_codes(caps),
        'flags': capability_flags(caps),
        'masked_fields': masked_fields(caps, role),
        'default_route': default_route_for_role(role),
    }


@session_bp.get('/menu')
@jwt_required()
def get_menu():
    role = _role()
    data = {'data': [item.to_json() for item in menu_for_role(role)]}
    path = request.args.get('path')
    if path:
        data['breadcrumb'] = [{'id': i.id, 'title': i.title, 'path': i.path} for i in breadcrumb(path, role)]
    return data


@session_bp.get('/route-access')
@jwt_required()
def get_route_access():
    path = request.args.get('path')
    if not path:
        abort(400, description='path required')
    role = _role()
    return {
        'path': path,
        'allowed': can_access_route(role, path),
        'redirect': redirect_route(role, path),
    }

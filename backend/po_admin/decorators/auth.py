from functools import wraps
from flask import abort, current_app, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from po_admin.constants.permissions import Permission
from po_admin.services.policy import has_capabilities


def require_capabilities(*perms: Permission, match=all):
    """Verify the bearer token, then 403 unless ``match`` (all/any) holds over ``perms``."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if not has_capabilities(*perms, match=match):
                current_app.logger.info('Denied %s %s for user %s', request.method, request.path, get_jwt_identity())
                abort(403, description='Missing permission')
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_any_capability(*perms: Permission):
    return require_capabilities(*perms, match=any)

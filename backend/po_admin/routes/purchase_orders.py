from __future__ import annotations
from flask import Blueprint, request, abort, current_app
from po_admin import get_client, get_transitions
from po_admin.config.settings import normalize_pagination
from po_admin.constants.permissions import Permission, POStatus
from po_admin.decorators.auth import require_any_capability, require_capabilities
from po_admin.models.purchase_order import PurchaseOrder
from po_admin.services.audit import AuditLogState
from po_admin.services.po_client import UpstreamError, UpstreamNotFound
from po_admin.services.policy import (
    assert_can_view_record, can_view_record, capability_flags, current_capabilities,
    current_role, current_user_id, current_vendor_id, mask_po_payload, masked_fields,
)
from po_admin.utils.fsm import TransitionValidator
from po_admin.utils.validation import validate_status

po_bp = Blueprint('po', __name__)

VIEW_PERMS = (Permission.VIEW_ALL_PO, Permission.VIEW_OWN_PO)


def _bearer():
    auth = request.headers.get('Authorization', '')
    scheme, _, token = auth.partition(' ')
    return token if scheme.lower() == 'bearer' and token else None


def _load_po(po_id: str) -> PurchaseOrder:
    try:
        raw = get_client().get_purchase_order(po_id, token=_bearer())
    except UpstreamNotFound:
        abort(404)
    po = PurchaseOrder.from_dict(raw)
    assert_can_view_record(po)
    return po


def _po_detail(po: PurchaseOrder, caps):
    model = get_transitions()
    return {
        'data': mask_po_payload(po.to_dict(), caps, current_role()),
        'capabilities': capability_flags(caps),
        'allowed_transitions': [s.value for s in model.allowed_targets(po.status, caps)],
        'timeline': [step.to_json() for step in model.timeline(po.status, po.status_history)],
        'total_consistent': po.total_matches_items(),
    }


@po_bp.get('/purchase-orders')
@require_any_capability(*VIEW_PERMS)
def list_purchase_orders():
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    status = request.args.get('status')
    params = {
        'limit': limit,
        'offset': offset,
        'status': validate_status(status).value if status else None,
        'search': request.args.get('search') or None,
        'sort': request.args.get('sort') or None,
    }
    body = get_client().list_purchase_orders(params, token=_bearer()) or {}
    rows = body.get('items') or []
    caps = current_capabilities()
    user_id, vendor_id = current_user_id(), current_vendor_id()
    pos = [PurchaseOrder.from_dict(r) for r in rows]
    visible = [p for p in pos if can_view_record(p, caps, user_id, vendor_id)]
    # upstream total is passed through; returned counts what this caller may see
    total = body.get('total', len(rows))
    role = current_role()
    data = [mask_po_payload(p.to_dict(), caps, role) for p in visible]
    return {
        'data': data,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(data),
        }
    }


@po_bp.get('/purchase-orders/<po_id>')
@require_any_capability(*VIEW_PERMS)
def get_purchase_order(po_id: str):
    po = _load_po(po_id)
    return _po_detail(po, current_capabilities())


@po_bp.get('/purchase-orders/<po_id>/audit-log')
@require_any_capability(*VIEW_PERMS)
def get_audit_log(po_id: str):
    _load_po(po_id)
    caps = current_capabilities()
    try:
        raw = get_client().get_audit_log(po_id, token=_bearer())
    except UpstreamNotFound:
        abort(404)
    except UpstreamError as e:
        return AuditLogState.error(f'Failed to load audit log: {e.message}').to_json(), 502
    return AuditLogState.ready(raw).to_json(masked_fields(caps, current_role()))


def _dispatch(po_id: str, target: POStatus, send):
    """Pre-validate target against the FSM, dispatch upstream, then re-sync from the backend."""
    caps = current_capabilities()
    po = _load_po(po_id)
    model = get_transitions()
    decision = model.request_transition(po.status, target, caps)
    if not decision:
        current_app.logger.info('Denied PO %s %s -> %s: %s', po_id, po.status.value, target.value, decision.reason.value)
        TransitionValidator(model).raise_for(decision, po.status, target)
    send(_bearer())
    return _po_detail(_load_po(po_id), caps)


@po_bp.post('/purchase-orders/<po_id>/transitions')
@require_any_capability(*VIEW_PERMS)
def transition_purchase_order(po_id: str):
    data = request.get_json(silent=True) or {}
    if not data.get('to'):
        abort(400, description='to required')
    target = validate_status(data['to'])
    return _dispatch(po_id, target, lambda token: get_client().transition_po(po_id, target.value, token=token))


@po_bp.post('/purchase-orders/<po_id>/send-email')
@require_capabilities(Permission.SEND_PO_EMAIL)
def send_purchase_order_email(po_id: str):
    data = request.get_json(silent=True) or {}
    recipients = data.get('recipientEmails')
    if recipients is not None and (not isinstance(recipients, list) or not all(isinstance(r, str) and '@' in r for r in recipients)):
        abort(400, description='recipientEmails must be a list of email addresses')
    payload = {
        'recipientEmails': recipients or [],
        'customMessage': data.get('customMessage'),
        'includeAttachments': bool(data.get('includeAttachments', True)),
    }

    def send(token):
        return get_client().send_po_email(po_id, payload, token=token)

    caps = current_capabilities()
    po = _load_po(po_id)
    if po.status == POStatus.SENT_TO_VENDOR:
        # resend: no status change
        send(_bearer())
        return _po_detail(_load_po(po_id), caps)
    return _dispatch(po_id, POStatus.SENT_TO_VENDOR, send)


@po_bp.post('/purchase-orders/<po_id>/acknowledge')
@require_capabilities(Permission.ACKNOWLEDGE_PO)
def acknowledge_purchase_order(po_id: str):
    return _dispatch(po_id, POStatus.ACKNOWLEDGED, lambda token: get_client().acknowledge_po(po_id, token=token))

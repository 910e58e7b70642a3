import pytest
from po_admin import create_app
from po_admin.constants.permissions import MASK
from po_admin.services.po_client import UpstreamError
from tests.test_lifecycle_helpers import assert_transition, exercise_purchase_order_lifecycle, jwt_headers
from tests.test_utils_seed import FakePOBackend, TEST_CONFIG, make_audit, make_po


@pytest.fixture()
def headers(app_instance):
    def build(role, user_id='u1', perms=(), vendor_id=None):
        return jwt_headers(app_instance, user_id, role, perms, vendor_id)
    return build


def test_list_masks_and_filters_for_app_user(client, backend, headers):
    backend.seed(make_po('po-1', created_by='u1'), make_po('po-2', created_by='u2'), make_po('po-3', created_by='u1'))
    resp = client.get('/po/purchase-orders', headers=headers('AppUser'))
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert [p['id'] for p in body['data']] == ['po-1', 'po-3']
    # upstream total is passed through unchanged
    assert body['pagination'] == {'total': 3, 'limit': 50, 'offset': 0, 'returned': 2}
    assert body['data'][0]['totalAmount'] == MASK
    assert body['data'][0]['items'][0]['unitPrice'] == MASK


def test_list_full_view_for_material_control(client, backend, headers):
    backend.seed(make_po('po-1', created_by='u1'), make_po('po-2', created_by='u2'))
    body = client.get('/po/purchase-orders?status=pending&limit=10', headers=headers('MaterialControl', 'mc')).get_json()
    assert len(body['data']) == 2
    assert body['data'][0]['totalAmount'] == 300
    assert backend.calls[-1] == ('list', {'limit': 10, 'offset': 0, 'status': 'PENDING_APPROVAL', 'search': None, 'sort': None})


def test_list_rejects_bad_query(client, headers):
    assert client.get('/po/purchase-orders?status=ON_HOLD', headers=headers('Admin')).status_code == 400
    assert client.get('/po/purchase-orders?limit=ten', headers=headers('Admin')).status_code == 400


def test_list_requires_known_role(client, headers):
    resp = client.get('/po/purchase-orders', headers=headers('Intern', perms=['PO.VIEW_ALL']))
    assert resp.status_code == 403
    assert resp.get_json()['error']['detail'] == 'Missing permission'


def test_list_requires_token(client):
    assert client.get('/po/purchase-orders').status_code == 401


def test_bearer_token_passed_to_backend(client, backend, headers):
    backend.seed(make_po('po-1'))
    h = headers('Admin')
    client.get('/po/purchase-orders/po-1', headers=h)
    assert backend.tokens[-1] == h['Authorization'].split(' ', 1)[1]


def test_detail_payload(client, backend, headers):
    backend.seed(make_po('po-1', status='PENDING_APPROVAL', total=250))
    body = client.get('/po/purchase-orders/po-1', headers=headers('MaterialControl', 'mc')).get_json()
    assert body['data']['status'] == 'PENDING_APPROVAL'
    assert body['allowed_transitions'] == ['CANCELLED']
    assert body['capabilities']['canApprove'] is False
    assert body['total_consistent'] is False
    assert [s['marker'] for s in body['timeline'][:3]] == ['completed', 'current', 'upcoming']


def test_detail_not_found_and_not_owned(client, backend, headers):
    backend.seed(make_po('po-1', created_by='u2'))
    assert client.get('/po/purchase-orders/missing', headers=headers('Admin')).status_code == 404
    resp = client.get('/po/purchase-orders/po-1', headers=headers('AppUser', 'u1'))
    assert resp.status_code == 403
    assert resp.get_json()['error']['detail'] == 'Record ownership required'


def test_full_lifecycle_as_admin(client, backend, headers):
    backend.seed(make_po('po-1'))
    resp = exercise_purchase_order_lifecycle(client, 'po-1', headers('Admin'))
    body = resp.get_json()
    assert body['allowed_transitions'] == []
    assert all(s['marker'] == 'completed' for s in body['timeline'][:-1])
    assert body['timeline'][-1]['marker'] == 'current'
    assert [c[0] for c in backend.calls] == ['status', 'status', 'send_email', 'acknowledge', 'status']


def test_transition_missing_capability_is_403(client, backend, headers):
    backend.seed(make_po('po-1', status='PENDING_APPROVAL'))
    resp = assert_transition(client, 'po-1', 'APPROVED', headers('MaterialControl', 'mc'), 403)
    assert 'PO.APPROVE' in resp.get_json()['error']['detail']
    assert backend.calls == []


def test_transition_not_reachable_is_400(client, backend, headers):
    backend.seed(make_po('po-1'))
    resp = assert_transition(client, 'po-1', 'COMPLETED', headers('Admin'), 400)
    assert 'NOT_REACHABLE' in resp.get_json()['error']['detail']


def test_transition_from_terminal_is_400(client, backend, headers):
    backend.seed(make_po('po-1', status='CANCELLED'))
    resp = assert_transition(client, 'po-1', 'DRAFT', headers('Admin'), 400)
    assert 'ALREADY_TERMINAL' in resp.get_json()['error']['detail']


def test_transition_body_validation(client, backend, headers):
    backend.seed(make_po('po-1'))
    url = '/po/purchase-orders/po-1/transitions'
    assert client.post(url, json={}, headers=headers('Admin')).status_code == 400
    assert client.post(url, json={'to': 'SHIPPED'}, headers=headers('Admin')).status_code == 400


def test_owner_can_cancel_by_default(client, backend, headers):
    backend.seed(make_po('po-1', created_by='u1'))
    assert_transition(client, 'po-1', 'CANCELLED', headers('AppUser', 'u1'), 200)


def test_cancel_gate_from_config():
    fake = FakePOBackend()
    fake.seed(make_po('po-1', created_by='u1'))
    app = create_app(config=dict(TEST_CONFIG, PO_CANCEL_CAPABILITY='PO.EDIT'), client=fake)
    client = app.test_client()
    resp = client.post('/po/purchase-orders/po-1/transitions', json={'to': 'CANCELLED'},
                       headers=jwt_headers(app, 'u1', 'AppUser'))
    assert resp.status_code == 403
    assert fake.calls == []


def test_send_email_moves_approved_to_sent(client, backend, headers):
    backend.seed(make_po('po-1', status='APPROVED'))
    resp = client.post('/po/purchase-orders/po-1/send-email', json={'recipientEmails': ['buyer@vendor.example.com'], 'customMessage': 'Hi'},
                       headers=headers('MaterialControl', 'mc'))
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['data']['status'] == 'SENT_TO_VENDOR'
    _, po_id, payload = backend.calls[-1]
    assert payload == {'recipientEmails': ['buyer@vendor.example.com'], 'customMessage': 'Hi', 'includeAttachments': True}


def test_resend_keeps_status(client, backend, headers):
    backend.seed(make_po('po-1', status='SENT_TO_VENDOR'))
    resp = client.post('/po/purchase-orders/po-1/send-email', json={}, headers=headers('MaterialControl', 'mc'))
    assert resp.status_code == 200
    assert resp.get_json()['data']['status'] == 'SENT_TO_VENDOR'
    assert [c[0] for c in backend.calls] == ['send_email']


def test_send_email_denials(client, backend, headers):
    backend.seed(make_po('po-1', status='APPROVED', created_by='u1'), make_po('po-2', status='DRAFT'))
    url = '/po/purchase-orders/{}/send-email'
    assert client.post(url.format('po-1'), json={}, headers=headers('AppUser', 'u1')).status_code == 403
    assert client.post(url.format('po-2'), json={}, headers=headers('Admin')).status_code == 400
    resp = client.post(url.format('po-1'), json={'recipientEmails': 'not-a-list'}, headers=headers('Admin'))
    assert resp.status_code == 400
    assert backend.calls == []


def test_vendor_acknowledges_own_po(client, backend, headers):
    backend.seed(make_po('po-1', status='SENT_TO_VENDOR', created_by='mc', vendor_id='v1'))
    resp = client.post('/po/purchase-orders/po-1/acknowledge', headers=headers('Vendor', 'vendor-user', vendor_id='v1'))
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['data']['status'] == 'ACKNOWLEDGED'
    resp = client.post('/po/purchase-orders/po-1/acknowledge', headers=headers('Vendor', 'other', vendor_id='v2'))
    assert resp.status_code == 403


def test_vendor_never_sees_creator(client, backend, headers):
    backend.seed(make_po('po-1', status='SENT_TO_VENDOR', created_by='mc', vendor_id='v1'))
    h = headers('Vendor', 'vendor-user', vendor_id='v1')
    detail = client.get('/po/purchase-orders/po-1', headers=h).get_json()
    assert detail['data']['createdBy'] == MASK
    assert detail['data']['totalAmount'] == MASK
    listed = client.get('/po/purchase-orders', headers=h).get_json()
    assert [p['createdBy'] for p in listed['data']] == [MASK]
    admin = client.get('/po/purchase-orders/po-1', headers=headers('Admin')).get_json()
    assert admin['data']['createdBy'] == 'mc'


def test_upstream_rejection_mapped(client, backend, headers, monkeypatch):
    backend.seed(make_po('po-1'))

    def reject(po_id, status, token=None):
        raise UpstreamError(409, 'PO was modified')
    monkeypatch.setattr(backend, 'transition_po', reject)
    resp = client.post('/po/purchase-orders/po-1/transitions', json={'to': 'PENDING_APPROVAL'}, headers=headers('Admin'))
    assert resp.status_code == 409
    assert resp.get_json()['error'] == {'status': 409, 'title': 'Upstream Rejected', 'detail': 'PO was modified'}


def test_malformed_upstream_record_is_502(client, backend, headers):
    backend.seed({'id': 'po-1', 'poNumber': 'PO-1'})
    resp = client.get('/po/purchase-orders/po-1', headers=headers('Admin'))
    assert resp.status_code == 502
    assert resp.get_json()['error']['title'] == 'Bad Gateway'


def test_audit_log_ready_and_masked(client, backend, headers):
    backend.seed(make_po('po-1', created_by='u1'))
    backend.seed_audit('po-1', [
        make_audit('a2', '2024-01-02T00:00:00Z', fieldName='totalAmount', oldValue=300, newValue=350),
        make_audit('a1', '2024-01-01T00:00:00Z', action='CREATE', description='PO created'),
        {'id': 'broken', 'action': 'UPDATE'},
    ])
    body = client.get('/po/purchase-orders/po-1/audit-log', headers=headers('AppUser', 'u1')).get_json()
    assert body['state'] == 'ready'
    assert [e['id'] for e in body['entries']] == ['a1', 'a2']
    assert body['skipped'] == 1
    assert body['entries'][1]['change'] == {'from': MASK, 'to': MASK}
    admin_body = client.get('/po/purchase-orders/po-1/audit-log', headers=headers('Admin')).get_json()
    assert admin_body['entries'][1]['change'] == {'from': 300, 'to': 350}


def test_audit_log_empty(client, backend, headers):
    backend.seed(make_po('po-1'))
    body = client.get('/po/purchase-orders/po-1/audit-log', headers=headers('Admin')).get_json()
    assert body == {'state': 'ready', 'entries': [], 'skipped': 0, 'empty': True}


def test_audit_log_error_state(client, backend, headers):
    backend.seed(make_po('po-1'))
    backend.audit_error = UpstreamError(503, 'maintenance')
    resp = client.get('/po/purchase-orders/po-1/audit-log', headers=headers('Admin'))
    assert resp.status_code == 502
    assert resp.get_json() == {'state': 'error', 'message': 'Failed to load audit log: maintenance'}

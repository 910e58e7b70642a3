from po_admin.openapi import build_openapi_spec
from po_admin.utils.fsm import PO_TRANSITIONS, StatusTransitionModel
from po_admin.constants.permissions import Permission


def test_openapi_spec_available(client):
    resp = client.get('/openapi.json')
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['openapi'].startswith('3.')
    assert '/po/purchase-orders/{po_id}/transitions' in body['paths']
    assert '/session/capabilities' in body['paths']


def test_docs_page(client):
    resp = client.get('/docs')
    assert resp.status_code == 200
    assert b'Redoc' in resp.data or b'redoc' in resp.data


def test_transitions_documented_from_model(client):
    spec = client.get('/openapi.json').get_json()
    po_schema = spec['components']['schemas']['PurchaseOrder']
    assert po_schema['x-transitions'] == PO_TRANSITIONS.as_graph()
    assert po_schema['x-transition-capabilities']['APPROVED'] == 'PO.APPROVE'
    assert po_schema['x-transition-capabilities']['CANCELLED'] is None


def test_cancel_gate_reflected():
    spec = build_openapi_spec(StatusTransitionModel(cancel_capability=Permission.EDIT_PO))
    assert spec['components']['schemas']['PurchaseOrder']['x-transition-capabilities']['CANCELLED'] == 'PO.EDIT'


def test_operation_ids_unique_and_permissions_listed():
    spec = build_openapi_spec()
    ops = [op for path in spec['paths'].values() for op in path.values()]
    ids = [op['operationId'] for op in ops]
    assert len(ids) == len(set(ids))
    send = spec['paths']['/po/purchase-orders/{po_id}/send-email']['post']
    assert send['x-required-permissions'] == ['PO.SEND_EMAIL']
    assert {t['name'] for t in spec['tags']} == {'Po', 'Session'}


def test_generate_spec_script(tmp_path, capsys):
    from scripts.generate_spec import main
    out = tmp_path / 'spec' / 'openapi.json'
    assert main(['--out', str(out), '--cancel-capability', 'PO.EDIT']) == 0
    import json
    spec = json.loads(out.read_text())
    assert spec['components']['schemas']['PurchaseOrder']['x-transition-capabilities']['CANCELLED'] == 'PO.EDIT'
    assert main(['--cancel-capability', 'PO.NOPE']) == 3
    assert 'PO.NOPE' in capsys.readouterr().err

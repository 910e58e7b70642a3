import os, sys, pytest
# Ensure backend directory is on path so 'po_admin' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from po_admin import create_app
from tests.test_utils_seed import FakePOBackend, TEST_CONFIG


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    app = create_app(config=TEST_CONFIG, client=FakePOBackend())
    yield app


@pytest.fixture()
def backend(app_instance):
    fake = app_instance.extensions['po_client']
    fake.reset()
    return fake


@pytest.fixture()
def client(app_instance, backend):
    return app_instance.test_client()

import os
import sys
import pytest

# Ensure the backend root (containing the `countryquest` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from countryquest import create_app, socketio
from countryquest.catalog import Catalog, Entity
from countryquest.services.games.coordinator import GameCoordinator
from countryquest.transport import Broadcaster


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = '*'
    CLUE_DURATION_SEC = 15
    CLUE_COUNT = 8
    MIN_ENABLED_CLUES = 1
    SESSION_RETENTION_SEC = 1800
    SWEEP_INTERVAL_SEC = 300
    CATALOG_PATH = None


class RecordingBroadcaster(Broadcaster):
    """Keeps every outbound message so tests can assert on them."""

    def __init__(self):
        self.sent = []  # (target, event, payload); target is 'group:<id>' or a sid
        self.groups = {}

    def broadcast(self, session_id, event, payload):
        self.sent.append((f'group:{session_id}', event, payload))

    def send_to(self, sid, event, payload):
        self.sent.append((sid, event, payload))

    def add_to_group(self, sid, session_id):
        self.groups.setdefault(session_id, set()).add(sid)

    def remove_from_group(self, sid, session_id):
        self.groups.get(session_id, set()).discard(sid)

    def events(self, name, target=None):
        return [p for t, e, p in self.sent if e == name and (target is None or t == target)]

    def clear(self):
        self.sent.clear()


def make_entity(name, region='Europe', iso='XX'):
    return Entity(
        name=name, cities=('Capital City',), region=region, population='1 million',
        currency='Coin', language='Tongue', fact='A fact.', iso_code=iso,
        main_export='Widgets', flag='🏳',
    )


@pytest.fixture()
def catalog():
    return Catalog([
        make_entity('France', 'Europe', 'FR'),
        make_entity('São Paulo', 'Americas', 'SP'),
        make_entity('Japan', 'Asia', 'JP'),
    ])


@pytest.fixture()
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture()
def coordinator(catalog, broadcaster):
    return GameCoordinator(catalog=catalog, broadcaster=broadcaster)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application
        application.extensions['countryquest'].registry.clear()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _make():
        c = socketio.test_client(flask_app, namespace='/ws')
        clients.append(c)
        return c

    yield _make
    for c in clients:
        if c.is_connected('/ws'):
            c.disconnect(namespace='/ws')

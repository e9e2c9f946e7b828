import os
import sys
import pytest

# Ensure the backend root (containing the `color_namer` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from color_namer import create_app, db, socketio
from color_namer.services.games.clues import WordListClueValidator
from color_namer.services.games.engine import GameEngine
from color_namer.services.games.stores import MemoryStore, MemoryUpdateLog


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    GAME_STORE = 'sql'
    STORE_RETRY_BASE_MS = 0


class RecordingTransport:
    """Collects everything the engine would put on the wire."""

    def __init__(self):
        self.broadcasts = []
        self.sent = []

    def broadcast(self, session_id, message):
        self.broadcasts.append((session_id, message))

    def send(self, connection_id, message):
        self.sent.append((connection_id, message))

    def last_update(self, session_id):
        for sid, message in reversed(self.broadcasts):
            if sid == session_id and message['type'] == 'session_update':
                return message
        return None


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def engine(transport, clock):
    seeds = iter(range(100, 10000))
    return GameEngine(
        MemoryStore(),
        transport,
        update_log=MemoryUpdateLog(50),
        clue_validator=WordListClueValidator(),
        seed_source=lambda: next(seeds),
        clock=clock,
    )


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


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

import os
import random
import sys
import pytest

# Ensure the backend root (containing the `matchup` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from matchup import create_app, socketio
from matchup.services.rooms import RoomService, SessionRegistry


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    ROOM_CODE_LENGTH = 6
    MIN_ITEMS_PER_SUBMISSION = 3
    CHOICE_TIMEOUT_SEC = 0
    CORS_ORIGINS = ['http://localhost:3000']
    LOG_LEVEL = 'DEBUG'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def service():
    return RoomService(SessionRegistry(), rng=random.Random(1234))


@pytest.fixture()
def sio_factory(flask_app):
    """Build connected Socket.IO test clients on /ws; all are disconnected at teardown."""
    created = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws'
        )
        created.append(test_client)
        return test_client

    yield _make
    for test_client in created:
        try:
            if test_client.is_connected('/ws'):
                test_client.disconnect(namespace='/ws')
        except Exception:
            pass

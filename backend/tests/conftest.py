import os
import random
import sys
import pytest

# Ensure the backend root (containing the `whisperduel` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from whisperduel import create_app, socketio, shutdown_app, get_dispatcher
from whisperduel.models import GameRoom, Player
from whisperduel.services.games.registry import RoomRegistry

NAMESPACE = '/ws'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['http://localhost:5173']
    MIN_PLAYERS = 4
    MAX_PLAYERS = 8
    SOCKETIO_NAMESPACE = NAMESPACE
    LOG_LEVEL = 'DEBUG'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig, rng=random.Random(7))
    with application.app_context():
        yield application
    shutdown_app(application)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def dispatcher(flask_app):
    return get_dispatcher(flask_app)


@pytest.fixture()
def sio_factory(flask_app):
    """Creates connected Socket.IO test clients; disconnects them afterwards."""
    created = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace=NAMESPACE,
        )
        test_client.get_received(NAMESPACE)  # flush 'connected'
        created.append(test_client)
        return test_client

    yield _make
    for test_client in created:
        try:
            if test_client.is_connected(NAMESPACE):
                test_client.disconnect(namespace=NAMESPACE)
        except Exception:
            pass


@pytest.fixture()
def registry():
    return RoomRegistry(rng=random.Random(3))


def make_room(size=4, creator='p0', rng=None):
    """A waiting room seated with players p0..p{size-1}."""
    room = GameRoom('r1', 'Room One', creator, rng=rng or random.Random(1))
    for i in range(size):
        room.add_player(Player(f"p{i}", f"Player {i}", 'r1'))
    return room


def events_named(received, name):
    return [pkt['args'][0] for pkt in received if pkt['name'] == name]

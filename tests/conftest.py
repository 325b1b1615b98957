import os
import sys
import pytest

# Ensure the project root (containing the `livebingo` package and config.py) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from config import Config
from livebingo import create_app, db, socketio

NAMESPACE = '/ws'
X_PATTERN = [0, 4, 12, 20, 24]


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = '*'
    SOCKETIO_NAMESPACE = NAMESPACE
    DRAW_REVEAL_DELAY_SEC = 0
    DISCONNECT_GRACE_SEC = 3
    MIN_PLAYERS = 1
    END_ON_FIRST_BINGO = False
    ENABLE_GRACE_TIMER_IN_TESTS = False


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import livebingo.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_client(flask_app):
    """Factory for Socket.IO test clients on the game namespace."""
    created = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace=NAMESPACE,
        )
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
def sessions(flask_app):
    return flask_app.extensions['livebingo_sessions']


class PickFirst:
    """Stand-in RNG that draws the wanted numbers first, in order."""

    def __init__(self, wanted):
        self.wanted = list(wanted)

    def choice(self, pool):
        for n in self.wanted:
            if n in pool:
                return n
        return pool[0]

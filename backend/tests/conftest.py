import os
import sys
import pytest

# Ensure the backend root (containing the `typerace` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from typerace import create_app, socketio
from typerace.services.race import GameStateMachine, LogicalRuntime


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['http://localhost:5173']
    TICK_INTERVAL_MS = 1000
    SETTINGS_CHECK_DELAY_MS = 500
    SETTINGS_BROADCAST_DELAY_MS = 1000
    SETTINGS_REBROADCAST_DELAY_MS = 500
    VIEW_UPDATE_THROTTLE_MS = 100
    ROOM_CODE_LENGTH = 4
    AUTO_CREATE_ROOMS = True
    ROOM_IDLE_TIMEOUT_SEC = 300


class ViewEvents:
    """Records what the state machine publishes on the 'view' topic."""

    def __init__(self, runtime):
        self.updates = 0
        self.highscores = []
        runtime.subscribe('view', 'update', self._on_update)
        runtime.subscribe('view', 'new-highscore', self.highscores.append)

    def _on_update(self):
        self.updates += 1

    def clear(self):
        self.updates = 0
        self.highscores.clear()


@pytest.fixture(autouse=True)
def clear_rooms():
    from typerace import rooms, socketio_events
    rooms.ROOMS.clear()
    yield
    rooms.ROOMS.clear()
    socketio_events._sid_to_ctx.clear()
    socketio_events._wired_rooms.clear()
    socketio_events._room_full_notifiers.clear()


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


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
def runtime():
    return LogicalRuntime(seed=1234)


@pytest.fixture()
def machine(runtime):
    return GameStateMachine(runtime, session_id='test').initialize()


@pytest.fixture()
def view_events(runtime):
    return ViewEvents(runtime)

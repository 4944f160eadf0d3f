import os

# Set test environment before importing the app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PUB_SUB_SERVICE"] = "local"
os.environ["SWEEP_INTERVAL_SECONDS"] = "0"

import pytest
from fastapi.testclient import TestClient

from tempchat.core import state
from tempchat.core.clock import HOUR_MS
from tempchat.models.database import build_engine, init_db, make_session_factory
from tempchat.models.models import Message, Room
from tempchat.services.blob_store import LocalBlobStore
from tempchat.services.connection_manager import ConnectionManager
from tempchat.services.message_log import MessageLog
from tempchat.services.room_service import RoomService
from tempchat.services.room_store import RoomStore

T0 = 1_700_000_000_000


class FakeClock:
    """Settable epoch-millisecond clock."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, minutes: int = 0, hours: int = 0) -> None:
        self.now += minutes * 60 * 1000 + hours * HOUR_MS


class RecordingBroadcaster:
    def __init__(self):
        self.events = []

    async def broadcast_to_room(self, room_id, message):
        self.events.append((room_id, message))

    def types(self):
        return [event["type"] for _, event in self.events]


class FakeWebSocket:
    def __init__(self, fail_on_send: bool = False):
        self.fail_on_send = fail_on_send
        self.accepted = False
        self.closed_with = None
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail_on_send:
            raise RuntimeError("connection reset")
        self.sent.append(message)

    async def close(self, code=1000, reason=None):
        self.closed_with = code


def make_room(clock, room_id="room1", **overrides) -> Room:
    data = dict(
        id=room_id,
        name="Team",
        description="",
        member_limit=10,
        time_limit=24,
        created_at=clock(),
        expires_at=clock() + 24 * HOUR_MS,
        creator="Alice",
        members=["Alice"],
    )
    data.update(overrides)
    return Room(**data)


def make_message(room_id="room1", message_id="m1", timestamp=T0, **overrides) -> Message:
    data = dict(id=message_id, room_id=room_id, kind="text", content="hello", sender="Alice", timestamp=timestamp)
    data.update(overrides)
    return Message(**data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def room_store(session_factory):
    return RoomStore(session_factory)


@pytest.fixture
def message_log(session_factory):
    return MessageLog(session_factory)


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def service(room_store, message_log, broadcaster, clock):
    return RoomService(room_store, message_log, broadcaster=broadcaster, clock=clock)


@pytest.fixture
def app_state(monkeypatch, tmp_path, engine, room_store, message_log, clock):
    """Point the app's singletons at an in-memory store and a temp upload dir."""
    connection_manager = ConnectionManager()
    room_service = RoomService(room_store, message_log, broadcaster=connection_manager, clock=clock)

    monkeypatch.setattr(state, "engine", engine)
    monkeypatch.setattr(state, "connection_manager", connection_manager)
    monkeypatch.setattr(state, "room_service", room_service)
    monkeypatch.setattr(state, "blob_store", LocalBlobStore(str(tmp_path), "http://testserver"))
    monkeypatch.setattr(state, "message_counter", 0)
    return state


@pytest.fixture
def app(app_state):
    from tempchat.main import app

    return app


@pytest.fixture
def client(app):
    """Test client without lifespan: startup (Redis, sweeper) is not run."""
    return TestClient(app)

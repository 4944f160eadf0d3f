import asyncio

from conftest import FakeWebSocket
from tempchat.services.connection_manager import ConnectionManager


def connect(manager, room_id, name, **kwargs):
    ws = FakeWebSocket(**kwargs)
    asyncio.run(manager.connect(ws, room_id, name))
    return ws


class TestConnectionTracking:
    def test_connect_accepts_and_registers(self):
        manager = ConnectionManager()
        ws = connect(manager, "room1", "Alice")
        assert ws.accepted
        assert manager.rooms == {"room1": {ws}}
        assert manager.online_members("room1") == ["Alice"]

    def test_disconnect_removes_empty_room(self):
        manager = ConnectionManager()
        ws = connect(manager, "room1", "Alice")
        manager.disconnect(ws)
        assert manager.rooms == {}
        assert manager.connection_rooms == {}

    def test_disconnect_unknown_socket_is_noop(self):
        manager = ConnectionManager()
        manager.disconnect(FakeWebSocket())
        assert manager.rooms == {}

    def test_rooms_info(self):
        manager = ConnectionManager()
        connect(manager, "room1", "Bob")
        connect(manager, "room1", "Alice")
        assert manager.get_rooms_info() == {"room1": {"online": 2, "members": ["Alice", "Bob"]}}


class TestBroadcast:
    def test_delivers_only_to_the_room(self):
        manager = ConnectionManager()
        alice = connect(manager, "room1", "Alice")
        bob = connect(manager, "room2", "Bob")

        event = {"type": "message", "room_id": "room1", "data": {"id": "m1"}, "timestamp": 1}
        asyncio.run(manager.broadcast_to_room("room1", event))

        assert alice.sent == [event]
        assert bob.sent == []

    def test_room_without_subscribers_is_skipped(self):
        manager = ConnectionManager()
        asyncio.run(manager.broadcast_to_room("room1", {"type": "message"}))

    def test_failed_send_drops_only_that_connection(self):
        manager = ConnectionManager()
        good = connect(manager, "room1", "Alice")
        bad = connect(manager, "room1", "Bob", fail_on_send=True)

        asyncio.run(manager.broadcast_to_room("room1", {"type": "message"}))

        assert good.sent == [{"type": "message"}]
        assert manager.rooms["room1"] == {good}
        assert bad not in manager.connection_rooms

    def test_room_deleted_closes_every_connection(self):
        manager = ConnectionManager()
        alice = connect(manager, "room1", "Alice")
        bob = connect(manager, "room1", "Bob")
        other = connect(manager, "room2", "Carol")

        asyncio.run(manager.broadcast_to_room("room1", {"type": "room_deleted", "room_id": "room1"}))

        assert alice.sent[0]["type"] == "room_deleted"
        assert alice.closed_with == 1000 and bob.closed_with == 1000
        assert "room1" not in manager.rooms
        assert other.closed_with is None
        assert manager.rooms == {"room2": {other}}

import os

from tempchat.core import state
from tempchat.core.clock import HOUR_MS
from tempchat.core.config import settings
from tempchat.models.models import MAX_TIME_LIMIT_HOURS


def create_room(client, **overrides):
    payload = {"id": "room1", "name": "Team", "creator": "Alice", "member_limit": 2, "time_limit": 1}
    payload.update(overrides)
    return client.post("/rooms", json=payload)


def error_code(response):
    return response.json()["detail"]["code"]


class TestInfoEndpoints:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "/rooms" in response.json()["endpoints"].values()

    def test_health_reports_counts(self, client):
        create_room(client)
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["rooms"] == 1
        assert data["messages"] == 0

    def test_health_db_lists_tables(self, client):
        response = client.get("/health/db")
        assert response.status_code == 200
        assert response.json()["tables"] == ["messages", "rooms"]

    def test_metrics_counts_messages(self, client):
        create_room(client)
        client.post("/rooms/room1/messages", json={"content": "hi", "sender": "Alice"})
        data = client.get("/metrics").json()
        assert data["total_messages"] == 1
        assert data["stored_rooms"] == 1
        assert data["pub_sub_service"] == "local"


class TestRoomEndpoints:
    def test_create_room(self, client, clock):
        response = create_room(client)
        assert response.status_code == 200
        room = response.json()
        assert room["members"] == ["Alice"]
        assert room["created_at"] == clock()
        assert room["expires_at"] == clock() + HOUR_MS

    def test_create_requires_names(self, client):
        assert create_room(client, name="   ").status_code == 400
        assert create_room(client, creator="").status_code == 400

    def test_create_rejects_non_positive_limits(self, client):
        assert create_room(client, member_limit=0).status_code == 422
        assert create_room(client, time_limit=-1).status_code == 422

    def test_create_rejects_oversized_limits(self, client):
        assert create_room(client, time_limit=10**16).status_code == 422
        assert create_room(client, time_limit=MAX_TIME_LIMIT_HOURS + 1).status_code == 422
        assert create_room(client, member_limit=10**12).status_code == 422
        assert create_room(client, time_limit=MAX_TIME_LIMIT_HOURS).status_code == 200

    def test_create_uses_configured_defaults(self, client, monkeypatch):
        monkeypatch.setattr(settings, "DEFAULT_MEMBER_LIMIT", 3)
        monkeypatch.setattr(settings, "DEFAULT_TIME_LIMIT_HOURS", 2)
        response = client.post("/rooms", json={"name": "Team", "creator": "Alice"})
        assert response.status_code == 200
        room = response.json()
        assert room["member_limit"] == 3
        assert room["time_limit"] == 2
        assert room["expires_at"] - room["created_at"] == 2 * HOUR_MS

    def test_duplicate_id(self, client):
        create_room(client)
        response = create_room(client)
        assert response.status_code == 409
        assert error_code(response) == "duplicate_id"

    def test_get_room_detail(self, client):
        create_room(client)
        client.post("/rooms/room1/messages", json={"content": "hi", "sender": "Alice"})
        data = client.get("/rooms/room1").json()
        assert data["name"] == "Team"
        assert [m["content"] for m in data["messages"]] == ["hi"]
        assert data["files"] == []

    def test_get_unknown_room(self, client):
        response = client.get("/rooms/nope")
        assert response.status_code == 404
        assert error_code(response) == "not_found"

    def test_list_rooms(self, client):
        create_room(client)
        create_room(client, id="room2", name="Other")
        assert sorted(r["id"] for r in client.get("/rooms").json()) == ["room1", "room2"]

    def test_join_flow(self, client):
        create_room(client)

        response = client.post("/rooms/room1/join", json={"name": "Bob"})
        assert response.status_code == 200
        assert response.json()["members"] == ["Alice", "Bob"]

        response = client.post("/rooms/room1/join", json={"name": "Carol"})
        assert response.status_code == 409
        assert error_code(response) == "room_full"

    def test_join_name_taken(self, client):
        create_room(client, member_limit=5)
        response = client.post("/rooms/room1/join", json={"name": "Alice"})
        assert response.status_code == 409
        assert error_code(response) == "name_taken"

    def test_join_blank_name(self, client):
        create_room(client)
        assert client.post("/rooms/room1/join", json={"name": " "}).status_code == 400

    def test_join_unknown_room(self, client):
        assert client.post("/rooms/nope/join", json={"name": "Bob"}).status_code == 404

    def test_delete_requires_creator(self, client):
        create_room(client)
        client.post("/rooms/room1/join", json={"name": "Bob"})

        response = client.delete("/rooms/room1", params={"requester": "Bob"})
        assert response.status_code == 403
        assert error_code(response) == "not_creator"
        assert client.get("/rooms/room1").status_code == 200

    def test_creator_deletes_room(self, client):
        create_room(client)
        client.post("/rooms/room1/messages", json={"content": "bye", "sender": "Alice"})

        response = client.delete("/rooms/room1", params={"requester": "Alice"})
        assert response.status_code == 200
        assert response.json() == {"status": "deleted", "room_id": "room1"}
        assert client.get("/rooms/room1").status_code == 404
        assert client.get("/rooms/room1/messages").status_code == 404

    def test_expired_room_disappears(self, client, clock):
        create_room(client)
        clock.advance(minutes=61)
        assert client.get("/rooms/room1").status_code == 404
        assert client.get("/rooms").json() == []
        assert state.room_service.rooms.count() == 0


class TestMessageEndpoints:
    def test_post_and_list(self, client):
        create_room(client)
        response = client.post(
            "/rooms/room1/messages",
            json={"id": "m1", "content": "hello", "sender": "Alice", "timestamp": 5},
        )
        assert response.status_code == 200
        assert response.json()["room_id"] == "room1"

        messages = client.get("/rooms/room1/messages").json()
        assert [(m["id"], m["content"], m["timestamp"]) for m in messages] == [("m1", "hello", 5)]

    def test_post_to_unknown_room(self, client):
        response = client.post("/rooms/nope/messages", json={"content": "hi", "sender": "Alice"})
        assert response.status_code == 404
        assert error_code(response) == "room_not_found"

    def test_post_by_non_member(self, client):
        create_room(client)
        response = client.post("/rooms/room1/messages", json={"content": "hi", "sender": "Mallory"})
        assert response.status_code == 403
        assert error_code(response) == "not_member"

    def test_file_message_needs_url(self, client):
        create_room(client)
        response = client.post(
            "/rooms/room1/messages",
            json={"kind": "file", "content": "Shared a file", "sender": "Alice", "file_name": "a.txt"},
        )
        assert response.status_code == 422

    def test_oversized_numbers_are_rejected(self, client):
        create_room(client)
        base = {"content": "hi", "sender": "Alice"}
        assert client.post("/rooms/room1/messages", json={**base, "timestamp": 10**20}).status_code == 422
        assert client.post("/rooms/room1/messages", json={**base, "timestamp": -1}).status_code == 422
        response = client.post(
            "/rooms/room1/messages",
            json={**base, "kind": "file", "file_name": "a", "file_url": "http://x/a", "file_size": 2**64},
        )
        assert response.status_code == 422
        assert client.get("/rooms/room1/messages").json() == []

    def test_duplicate_message_id(self, client):
        create_room(client)
        body = {"id": "m1", "content": "hi", "sender": "Alice"}
        client.post("/rooms/room1/messages", json=body)
        response = client.post("/rooms/room1/messages", json=body)
        assert response.status_code == 409
        assert error_code(response) == "duplicate_id"


class TestUploadEndpoint:
    def test_upload_then_share(self, client, tmp_path):
        create_room(client)
        response = client.post(
            "/upload",
            params={"filename": "notes.txt"},
            content=b"hello world",
            headers={"content-type": "text/plain"},
        )
        assert response.status_code == 200
        upload = response.json()
        assert upload["url"].startswith("http://testserver/files/")
        assert upload["url"].endswith("/notes.txt")
        assert upload["size"] == 11
        assert upload["content_type"] == "text/plain"
        with open(os.path.join(tmp_path, *upload["pathname"].split("/")), "rb") as f:
            assert f.read() == b"hello world"

        response = client.post(
            "/rooms/room1/messages",
            json={
                "kind": "file",
                "content": "Shared a file: notes.txt",
                "sender": "Alice",
                "file_name": "notes.txt",
                "file_size": upload["size"],
                "file_type": "text/plain",
                "file_url": upload["url"],
            },
        )
        assert response.status_code == 200
        files = client.get("/rooms/room1").json()["files"]
        assert [f["url"] for f in files] == [upload["url"]]

    def test_filename_required(self, client):
        assert client.post("/upload", content=b"data").status_code == 400

    def test_too_large(self, client, monkeypatch):
        monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 4)
        response = client.post("/upload", params={"filename": "big.bin"}, content=b"12345")
        assert response.status_code == 413

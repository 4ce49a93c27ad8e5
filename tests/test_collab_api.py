from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from codecollab.collab import RoomRegistry
from codecollab.config.settings import Settings
from codecollab.server.app import create_app


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def api_client(tmp_path, registry, fake_gateway):
    app = create_app(
        Settings(log_dir=str(tmp_path / "logs")),
        registry=registry,
        gateway=fake_gateway,
        configure_logging=False,
    )
    with TestClient(app) as client:
        yield client


def test_root_banner(api_client: TestClient) -> None:
    response = api_client.get("/")
    assert response.status_code == 200
    assert response.text == "Backend server is running!"


def test_collab_health_endpoint(api_client: TestClient) -> None:
    response = api_client.get("/api/collab/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert payload["stats"] == {"rooms": 0, "clients": 0}
    assert payload["pending_agent_calls"] == 0
    assert response.headers.get("X-Request-ID")


def test_unknown_room_is_404(api_client: TestClient) -> None:
    response = api_client.get("/api/collab/rooms/ghost")
    assert response.status_code == 404
    payload = response.json()
    assert payload["ok"] is False
    assert payload["code"] == "room_not_found"

    response = api_client.get("/api/collab/rooms/ghost/fingerprint")
    assert response.status_code == 404


def test_rest_views_of_existing_room(api_client: TestClient, registry: RoomRegistry) -> None:
    room = registry.get_or_create_room("demo")
    room.tree.create_folder("", "docs")

    listing = api_client.get("/api/collab/rooms").json()
    assert [entry["room"] for entry in listing["rooms"]] == ["demo"]

    snapshot = api_client.get("/api/collab/rooms/demo").json()
    assert snapshot["revision"] == 1
    assert snapshot["members"] == []
    assert "docs" in snapshot["tree"]

    digest = api_client.get("/api/collab/rooms/demo/fingerprint").json()
    assert digest["hash"] == room.tree.fingerprint()


def test_websocket_session_end_to_end(api_client: TestClient, fake_gateway) -> None:
    with api_client.websocket_connect("/ws?room=r1&client_id=alice") as alice:
        joined = alice.receive_json()
        assert joined["type"] == "project-state-update"
        assert joined["room"] == "r1"
        assert "src" in joined["tree"]

        with api_client.websocket_connect(
            "/api/collab/ws", headers={"x-codecollab-client": "bob"}
        ) as bob:
            bob.send_json({"type": "join-room", "room": "r1"})
            assert bob.receive_json()["type"] == "project-state-update"

            alice.send_json(
                {
                    "type": "file-content-update",
                    "room": "r1",
                    "filePath": "src/app.js",
                    "newContent": "console.log(1);",
                }
            )
            assert bob.receive_json() == {
                "type": "file-content-update",
                "filePath": "src/app.js",
                "newContent": "console.log(1);",
            }
            feedback = alice.receive_json()
            assert feedback["type"] == "agent-feedback"
            assert feedback["filePath"] == "src/app.js"
            assert feedback["feedback"] == "15 chars reviewed"

            alice.send_json({"type": "commit-milestone", "room": "r1", "walletAddress": "0xA"})
            committed = alice.receive_json()
            assert committed["type"] == "milestone-committed"
            assert committed["transactionId"] == "tx-1"
            assert bob.receive_json() == committed

            bob.send_text("{broken")
            assert bob.receive_json() == {"type": "error", "error": "invalid_json"}

            snapshot = api_client.get("/api/collab/rooms/r1").json()
            assert snapshot["members"] == ["alice", "bob"]
            assert snapshot["revision"] == 1
            assert snapshot["tree"]["src"]["children"]["app.js"]["content"] == "console.log(1);"
            digest = api_client.get("/api/collab/rooms/r1/fingerprint").json()
            assert digest["hash"] == committed["hash"]

    assert [call[0] for call in fake_gateway.calls] == ["analyze", "anchor"]


def test_second_tab_with_same_client_id_survives_first_closing(api_client: TestClient) -> None:
    with api_client.websocket_connect("/ws?room=r1&client_id=alice") as keeper:
        keeper.receive_json()
        with api_client.websocket_connect("/ws?room=r1&client_id=alice") as closer:
            closer.receive_json()
        with api_client.websocket_connect("/ws?room=r1&client_id=bob") as bob:
            bob.receive_json()
            bob.send_json(
                {"type": "create-folder", "room": "r1", "path": "", "folderName": "docs"}
            )
            update = keeper.receive_json()
            assert update["type"] == "project-state-update"
            assert "docs" in update["tree"]
            assert api_client.get("/api/collab/rooms/r1").json()["members"] == ["alice", "bob"]

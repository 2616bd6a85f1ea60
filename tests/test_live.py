import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from handyhub.auth import get_live_user_id
from handyhub.events import connections
from handyhub.main import app


@pytest.fixture
def live_as():
    def _set(user_id):
        async def _resolve():
            return user_id

        app.dependency_overrides[get_live_user_id] = _resolve
        return TestClient(app)

    yield _set
    app.dependency_overrides.pop(get_live_user_id, None)


def test_join_own_room(live_as):
    client = live_as("us_live")
    with client.websocket_connect("/v1/live") as ws:
        ws.send_json({"event": "join", "userId": "us_someone_else"})
        assert ws.receive_json() == {
            "event": "error",
            "data": {"message": "You can only join your own room"},
        }
        assert not connections.is_online("us_live")

        ws.send_json({"event": "join", "userId": "us_live"})
        assert ws.receive_json() == {"event": "joined", "data": {"userId": "us_live"}}
        assert connections.is_online("us_live")

        ws.send_json({"event": "ping"})
        assert ws.receive_json() == {"event": "pong", "data": {}}

        ws.send_text("not json")
        assert ws.receive_json()["event"] == "error"

        ws.send_json({"event": "leave"})
        assert ws.receive_json() == {"event": "left", "data": {"userId": "us_live"}}
        assert not connections.is_online("us_live")


def test_unauthenticated_socket_is_closed(live_as):
    client = live_as(None)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/v1/live"):
            pass
    assert exc.value.code == 1008

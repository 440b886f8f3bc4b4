"""End-to-end /ws tests — real sockets through the ASGI app.

Learn: These use Starlette's TestClient (sync) instead of httpx, because
httpx can't speak WebSocket. Inside `with TestClient(app)`, HTTP calls and
WebSocket sessions share one event loop, so the aiosqlite connection and
the broadcaster are only ever touched from that loop. Tables are created
through the client's portal for the same reason.
"""

import pytest
from fastapi.testclient import TestClient

from tests.conftest import ALICE, BOB, auth_headers, build_test_app, create_tables, make_engine

PRAYER = {
    "title": "New job",
    "content": "Starting a new job next week, pray for peace.",
    "isPublic": True,
}


@pytest.fixture
def live_client():
    engine = make_engine()
    app = build_test_app(engine)
    with TestClient(app) as tc:
        tc.portal.call(create_tables, engine)
        yield tc
        tc.portal.call(engine.dispose)


@pytest.fixture
def alice():
    return auth_headers(**ALICE)


@pytest.fixture
def bob():
    return auth_headers(**BOB)


def test_comments_reach_every_connected_client(live_client, alice, bob):
    """Two comments from one client arrive at the others as two new_comment events."""
    prayer = live_client.post("/api/prayers", json=PRAYER, headers=alice).json()

    with live_client.websocket_connect("/ws") as ws_a, live_client.websocket_connect("/ws") as ws_b:
        for text in ("Praying for you", "Amen"):
            resp = live_client.post(
                f"/api/prayers/{prayer['id']}/comments", json={"content": text}, headers=bob
            )
            assert resp.status_code == 201

        for ws in (ws_a, ws_b):
            events = [ws.receive_json(), ws.receive_json()]
            assert [e["type"] for e in events] == ["new_comment", "new_comment"]
            assert {e["data"]["prayerId"] for e in events} == {prayer["id"]}
            assert {e["data"]["comment"]["content"] for e in events} == {
                "Praying for you",
                "Amen",
            }


def test_new_public_prayer_is_announced(live_client, alice):
    with live_client.websocket_connect("/ws") as ws:
        created = live_client.post("/api/prayers", json=PRAYER, headers=alice).json()
        event = ws.receive_json()

    assert event["type"] == "new_prayer"
    assert event["data"]["prayer"]["id"] == created["id"]
    assert event["data"]["user"]["first_name"] == "Alice"


def test_inbound_messages_are_ignored(live_client, alice):
    """Clients may send anything (even invalid JSON); the socket stays registered."""
    with live_client.websocket_connect("/ws") as ws:
        ws.send_text("this is not json {")
        ws.send_json({"type": "ping"})

        live_client.post("/api/prayers", json=PRAYER, headers=alice)
        assert ws.receive_json()["type"] == "new_prayer"


def test_disconnect_unregisters_socket(live_client):
    with live_client.websocket_connect("/ws"):
        assert live_client.get("/api/health").json()["websocket_connections"] == 1
    assert live_client.get("/api/health").json()["websocket_connections"] == 0


def test_binary_frames_are_ignored(live_client, alice):
    with live_client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00\x01")
        ws.send_text("still here")

        assert live_client.get("/api/health").json()["websocket_connections"] == 1
        live_client.post("/api/prayers", json=PRAYER, headers=alice)
        assert ws.receive_json()["type"] == "new_prayer"

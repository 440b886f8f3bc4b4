"""Support and comment API tests — and the events they fan out.

Learn: Support and comments are the community side of a prayer. Every
mutation here broadcasts to all open sockets after it commits; the tests
register a fake socket with the app's broadcaster and read what it got.
"""

import uuid

import pytest

from tests.conftest import FakeSocket

PRAYER = {
    "title": "Surgery",
    "content": "My father has surgery on Thursday.",
    "isPublic": True,
}


@pytest.fixture
async def prayer(client):
    """A public prayer owned by Alice."""
    resp = await client.post("/api/prayers", json=PRAYER)
    return resp.json()


@pytest.fixture
def open_socket(prayer, broadcaster):
    """Registered after the prayer exists, so it never sees new_prayer."""
    socket = FakeSocket()
    broadcaster.register(socket)
    return socket


# ═══════════════════════════════════════════════════════════
# Support
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_add_support_defaults_to_prayer(other_client, prayer):
    resp = await other_client.post(f"/api/prayers/{prayer['id']}/support")
    assert resp.status_code == 201
    support = resp.json()
    assert support["type"] == "prayer"
    assert support["user_id"] == "user-bob"
    assert support["prayer_id"] == prayer["id"]


@pytest.mark.asyncio
async def test_add_support_broadcasts(other_client, prayer, open_socket):
    resp = await other_client.post(
        f"/api/prayers/{prayer['id']}/support", json={"type": "heart"}
    )
    assert resp.status_code == 201

    assert len(open_socket.events) == 1
    event = open_socket.events[0]
    assert event["type"] == "prayer_support"
    assert event["data"]["prayerId"] == prayer["id"]
    assert event["data"]["support"]["type"] == "heart"
    assert event["data"]["support"]["user_id"] == "user-bob"


@pytest.mark.asyncio
async def test_duplicate_support_conflicts(other_client, prayer, open_socket):
    """One row per (prayer, user, type): a second 'prayer' is 409, 'heart' is fine."""
    url = f"/api/prayers/{prayer['id']}/support"
    assert (await other_client.post(url, json={"type": "prayer"})).status_code == 201
    assert (await other_client.post(url, json={"type": "prayer"})).status_code == 409
    assert (await other_client.post(url, json={"type": "heart"})).status_code == 201

    # The rejected duplicate was not announced
    assert [e["data"]["support"]["type"] for e in open_socket.events] == ["prayer", "heart"]


@pytest.mark.asyncio
async def test_support_counts_in_feed(client, other_client, prayer):
    url = f"/api/prayers/{prayer['id']}/support"
    await client.post(url, json={"type": "prayer"})
    await other_client.post(url, json={"type": "prayer"})
    await other_client.post(url, json={"type": "heart"})

    feed = (await client.get("/api/prayers/public")).json()
    assert feed[0]["support_count"] == 3

    detail = (await client.get(f"/api/prayers/{prayer['id']}")).json()
    assert detail["support_count"] == 3


@pytest.mark.asyncio
async def test_invalid_support_type(other_client, prayer):
    resp = await other_client.post(
        f"/api/prayers/{prayer['id']}/support", json={"type": "thumbs_up"}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_support_missing_prayer(other_client):
    resp = await other_client.post(f"/api/prayers/{uuid.uuid4()}/support")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_cannot_support_someone_elses_private_prayer(client, other_client):
    private = (await client.post("/api/prayers", json={**PRAYER, "isPublic": False})).json()
    resp = await other_client.post(f"/api/prayers/{private['id']}/support")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_remove_support(other_client, prayer, open_socket):
    url = f"/api/prayers/{prayer['id']}/support"
    await other_client.post(url, json={"type": "heart"})

    resp = await other_client.delete(f"{url}/heart")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Support removed successfully"

    removed = open_socket.events[-1]
    assert removed == {
        "type": "prayer_support_removed",
        "data": {"prayerId": prayer["id"], "userId": "user-bob", "type": "heart"},
    }


@pytest.mark.asyncio
async def test_remove_missing_support(other_client, prayer, open_socket):
    resp = await other_client.delete(f"/api/prayers/{prayer['id']}/support/prayer")
    assert resp.status_code == 404
    assert open_socket.events == []


@pytest.mark.asyncio
async def test_remove_only_own_support(client, other_client, prayer):
    """Removing is scoped to the caller: Alice can't remove Bob's support."""
    url = f"/api/prayers/{prayer['id']}/support"
    await other_client.post(url, json={"type": "prayer"})

    assert (await client.delete(f"{url}/prayer")).status_code == 404
    assert (await other_client.delete(f"{url}/prayer")).status_code == 200


# ═══════════════════════════════════════════════════════════
# Comments
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_add_comment(other_client, prayer):
    resp = await other_client.post(
        f"/api/prayers/{prayer['id']}/comments", json={"content": "  Praying for him  "}
    )
    assert resp.status_code == 201
    comment = resp.json()
    assert comment["content"] == "Praying for him"
    assert comment["user_id"] == "user-bob"
    assert comment["user"]["first_name"] == "Bob"


@pytest.mark.asyncio
async def test_add_comment_broadcasts(other_client, prayer, open_socket):
    resp = await other_client.post(
        f"/api/prayers/{prayer['id']}/comments", json={"content": "Amen"}
    )

    event = open_socket.events[0]
    assert event["type"] == "new_comment"
    assert event["data"]["prayerId"] == prayer["id"]
    assert event["data"]["comment"]["id"] == resp.json()["id"]
    assert event["data"]["comment"]["user"]["id"] == "user-bob"


@pytest.mark.asyncio
async def test_list_comments_newest_first(client, other_client, anon_client, prayer):
    url = f"/api/prayers/{prayer['id']}/comments"
    await other_client.post(url, json={"content": "First"})
    await client.post(url, json={"content": "Second"})

    resp = await anon_client.get(url)
    assert resp.status_code == 200
    comments = resp.json()
    assert [c["content"] for c in comments] == ["Second", "First"]
    assert comments[0]["user"]["first_name"] == "Alice"

    detail = (await client.get(f"/api/prayers/{prayer['id']}")).json()
    assert detail["comment_count"] == 2


@pytest.mark.asyncio
async def test_blank_comment_rejected(other_client, prayer, open_socket):
    resp = await other_client.post(
        f"/api/prayers/{prayer['id']}/comments", json={"content": "   "}
    )
    assert resp.status_code == 422
    assert open_socket.events == []


@pytest.mark.asyncio
async def test_comments_on_missing_prayer(client):
    missing = uuid.uuid4()
    assert (await client.get(f"/api/prayers/{missing}/comments")).status_code == 404
    resp = await client.post(f"/api/prayers/{missing}/comments", json={"content": "Hi"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_every_open_socket_gets_the_event(other_client, prayer, broadcaster):
    sockets = [FakeSocket() for _ in range(3)]
    closed = FakeSocket()
    closed.close()
    for s in [*sockets, closed]:
        broadcaster.register(s)

    await other_client.post(f"/api/prayers/{prayer['id']}/comments", json={"content": "Amen"})

    assert all(len(s.events) == 1 for s in sockets)
    assert closed.events == []

import uuid

import pytest
from sqlalchemy import func, select

from app.main import app
from app.models.friendship import Friendship


async def _send(client, addressee) -> dict:
    response = await client.post("/friendships", json={"addressee_id": str(addressee.id)})
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_list_friendships_empty(client):
    response = await client.get("/friendships")
    assert response.status_code == 200
    assert response.json() == {"friends": [], "incoming": [], "outgoing": []}


@pytest.mark.asyncio
async def test_send_request_shows_in_both_views(client, act_as, alice, bob):
    data = await _send(client, bob)
    assert data["status"] == "pending"
    assert data["requester_id"] == str(alice.id)
    assert data["addressee_id"] == str(bob.id)

    outgoing = (await client.get("/friendships")).json()["outgoing"]
    assert [e["friend"]["id"] for e in outgoing] == [str(bob.id)]

    act_as(bob)
    incoming = (await client.get("/friendships")).json()["incoming"]
    assert [e["friend"]["username"] for e in incoming] == ["alice"]
    assert incoming[0]["friendship_id"] == data["id"]


@pytest.mark.asyncio
async def test_accept_makes_both_friends(client, act_as, alice, bob):
    friendship = await _send(client, bob)

    act_as(bob)
    response = await client.post(
        f"/friendships/{friendship['id']}/respond", json={"decision": "accept"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"

    bob_friends = (await client.get("/friendships")).json()["friends"]
    assert [e["friend"]["id"] for e in bob_friends] == [str(alice.id)]

    act_as(alice)
    alice_view = (await client.get("/friendships")).json()
    assert [e["friend"]["id"] for e in alice_view["friends"]] == [str(bob.id)]
    assert alice_view["outgoing"] == []


@pytest.mark.asyncio
async def test_reverse_request_while_pending_conflicts(client, act_as, alice, bob):
    await _send(client, bob)

    act_as(bob)
    response = await client.post("/friendships", json={"addressee_id": str(alice.id)})
    assert response.status_code == 409
    assert "pending" in response.json()["detail"].lower()

    view = (await client.get("/friendships")).json()
    assert view["friends"] == []
    assert len(view["incoming"]) == 1


@pytest.mark.asyncio
async def test_remove_friendship(client, act_as, alice, bob, make_friendship, make_place):
    friendship = await make_friendship(alice, bob, status="accepted")
    await make_place(bob, "Prater")
    assert len((await client.get(f"/friends/{bob.id}/places")).json()) == 1

    response = await client.delete(f"/friendships/{friendship.id}")
    assert response.status_code == 204

    assert (await client.get("/friendships")).json()["friends"] == []
    assert (await client.get(f"/friends/{bob.id}/places")).json() == []


@pytest.mark.asyncio
async def test_requester_cannot_accept_own_request(client, alice, bob):
    friendship = await _send(client, bob)

    response = await client.post(
        f"/friendships/{friendship['id']}/respond", json={"decision": "accept"}
    )
    assert response.status_code == 403

    outgoing = (await client.get("/friendships")).json()["outgoing"]
    assert outgoing[0]["status"] == "pending"


@pytest.mark.asyncio
async def test_respond_twice_conflicts(client, act_as, bob):
    friendship = await _send(client, bob)

    act_as(bob)
    first = await client.post(
        f"/friendships/{friendship['id']}/respond", json={"decision": "decline"}
    )
    assert first.status_code == 200
    assert first.json()["status"] == "declined"

    second = await client.post(
        f"/friendships/{friendship['id']}/respond", json={"decision": "accept"}
    )
    assert second.status_code == 409
    assert "already handled" in second.json()["detail"]


@pytest.mark.asyncio
async def test_respond_invalid_decision(client, act_as, bob):
    friendship = await _send(client, bob)

    act_as(bob)
    response = await client.post(
        f"/friendships/{friendship['id']}/respond", json={"decision": "ignore"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_respond_unknown_friendship(client):
    response = await client.post(
        f"/friendships/{uuid.uuid4()}/respond", json={"decision": "accept"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_send_request_to_self(client, alice):
    response = await client.post("/friendships", json={"addressee_id": str(alice.id)})
    assert response.status_code == 400
    assert "yourself" in response.json()["detail"]


@pytest.mark.asyncio
async def test_send_request_unknown_user(client):
    response = await client.post("/friendships", json={"addressee_id": str(uuid.uuid4())})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_send_request_missing_addressee(client):
    response = await client.post("/friendships", json={})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_send_request_to_friend(client, alice, bob, make_friendship):
    await make_friendship(bob, alice, status="accepted")

    response = await client.post("/friendships", json={"addressee_id": str(bob.id)})
    assert response.status_code == 409
    assert "already friends" in response.json()["detail"]


@pytest.mark.asyncio
async def test_cancel_outgoing_request(client, bob):
    friendship = await _send(client, bob)

    response = await client.post(f"/friendships/{friendship['id']}/cancel")
    assert response.status_code == 204
    assert (await client.get("/friendships")).json()["outgoing"] == []


@pytest.mark.asyncio
async def test_remove_by_stranger_forbidden(client, act_as, alice, bob, carol, make_friendship):
    friendship = await make_friendship(alice, bob, status="accepted")

    act_as(carol)
    response = await client.delete(f"/friendships/{friendship.id}")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_remove_pending_conflicts(client, alice, bob, make_friendship):
    friendship = await make_friendship(alice, bob)

    response = await client.delete(f"/friendships/{friendship.id}")
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_remove_when_database_fails(client, db_session, alice, bob, make_friendship, failing_commits):
    friendship = await make_friendship(alice, bob, status="accepted")
    friendship_id = friendship.id
    failing_commits()

    response = await client.delete(f"/friendships/{friendship_id}")
    assert response.status_code == 503
    assert response.json()["detail"] == "Service temporarily unavailable"

    result = await db_session.execute(
        select(Friendship.status).where(Friendship.id == friendship_id)
    )
    assert result.scalar_one() == "accepted"


@pytest.mark.asyncio
async def test_send_request_when_database_fails(client, db_session, alice, bob, failing_commits):
    alice_id, bob_id = alice.id, bob.id
    failing_commits()

    response = await client.post("/friendships", json={"addressee_id": str(bob_id)})
    assert response.status_code == 503

    result = await db_session.execute(
        select(func.count(Friendship.id)).where(Friendship.requester_id == alice_id)
    )
    assert result.scalar_one() == 0
    # Daily request counter untouched
    assert app.state.redis._store == {}

"""Social API tests — follow/unfollow and follower lists."""

import uuid

import pytest
from sqlalchemy import select

from appstalker.db.models import Follow, Notification
from appstalker.notifications.types import NEW_FOLLOWER


@pytest.mark.asyncio
async def test_follow_creates_edge_and_notifies(
    client, db_session, registry, channel, make_user, me
):
    bob = await make_user("bob")
    ws = channel()
    await registry.register(bob.id, ws)

    resp = await client.post(f"/api/v1/social/follow/{bob.id}")

    assert resp.status_code == 201
    data = resp.json()
    assert data["follower_id"] == str(me.id)
    assert data["following_id"] == str(bob.id)

    result = await db_session.execute(
        select(Notification).where(Notification.user_id == bob.id)
    )
    (row,) = result.scalars().all()
    assert row.type == NEW_FOLLOWER
    assert row.content == "alice started following you"
    assert row.related_user_id == me.id

    assert ws.messages[0]["type"] == "notification"
    assert ws.messages[0]["data"]["type"] == NEW_FOLLOWER


@pytest.mark.asyncio
async def test_follow_self_is_rejected(client, me):
    resp = await client.post(f"/api/v1/social/follow/{me.id}")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_follow_unknown_user_is_404(client):
    resp = await client.post(f"/api/v1/social/follow/{uuid.uuid4()}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_follow_twice_is_conflict(client, make_user):
    bob = await make_user("bob")
    await client.post(f"/api/v1/social/follow/{bob.id}")

    resp = await client.post(f"/api/v1/social/follow/{bob.id}")

    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_unfollow_removes_edge(client, db_session, make_user, follow, me):
    bob = await make_user("bob")
    await follow(me, bob)

    resp = await client.delete(f"/api/v1/social/follow/{bob.id}")

    assert resp.status_code == 204
    result = await db_session.execute(select(Follow))
    assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_unfollow_when_not_following_is_404(client, make_user):
    bob = await make_user("bob")
    resp = await client.delete(f"/api/v1/social/follow/{bob.id}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_unfollowed_user_no_longer_notifies(
    client, db_session, make_user, make_app, follow, act_as, me
):
    bob = await make_user("bob")
    await follow(me, bob)
    await client.delete(f"/api/v1/social/follow/{bob.id}")

    app = await make_app(bob, "com.a")
    act_as(bob)
    resp = await client.put(f"/api/v1/apps/{app.id}/visibility", json={"is_visible": True})

    assert resp.json()["notified_count"] == 0


@pytest.mark.asyncio
async def test_followers_and_following_lists(client, make_user, follow, me):
    bob, carol = await make_user("bob"), await make_user("carol")
    await follow(bob, me)
    await follow(carol, me)
    await follow(me, bob)

    followers = await client.get("/api/v1/social/followers")
    following = await client.get("/api/v1/social/following")

    assert sorted(u["username"] for u in followers.json()["users"]) == ["bob", "carol"]
    assert [u["username"] for u in following.json()["users"]] == ["bob"]
    assert following.json()["users"][0]["display_name"] == "Bob"

"""Fan-out engine tests — persistence per follower, push, failure isolation."""

import time

import pytest
from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from appstalker.db.models import Notification
from appstalker.notifications.store import NotificationStore
from appstalker.notifications.types import NEW_APP, NEW_FOLLOWER
from appstalker.realtime.registry import ConnectionRegistry
from appstalker.services.fanout import FanOutEngine, FanOutResult


class FlakyStore(NotificationStore):
    """Fails the Nth create() call, succeeds on all others."""

    def __init__(self, db, fail_on: int):
        super().__init__(db)
        self.calls = 0
        self.fail_on = fail_on

    async def create(self, **fields):
        self.calls += 1
        if self.calls == self.fail_on:
            raise OperationalError("INSERT INTO notifications", {}, Exception("disk I/O error"))
        return await super().create(**fields)


async def _notifications(db_session, **filters):
    query = select(Notification).filter_by(**filters).order_by(Notification.created_at)
    return list((await db_session.execute(query)).scalars().all())


@pytest.mark.asyncio
async def test_every_follower_gets_one_notification(
    db_session, registry, make_user, make_app, follow
):
    owner = await make_user("owner")
    followers = [await make_user(f"fan{i}") for i in range(3)]
    for f in followers:
        await follow(f, owner)
    app = await make_app(owner, "com.spotify.music", app_name="Spotify", is_visible=True)

    result = await FanOutEngine(db_session, registry).fan_out_app_visible(owner.id, app)

    assert result.notified_count == 3
    assert result.failed_count == 0
    rows = await _notifications(db_session, type=NEW_APP)
    assert {r.user_id for r in rows} == {f.id for f in followers}
    for row in rows:
        assert row.content == "installed Spotify"
        assert row.related_user_id == owner.id
        assert row.related_app_id == app.id
        assert row.is_read is False


@pytest.mark.asyncio
async def test_owner_without_followers_is_a_noop(db_session, registry, make_user, make_app):
    owner = await make_user("loner")
    app = await make_app(owner, "com.example.app", is_visible=True)

    result = await FanOutEngine(db_session, registry).fan_out_app_visible(owner.id, app)

    assert result == FanOutResult()
    assert await _notifications(db_session) == []


@pytest.mark.asyncio
async def test_owner_is_not_notified_about_their_own_app(
    db_session, registry, make_user, make_app, follow
):
    owner = await make_user("owner")
    fan = await make_user("fan")
    await follow(fan, owner)
    app = await make_app(owner, "com.example.app", is_visible=True)

    await FanOutEngine(db_session, registry).fan_out_app_visible(owner.id, app)

    assert await _notifications(db_session, user_id=owner.id) == []


@pytest.mark.asyncio
async def test_failed_write_does_not_stop_other_followers(
    db_session, registry, make_user, make_app, follow
):
    owner = await make_user("owner")
    followers = [await make_user(f"fan{i}") for i in range(5)]
    for f in followers:
        await follow(f, owner)
    app = await make_app(owner, "com.example.app", app_name="Example", is_visible=True)

    # A failed write rolls the session back and expires these rows.
    owner_id = owner.id
    app_id = app.id
    follower_ids = [f.id for f in followers]

    store = FlakyStore(db_session, fail_on=2)
    engine = FanOutEngine(db_session, registry, notifications=store)

    result = await engine.fan_out_app_visible(owner_id, app, follower_ids=follower_ids)

    assert store.calls == 5
    assert result.notified_count == 4
    assert result.failed_count == 1
    rows = await _notifications(db_session, related_app_id=app_id)
    assert len(rows) == 4
    assert {r.user_id for r in rows} == set(follower_ids) - {follower_ids[1]}


@pytest.mark.asyncio
async def test_online_follower_gets_pushed_on_every_channel(
    db_session, registry, channel, make_user, make_app, follow
):
    owner = await make_user("owner")
    online, offline = await make_user("online"), await make_user("offline")
    await follow(online, owner)
    await follow(offline, owner)
    app = await make_app(owner, "com.example.app", app_name="Example", is_visible=True)

    phone, tablet = channel(), channel()
    await registry.register(online.id, phone)
    await registry.register(online.id, tablet)

    result = await FanOutEngine(db_session, registry).fan_out_app_visible(owner.id, app)

    assert result.notified_count == 2
    assert result.delivered_count == 1
    assert len(phone.messages) == 1
    assert phone.messages == tablet.messages

    message = phone.messages[0]
    assert message["type"] == "notification"
    assert message["data"]["type"] == NEW_APP
    assert message["data"]["content"] == "installed Example"
    assert message["data"]["user_id"] == str(online.id)
    assert message["data"]["related_app_id"] == str(app.id)
    assert message["data"]["is_read"] is False

    # Offline follower still has the stored row.
    assert len(await _notifications(db_session, user_id=offline.id)) == 1


@pytest.mark.asyncio
async def test_broken_channel_does_not_fail_fan_out(
    db_session, registry, channel, make_user, make_app, follow
):
    owner = await make_user("owner")
    fan = await make_user("fan")
    await follow(fan, owner)
    app = await make_app(owner, "com.example.app", is_visible=True)
    await registry.register(fan.id, channel(fail=True))

    result = await FanOutEngine(db_session, registry).fan_out_app_visible(owner.id, app)

    assert result.notified_count == 1
    assert result.delivered_count == 0
    assert not registry.is_connected(fan.id)


@pytest.mark.asyncio
async def test_explicit_follower_ids_skip_the_lookup(
    db_session, registry, make_user, make_app
):
    owner = await make_user("owner")
    stranger = await make_user("stranger")
    app = await make_app(owner, "com.example.app", is_visible=True)

    result = await FanOutEngine(db_session, registry).fan_out_app_visible(
        owner.id, app, follower_ids=[stranger.id]
    )

    assert result.notified_count == 1
    assert len(await _notifications(db_session, user_id=stranger.id)) == 1


@pytest.mark.asyncio
async def test_notify_persists_and_pushes_one_notification(
    db_session, registry, channel, make_user
):
    alice, bob = await make_user("alice"), await make_user("bob")
    ws = channel()
    await registry.register(bob.id, ws)

    notification = await FanOutEngine(db_session, registry).notify(
        user_id=bob.id,
        type=NEW_FOLLOWER,
        content="alice started following you",
        related_user_id=alice.id,
    )

    assert notification is not None
    assert notification.user_id == bob.id
    assert ws.messages[0]["data"]["id"] == str(notification.id)
    assert ws.messages[0]["data"]["type"] == NEW_FOLLOWER


@pytest.mark.asyncio
async def test_notify_returns_none_when_write_fails(db_session, registry, channel, make_user):
    bob = await make_user("bob")
    bob_id = bob.id
    ws = channel()
    await registry.register(bob_id, ws)

    engine = FanOutEngine(
        db_session, registry, notifications=FlakyStore(db_session, fail_on=1)
    )
    notification = await engine.notify(user_id=bob_id, type=NEW_FOLLOWER, content="x")

    assert notification is None
    assert ws.messages == []


def test_results_combine_with_iadd():
    total = FanOutResult(notified_count=1, failed_count=2, delivered_count=1)
    total += FanOutResult(notified_count=3, failed_count=0, delivered_count=2)
    assert total == FanOutResult(notified_count=4, failed_count=2, delivered_count=3)


# ═══════════════════════════════════════════════════════════
# Push scheduling
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_slow_followers_are_pushed_concurrently(
    db_session, channel, make_user, make_app, follow
):
    """Four followers on 0.5s channels take about 0.5s in total, not 2s."""
    registry = ConnectionRegistry(send_timeout=5.0)
    owner = await make_user("owner")
    devices = []
    for i in range(4):
        fan = await make_user(f"fan{i}")
        await follow(fan, owner)
        ws = channel(delay=0.5)
        await registry.register(fan.id, ws)
        devices.append(ws)
    app = await make_app(owner, "com.example.app", is_visible=True)

    started = time.perf_counter()
    result = await FanOutEngine(db_session, registry).fan_out_app_visible(owner.id, app)
    elapsed = time.perf_counter() - started

    assert result.delivered_count == 4
    assert all(len(ws.messages) == 1 for ws in devices)
    assert elapsed < 1.0


@pytest.mark.asyncio
async def test_background_pushes_wait_until_rows_are_persisted(
    db_session, registry, channel, make_user, make_app, follow
):
    owner = await make_user("owner")
    fans = [await make_user(f"fan{i}") for i in range(3)]
    devices = []
    for fan in fans:
        await follow(fan, owner)
        ws = channel(delay=0.5)
        await registry.register(fan.id, ws)
        devices.append(ws)
    app = await make_app(owner, "com.example.app", app_name="Example", is_visible=True)
    background = BackgroundTasks()

    started = time.perf_counter()
    result = await FanOutEngine(
        db_session, registry, background=background
    ).fan_out_app_visible(owner.id, app)
    elapsed = time.perf_counter() - started

    # Everything is stored, nothing has been pushed yet.
    assert result.notified_count == 3
    assert result.delivered_count == 0
    assert len(await _notifications(db_session, type=NEW_APP)) == 3
    assert all(ws.messages == [] for ws in devices)
    assert elapsed < 0.5

    # What the response machinery runs once the response is sent.
    await background()

    for fan, ws in zip(fans, devices):
        (message,) = ws.messages
        assert message["data"]["user_id"] == str(fan.id)
        assert message["data"]["content"] == "installed Example"


@pytest.mark.asyncio
async def test_pushes_use_rows_serialized_before_a_later_failure(
    db_session, registry, channel, make_user, make_app, follow
):
    owner = await make_user("owner")
    first, second = await make_user("first"), await make_user("second")
    await follow(first, owner)
    await follow(second, owner)
    app = await make_app(owner, "com.example.app", app_name="Example", is_visible=True)
    owner_id, first_id, second_id = owner.id, first.id, second.id
    ws = channel()
    await registry.register(first_id, ws)

    # The second write fails and rolls back after the first row is stored.
    engine = FanOutEngine(
        db_session, registry, notifications=FlakyStore(db_session, fail_on=2)
    )
    result = await engine.fan_out_app_visible(
        owner_id, app, follower_ids=[first_id, second_id]
    )

    assert result.notified_count == 1
    assert result.delivered_count == 1
    assert ws.messages[0]["data"]["content"] == "installed Example"

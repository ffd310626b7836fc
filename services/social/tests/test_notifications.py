import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from uuid import uuid4

from app import live
from app.exceptions import NotificationNotFound
from app.notifications import fanout
from app.notifications import service as notification_svc
from app.notifications.constants import NotificationType, unread_channel
from app.notifications.controller import to_item
from app.notifications.schemas import (
    CommentNotification,
    FollowRequestNotification,
    LikeNotification,
)
from app.notifications.stream import watch_unread_count
from app.social_graph import service as graph_svc
from shared.events.schemas import ActorSnapshot, GraphEvent

ACTOR = ActorSnapshot(username="alice", display_name="Alice")


def _event(type_, to_user, from_user=None, **payload) -> GraphEvent:
    return GraphEvent(
        type=type_,
        from_user=from_user or uuid4(),
        to_user=to_user,
        actor=ACTOR,
        payload=payload,
    )


# ── Fan-out ───────────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    ("type_", "payload", "expected"),
    [
        ("follow_request", {}, "Alice wants to follow you"),
        ("follow_accepted", {}, "Alice accepted your follow request"),
        ("follow", {}, "Alice started following you"),
        ("like", {"content_type": "reel"}, "Alice liked your reel"),
        ("like", {}, "Alice liked your post"),
        ("comment", {"comment_text": "nice"}, "Alice commented: nice"),
        ("comment", {"comment_text": "x" * 60}, "Alice commented: " + "x" * 50 + "…"),
        ("mention", {}, "Alice mentioned you"),
        ("story_view", {}, "Alice viewed your story"),
    ],
)
def test_render_message(type_, payload, expected) -> None:
    assert fanout.render_message(_event(type_, uuid4(), **payload)) == expected


def test_render_message_without_actor() -> None:
    event = GraphEvent(type="follow", from_user=uuid4(), to_user=uuid4())
    assert fanout.render_message(event) == "Someone started following you"


@pytest.mark.asyncio
async def test_emit_writes_one_row_per_event(db_session, make_user) -> None:
    bob = await make_user()
    actor_id = uuid4()

    await fanout.emit(db_session, _event("like", bob.id, actor_id, content_id="p1"))
    await fanout.emit(db_session, _event("like", bob.id, actor_id, content_id="p1"))
    await db_session.commit()

    items, total = await notification_svc.list_notifications(db_session, bob.id, 20, 0)
    assert total == 2
    assert all(n.type == NotificationType.LIKE and n.actor_id == actor_id for n in items)
    assert items[0].context["content_id"] == "p1"


@pytest.mark.asyncio
async def test_emit_drops_self_targeted_events(db_session, make_user) -> None:
    bob = await make_user()
    assert await fanout.emit(db_session, _event("like", bob.id, bob.id)) is None
    assert await notification_svc.count_unread(db_session, bob.id) == 0


@pytest.mark.asyncio
async def test_emit_tracks_unread_changes(db_session, make_user) -> None:
    bob = await make_user()
    await fanout.emit(db_session, _event("mention", bob.id))
    assert live.pop_changed(db_session) == {unread_channel(bob.id)}
    assert live.pop_changed(db_session) == set()


@pytest.mark.asyncio
async def test_publish_unread_wakeup(fake_redis) -> None:
    user_id = uuid4()
    await live.publish_changed(fake_redis, [unread_channel(user_id)])
    assert fake_redis.published == [(f"notifications:{user_id}:unread", "1")]
    assert unread_channel(user_id) == f"notifications:{user_id}:unread"


# ── Rendering ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_items_are_discriminated_by_type(db_session, make_user) -> None:
    alice = await make_user(display_name="Alice")
    carol = await make_user(is_private=True)
    outcome = await graph_svc.send_follow_request(db_session, alice.id, carol.id)
    await fanout.emit(db_session, _event("like", carol.id, content_id="r9", content_type="reel"))
    await fanout.emit(db_session, _event("comment", carol.id, content_id="p2", comment_text="hi"))
    await db_session.commit()

    items, _ = await notification_svc.list_notifications(db_session, carol.id, 20, 0)
    rendered = {type(item): item for item in map(to_item, items)}

    request_item = rendered[FollowRequestNotification]
    assert request_item.follow_request_id == outcome.request.request_id
    assert request_item.action_taken is None
    assert request_item.actor.display_name == "Alice"
    assert rendered[LikeNotification].content_type == "reel"
    assert rendered[CommentNotification].comment_text == "hi"


# ── Owner-only mutations ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_mark_as_read_is_owner_only(db_session, make_user) -> None:
    bob = await make_user()
    eve = await make_user()
    notification = await fanout.emit(db_session, _event("follow", bob.id))
    await db_session.commit()

    with pytest.raises(NotificationNotFound):
        await notification_svc.mark_as_read(db_session, eve.id, notification.notification_id)
    assert await notification_svc.count_unread(db_session, bob.id) == 1

    await notification_svc.mark_as_read(db_session, bob.id, notification.notification_id)
    await db_session.commit()
    assert await notification_svc.count_unread(db_session, bob.id) == 0


@pytest.mark.asyncio
async def test_mark_all_as_read_and_only_unread_filter(db_session, make_user) -> None:
    bob = await make_user()
    eve = await make_user()
    for _ in range(3):
        await fanout.emit(db_session, _event("story_view", bob.id, story_id="s1"))
    await fanout.emit(db_session, _event("story_view", eve.id))
    await db_session.commit()

    _, unread_total = await notification_svc.list_notifications(
        db_session, bob.id, 20, 0, only_unread=True
    )
    assert unread_total == 3

    assert await notification_svc.mark_all_as_read(db_session, bob.id) == 3
    await db_session.commit()

    _, unread_total = await notification_svc.list_notifications(
        db_session, bob.id, 20, 0, only_unread=True
    )
    assert unread_total == 0
    assert await notification_svc.count_unread(db_session, eve.id) == 1


@pytest.mark.asyncio
async def test_delete_and_clear(db_session, make_user) -> None:
    bob = await make_user()
    eve = await make_user()
    first = await fanout.emit(db_session, _event("follow", bob.id))
    await fanout.emit(db_session, _event("follow", bob.id))
    await fanout.emit(db_session, _event("follow", eve.id))
    await db_session.commit()

    with pytest.raises(NotificationNotFound):
        await notification_svc.delete_notification(db_session, eve.id, first.notification_id)

    await notification_svc.delete_notification(db_session, bob.id, first.notification_id)
    assert await notification_svc.clear_all(db_session, bob.id) == 1
    await db_session.commit()

    assert await notification_svc.count_unread(db_session, bob.id) == 0
    assert await notification_svc.count_unread(db_session, eve.id) == 1


@pytest.mark.asyncio
async def test_pagination_newest_first(db_session, make_user) -> None:
    bob = await make_user()
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for n in range(5):
        event = _event("comment", bob.id, comment_text=f"c{n}")
        await fanout.emit(db_session, event.model_copy(update={"occurred_at": base + timedelta(minutes=n)}))
    await db_session.commit()

    page, total = await notification_svc.list_notifications(db_session, bob.id, 2, 0)
    assert total == 5
    assert [n.context["comment_text"] for n in page] == ["c4", "c3"]
    page, _ = await notification_svc.list_notifications(db_session, bob.id, 2, 4)
    assert [n.context["comment_text"] for n in page] == ["c0"]


# ── Unread count stream ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_watch_unread_count_polls_for_changes(db_session, session_factory, make_user) -> None:
    bob = await make_user()
    first = await fanout.emit(db_session, _event("follow", bob.id))
    await fanout.emit(db_session, _event("follow", bob.id))
    await db_session.commit()

    stream = watch_unread_count(session_factory, bob.id, interval=0.01)
    try:
        assert await asyncio.wait_for(stream.__anext__(), 2) == 2

        await notification_svc.mark_as_read(db_session, bob.id, first.notification_id)
        await db_session.commit()
        assert await asyncio.wait_for(stream.__anext__(), 2) == 1

        await notification_svc.mark_all_as_read(db_session, bob.id)
        await db_session.commit()
        assert await asyncio.wait_for(stream.__anext__(), 2) == 0
    finally:
        await stream.aclose()


@pytest.mark.asyncio
async def test_watch_unread_count_wakes_on_publish(
    db_session, session_factory, make_user, pubsub_redis
) -> None:
    bob = await make_user()
    redis = pubsub_redis

    # A long interval: only the wake-up can produce the second value in time
    stream = watch_unread_count(session_factory, bob.id, redis=redis, interval=60)
    try:
        assert await asyncio.wait_for(stream.__anext__(), 2) == 0
        assert redis.pubsub_instance.channels == [unread_channel(bob.id)]

        await fanout.emit(db_session, _event("mention", bob.id))
        await db_session.commit()
        redis.queue.put_nowait({"type": "message", "data": "1"})

        assert await asyncio.wait_for(stream.__anext__(), 2) == 1
    finally:
        await stream.aclose()
    assert redis.pubsub_instance.closed is True

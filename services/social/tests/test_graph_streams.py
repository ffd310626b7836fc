import asyncio
import json
import uuid

import pytest

from app.social_graph import controller as ctrl
from app.social_graph import service as svc
from app.social_graph.constants import requests_channel, stats_channel
from app.social_graph.stream import watch_follow_requests, watch_follow_stats

API = "/api/v1"


def _frame(raw: str) -> tuple[str, dict]:
    event, data = raw.strip().split("\n")
    return event.removeprefix("event: "), json.loads(data.removeprefix("data: "))


# ── Follow stats ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_watch_follow_stats_polls_for_changes(db_session, session_factory, make_user) -> None:
    alice = await make_user()
    bob = await make_user()

    stream = watch_follow_stats(session_factory, bob.id, interval=0.01)
    try:
        first = await asyncio.wait_for(stream.__anext__(), 2)
        assert (first.followers_count, first.following_count) == (0, 0)

        await svc.follow(db_session, alice.id, bob.id)
        await db_session.commit()
        assert (await asyncio.wait_for(stream.__anext__(), 2)).followers_count == 1

        await svc.unfollow(db_session, alice.id, bob.id)
        await db_session.commit()
        assert (await asyncio.wait_for(stream.__anext__(), 2)).followers_count == 0
    finally:
        await stream.aclose()


@pytest.mark.asyncio
async def test_watch_follow_stats_yields_none_once_profile_is_gone(
    db_session, session_factory, make_user
) -> None:
    carol = await make_user()

    stream = watch_follow_stats(session_factory, carol.id, interval=0.01)
    try:
        assert await asyncio.wait_for(stream.__anext__(), 2) is not None

        await db_session.delete(carol)
        await db_session.commit()
        assert await asyncio.wait_for(stream.__anext__(), 2) is None
    finally:
        await stream.aclose()


@pytest.mark.asyncio
async def test_follow_stats_events_end_with_the_profile(
    db_session, session_factory, make_user, pubsub_redis
) -> None:
    carol = await make_user()

    events = ctrl.follow_stats_events(session_factory, carol.id, pubsub_redis)
    name, data = _frame(await asyncio.wait_for(events.__anext__(), 2))
    assert name == "follow_stats"
    assert data == {"followers_count": 0, "following_count": 0}

    await db_session.delete(carol)
    await db_session.commit()
    pubsub_redis.queue.put_nowait({"type": "message", "data": "1"})
    with pytest.raises(StopAsyncIteration):
        await events.__anext__()
    assert pubsub_redis.pubsub_instance.closed is True


# ── Pending requests ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_watch_follow_requests_wakes_on_publish(
    db_session, session_factory, make_user, pubsub_redis
) -> None:
    alice = await make_user()
    carol = await make_user(is_private=True)
    redis = pubsub_redis

    # A long interval: only the wake-up can produce the next value in time
    stream = watch_follow_requests(session_factory, carol.id, redis=redis, interval=60)
    try:
        assert (await asyncio.wait_for(stream.__anext__(), 2)).total == 0
        assert redis.pubsub_instance.channels == [requests_channel(carol.id)]

        outcome = await svc.send_follow_request(db_session, alice.id, carol.id)
        await db_session.commit()
        redis.queue.put_nowait({"type": "message", "data": "1"})
        pending = await asyncio.wait_for(stream.__anext__(), 2)
        assert [r.request_id for r in pending.items] == [outcome.request.request_id]

        await svc.reject_follow_request(db_session, outcome.request.request_id, carol.id)
        await db_session.commit()
        redis.queue.put_nowait({"type": "message", "data": "1"})
        assert (await asyncio.wait_for(stream.__anext__(), 2)).total == 0
    finally:
        await stream.aclose()
    assert redis.pubsub_instance.closed is True


@pytest.mark.asyncio
async def test_follow_request_events_frames(db_session, session_factory, make_user) -> None:
    alice = await make_user()
    carol = await make_user(is_private=True)
    outcome = await svc.send_follow_request(db_session, alice.id, carol.id)
    await db_session.commit()

    events = ctrl.follow_request_events(session_factory, carol.id, None)
    try:
        name, data = _frame(await asyncio.wait_for(events.__anext__(), 2))
    finally:
        await events.aclose()
    assert name == "follow_requests"
    assert data["total"] == 1
    assert data["items"][0]["request_id"] == str(outcome.request.request_id)


# ── Wake-ups over HTTP ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_follow_publishes_stats_wakeups(
    async_client, auth_headers, make_user, fake_redis
) -> None:
    alice = await make_user()
    bob = await make_user()

    await async_client.post(f"{API}/users/{bob.id}/follow", headers=auth_headers(alice.id))
    assert (stats_channel(alice.id), "1") in fake_redis.published
    assert (stats_channel(bob.id), "1") in fake_redis.published

    fake_redis.published.clear()
    await async_client.delete(f"{API}/users/{bob.id}/follow", headers=auth_headers(alice.id))
    assert sorted(fake_redis.published) == sorted(
        [(stats_channel(alice.id), "1"), (stats_channel(bob.id), "1")]
    )


@pytest.mark.asyncio
async def test_request_lifecycle_publishes_request_wakeups(
    async_client, auth_headers, make_user, fake_redis
) -> None:
    alice = await make_user()
    carol = await make_user(is_private=True)

    response = await async_client.post(
        f"{API}/users/{carol.id}/follow", headers=auth_headers(alice.id)
    )
    request_id = response.json()["request_id"]
    assert (requests_channel(carol.id), "1") in fake_redis.published
    assert (stats_channel(carol.id), "1") not in fake_redis.published

    fake_redis.published.clear()
    await async_client.post(
        f"{API}/follow-requests/{request_id}/accept", headers=auth_headers(carol.id)
    )
    assert (requests_channel(carol.id), "1") in fake_redis.published
    assert (stats_channel(carol.id), "1") in fake_redis.published

    # Rejecting the accepted request changes nothing, so nobody is woken
    fake_redis.published.clear()
    await async_client.post(
        f"{API}/follow-requests/{request_id}/reject", headers=auth_headers(carol.id)
    )
    assert fake_redis.published == []


@pytest.mark.asyncio
async def test_account_deletion_publishes_wakeups(
    async_client, auth_headers, make_user, fake_redis
) -> None:
    alice = await make_user()
    carol = await make_user(is_private=True)
    await async_client.post(f"{API}/users/{carol.id}/follow", headers=auth_headers(alice.id))

    fake_redis.published.clear()
    response = await async_client.delete(f"{API}/users/me", headers=auth_headers(alice.id))
    assert response.status_code == 204
    assert (stats_channel(alice.id), "1") in fake_redis.published
    assert (requests_channel(carol.id), "1") in fake_redis.published


@pytest.mark.asyncio
async def test_follow_stats_stream_unknown_user(async_client, auth_headers, make_user) -> None:
    alice = await make_user()
    response = await async_client.get(
        f"{API}/users/{uuid.uuid4()}/follow-stats/stream", headers=auth_headers(alice.id)
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "user_not_found"


@pytest.mark.asyncio
async def test_follow_request_stream_requires_token(async_client) -> None:
    response = await async_client.get(f"{API}/users/me/follow-requests/stream")
    assert response.status_code == 401

import pytest
import sqlalchemy as sa
from uuid import uuid4

from app import live
from app.exceptions import CannotFollowSelf, UserNotFound
from app.notifications import service as notification_svc
from app.notifications.constants import NotificationType, unread_channel
from app.social_graph import edges
from app.social_graph import service as svc
from app.social_graph.constants import FollowState, stats_channel
from app.social_graph.models import FollowRequest


async def _assert_counters_match_edges(db_session, *users) -> None:
    for user in users:
        stats = await svc.get_user_follow_stats(db_session, user.id)
        followers, following = await edges.count_edges(db_session, user.id)
        assert (stats.followers_count, stats.following_count) == (followers, following)


@pytest.mark.asyncio
async def test_follow_public_account(db_session, make_user) -> None:
    alice = await make_user(display_name="Alice")
    bob = await make_user(display_name="Bob")

    outcome = await svc.follow(db_session, alice.id, bob.id)
    await db_session.commit()

    assert outcome.state == FollowState.FOLLOWING
    assert outcome.created is True
    assert await svc.is_following(db_session, alice.id, bob.id)
    assert not await svc.is_following(db_session, bob.id, alice.id)

    bob_stats = await svc.get_user_follow_stats(db_session, bob.id)
    alice_stats = await svc.get_user_follow_stats(db_session, alice.id)
    assert bob_stats.followers_count == 1
    assert alice_stats.following_count == 1

    items, total = await notification_svc.list_notifications(db_session, bob.id, 20, 0)
    assert total == 1
    assert items[0].type == NotificationType.FOLLOW
    assert items[0].actor_id == alice.id
    assert items[0].message == "Alice started following you"
    assert items[0].is_read is False


@pytest.mark.asyncio
async def test_follow_and_unfollow_mark_stats_channels(db_session, make_user) -> None:
    alice = await make_user()
    bob = await make_user()

    await svc.follow(db_session, alice.id, bob.id)
    await db_session.commit()
    assert live.pop_changed(db_session) == {
        stats_channel(alice.id),
        stats_channel(bob.id),
        unread_channel(bob.id),
    }

    assert await svc.unfollow(db_session, alice.id, bob.id) is True
    await db_session.commit()
    assert live.pop_changed(db_session) == {stats_channel(alice.id), stats_channel(bob.id)}

    assert await svc.unfollow(db_session, alice.id, bob.id) is False
    assert live.pop_changed(db_session) == set()


@pytest.mark.asyncio
async def test_follow_twice_is_noop(db_session, make_user) -> None:
    alice = await make_user()
    bob = await make_user()

    await svc.follow(db_session, alice.id, bob.id)
    second = await svc.follow(db_session, alice.id, bob.id)
    await db_session.commit()

    assert second.created is False
    assert second.state == FollowState.FOLLOWING
    stats = await svc.get_user_follow_stats(db_session, bob.id)
    assert stats.followers_count == 1
    assert await notification_svc.count_unread(db_session, bob.id) == 1


@pytest.mark.asyncio
async def test_cannot_follow_self(db_session, make_user) -> None:
    alice = await make_user()
    with pytest.raises(CannotFollowSelf):
        await svc.follow(db_session, alice.id, alice.id)
    with pytest.raises(CannotFollowSelf):
        await svc.send_follow_request(db_session, alice.id, alice.id)
    with pytest.raises(CannotFollowSelf):
        await edges.add_edge(db_session, alice.id, alice.id)


@pytest.mark.asyncio
async def test_follow_unknown_user(db_session, make_user) -> None:
    alice = await make_user()
    with pytest.raises(UserNotFound):
        await svc.follow(db_session, alice.id, uuid4())


@pytest.mark.asyncio
async def test_follow_private_account_files_request(db_session, make_user) -> None:
    alice = await make_user(display_name="Alice")
    carol = await make_user(is_private=True)

    outcome = await svc.follow(db_session, alice.id, carol.id)
    await db_session.commit()

    assert outcome.state == FollowState.REQUESTED
    assert outcome.created is True
    assert not await svc.is_following(db_session, alice.id, carol.id)
    stats = await svc.get_user_follow_stats(db_session, carol.id)
    assert stats.followers_count == 0

    pending = await svc.get_follow_request(db_session, alice.id, carol.id)
    assert pending is not None
    assert pending.request_id == outcome.request.request_id
    assert pending.from_user_info["display_name"] == "Alice"

    items, _ = await notification_svc.list_notifications(db_session, carol.id, 20, 0)
    assert [n.type for n in items] == [NotificationType.FOLLOW_REQUEST]
    assert items[0].follow_request_id == pending.request_id
    assert items[0].message == "Alice wants to follow you"


@pytest.mark.asyncio
async def test_unfollow(db_session, make_user) -> None:
    alice = await make_user()
    bob = await make_user()
    await svc.follow(db_session, alice.id, bob.id)

    assert await svc.unfollow(db_session, alice.id, bob.id) is True
    assert await svc.unfollow(db_session, alice.id, bob.id) is False
    await db_session.commit()

    assert not await svc.is_following(db_session, alice.id, bob.id)
    await _assert_counters_match_edges(db_session, alice, bob)
    stats = await svc.get_user_follow_stats(db_session, bob.id)
    assert stats.followers_count == 0


@pytest.mark.asyncio
async def test_unfollow_clamps_counters_at_zero(db_session, make_user) -> None:
    alice = await make_user()
    bob = await make_user()
    await svc.follow(db_session, alice.id, bob.id)
    # Simulate drift left by an interrupted historical write
    bob.followers_count = 0
    await db_session.commit()

    await svc.unfollow(db_session, alice.id, bob.id)
    await db_session.commit()

    bob_stats = await svc.get_user_follow_stats(db_session, bob.id)
    alice_stats = await svc.get_user_follow_stats(db_session, alice.id)
    assert bob_stats.followers_count == 0
    assert alice_stats.following_count == 0


@pytest.mark.asyncio
async def test_counters_track_edges_through_mixed_sequence(db_session, make_user) -> None:
    users = [await make_user() for _ in range(4)]
    a, b, c, d = users

    await svc.follow(db_session, a.id, b.id)
    await svc.follow(db_session, a.id, c.id)
    await svc.follow(db_session, b.id, c.id)
    await svc.follow(db_session, d.id, c.id)
    await svc.follow(db_session, c.id, a.id)
    await svc.unfollow(db_session, a.id, c.id)
    await svc.follow(db_session, a.id, b.id)
    await svc.unfollow(db_session, d.id, a.id)
    await db_session.commit()

    await _assert_counters_match_edges(db_session, *users)
    c_stats = await svc.get_user_follow_stats(db_session, c.id)
    assert c_stats.followers_count == 2


@pytest.mark.asyncio
async def test_follower_and_following_id_lists(db_session, make_user) -> None:
    a = await make_user()
    b = await make_user()
    c = await make_user()
    await svc.follow(db_session, a.id, c.id)
    await svc.follow(db_session, b.id, c.id)
    await svc.follow(db_session, c.id, a.id)
    await db_session.commit()

    assert set(await svc.get_user_followers(db_session, c.id)) == {a.id, b.id}
    assert await svc.get_user_following(db_session, c.id) == [a.id]
    assert await svc.get_user_following(db_session, b.id) == [c.id]
    assert await svc.get_user_followers(db_session, b.id) == []


@pytest.mark.asyncio
async def test_paginated_followers_flag_viewer_follows(db_session, make_user) -> None:
    a = await make_user()
    b = await make_user()
    c = await make_user()
    viewer = await make_user()
    await svc.follow(db_session, a.id, c.id)
    await svc.follow(db_session, b.id, c.id)
    await svc.follow(db_session, viewer.id, a.id)
    await db_session.commit()

    rows, total = await svc.get_followers(db_session, c.id, viewer_id=viewer.id, page=1, size=10)
    assert total == 2
    flags = {profile.id: followed for _, profile, followed in rows}
    assert flags == {a.id: True, b.id: False}

    rows, total = await svc.get_followers(db_session, c.id, viewer_id=viewer.id, page=2, size=1)
    assert total == 2
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_story_visibility(db_session, make_user) -> None:
    public = await make_user()
    private = await make_user(is_private=True)
    viewer = await make_user()

    assert await svc.can_see_user_stories(db_session, private.id, private.id)
    assert await svc.can_see_user_stories(db_session, viewer.id, public.id)
    assert not await svc.can_see_user_stories(db_session, viewer.id, private.id)
    assert not await svc.can_see_user_stories(db_session, viewer.id, uuid4())

    outcome = await svc.follow(db_session, viewer.id, private.id)
    await svc.accept_follow_request(db_session, outcome.request.request_id, private.id)
    await db_session.commit()

    assert await svc.can_see_user_stories(db_session, viewer.id, private.id)


@pytest.mark.asyncio
async def test_relationship(db_session, make_user) -> None:
    alice = await make_user()
    bob = await make_user()
    carol = await make_user(is_private=True)
    await svc.follow(db_session, bob.id, alice.id)
    await svc.follow(db_session, alice.id, carol.id)
    await db_session.commit()

    rel = await svc.get_relationship(db_session, alice.id, bob.id)
    assert rel.is_following is False
    assert rel.is_followed_by is True
    assert rel.has_pending_request is False
    assert rel.can_see_stories is True

    rel = await svc.get_relationship(db_session, alice.id, carol.id)
    assert rel.is_following is False
    assert rel.has_pending_request is True
    assert rel.can_see_stories is False

    with pytest.raises(UserNotFound):
        await svc.get_relationship(db_session, alice.id, uuid4())


@pytest.mark.asyncio
async def test_reconcile_follow_counts_repairs_drift(db_session, make_user) -> None:
    alice = await make_user()
    bob = await make_user()
    await svc.follow(db_session, alice.id, bob.id)
    bob.followers_count = 7
    bob.following_count = 3
    await db_session.commit()

    stats = await svc.reconcile_follow_counts(db_session, bob.id)
    await db_session.commit()

    assert (stats.followers_count, stats.following_count) == (1, 0)
    stored = await svc.get_user_follow_stats(db_session, bob.id)
    assert (stored.followers_count, stored.following_count) == (1, 0)


@pytest.mark.asyncio
async def test_delete_account_cascades(db_session, make_user) -> None:
    doomed = await make_user()
    followee = await make_user()
    follower = await make_user()
    private = await make_user(is_private=True)
    doomed_id = doomed.id

    await svc.follow(db_session, doomed_id, followee.id)
    await svc.follow(db_session, follower.id, doomed_id)
    await svc.follow(db_session, doomed_id, private.id)
    await db_session.commit()

    await svc.delete_account(db_session, doomed_id)
    await db_session.commit()

    followee_stats = await svc.get_user_follow_stats(db_session, followee.id)
    follower_stats = await svc.get_user_follow_stats(db_session, follower.id)
    assert followee_stats.followers_count == 0
    assert follower_stats.following_count == 0
    assert await svc.get_follow_requests(db_session, private.id) == []
    assert await notification_svc.count_unread(db_session, followee.id) == 0
    assert await notification_svc.count_unread(db_session, private.id) == 0

    remaining = await db_session.execute(sa.select(sa.func.count()).select_from(FollowRequest))
    assert remaining.scalar_one() == 0
    with pytest.raises(UserNotFound):
        await svc.get_user_follow_stats(db_session, doomed_id)

# tests/test_dispatcher.py
"""
Recompute dispatcher: fan-out, coalescing, seeding and shutdown.
"""
import threading
from collections import Counter

import pytest

from groupmatch.domain.errors import DispatcherClosedError
from groupmatch.domain.roles import Role
from groupmatch.infrastructure.repositories.group_profile_repo import GroupProfileRepo
from groupmatch.infrastructure.repositories.group_repo import GroupRepo
from groupmatch.services.aggregator import ProfileAggregator
from groupmatch.services.dispatcher import RecomputeDispatcher
from groupmatch.services.events import GroupCreated, MembershipChanged, ProfileUpdated
from groupmatch.services.group_service import GroupService


class BlockingAggregator:
    """Holds the first recompute until released."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()
        self.calls = Counter()

    def recompute(self, group_id):
        self.calls[group_id] += 1
        self.started.set()
        self.release.wait(timeout=5)


class FailingAggregator(BlockingAggregator):
    def recompute(self, group_id):
        self.calls[group_id] += 1
        if group_id == 1:
            raise RuntimeError("boom")


@pytest.fixture
def services(session_factory):
    aggregator = ProfileAggregator(session_factory)
    dispatcher = RecomputeDispatcher(aggregator, session_factory, max_workers=2)
    yield {
        "dispatcher": dispatcher,
        "groups": GroupService(session_factory, dispatcher),
    }
    dispatcher.shutdown(timeout=5)

# -------------------------------
# Coalescing
# -------------------------------

def test_rapid_events_are_coalesced(session_factory):
    agg = BlockingAggregator()
    dispatcher = RecomputeDispatcher(agg, session_factory, max_workers=2)
    try:
        dispatcher.publish(MembershipChanged(7))
        assert agg.started.wait(timeout=5)
        for _ in range(9):
            dispatcher.publish(MembershipChanged(7))
        assert dispatcher.is_pending(7)
        agg.release.set()
        assert dispatcher.wait_idle(timeout=5)
    finally:
        dispatcher.shutdown(timeout=5)

    # one in-flight run plus one follow-up for everything that arrived meanwhile
    assert 1 <= agg.calls[7] < 10
    assert agg.calls[7] == 2
    assert dispatcher.stats()["coalesced"][7] == 9
    assert not dispatcher.is_pending(7)


def test_distinct_groups_are_not_coalesced(session_factory):
    agg = BlockingAggregator()
    agg.release.set()
    dispatcher = RecomputeDispatcher(agg, session_factory, max_workers=2)
    for group_id in (1, 2, 3):
        dispatcher.publish(MembershipChanged(group_id))
    assert dispatcher.shutdown(timeout=5)
    assert agg.calls == Counter({1: 1, 2: 1, 3: 1})


def test_failed_recompute_does_not_stop_other_jobs(session_factory):
    agg = FailingAggregator()
    dispatcher = RecomputeDispatcher(agg, session_factory, max_workers=1)
    dispatcher.publish(MembershipChanged(1))
    dispatcher.publish(MembershipChanged(2))
    assert dispatcher.shutdown(timeout=5)
    assert agg.calls == Counter({1: 1, 2: 1})
    assert dispatcher.stats()["executed"] == {1: 1, 2: 1}

# -------------------------------
# Lifecycle
# -------------------------------

def test_shutdown_rejects_new_events(session_factory):
    agg = BlockingAggregator()
    agg.release.set()
    dispatcher = RecomputeDispatcher(agg, session_factory, max_workers=1)
    dispatcher.publish(MembershipChanged(1))
    assert dispatcher.shutdown(timeout=5)
    assert dispatcher.closed
    assert agg.calls[1] == 1
    with pytest.raises(DispatcherClosedError):
        dispatcher.publish(MembershipChanged(1))
    with pytest.raises(DispatcherClosedError):
        dispatcher.publish(GroupCreated(2, 1))


def test_shutdown_during_fan_out_schedules_nothing(session_factory, monkeypatch):
    agg = BlockingAggregator()
    agg.release.set()
    dispatcher = RecomputeDispatcher(agg, session_factory, max_workers=2)

    def close_then_list(self, user_id):
        dispatcher.shutdown(wait=False)
        return [1, 2, 3]

    monkeypatch.setattr(GroupRepo, "group_ids_for_user", close_then_list)
    with pytest.raises(DispatcherClosedError):
        dispatcher.publish(ProfileUpdated(42))
    assert agg.calls == Counter()
    assert not any(dispatcher.is_pending(g) for g in (1, 2, 3))


def test_unknown_event_rejected(session_factory):
    dispatcher = RecomputeDispatcher(BlockingAggregator(), session_factory, max_workers=1)
    with pytest.raises(TypeError):
        dispatcher.publish("not an event")
    dispatcher.shutdown()

# -------------------------------
# Routing against the database
# -------------------------------

def test_group_created_seeds_before_returning(services, make_user, course_id, set_profile):
    alice = make_user()
    set_profile(alice, {"EXPERT": 0.8})
    group = services["groups"].create_group(alice, "Experts", course_id)

    # no wait: the seed is committed with the group itself
    profile = services["groups"].get_group_profile(group.group_id)
    assert profile.average_scores[Role.EXPERT] == 0.8
    assert profile.member_count_contributing == 1


class ObservingDispatcher(RecomputeDispatcher):
    """Reads the group profile the moment GroupCreated is published."""

    def __init__(self, aggregator, session_factory):
        super().__init__(aggregator, session_factory, max_workers=1)
        self.reader = GroupService(session_factory)
        self.observed = []

    def on_group_created(self, group_id, creator_id):
        self.observed.append(self.reader.get_group_profile(group_id))
        return super().on_group_created(group_id, creator_id)


def test_group_profile_is_seeded_before_created_event(session_factory, make_user, course_id, set_profile):
    alice = make_user()
    set_profile(alice, {"EXPERT": 0.8})
    dispatcher = ObservingDispatcher(ProfileAggregator(session_factory), session_factory)
    try:
        GroupService(session_factory, dispatcher).create_group(alice, "Seeded", course_id)
    finally:
        dispatcher.shutdown(timeout=5)

    [seen] = dispatcher.observed
    assert seen.average_scores[Role.EXPERT] == 0.8
    assert seen.member_count_contributing == 1


def test_profile_update_fans_out_to_all_groups(services, make_user, course_id, set_profile):
    alice, bob = make_user(), make_user()
    g1 = services["groups"].create_group(alice, "One", course_id)
    g2 = services["groups"].create_group(bob, "Two", course_id)
    services["groups"].join_group(g2.group_id, alice)
    services["dispatcher"].wait_idle(timeout=5)

    set_profile(alice, {"CREATIVE": 0.9})
    scheduled = services["dispatcher"].publish(ProfileUpdated(alice))
    assert sorted(scheduled) == sorted([g1.group_id, g2.group_id])
    assert services["dispatcher"].wait_idle(timeout=5)

    p1 = services["groups"].get_group_profile(g1.group_id)
    p2 = services["groups"].get_group_profile(g2.group_id)
    assert p1.average_scores[Role.CREATIVE] == pytest.approx(0.9)
    # bob has no signal, so alice alone drives the average
    assert p2.average_scores[Role.CREATIVE] == pytest.approx(0.9)
    assert p2.member_count_contributing == 1


def test_join_and_leave_trigger_recompute(services, make_user, course_id, set_profile):
    alice, bob = make_user(), make_user()
    set_profile(alice, {"LEADER": 0.9})
    set_profile(bob, {"LEADER": 0.8}, status="IN_PROGRESS", answered=5, total=10)
    group = services["groups"].create_group(alice, "Leaders", course_id)

    services["groups"].join_group(group.group_id, bob)
    assert services["dispatcher"].wait_idle(timeout=5)
    joined = services["groups"].get_group_profile(group.group_id)
    assert joined.average_scores[Role.LEADER] == pytest.approx(0.8666666, rel=1e-6)

    services["groups"].leave_group(group.group_id, bob)
    assert services["dispatcher"].wait_idle(timeout=5)
    left = services["groups"].get_group_profile(group.group_id)
    assert left.average_scores[Role.LEADER] == pytest.approx(0.9)
    assert left.member_count_contributing == 1


def test_recompute_for_deleted_group_is_dropped(services, session_factory, make_user, course_id):
    group = services["groups"].create_group(make_user(), "Short lived", course_id)
    services["dispatcher"].wait_idle(timeout=5)
    services["groups"].delete_group(group.group_id)
    services["dispatcher"].publish(MembershipChanged(group.group_id))
    assert services["dispatcher"].wait_idle(timeout=5)
    with session_factory() as db:
        assert GroupProfileRepo(db).get(group.group_id) is None

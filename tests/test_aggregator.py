# tests/test_aggregator.py
import pytest

from groupmatch.domain.aggregation import aggregate
from groupmatch.domain.models import CharacteristicProfile
from groupmatch.domain.roles import Role, RoleVector
from groupmatch.infrastructure.repositories.group_profile_repo import GroupProfileRepo
from groupmatch.services.aggregator import ProfileAggregator
from groupmatch.services.group_service import GroupService


@pytest.fixture
def aggregator(session_factory):
    return ProfileAggregator(session_factory)


@pytest.fixture
def groups(session_factory):
    # no dispatcher: recomputes are driven by hand
    return GroupService(session_factory)

# -------------------------------
# Pure aggregation
# -------------------------------

def test_weighted_average_scenario():
    p1 = CharacteristicProfile(user_id=1, scores=RoleVector.from_mapping({"LEADER": 0.9}), quiz_status="COMPLETED")
    p2 = CharacteristicProfile(user_id=2, scores=RoleVector.from_mapping({"LEADER": 0.8}),
                               quiz_status="IN_PROGRESS", answered_questions=5, total_questions=10)
    avg, contributing = aggregate([p1, p2])
    assert avg[Role.LEADER] == pytest.approx((0.9 * 1.0 + 0.8 * 0.5) / 1.5)
    assert avg[Role.LEADER] == pytest.approx(0.8666666, rel=1e-6)
    assert contributing == 2
    assert all(avg[r] == 0.0 for r in Role if r is not Role.LEADER)


def test_zero_reliability_members_do_not_contribute():
    skipped = CharacteristicProfile(user_id=1, scores=RoleVector([1.0] * 7), quiz_status="SKIPPED")
    fresh = CharacteristicProfile(user_id=2)
    avg, contributing = aggregate([skipped, fresh])
    assert avg == RoleVector.zeros()
    assert contributing == 0


def test_aggregate_independent_of_member_order():
    profiles = [
        CharacteristicProfile(user_id=i, scores=RoleVector([0.1 * i] * 7), quiz_status="COMPLETED")
        for i in range(1, 8)
    ]
    assert aggregate(profiles) == aggregate(list(reversed(profiles)))

# -------------------------------
# Recompute against the database
# -------------------------------

def test_recompute_matches_scenario(aggregator, groups, make_user, course_id, set_profile):
    alice, bob = make_user(), make_user()
    set_profile(alice, {"LEADER": 0.9})
    set_profile(bob, {"LEADER": 0.8}, status="IN_PROGRESS", answered=5, total=10)
    group = groups.create_group(alice, "Leaders", course_id)
    groups.join_group(group.group_id, bob)

    result = aggregator.recompute(group.group_id)
    assert result.average_scores[Role.LEADER] == pytest.approx(0.8666666, rel=1e-6)
    assert result.member_count_contributing == 2
    assert groups.get_group_profile(group.group_id).average_scores == result.average_scores


def test_recompute_is_idempotent(aggregator, groups, make_user, course_id, set_profile):
    alice, bob = make_user(), make_user()
    set_profile(alice, {"EXPERT": 0.7, "PLANNER": 0.3})
    set_profile(bob, {"CREATIVE": 0.45}, status="IN_PROGRESS", answered=1, total=3)
    group = groups.create_group(alice, "Mixed", course_id)
    groups.join_group(group.group_id, bob)

    first = aggregator.recompute(group.group_id)
    second = aggregator.recompute(group.group_id)
    assert first.average_scores.values == second.average_scores.values
    assert first.member_count_contributing == second.member_count_contributing
    assert second.last_recomputed_at >= first.last_recomputed_at


def test_members_without_signal_give_zero_vector(aggregator, groups, make_user, course_id):
    alice, bob = make_user(), make_user()
    group = groups.create_group(alice, "Newcomers", course_id)
    groups.join_group(group.group_id, bob)

    result = aggregator.recompute(group.group_id)
    assert result.average_scores == RoleVector.zeros()
    assert result.member_count_contributing == 0


def test_recompute_of_deleted_group_is_noop(aggregator, groups, make_user, course_id):
    group = groups.create_group(make_user(), "Gone", course_id)
    groups.delete_group(group.group_id)
    assert aggregator.recompute(group.group_id) is None


class DeletingAggregator(ProfileAggregator):
    """Deletes the group right after its members have been read."""

    def __init__(self, session_factory, groups):
        super().__init__(session_factory)
        self.groups = groups

    def _member_profiles(self, db, group_id):
        profiles = super()._member_profiles(db, group_id)
        self.groups.delete_group(group_id)
        return profiles


def test_group_deleted_mid_recompute_leaves_no_profile(session_factory, groups, make_user, course_id,
                                                       set_profile):
    alice = make_user()
    set_profile(alice, {"PLANNER": 0.7})
    group = groups.create_group(alice, "Vanishing", course_id)

    assert DeletingAggregator(session_factory, groups).recompute(group.group_id) is None
    with session_factory() as db:
        assert GroupProfileRepo(db).get(group.group_id) is None

# -------------------------------
# Seeding
# -------------------------------

def test_seed_uses_creator_profile_once(session_factory, groups, make_user, course_id, set_profile):
    alice = make_user()
    set_profile(alice, {"COMMUNICATOR": 0.6})
    group = groups.create_group(alice, "Talkers", course_id)

    seeded = groups.get_group_profile(group.group_id)
    assert seeded.average_scores[Role.COMMUNICATOR] == 0.6
    assert seeded.member_count_contributing == 1
    # seeding again keeps the existing profile
    set_profile(alice, {"LEADER": 1.0})
    with session_factory.begin() as db:
        again = ProfileAggregator.seed_in(db, group.group_id, alice)
    assert again.average_scores == seeded.average_scores


def test_seed_matches_creator_scores_exactly(groups, make_user, course_id, set_profile):
    alice = make_user()
    set_profile(alice, {"LEADER": 0.5, "PLANNER": 0.5})
    group = groups.create_group(alice, "Planners", course_id)

    profile = groups.get_group_profile(group.group_id)
    assert profile.average_scores == RoleVector([0.5, 0.5, 0, 0, 0, 0, 0])
    assert profile.member_count_contributing == 1

# groupmatch/services/matching_service.py
"""
Group recommendations for a user.

Steps:
1. Hard filters (course, capacity, membership, visibility, caller filters)
2. Variance-reduction score for each remaining group
3. Rank by descending score, ties by ascending group id
"""
import logging
from typing import List, Optional, Set

from sqlalchemy.orm import sessionmaker

from groupmatch.config.settings import settings
from groupmatch.domain.errors import NotFoundError
from groupmatch.domain.models import (
    Availability, CharacteristicProfile, GroupCharacteristicProfile, GroupSnapshot,
    MatchFilters, MatchResult, Visibility,
)
from groupmatch.domain.scoring import MatchScorer
from groupmatch.infrastructure.repositories.group_profile_repo import GroupProfileRepo
from groupmatch.infrastructure.repositories.group_repo import GroupRepo
from groupmatch.infrastructure.repositories.profile_repo import ProfileRepo
from groupmatch.infrastructure.repositories.user_repo import UserRepo

logger = logging.getLogger(__name__)


def hard_filter_failure(group: GroupSnapshot, user_id: int, enrolled: Set[int],
                        filters: Optional[MatchFilters] = None) -> Optional[str]:
    """Name of the first eligibility rule the group fails, or None if eligible."""
    if group.course_id is None or group.course_id not in enrolled:
        return "course"
    if group.is_full:
        return "capacity"
    if user_id in group.member_ids:
        return "membership"
    if group.visibility == Visibility.PRIVATE:
        return "visibility"
    if filters is None:
        return None
    if filters.course_id is not None and group.course_id != filters.course_id:
        return "course_filter"
    if filters.visibility is not None and group.visibility != filters.visibility:
        return "visibility_filter"
    if filters.availability == Availability.AVAILABLE and group.is_full:
        return "availability_filter"
    if filters.availability == Availability.FULL and not group.is_full:
        return "availability_filter"
    return None


class MatchingQueryService:
    def __init__(self, session_factory: sessionmaker, scorer: Optional[MatchScorer] = None):
        self.session_factory = session_factory
        self.scorer = scorer or MatchScorer(settings.MATCH_CEILING_BASE)

    def _load_user(self, db, user_id: int):
        users = UserRepo(db)
        if not users.exists(user_id):
            raise NotFoundError(f"User {user_id} not found")
        profile = ProfileRepo(db).get(user_id) or CharacteristicProfile(user_id=user_id)
        return profile, users.enrolled_course_ids(user_id)

    def _score(self, profile: CharacteristicProfile, group: GroupSnapshot,
               group_profile: Optional[GroupCharacteristicProfile]) -> MatchResult:
        group_profile = group_profile or GroupCharacteristicProfile(group_id=group.group_id)
        breakdown = self.scorer.score(
            profile.scores,
            profile.reliability,
            group_profile.average_scores,
            group_profile.member_count_contributing,
        )
        return MatchResult(
            group_id=group.group_id,
            score=breakdown.final_score,
            group_name=group.name,
            course_id=group.course_id,
            visibility=group.visibility,
            current_size=group.current_member_count,
            max_size=group.max_size,
            current_variance=breakdown.var_before,
            projected_variance=breakdown.var_after,
            match_reason=breakdown.match_reason,
        )

    def list_matches(self, user_id: int, filters: Optional[MatchFilters] = None) -> List[MatchResult]:
        filters = filters or MatchFilters(limit=settings.MATCH_RESULT_LIMIT)
        with self.session_factory() as db:
            profile, enrolled = self._load_user(db, user_id)
            if not enrolled:
                logger.info(f"User {user_id} not enrolled in any courses")
                return []

            candidates = [
                g for g in GroupRepo(db).list_snapshots_for_courses(enrolled)
                if hard_filter_failure(g, user_id, enrolled, filters) is None
            ]
            logger.info(f"Found {len(candidates)} candidate groups for user {user_id} after hard filters")

            group_profiles = GroupProfileRepo(db)
            results = []
            for group in candidates:
                try:
                    results.append(self._score(profile, group, group_profiles.get(group.group_id)))
                except Exception:
                    logger.exception(f"Error calculating match score for group {group.group_id}, skipping")

        results.sort(key=lambda r: (-r.score, r.group_id))
        if filters.limit is not None:
            results = results[:filters.limit]
        return results

    def score_one(self, user_id: int, group_id: int) -> MatchResult:
        """
        Match score for one group. Raises NotFoundError if the user or group
        does not exist or the group fails the hard filters.
        """
        with self.session_factory() as db:
            profile, enrolled = self._load_user(db, user_id)
            group = GroupRepo(db).get_snapshot(group_id)
            if group is None:
                raise NotFoundError(f"Group {group_id} not found")
            failure = hard_filter_failure(group, user_id, enrolled)
            if failure is not None:
                raise NotFoundError(f"Group {group_id} is not eligible for user {user_id} ({failure})")
            result = self._score(profile, group, GroupProfileRepo(db).get(group_id))

        logger.debug(f"User {user_id} vs group {group_id}: {result.score:.2f}")
        return result

# groupmatch/services/aggregator.py
"""
Recomputes group characteristic profiles from member profiles.

This is the only writer of group profiles. recompute() runs in its own
transaction, opened from the session factory it was built with, so it can be
driven from worker threads. seed_in() writes inside the caller's transaction.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from groupmatch.domain.aggregation import aggregate
from groupmatch.domain.errors import StaleReferenceError
from groupmatch.domain.models import CharacteristicProfile, GroupCharacteristicProfile
from groupmatch.infrastructure.repositories.group_profile_repo import GroupProfileRepo
from groupmatch.infrastructure.repositories.group_repo import GroupRepo
from groupmatch.infrastructure.repositories.profile_repo import ProfileRepo

logger = logging.getLogger(__name__)


def next_timestamp(previous: Optional[GroupCharacteristicProfile]) -> datetime:
    now = datetime.now(timezone.utc)
    if previous is not None and previous.last_recomputed_at > now:
        return previous.last_recomputed_at
    return now


class ProfileAggregator:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _member_profiles(self, db, group_id: int) -> List[CharacteristicProfile]:
        member_ids = GroupRepo(db).member_ids(group_id)
        stored = ProfileRepo(db).list_for_users(member_ids)
        # members without a profile row have not started the quiz
        return [stored.get(uid) or CharacteristicProfile(user_id=uid) for uid in member_ids]

    def recompute(self, group_id: int) -> Optional[GroupCharacteristicProfile]:
        """
        Rebuild the group's average role scores from its current members.
        Returns None (and writes nothing) if the group no longer exists,
        including when it is deleted while the recompute is running.
        """
        try:
            with self.session_factory.begin() as db:
                try:
                    profiles = self._member_profiles(db, group_id)
                    averages, contributing = aggregate(profiles)
                    repo = GroupProfileRepo(db)
                    result = GroupCharacteristicProfile(
                        group_id=group_id,
                        average_scores=averages,
                        member_count_contributing=contributing,
                        last_recomputed_at=next_timestamp(repo.get(group_id)),
                    )
                    repo.upsert(result)
                except (IntegrityError, StaleDataError) as e:
                    # the profile row references a group deleted after we read its members
                    raise StaleReferenceError(f"Group {group_id} was deleted during recompute") from e
        except StaleReferenceError as e:
            logger.warning(f"Dropping recompute: {e}")
            return None

        logger.info(
            f"Recomputed group {group_id}: {len(profiles)} members, "
            f"{contributing} contributing, variance={result.current_variance:.4f}"
        )
        return result

    @staticmethod
    def seed_in(db: Session, group_id: int, creator_id: int) -> GroupCharacteristicProfile:
        """
        Initial group profile, taken from the creator's current profile.
        Runs in the caller's open transaction so the group and its profile
        become visible together. An existing profile is returned unchanged.
        """
        repo = GroupProfileRepo(db)
        existing = repo.get(group_id)
        if existing is not None:
            logger.info(f"Profile already exists for group {group_id}, skipping seed")
            return existing

        creator = ProfileRepo(db).get(creator_id) or CharacteristicProfile(user_id=creator_id)
        averages, contributing = aggregate([creator])
        result = GroupCharacteristicProfile(
            group_id=group_id,
            average_scores=averages,
            member_count_contributing=contributing,
            last_recomputed_at=next_timestamp(None),
        )
        repo.upsert(result)
        logger.info(f"Seeded group {group_id} from creator {creator_id}")
        return result

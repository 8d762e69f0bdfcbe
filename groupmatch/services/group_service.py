# groupmatch/services/group_service.py
import logging
from typing import Optional

from sqlalchemy.orm import sessionmaker

from groupmatch.domain.errors import NotFoundError, ValidationError
from groupmatch.domain.models import GroupCharacteristicProfile, GroupSnapshot, Visibility
from groupmatch.infrastructure.repositories.group_profile_repo import GroupProfileRepo
from groupmatch.infrastructure.repositories.group_repo import GroupRepo
from groupmatch.infrastructure.repositories.user_repo import UserRepo
from groupmatch.services.aggregator import ProfileAggregator
from groupmatch.services.dispatcher import RecomputeDispatcher

logger = logging.getLogger(__name__)


class GroupService:
    """
    Group lifecycle. Every membership change is committed first, then
    published to the recompute dispatcher (fire-and-forget). A new group's
    profile is seeded from its creator in the same transaction as the group.
    """

    def __init__(self, session_factory: sessionmaker, dispatcher: Optional[RecomputeDispatcher] = None):
        self.session_factory = session_factory
        self.dispatcher = dispatcher

    def create_group(self, creator_id: int, name: str, course_id: Optional[int] = None,
                     max_size: int = 6, visibility: Visibility = Visibility.OPEN) -> GroupSnapshot:
        if max_size < 1:
            raise ValidationError(f"max_size must be at least 1, got {max_size}")
        if not name or not name.strip():
            raise ValidationError("Group name is required")

        with self.session_factory.begin() as db:
            users = UserRepo(db)
            if not users.exists(creator_id):
                raise NotFoundError(f"User {creator_id} not found")
            if course_id is not None and users.get_course(course_id) is None:
                raise NotFoundError(f"Course {course_id} not found")

            groups = GroupRepo(db)
            group = groups.create(name.strip(), course_id, creator_id, max_size, Visibility(visibility))
            groups.add_member(group.id, creator_id)
            group_id = group.id
            ProfileAggregator.seed_in(db, group_id, creator_id)

        logger.info(f"Group {group_id} created by user {creator_id}")
        if self.dispatcher is not None:
            self.dispatcher.on_group_created(group_id, creator_id)
        return self.get_group(group_id)

    def get_group(self, group_id: int) -> GroupSnapshot:
        with self.session_factory() as db:
            snapshot = GroupRepo(db).get_snapshot(group_id)
        if snapshot is None:
            raise NotFoundError(f"Group {group_id} not found")
        return snapshot

    def join_group(self, group_id: int, user_id: int) -> GroupSnapshot:
        with self.session_factory.begin() as db:
            users = UserRepo(db)
            if not users.exists(user_id):
                raise NotFoundError(f"User {user_id} not found")
            groups = GroupRepo(db)
            snapshot = groups.get_snapshot(group_id)
            if snapshot is None:
                raise NotFoundError(f"Group {group_id} not found")

            if user_id in snapshot.member_ids:
                raise ValidationError(f"User {user_id} is already a member of group {group_id}")
            if snapshot.is_full:
                raise ValidationError(f"Group {group_id} is full")
            if snapshot.visibility == Visibility.PRIVATE:
                raise ValidationError(f"Group {group_id} is private")
            if snapshot.course_id is not None and snapshot.course_id not in users.enrolled_course_ids(user_id):
                raise ValidationError(f"User {user_id} is not enrolled in course {snapshot.course_id}")

            groups.add_member(group_id, user_id)

        logger.info(f"User {user_id} joined group {group_id}")
        if self.dispatcher is not None:
            self.dispatcher.on_membership_changed(group_id, user_id, joined=True)
        return self.get_group(group_id)

    def leave_group(self, group_id: int, user_id: int) -> GroupSnapshot:
        with self.session_factory.begin() as db:
            groups = GroupRepo(db)
            if groups.get(group_id) is None:
                raise NotFoundError(f"Group {group_id} not found")
            if not groups.remove_member(group_id, user_id):
                raise ValidationError(f"User {user_id} is not a member of group {group_id}")

        logger.info(f"User {user_id} left group {group_id}")
        if self.dispatcher is not None:
            self.dispatcher.on_membership_changed(group_id, user_id, joined=False)
        return self.get_group(group_id)

    def delete_group(self, group_id: int) -> None:
        """Remove the group, its memberships and its derived profile."""
        with self.session_factory.begin() as db:
            if not GroupRepo(db).delete(group_id):
                raise NotFoundError(f"Group {group_id} not found")
            GroupProfileRepo(db).delete(group_id)
        logger.info(f"Group {group_id} deleted")

    def get_group_profile(self, group_id: int) -> GroupCharacteristicProfile:
        with self.session_factory() as db:
            if GroupRepo(db).get(group_id) is None:
                raise NotFoundError(f"Group {group_id} not found")
            profile = GroupProfileRepo(db).get(group_id)
        return profile or GroupCharacteristicProfile(group_id=group_id)

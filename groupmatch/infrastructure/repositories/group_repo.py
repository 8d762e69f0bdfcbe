# groupmatch/infrastructure/repositories/group_repo.py
from typing import Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from groupmatch.domain.errors import StaleReferenceError
from groupmatch.domain.models import GroupSnapshot, Visibility
from groupmatch.infrastructure.models import GroupMember, StudyGroup


def to_snapshot(group: StudyGroup) -> GroupSnapshot:
    return GroupSnapshot(
        group_id=group.id,
        name=group.name,
        course_id=group.course_id,
        max_size=group.max_size,
        visibility=Visibility(group.visibility),
        member_ids=sorted(m.user_id for m in group.members),
    )


class GroupRepo:
    def __init__(self, db: Session):
        self.db = db

    def create(self, name: str, course_id: Optional[int], creator_id: int,
               max_size: int, visibility: Visibility = Visibility.OPEN) -> StudyGroup:
        group = StudyGroup(
            name=name,
            course_id=course_id,
            creator_id=creator_id,
            max_size=max_size,
            visibility=visibility.value,
        )
        self.db.add(group)
        self.db.flush()
        return group

    def get(self, group_id: int) -> Optional[StudyGroup]:
        return self.db.get(StudyGroup, group_id)

    def get_snapshot(self, group_id: int) -> Optional[GroupSnapshot]:
        group = self.db.execute(
            select(StudyGroup).options(selectinload(StudyGroup.members)).where(StudyGroup.id == group_id)
        ).scalars().first()
        return to_snapshot(group) if group else None

    def list_snapshots_for_courses(self, course_ids: Iterable[int]) -> List[GroupSnapshot]:
        course_ids = list(course_ids)
        if not course_ids:
            return []
        groups = self.db.execute(
            select(StudyGroup)
            .options(selectinload(StudyGroup.members))
            .where(StudyGroup.course_id.in_(course_ids))
            .order_by(StudyGroup.id)
        ).scalars().all()
        return [to_snapshot(g) for g in groups]

    def member_ids(self, group_id: int) -> List[int]:
        """Current member ids. Raises StaleReferenceError if the group is gone."""
        if self.db.get(StudyGroup, group_id) is None:
            raise StaleReferenceError(f"Group {group_id} no longer exists")
        rows = self.db.execute(
            select(GroupMember.user_id).where(GroupMember.group_id == group_id).order_by(GroupMember.user_id)
        ).scalars().all()
        return list(rows)

    def group_ids_for_user(self, user_id: int) -> List[int]:
        rows = self.db.execute(
            select(GroupMember.group_id).where(GroupMember.user_id == user_id).order_by(GroupMember.group_id)
        ).scalars().all()
        return list(rows)

    def add_member(self, group_id: int, user_id: int) -> GroupMember:
        member = GroupMember(group_id=group_id, user_id=user_id)
        self.db.add(member)
        self.db.flush()
        return member

    def remove_member(self, group_id: int, user_id: int) -> bool:
        result = self.db.execute(
            delete(GroupMember).where(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
        )
        return result.rowcount > 0

    def delete(self, group_id: int) -> bool:
        group = self.db.get(StudyGroup, group_id)
        if group is None:
            return False
        self.db.delete(group)
        self.db.flush()
        return True

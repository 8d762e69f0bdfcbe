# groupmatch/infrastructure/repositories/group_profile_repo.py
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from groupmatch.domain.models import GroupCharacteristicProfile
from groupmatch.domain.roles import ROLES, Role, RoleVector
from groupmatch.infrastructure.models import GroupCharacteristicProfileRow
from groupmatch.infrastructure.repositories.profile_repo import as_utc


def avg_column(role: Role) -> str:
    return f"avg_{role.value.lower()}"


def to_group_profile(row: GroupCharacteristicProfileRow) -> GroupCharacteristicProfile:
    return GroupCharacteristicProfile(
        group_id=row.group_id,
        average_scores=RoleVector(getattr(row, avg_column(r)) for r in ROLES),
        member_count_contributing=row.member_count_contributing,
        last_recomputed_at=as_utc(row.last_recomputed_at),
    )


class GroupProfileRepo:
    """Derived group aggregates. The aggregator is the only caller of upsert."""

    def __init__(self, db: Session):
        self.db = db

    def _row(self, group_id: int) -> Optional[GroupCharacteristicProfileRow]:
        return self.db.execute(
            select(GroupCharacteristicProfileRow).where(GroupCharacteristicProfileRow.group_id == group_id)
        ).scalars().first()

    def get(self, group_id: int) -> Optional[GroupCharacteristicProfile]:
        row = self._row(group_id)
        return to_group_profile(row) if row else None

    def upsert(self, profile: GroupCharacteristicProfile) -> GroupCharacteristicProfile:
        row = self._row(profile.group_id)
        if row is None:
            row = GroupCharacteristicProfileRow(group_id=profile.group_id)
            self.db.add(row)
        for role in ROLES:
            setattr(row, avg_column(role), profile.average_scores[role])
        row.member_count_contributing = profile.member_count_contributing
        row.current_variance = profile.current_variance
        row.last_recomputed_at = profile.last_recomputed_at
        self.db.flush()
        return profile

    def delete(self, group_id: int) -> None:
        self.db.execute(
            delete(GroupCharacteristicProfileRow).where(GroupCharacteristicProfileRow.group_id == group_id)
        )

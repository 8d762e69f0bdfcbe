# groupmatch/infrastructure/repositories/profile_repo.py
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from groupmatch.domain.models import CharacteristicProfile, QuizStatus
from groupmatch.domain.roles import ROLES, Role, RoleVector
from groupmatch.infrastructure.models import CharacteristicProfileRow


def score_column(role: Role) -> str:
    return f"score_{role.value.lower()}"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_profile(row: CharacteristicProfileRow) -> CharacteristicProfile:
    return CharacteristicProfile(
        user_id=row.user_id,
        scores=RoleVector(getattr(row, score_column(r)) for r in ROLES),
        quiz_status=QuizStatus(row.quiz_status),
        answered_questions=row.answered_questions,
        total_questions=row.total_questions,
        version=row.version,
        updated_at=as_utc(row.updated_at),
    )


class ProfileRepo:
    """
    Per-user characteristic profiles.

    Writes go through compare_and_swap only, so a concurrent writer can never
    silently overwrite a newer version. Transactions are owned by the caller.
    """

    def __init__(self, db: Session):
        self.db = db

    def _row(self, user_id: int) -> Optional[CharacteristicProfileRow]:
        return self.db.execute(
            select(CharacteristicProfileRow).where(CharacteristicProfileRow.user_id == user_id)
        ).scalars().first()

    def get(self, user_id: int) -> Optional[CharacteristicProfile]:
        row = self._row(user_id)
        return to_profile(row) if row else None

    def get_or_create(self, user_id: int) -> CharacteristicProfile:
        row = self._row(user_id)
        if row is None:
            row = CharacteristicProfileRow(user_id=user_id, quiz_status=QuizStatus.NOT_STARTED.value, version=0)
            self.db.add(row)
            self.db.flush()
        return to_profile(row)

    def compare_and_swap(self, profile: CharacteristicProfile, expected_version: int) -> bool:
        """
        Write ``profile`` only if the stored version still equals
        ``expected_version``. The stored version becomes expected_version + 1.
        """
        values = {score_column(r): profile.scores[r] for r in ROLES}
        values.update(
            quiz_status=profile.quiz_status.value,
            answered_questions=profile.answered_questions,
            total_questions=profile.total_questions,
            version=expected_version + 1,
            updated_at=datetime.now(timezone.utc),
        )
        result = self.db.execute(
            update(CharacteristicProfileRow)
            .where(
                CharacteristicProfileRow.user_id == profile.user_id,
                CharacteristicProfileRow.version == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_for_users(self, user_ids: Iterable[int]) -> Dict[int, CharacteristicProfile]:
        user_ids = list(user_ids)
        if not user_ids:
            return {}
        rows = self.db.execute(
            select(CharacteristicProfileRow).where(CharacteristicProfileRow.user_id.in_(user_ids))
        ).scalars().all()
        return {row.user_id: to_profile(row) for row in rows}

# groupmatch/infrastructure/repositories/user_repo.py
from typing import Optional, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from groupmatch.infrastructure.models import Course, User, course_enrollments


class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def create(self, username: str) -> User:
        u = User(username=username)
        self.db.add(u)
        self.db.flush()
        return u

    def get(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def exists(self, user_id: int) -> bool:
        return self.get(user_id) is not None

    def enrolled_course_ids(self, user_id: int) -> Set[int]:
        rows = self.db.execute(
            select(course_enrollments.c.course_id).where(course_enrollments.c.user_id == user_id)
        ).scalars().all()
        return set(rows)

    def enroll(self, user_id: int, course_id: int) -> None:
        if course_id in self.enrolled_course_ids(user_id):
            return
        self.db.execute(course_enrollments.insert().values(user_id=user_id, course_id=course_id))

    def create_course(self, code: str, name: str) -> Course:
        c = Course(code=code, name=name)
        self.db.add(c)
        self.db.flush()
        return c

    def get_course(self, course_id: int) -> Optional[Course]:
        return self.db.get(Course, course_id)

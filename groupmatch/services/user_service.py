# groupmatch/services/user_service.py
import logging
from typing import Mapping, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from groupmatch.domain.errors import NotFoundError, ValidationError
from groupmatch.domain.roles import Role
from groupmatch.infrastructure.repositories.profile_repo import ProfileRepo
from groupmatch.infrastructure.repositories.quiz_repo import QuizRepo
from groupmatch.infrastructure.repositories.user_repo import UserRepo

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create_user(self, username: str) -> int:
        """Create the account together with its NOT_STARTED profile."""
        if not username or not username.strip():
            raise ValidationError("username is required")
        with self.session_factory.begin() as db:
            user = UserRepo(db).create(username.strip())
            ProfileRepo(db).get_or_create(user.id)
            user_id = user.id
        logger.info(f"Created user {user_id}")
        return user_id

    def create_course(self, code: str, name: str) -> int:
        try:
            with self.session_factory.begin() as db:
                course_id = UserRepo(db).create_course(code, name).id
        except IntegrityError:
            raise ValidationError(f"Course code {code} already exists") from None
        return course_id

    def enroll(self, user_id: int, course_id: int) -> None:
        with self.session_factory.begin() as db:
            users = UserRepo(db)
            if not users.exists(user_id):
                raise NotFoundError(f"User {user_id} not found")
            if users.get_course(course_id) is None:
                raise NotFoundError(f"Course {course_id} not found")
            users.enroll(user_id, course_id)

    def add_question(self, text: str, options: Sequence[Tuple[str, Mapping[str, float]]],
                     order_index: int = 0) -> int:
        """Register a quiz question; option weights are keyed by role name."""
        if not options:
            raise ValidationError("A question needs at least one option")
        for _, weights in options:
            for role_name in weights:
                try:
                    Role(role_name)
                except ValueError:
                    raise ValidationError(f"Unknown role: {role_name}") from None
        with self.session_factory.begin() as db:
            question_id = QuizRepo(db).add_question(text, options, order_index).id
        return question_id

# tests/conftest.py
import pytest
from faker import Faker

from groupmatch.domain.models import CharacteristicProfile
from groupmatch.domain.roles import Role, RoleVector
from groupmatch.infrastructure.db.session import init_db, make_engine, make_session_factory
from groupmatch.infrastructure.repositories.profile_repo import ProfileRepo
from groupmatch.infrastructure.repositories.quiz_repo import QuizRepo
from groupmatch.services.user_service import UserService

fake = Faker()


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def users(session_factory):
    return UserService(session_factory)


@pytest.fixture
def course_id(users):
    return users.create_course(fake.unique.bothify("CS-###"), fake.catch_phrase())


@pytest.fixture
def make_user(users, course_id):
    """Create a user enrolled in the default course."""
    def _make(enroll=True):
        user_id = users.create_user(fake.user_name())
        if enroll:
            users.enroll(user_id, course_id)
        return user_id
    return _make


@pytest.fixture
def questions(users, session_factory):
    """
    Two questions, one option per role each.
    Returns {question_id: {Role: option_id}}.
    """
    ids = [
        users.add_question(
            f"Question {i}",
            [(f"{role.value} answer", {role.value: 0.5}) for role in Role],
            order_index=i,
        )
        for i in range(2)
    ]
    with session_factory() as db:
        bank = QuizRepo(db).load_bank()
    layout = {}
    for qid in ids:
        layout[qid] = {
            next(iter(weights)): oid for oid, weights in bank.questions[qid].items()
        }
    return layout


@pytest.fixture
def set_profile(session_factory):
    """Write a member profile directly, bypassing the quiz."""
    def _set(user_id, scores, status="COMPLETED", answered=None, total=None):
        with session_factory.begin() as db:
            repo = ProfileRepo(db)
            current = repo.get_or_create(user_id)
            profile = CharacteristicProfile(
                user_id=user_id,
                scores=RoleVector.from_mapping(scores),
                quiz_status=status,
                answered_questions=answered,
                total_questions=total,
                version=current.version + 1,
            )
            assert repo.compare_and_swap(profile, current.version)
        return profile
    return _set

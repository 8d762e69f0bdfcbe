# groupmatch/services/quiz_service.py
"""
Quiz submission: stores answers, rescores the user's characteristic profile
and emits ProfileUpdated so the user's groups get recomputed.

Profile writes use compare-and-swap on ``version`` with a reload-and-reapply
retry loop; a writer that loses the race never overwrites a newer profile.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import sessionmaker

from groupmatch.config.settings import settings
from groupmatch.domain.errors import ConcurrencyConflict, NotFoundError, ValidationError
from groupmatch.domain.models import CharacteristicProfile, QuizStatus
from groupmatch.domain.quiz import QuestionBank, QuizScoringAdapter, validate_answers
from groupmatch.domain.roles import RoleVector
from groupmatch.infrastructure.repositories.profile_repo import ProfileRepo
from groupmatch.infrastructure.repositories.quiz_repo import QuizRepo
from groupmatch.infrastructure.repositories.user_repo import UserRepo
from groupmatch.services.dispatcher import RecomputeDispatcher

logger = logging.getLogger(__name__)


class QuizService:
    def __init__(
        self,
        session_factory: sessionmaker,
        dispatcher: Optional[RecomputeDispatcher] = None,
        max_retries: Optional[int] = None,
        normalize: Optional[bool] = None,
    ):
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.max_retries = max_retries if max_retries is not None else settings.PROFILE_WRITE_RETRIES
        self.normalize = normalize if normalize is not None else settings.QUIZ_NORMALIZE_SCORES

    def _require_user(self, db, user_id: int) -> None:
        if not UserRepo(db).exists(user_id):
            raise NotFoundError(f"User {user_id} not found")

    def _emit(self, user_id: int) -> None:
        if self.dispatcher is not None:
            self.dispatcher.on_profile_updated(user_id)

    def get_profile(self, user_id: int) -> CharacteristicProfile:
        """Current profile; the NOT_STARTED profile is created on first access."""
        with self.session_factory.begin() as db:
            self._require_user(db, user_id)
            return ProfileRepo(db).get_or_create(user_id)

    def submit_answers(self, user_id: int, answers: Sequence[Tuple[int, int]],
                       retake: bool = False) -> CharacteristicProfile:
        """
        Score ``answers`` together with the user's stored answers (or instead
        of them when ``retake`` is set) and write the new profile.

        Raises ValidationError for malformed answers or for re-answering a
        stored question without ``retake``, NotFoundError for unknown users and
        ConcurrencyConflict once the retry budget is spent.
        """
        answers = validate_answers(answers)
        if not answers and not retake:
            raise ValidationError("Cannot submit an empty quiz. Use skip_quiz to skip it.")

        for attempt in range(1, self.max_retries + 1):
            with self.session_factory() as db:
                self._require_user(db, user_id)
                quiz_repo = QuizRepo(db)
                bank = quiz_repo.load_bank()
                current = ProfileRepo(db).get_or_create(user_id)
                previous = quiz_repo.answers_for_user(user_id)

                merged = self._merge(bank, previous, answers, retake)
                # nothing usable still counts as an attempt: IN_PROGRESS, not SKIPPED
                to_score = sorted(merged.items()) or answers
                score = QuizScoringAdapter(bank, normalize=self.normalize).score(to_score)
                updated = CharacteristicProfile(
                    user_id=user_id,
                    scores=score.scores,
                    quiz_status=score.status,
                    answered_questions=score.answered,
                    total_questions=score.total,
                    version=current.version + 1,
                )

                if retake:
                    quiz_repo.replace_answers(user_id, sorted(merged.items()))
                else:
                    quiz_repo.add_answers(user_id, [(q, o) for q, o in answers if merged.get(q) == o])

                if ProfileRepo(db).compare_and_swap(updated, expected_version=current.version):
                    db.commit()
                    logger.info(
                        f"Profile updated for user {user_id}. Status: {score.status.value}, "
                        f"Questions: {score.answered}/{score.total}, version {updated.version}"
                    )
                    break

                db.rollback()
                logger.warning(
                    f"Version conflict writing profile of user {user_id} "
                    f"(attempt {attempt}/{self.max_retries}), reloading"
                )
        else:
            raise ConcurrencyConflict(
                f"Profile of user {user_id} changed concurrently {self.max_retries} times, giving up"
            )

        self._emit(user_id)
        return updated

    def _merge(self, bank: QuestionBank, previous: Dict[int, int],
               answers: List[Tuple[int, int]], retake: bool) -> Dict[int, int]:
        """Recognised answers to score: stored + new, or only new on retake."""
        merged = {} if retake else dict(previous)
        for question_id, option_id in answers:
            if not retake and question_id in previous:
                raise ValidationError(
                    f"Cannot retake question {question_id}. Questions can only be answered once."
                )
            if bank.weights_for(question_id, option_id) is None:
                logger.warning(
                    f"Ignoring unrecognised answer question={question_id} option={option_id}"
                )
                continue
            merged[question_id] = option_id
        return merged

    def skip_quiz(self, user_id: int) -> CharacteristicProfile:
        """User opts out of the quiz: zero scores, reliability 0."""
        for attempt in range(1, self.max_retries + 1):
            with self.session_factory() as db:
                self._require_user(db, user_id)
                current = ProfileRepo(db).get_or_create(user_id)
                skipped = CharacteristicProfile(
                    user_id=user_id,
                    scores=RoleVector.zeros(),
                    quiz_status=QuizStatus.SKIPPED,
                    answered_questions=0,
                    total_questions=0,
                    version=current.version + 1,
                )
                if ProfileRepo(db).compare_and_swap(skipped, expected_version=current.version):
                    db.commit()
                    logger.info(f"User {user_id} skipped the quiz")
                    break
                db.rollback()
                logger.warning(f"Version conflict skipping quiz for user {user_id} (attempt {attempt})")
        else:
            raise ConcurrencyConflict(f"Could not skip quiz for user {user_id}: too many concurrent writes")

        self._emit(user_id)
        return skipped

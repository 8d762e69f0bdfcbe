# groupmatch/domain/quiz.py
"""
Quiz scoring: raw (question, option) answers -> role scores + reliability.

The per-option role weights are external configuration, passed in as a
QuestionBank. Unrecognised questions or options degrade the signal (they are
logged and ignored) instead of blocking onboarding.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Sequence, Tuple

import numpy as np

from groupmatch.domain.errors import ValidationError
from groupmatch.domain.models import QuizStatus, reliability_for
from groupmatch.domain.roles import ROLE_COUNT, ROLES, Role, RoleVector

logger = logging.getLogger(__name__)

Answer = Tuple[int, int]  # (question_id, option_id)


@dataclass(frozen=True)
class QuestionBank:
    # question_id -> option_id -> role -> weight
    questions: Mapping[int, Mapping[int, Mapping[Role, float]]] = field(default_factory=dict)

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    def weights_for(self, question_id: int, option_id: int):
        options = self.questions.get(question_id)
        if options is None:
            return None
        return options.get(option_id)

    def max_option_weight(self, role: Role) -> float:
        best = 0.0
        for options in self.questions.values():
            for weights in options.values():
                best = max(best, weights.get(role, 0.0))
        return best


@dataclass(frozen=True)
class QuizScore:
    scores: RoleVector
    reliability: float
    status: QuizStatus
    answered: int
    total: int


def validate_answers(answers: Sequence) -> List[Answer]:
    """
    Check the shape of an answer sequence. Raises ValidationError when an entry
    is not an integer pair or the same question appears twice.
    """
    seen = set()
    cleaned: List[Answer] = []
    for entry in answers:
        try:
            question_id, option_id = entry
        except (TypeError, ValueError):
            raise ValidationError(f"Answer must be a (question_id, option_id) pair, got {entry!r}") from None
        if isinstance(question_id, bool) or isinstance(option_id, bool) \
                or not isinstance(question_id, int) or not isinstance(option_id, int):
            raise ValidationError(f"Answer ids must be integers, got {entry!r}")
        if question_id in seen:
            raise ValidationError(f"Question {question_id} answered more than once")
        seen.add(question_id)
        cleaned.append((question_id, option_id))
    return cleaned


class QuizScoringAdapter:
    def __init__(self, bank: QuestionBank, normalize: bool = False):
        self.bank = bank
        self.normalize = normalize

    def score(self, answers: Sequence[Answer]) -> QuizScore:
        answers = validate_answers(answers)
        total = self.bank.total_questions

        if not answers:
            return QuizScore(RoleVector.zeros(), 0.0, QuizStatus.SKIPPED, 0, total)

        rows: List[List[float]] = []
        for question_id, option_id in answers:
            weights = self.bank.weights_for(question_id, option_id)
            if weights is None:
                logger.warning(f"Ignoring unrecognised answer question={question_id} option={option_id}")
                continue
            rows.append([weights.get(r, 0.0) for r in ROLES])

        answered = len(rows)
        sums = np.sum(np.array(rows, dtype=np.float64).reshape(-1, ROLE_COUNT), axis=0)
        if self.normalize:
            ceilings = np.array([self.bank.max_option_weight(r) for r in ROLES]) * total
            sums = np.divide(sums, ceilings, out=np.zeros_like(sums), where=ceilings > 0)

        answered = min(answered, total)
        status = QuizStatus.COMPLETED if total and answered >= total else QuizStatus.IN_PROGRESS
        return QuizScore(RoleVector(sums), reliability_for(status, answered, total), status, answered, total)

# groupmatch/infrastructure/repositories/quiz_repo.py
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from groupmatch.domain.quiz import QuestionBank
from groupmatch.domain.roles import Role
from groupmatch.infrastructure.models import QuizAnswer, QuizOption, QuizQuestion


class QuizRepo:
    def __init__(self, db: Session):
        self.db = db

    def load_bank(self) -> QuestionBank:
        """All active questions with their option role weights."""
        questions = self.db.execute(
            select(QuizQuestion)
            .options(selectinload(QuizQuestion.options))
            .where(QuizQuestion.active.is_(True))
            .order_by(QuizQuestion.order_index, QuizQuestion.id)
        ).scalars().all()
        bank = {}
        for q in questions:
            bank[q.id] = {
                o.id: {Role(k): float(v) for k, v in (o.role_weights or {}).items()}
                for o in q.options
            }
        return QuestionBank(questions=bank)

    def add_question(self, text: str, options: Sequence[Tuple[str, Mapping[str, float]]],
                     order_index: int = 0) -> QuizQuestion:
        question = QuizQuestion(text=text, order_index=order_index, active=True)
        for idx, (option_text, weights) in enumerate(options):
            question.options.append(
                QuizOption(
                    text=option_text,
                    order_index=idx,
                    role_weights={Role(k).value: float(v) for k, v in weights.items()},
                )
            )
        self.db.add(question)
        self.db.flush()
        return question

    def answers_for_user(self, user_id: int) -> Dict[int, int]:
        rows = self.db.execute(
            select(QuizAnswer.question_id, QuizAnswer.option_id)
            .where(QuizAnswer.user_id == user_id)
            .order_by(QuizAnswer.question_id)
        ).all()
        return {qid: oid for qid, oid in rows}

    def add_answers(self, user_id: int, answers: Iterable[Tuple[int, int]]) -> List[QuizAnswer]:
        created = [QuizAnswer(user_id=user_id, question_id=q, option_id=o) for q, o in answers]
        self.db.add_all(created)
        self.db.flush()
        return created

    def replace_answers(self, user_id: int, answers: Iterable[Tuple[int, int]]) -> List[QuizAnswer]:
        self.db.execute(delete(QuizAnswer).where(QuizAnswer.user_id == user_id))
        return self.add_answers(user_id, answers)

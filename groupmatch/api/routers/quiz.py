# groupmatch/api/routers/quiz.py
"""
Quiz endpoints: characteristic profile, answer submission, skip.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from groupmatch.api.deps import get_services
from groupmatch.domain.models import CharacteristicProfile, QuizStatus
from groupmatch.services.container import Services

router = APIRouter()


class AnswerReq(BaseModel):
    question_id: int
    option_id: int


class SubmitAnswersReq(BaseModel):
    answers: List[AnswerReq] = Field(default_factory=list)
    retake: bool = False


class ProfileResp(BaseModel):
    user_id: int
    quiz_status: QuizStatus
    scores: Dict[str, float]
    dominant_role: str
    reliability: float
    answered_questions: Optional[int] = None
    total_questions: Optional[int] = None
    version: int
    requires_onboarding: bool


def to_response(profile: CharacteristicProfile) -> ProfileResp:
    return ProfileResp(
        user_id=profile.user_id,
        quiz_status=profile.quiz_status,
        scores=profile.scores.as_dict(),
        dominant_role=profile.scores.dominant_role().value,
        reliability=profile.reliability,
        answered_questions=profile.answered_questions,
        total_questions=profile.total_questions,
        version=profile.version,
        requires_onboarding=profile.requires_onboarding,
    )


@router.get("/{user_id}/profile", response_model=ProfileResp, summary="Get a user's characteristic profile")
def get_profile(user_id: int, services: Services = Depends(get_services)):
    return to_response(services.quiz.get_profile(user_id))


@router.post("/{user_id}/answers", response_model=ProfileResp, summary="Submit quiz answers")
def submit_answers(user_id: int, req: SubmitAnswersReq, services: Services = Depends(get_services)):
    answers = [(a.question_id, a.option_id) for a in req.answers]
    return to_response(services.quiz.submit_answers(user_id, answers, retake=req.retake))


@router.post("/{user_id}/skip", response_model=ProfileResp, summary="Skip the quiz")
def skip_quiz(user_id: int, services: Services = Depends(get_services)):
    return to_response(services.quiz.skip_quiz(user_id))

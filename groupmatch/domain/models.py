# groupmatch/domain/models.py
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as SchemaError

from groupmatch.domain.errors import ValidationError
from groupmatch.domain.roles import RoleVector


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuizStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"


class Visibility(str, Enum):
    OPEN = "OPEN"
    APPROVAL = "APPROVAL"
    PRIVATE = "PRIVATE"


class Availability(str, Enum):
    ALL = "ALL"
    AVAILABLE = "AVAILABLE"
    FULL = "FULL"


def reliability_for(status: QuizStatus, answered: Optional[int], total: Optional[int]) -> float:
    """
    Confidence weight of a profile, derived only from quiz progress.

    NOT_STARTED / SKIPPED -> 0, COMPLETED -> 1, IN_PROGRESS -> answered / total.
    """
    if status == QuizStatus.COMPLETED:
        return 1.0
    if status == QuizStatus.IN_PROGRESS and total and answered:
        return max(0.0, min(1.0, answered / total))
    return 0.0


class CharacteristicProfile(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    user_id: int
    scores: RoleVector = Field(default_factory=RoleVector.zeros)
    quiz_status: QuizStatus = QuizStatus.NOT_STARTED
    answered_questions: Optional[int] = None
    total_questions: Optional[int] = None
    version: int = 0
    updated_at: Optional[datetime] = None

    def __init__(self, **data):
        try:
            super().__init__(**data)
        except SchemaError as exc:
            raise ValidationError(f"Invalid characteristic profile: {exc}") from exc

    @model_validator(mode="after")
    def _check_progress(self):
        if (
            self.answered_questions is not None
            and self.total_questions is not None
            and self.answered_questions > self.total_questions
        ):
            raise ValueError("answered_questions cannot exceed total_questions")
        return self

    @property
    def reliability(self) -> float:
        return reliability_for(self.quiz_status, self.answered_questions, self.total_questions)

    @property
    def requires_onboarding(self) -> bool:
        return self.quiz_status == QuizStatus.NOT_STARTED


class GroupCharacteristicProfile(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    group_id: int
    average_scores: RoleVector = Field(default_factory=RoleVector.zeros)
    member_count_contributing: int = 0
    last_recomputed_at: datetime = Field(default_factory=utcnow)

    @property
    def current_variance(self) -> float:
        return self.average_scores.variance()


class GroupSnapshot(BaseModel):
    """Read model of a study group, as seen by the matching service."""
    group_id: int
    name: str = ""
    course_id: Optional[int] = None
    max_size: int
    visibility: Visibility = Visibility.OPEN
    member_ids: List[int] = Field(default_factory=list)

    @property
    def current_member_count(self) -> int:
        return len(self.member_ids)

    @property
    def is_full(self) -> bool:
        return self.current_member_count >= self.max_size


class MatchFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    course_id: Optional[int] = None
    visibility: Optional[Visibility] = None
    availability: Availability = Availability.ALL
    limit: Optional[int] = None

    @classmethod
    def build(
        cls,
        course_id: Optional[int] = None,
        visibility: Optional[str] = None,
        availability: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> "MatchFilters":
        """
        Build filters from raw caller values.

        "all" (any case) or None disables the visibility / availability filter.
        Raises ValidationError for unknown names and non-positive ids or limits.
        """
        if course_id is not None and course_id <= 0:
            raise ValidationError(f"course_id must be positive, got {course_id}")
        if limit is not None and limit <= 0:
            raise ValidationError(f"limit must be positive, got {limit}")

        vis = None
        if visibility is not None and visibility.upper() != "ALL":
            try:
                vis = Visibility(visibility.upper())
            except ValueError:
                raise ValidationError(f"Unknown visibility: {visibility}") from None

        avail = Availability.ALL
        if availability is not None:
            try:
                avail = Availability(availability.upper())
            except ValueError:
                raise ValidationError(f"Unknown availability: {availability}") from None

        return cls(course_id=course_id, visibility=vis, availability=avail, limit=limit)


class MatchResult(BaseModel):
    group_id: int
    score: float
    group_name: str = ""
    course_id: Optional[int] = None
    visibility: Visibility = Visibility.OPEN
    current_size: int = 0
    max_size: int = 0
    current_variance: float = 0.0
    projected_variance: float = 0.0
    match_reason: str = ""

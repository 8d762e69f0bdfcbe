# groupmatch/services/container.py
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

from groupmatch.config.settings import settings
from groupmatch.domain.scoring import MatchScorer
from groupmatch.services.aggregator import ProfileAggregator
from groupmatch.services.dispatcher import RecomputeDispatcher
from groupmatch.services.group_service import GroupService
from groupmatch.services.matching_service import MatchingQueryService
from groupmatch.services.quiz_service import QuizService
from groupmatch.services.user_service import UserService


@dataclass
class Services:
    aggregator: ProfileAggregator
    dispatcher: RecomputeDispatcher
    quiz: QuizService
    groups: GroupService
    users: UserService
    matching: MatchingQueryService

    def close(self, timeout: Optional[float] = None) -> bool:
        return self.dispatcher.shutdown(wait=True, timeout=timeout)


def build_services(session_factory: sessionmaker, workers: Optional[int] = None) -> Services:
    """Wire the engine for one process. The dispatcher is shared by all producers."""
    aggregator = ProfileAggregator(session_factory)
    dispatcher = RecomputeDispatcher(
        aggregator, session_factory, max_workers=workers or settings.RECOMPUTE_WORKERS
    )
    return Services(
        aggregator=aggregator,
        dispatcher=dispatcher,
        quiz=QuizService(session_factory, dispatcher),
        groups=GroupService(session_factory, dispatcher),
        users=UserService(session_factory),
        matching=MatchingQueryService(session_factory, MatchScorer(settings.MATCH_CEILING_BASE)),
    )

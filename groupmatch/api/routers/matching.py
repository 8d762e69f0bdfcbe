# groupmatch/api/routers/matching.py
"""
Matching endpoints: ranked group recommendations and single-group scores.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends

from groupmatch.api.deps import get_services
from groupmatch.domain.models import MatchFilters, MatchResult
from groupmatch.services.container import Services

router = APIRouter()


@router.get("/{user_id}/groups", response_model=List[MatchResult], summary="Ranked group matches for a user")
def list_matches(
    user_id: int,
    course_id: Optional[int] = None,
    visibility: Optional[str] = None,
    availability: Optional[str] = None,
    limit: Optional[int] = None,
    services: Services = Depends(get_services),
):
    filters = MatchFilters.build(course_id=course_id, visibility=visibility,
                                 availability=availability, limit=limit)
    return services.matching.list_matches(user_id, filters)


@router.get("/{user_id}/groups/{group_id}/score", response_model=MatchResult,
            summary="Match score of one group for a user")
def score_one(user_id: int, group_id: int, services: Services = Depends(get_services)):
    return services.matching.score_one(user_id, group_id)

# groupmatch/api/routers/groups.py
"""
Group endpoints: create, join, leave, delete, read the derived profile.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from groupmatch.api.deps import get_services
from groupmatch.domain.models import GroupSnapshot, Visibility
from groupmatch.services.container import Services

router = APIRouter()


class CreateGroupReq(BaseModel):
    creator_id: int
    name: str
    course_id: Optional[int] = None
    max_size: int = 6
    visibility: Visibility = Visibility.OPEN


class MembershipReq(BaseModel):
    user_id: int


def group_info(g: GroupSnapshot) -> dict:
    return {
        "id": g.group_id,
        "name": g.name,
        "course_id": g.course_id,
        "max_size": g.max_size,
        "visibility": g.visibility.value,
        "members": g.member_ids,
    }


@router.post("/", summary="Create a group; the creator becomes its first member")
def create_group(req: CreateGroupReq, services: Services = Depends(get_services)):
    g = services.groups.create_group(req.creator_id, req.name, req.course_id, req.max_size, req.visibility)
    return group_info(g)


@router.get("/{group_id}", summary="Get group details")
def get_group(group_id: int, services: Services = Depends(get_services)):
    return group_info(services.groups.get_group(group_id))


@router.post("/{group_id}/join", summary="Join a group")
def join_group(group_id: int, req: MembershipReq, services: Services = Depends(get_services)):
    return group_info(services.groups.join_group(group_id, req.user_id))


@router.post("/{group_id}/leave", summary="Leave a group")
def leave_group(group_id: int, req: MembershipReq, services: Services = Depends(get_services)):
    return group_info(services.groups.leave_group(group_id, req.user_id))


@router.delete("/{group_id}", summary="Delete a group and its derived profile")
def delete_group(group_id: int, services: Services = Depends(get_services)):
    services.groups.delete_group(group_id)
    return {"id": group_id, "deleted": True}


@router.get("/{group_id}/profile", summary="Get a group's characteristic profile")
def group_profile(group_id: int, services: Services = Depends(get_services)):
    p = services.groups.get_group_profile(group_id)
    return {
        "group_id": p.group_id,
        "average_scores": p.average_scores.as_dict(),
        "member_count_contributing": p.member_count_contributing,
        "current_variance": p.current_variance,
        "last_recomputed_at": p.last_recomputed_at.isoformat(),
        "recompute_pending": services.dispatcher.is_pending(group_id),
    }

# groupmatch/api/routers/users.py
"""
User endpoints: create users, enroll them in courses.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from groupmatch.api.deps import get_services
from groupmatch.services.container import Services

router = APIRouter()


class UserCreateReq(BaseModel):
    username: str


@router.post("/", summary="Create a user (with a NOT_STARTED profile)")
def create_user(req: UserCreateReq, services: Services = Depends(get_services)):
    user_id = services.users.create_user(req.username)
    return {"id": user_id, "username": req.username}


@router.post("/{user_id}/courses/{course_id}", summary="Enroll a user in a course")
def enroll(user_id: int, course_id: int, services: Services = Depends(get_services)):
    services.users.enroll(user_id, course_id)
    return {"user_id": user_id, "course_id": course_id, "enrolled": True}

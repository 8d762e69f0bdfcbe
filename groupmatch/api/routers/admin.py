# groupmatch/api/routers/admin.py
"""
Admin utilities: init database, courses, quiz questions.
"""
from typing import Dict, List

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from groupmatch.api.deps import get_services
from groupmatch.infrastructure.db.session import init_db as create_tables
from groupmatch.services.container import Services

router = APIRouter()


class CourseReq(BaseModel):
    code: str
    name: str


class OptionReq(BaseModel):
    text: str
    role_weights: Dict[str, float] = Field(default_factory=dict)


class QuestionReq(BaseModel):
    text: str
    options: List[OptionReq]
    order_index: int = 0


@router.post("/init_db", summary="Create all tables in DB")
def init_db(request: Request):
    """
    Ensure missing tables are created. Does not drop existing tables.
    """
    create_tables(request.app.state.engine)
    return {"status": "ok", "message": "Database initialized"}


@router.post("/courses", summary="Create a course")
def create_course(req: CourseReq, services: Services = Depends(get_services)):
    course_id = services.users.create_course(req.code, req.name)
    return {"id": course_id, "code": req.code, "name": req.name}


@router.post("/questions", summary="Register a quiz question with per-role option weights")
def create_question(req: QuestionReq, services: Services = Depends(get_services)):
    question_id = services.users.add_question(
        req.text, [(o.text, o.role_weights) for o in req.options], req.order_index
    )
    return {"id": question_id}

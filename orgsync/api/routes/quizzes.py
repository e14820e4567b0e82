"""
orgsync.api.routes.quizzes — Quiz management, play and leaderboard
====================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from orgsync.api.deps import get_current_roles, get_engine, require_edit_org, require_manage_org
from orgsync.engine.roles import UserRoles
from orgsync.services import member_service, quiz_service

router = APIRouter(tags=["quizzes"])


class QuizBody(BaseModel):
    title: str
    data: dict[str, Any] = Field(default_factory=dict)
    open_at: datetime | None = None
    close_at: datetime | None = None


class ScoreBody(BaseModel):
    score: int


# ---------------------------------------------------------------------------
# Management
# ---------------------------------------------------------------------------
@router.get("/organizations/{org_id}/quizzes")
def list_quizzes(
    org_id: str,
    search: str = "",
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, org_id)
    return {"quizzes": quiz_service.list_quizzes(engine, org_id, search)}


@router.post("/organizations/{org_id}/quizzes", status_code=201)
def create_quiz(
    org_id: str,
    body: QuizBody,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, org_id)
    quiz = quiz_service.create_quiz(engine, org_id=org_id, **body.model_dump())
    return quiz_service.quiz_to_dict(quiz)


@router.put("/quizzes/{quiz_id}")
def update_quiz(
    quiz_id: int,
    body: QuizBody,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, quiz_service.get_quiz(engine, quiz_id).org_id)
    quiz = quiz_service.update_quiz(engine, quiz_id, **body.model_dump())
    return quiz_service.quiz_to_dict(quiz)


@router.delete("/quizzes/{quiz_id}")
def delete_quiz(
    quiz_id: int,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, quiz_service.get_quiz(engine, quiz_id).org_id)
    return {"deleted": quiz_service.delete_quiz(engine, quiz_id)}


# ---------------------------------------------------------------------------
# Play
# ---------------------------------------------------------------------------
@router.get("/quizzes/open")
def open_quizzes(
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    org_ids = member_service.member_org_ids(engine, roles.user_id)
    return {"quizzes": quiz_service.list_open_quizzes(engine, org_ids)}


@router.get("/quizzes/{quiz_id}")
def get_quiz(
    quiz_id: int,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    """Managers get the full definition; members get it while they can play."""
    quiz = quiz_service.get_quiz(engine, quiz_id)
    if roles.can_manage(quiz.org_id):
        return quiz_service.quiz_to_dict(quiz)
    if quiz.org_id not in member_service.member_org_ids(engine, roles.user_id):
        raise HTTPException(403, "Only members of the organization can play this quiz")
    if not quiz_service.is_quiz_open(quiz):
        raise HTTPException(400, "This quiz is not open")
    return quiz_service.quiz_to_dict(quiz)


@router.post("/quizzes/{quiz_id}/score")
def submit_score(
    quiz_id: int,
    body: ScoreBody,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return quiz_service.submit_score(engine, quiz_id, roles.user_id, body.score)


@router.get("/quizzes/{quiz_id}/leaderboard")
def leaderboard(
    quiz_id: int,
    limit: int | None = None,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return {"leaderboard": quiz_service.quiz_leaderboard(engine, quiz_id, roles.user_id, limit)}

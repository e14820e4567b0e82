"""
orgsync.api.routes.goals — Community goals (quiz and minigame)
================================================================
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from orgsync.api.deps import get_current_roles, get_engine, require_edit_org, require_manage_org
from orgsync.engine.roles import UserRoles
from orgsync.services import goal_service

router = APIRouter(tags=["goals"])

GoalKind = Literal["quiz", "flappy"]


class GoalCreate(BaseModel):
    source_id: str | int
    goal_type: str
    goal_target: int
    reward_coins: int


class GoalUpdate(BaseModel):
    goal_target: int
    reward_coins: int
    goal_type: str | None = None


@router.get("/goals/mine")
def my_goals(
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return {"goals": goal_service.list_member_goals(engine, roles.user_id)}


@router.get("/organizations/{org_id}/goals/{kind}")
def list_goals(
    org_id: str,
    kind: GoalKind,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, org_id)
    return {"goals": goal_service.list_goals(engine, kind=kind, org_id=org_id)}


@router.post("/organizations/{org_id}/goals/{kind}", status_code=201)
def create_goal(
    org_id: str,
    kind: GoalKind,
    body: GoalCreate,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, org_id)
    return goal_service.create_goal(engine, kind=kind, org_id=org_id, **body.model_dump())


@router.put("/goals/{kind}/{goal_id}")
def update_goal(
    kind: GoalKind,
    goal_id: str,
    body: GoalUpdate,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    goal = goal_service.get_goal(engine, kind=kind, goal_id=goal_id)
    require_edit_org(roles, goal["org_id"])
    return goal_service.update_goal(engine, kind=kind, goal_id=goal_id, **body.model_dump())


@router.delete("/goals/{kind}/{goal_id}")
def delete_goal(
    kind: GoalKind,
    goal_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    goal = goal_service.get_goal(engine, kind=kind, goal_id=goal_id)
    require_edit_org(roles, goal["org_id"])
    return {"deleted": goal_service.delete_goal(engine, kind=kind, goal_id=goal_id)}

"""
orgsync.api.routes.events — Event RSVP, registration, evaluation and attendance
=================================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from orgsync.api.deps import get_current_roles, get_engine, require_edit_org, require_manage_org
from orgsync.engine.roles import UserRoles
from orgsync.services import event_service, post_service

router = APIRouter(tags=["events"])


class RegistrationBody(BaseModel):
    first_name: str = ""
    middle_initial: str = ""
    last_name: str = ""
    email: str = ""
    college: str = ""
    program: str = ""
    section: str = ""


class EvaluationBody(BaseModel):
    design: int
    facilities: int
    overall: int
    participation: int
    speakers: int
    benefits: str = ""
    problems: str = ""
    comments: str = ""


class AttendanceBody(BaseModel):
    changes: dict[str, bool] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Member actions
# ---------------------------------------------------------------------------
@router.post("/events/{post_id}/rsvp")
def rsvp(
    post_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return event_service.rsvp(engine, post_id, roles.user_id)


@router.post("/events/{post_id}/register")
def register(
    post_id: str,
    body: RegistrationBody,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return event_service.register(engine, post_id, roles.user_id, body.model_dump())


@router.post("/events/{post_id}/evaluate")
def evaluate(
    post_id: str,
    body: EvaluationBody,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return event_service.evaluate(engine, post_id, roles.user_id, body.model_dump())


@router.get("/events/{post_id}/status")
def my_status(
    post_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return event_service.my_event_status(engine, post_id, roles.user_id)


# ---------------------------------------------------------------------------
# Officer views
# ---------------------------------------------------------------------------
@router.get("/organizations/{org_id}/events/{post_id}/attendance")
def attendance_roster(
    org_id: str,
    post_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, org_id)
    return {"roster": event_service.attendance_roster(engine, org_id, post_id)}


@router.put("/organizations/{org_id}/events/{post_id}/attendance")
def mark_attendance(
    org_id: str,
    post_id: str,
    body: AttendanceBody,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, org_id)
    return {"updated": event_service.mark_attendance(engine, org_id, post_id, body.changes)}


@router.get("/events/{post_id}/registrations")
def registrations(
    post_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, post_service.get_post(engine, post_id).org_id)
    return {"registrations": event_service.list_registrations(engine, post_id)}


@router.get("/events/{post_id}/evaluations")
def evaluations(
    post_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, post_service.get_post(engine, post_id).org_id)
    return event_service.evaluation_summary(engine, post_id)

"""
orgsync.api.auth — Signed-in user, profile completion and avatar
=================================================================
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel

from orgsync.api.deps import get_current_roles, get_current_user, get_engine
from orgsync.database.engine import get_session, run_db
from orgsync.engine.roles import UserRoles
from orgsync.services import member_service, role_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


class ProfileBody(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    user_type: str | None = None
    student_number: str | None = None
    employee_id: str | None = None
    year_level: int | None = None
    program: str | None = None
    department: str | None = None
    college: str | None = None
    position: str | None = None


def _profile_payload(engine, user_id: str) -> dict[str, Any]:
    user = member_service.get_user(engine, user_id)
    roles = role_service.get_user_roles(engine, user_id)
    return {
        "user": member_service.user_to_dict(user),
        "roles": roles.to_dict(),
        "org_ids": member_service.member_org_ids(engine, user_id),
    }


@router.get("/me")
def me(
    payload: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Return the caller's profile and roles, creating the user on first sign-in."""
    user_id = payload["sub"]
    with get_session(engine) as session:
        member_service.get_or_create_user(session, user_id, payload.get("email"))
    return _profile_payload(engine, user_id)


@router.post("/profile")
def complete_profile(
    body: ProfileBody,
    payload: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    user_id = payload["sub"]
    with get_session(engine) as session:
        member_service.get_or_create_user(session, user_id, payload.get("email"))
    member_service.complete_profile(engine, user_id, body.model_dump(exclude_none=True))
    return _profile_payload(engine, user_id)


@router.patch("/profile")
def update_profile(
    body: ProfileBody,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    member_service.update_profile(engine, roles.user_id, body.model_dump(exclude_none=True))
    return _profile_payload(engine, roles.user_id)


@router.post("/avatar")
async def upload_avatar(
    file: UploadFile = File(...),
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    content = await file.read()
    url = await run_db(
        member_service.upload_avatar, engine, roles.user_id, file.filename or "", content, file.content_type,
    )
    return {"avatar_url": url}

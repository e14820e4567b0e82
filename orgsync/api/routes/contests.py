"""
orgsync.api.routes.contests — Room screenshot contests
========================================================
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel

from orgsync.api.deps import get_current_roles, get_engine, require_edit_org, require_manage_org
from orgsync.database.engine import run_db
from orgsync.engine.roles import UserRoles
from orgsync.services import contest_service, member_service
from orgsync.services.storage_service import ImageUpload

router = APIRouter(tags=["contests"])


class ContestCreate(BaseModel):
    title: str
    description: str
    start_date: date | None = None
    end_date: date | None = None


@router.get("/organizations/{org_id}/contests")
def list_contests(
    org_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, org_id)
    return {"contests": contest_service.list_contests(engine, org_id)}


@router.post("/organizations/{org_id}/contests", status_code=201)
def create_contest(
    org_id: str,
    body: ContestCreate,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, org_id)
    contest = contest_service.create_contest(
        engine, org_id=org_id, created_by=roles.user_id, **body.model_dump(),
    )
    return contest_service.contest_to_dict(contest)


@router.post("/contests/{contest_id}/toggle")
def toggle_contest(
    contest_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, contest_service.get_contest(engine, contest_id).org_id)
    return {"is_active": contest_service.toggle_contest(engine, contest_id)}


@router.delete("/contests/{contest_id}")
def delete_contest(
    contest_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, contest_service.get_contest(engine, contest_id).org_id)
    return {"deleted": contest_service.delete_contest(engine, contest_id)}


@router.get("/contests/{contest_id}/submissions")
def list_submissions(
    contest_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, contest_service.get_contest(engine, contest_id).org_id)
    return {"submissions": contest_service.list_submissions(engine, contest_id)}


@router.get("/contests/active")
def active_contests(
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    org_ids = member_service.member_org_ids(engine, roles.user_id)
    return {"contests": contest_service.list_active_contests(engine, org_ids)}


@router.post("/contests/{contest_id}/submit")
async def submit_entry(
    contest_id: str,
    file: UploadFile = File(...),
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    upload = ImageUpload(
        filename=file.filename or "", content=await file.read(), content_type=file.content_type,
    )
    return await run_db(contest_service.submit_entry, engine, contest_id, roles.user_id, upload)

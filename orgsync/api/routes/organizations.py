"""
orgsync.api.routes.organizations — Organization roster, CRUD and membership
=============================================================================
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel

from orgsync.api.deps import (
    get_current_roles,
    get_engine,
    require_admin,
    require_edit_org,
    require_manage_org,
)
from orgsync.database.engine import run_db
from orgsync.engine.listing import DEFAULT_PAGE_SIZE, ListQuery
from orgsync.engine.roles import UserRoles
from orgsync.services import admin_service, member_service, report_service
from orgsync.services.admin_service import row_to_dict

router = APIRouter(prefix="/organizations", tags=["organizations"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class OrganizationCreate(BaseModel):
    org_code: str
    name: str
    abbrev_name: str
    org_type: str
    department: str = "OTHERS"
    status: str = "active"
    email: str | None = None
    description: str | None = None
    date_established: date | None = None


class OrganizationUpdate(BaseModel):
    org_code: str | None = None
    name: str | None = None
    abbrev_name: str | None = None
    org_type: str | None = None
    department: str | None = None
    status: str | None = None
    email: str | None = None
    description: str | None = None
    date_established: date | None = None


class OrganizationDelete(BaseModel):
    org_code_confirmation: str


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------
@router.get("")
def list_organizations(
    search: str = "",
    org_type: str | None = None,
    department: str | None = None,
    status: str | None = None,
    sort_field: str | None = None,
    sort_dir: str = "asc",
    page: int = Query(1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    query = ListQuery(
        search=search,
        filters={"org_type": org_type, "department": department, "status": status},
        sort_field=sort_field,
        sort_dir=sort_dir,
        page=page,
        page_size=page_size,
    )
    result = admin_service.list_organizations(engine, query, roles)
    return result.to_dict(row_to_dict)


@router.post("", status_code=201)
def create_organization(
    body: OrganizationCreate,
    admin: UserRoles = Depends(require_admin),
    engine=Depends(get_engine),
):
    org = admin_service.create_organization(engine, actor_id=admin.user_id, **body.model_dump())
    return row_to_dict(org)


@router.get("/{org_id}")
def get_organization(
    org_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    overview = admin_service.get_organization_overview(engine, org_id)
    if overview["organization"]["status"] != "active" and not roles.can_manage(org_id):
        raise HTTPException(404, "Organization not found")
    return overview


@router.patch("/{org_id}")
def update_organization(
    org_id: str,
    body: OrganizationUpdate,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, org_id)
    org = admin_service.update_organization(
        engine, org_id=org_id, actor_id=roles.user_id, **body.model_dump(exclude_none=True),
    )
    return row_to_dict(org)


@router.delete("/{org_id}")
def delete_organization(
    org_id: str,
    body: OrganizationDelete,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, org_id)
    admin_service.delete_organization(
        engine,
        org_id=org_id,
        org_code_confirmation=body.org_code_confirmation,
        actor_id=roles.user_id,
    )
    return {"deleted": True}


@router.post("/{org_id}/picture")
async def upload_picture(
    org_id: str,
    file: UploadFile = File(...),
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, org_id)
    content = await file.read()
    org = await run_db(
        admin_service.upload_org_pic,
        engine,
        org_id=org_id,
        actor_id=roles.user_id,
        filename=file.filename or "",
        content=content,
        content_type=file.content_type,
    )
    return {"org_pic": org.org_pic}


@router.get("/{org_id}/dashboard")
def officer_dashboard(
    org_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, org_id)
    return report_service.officer_overview(engine, org_id)


@router.get("/{org_id}/engagement")
def member_engagement(
    org_id: str,
    window: Literal["30d", "90d", "all"] = "30d",
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, org_id)
    return report_service.member_engagement(engine, org_id, window)


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------
@router.post("/{org_id}/join")
def join(
    org_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    member_service.join_organization(engine, roles.user_id, org_id)
    return {"joined": True}


@router.post("/{org_id}/leave")
def leave(
    org_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return {"left": member_service.leave_organization(engine, roles.user_id, org_id)}


@router.get("/{org_id}/members")
def list_members(
    org_id: str,
    search: str = "",
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, org_id)
    return {"members": member_service.list_org_members(engine, org_id, search)}

"""
orgsync.api.routes.members — Members directory
================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from orgsync.api.deps import get_current_roles, get_engine, require_admin
from orgsync.engine.listing import DEFAULT_PAGE_SIZE, ListQuery
from orgsync.engine.roles import UserRoles
from orgsync.services import member_service, role_service

router = APIRouter(prefix="/members", tags=["members"])


def _require_staff(roles: UserRoles) -> None:
    if not (roles.is_admin() or roles.managed_org_ids):
        raise HTTPException(403, "Directory access requires an admin or organization manager")


@router.get("")
def list_members(
    search: str = "",
    department: str | None = None,
    year_level: str | None = None,
    program: str | None = None,
    user_type: str | None = None,
    sort_field: str | None = None,
    sort_dir: str = "asc",
    page: int = Query(1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    _require_staff(roles)
    query = ListQuery(
        search=search,
        filters={
            "department": department,
            "year_level": year_level,
            "program": program,
            "user_type": user_type,
        },
        sort_field=sort_field,
        sort_dir=sort_dir,
        page=page,
        page_size=page_size,
    )
    return member_service.list_users(engine, query).to_dict()


@router.get("/faculty")
def list_faculty(
    search: str = "",
    admin: UserRoles = Depends(require_admin),
    engine=Depends(get_engine),
):
    return {"faculty": role_service.list_faculty(engine, search)}


@router.get("/{user_id}")
def get_member(
    user_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    _require_staff(roles)
    user = member_service.get_user(engine, user_id)
    return {
        "user": member_service.user_to_dict(user),
        "roles": role_service.get_user_roles(engine, user_id).to_dict(),
        "org_ids": member_service.member_org_ids(engine, user_id),
    }

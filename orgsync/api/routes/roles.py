"""
orgsync.api.routes.roles — Global roles, officers and advisers
================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from orgsync.api.deps import (
    get_current_roles,
    get_engine,
    require_admin,
    require_edit_org,
    require_manage_org,
)
from orgsync.engine.roles import UserRoles
from orgsync.services import role_service

router = APIRouter(prefix="/roles", tags=["roles"])


class RoleUpdate(BaseModel):
    role: str


class ManagerAssign(BaseModel):
    user_id: str
    position: str | None = None


@router.get("/me")
def my_roles(roles: UserRoles = Depends(get_current_roles)):
    return roles.to_dict()


@router.put("/users/{user_id}")
def set_global_role(
    user_id: str,
    body: RoleUpdate,
    admin: UserRoles = Depends(require_admin),
    engine=Depends(get_engine),
):
    roles = role_service.set_global_role(
        engine, actor_id=admin.user_id, user_id=user_id, role=body.role,
    )
    return roles.to_dict()


@router.get("/organizations/{org_id}/managers")
def list_managers(
    org_id: str,
    manager_role: str | None = None,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, org_id)
    return {"managers": role_service.list_org_managers(engine, org_id, manager_role)}


# ---------------------------------------------------------------------------
# Officers
# ---------------------------------------------------------------------------
@router.post("/organizations/{org_id}/officers", status_code=201)
def promote_officer(
    org_id: str,
    body: ManagerAssign,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, org_id)
    result = role_service.promote_to_officer(
        engine, actor_id=roles.user_id, user_id=body.user_id, org_id=org_id, position=body.position,
    )
    return result.to_dict()


@router.delete("/organizations/{org_id}/officers/{user_id}")
def demote_officer(
    org_id: str,
    user_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, org_id)
    result = role_service.demote_officer(engine, actor_id=roles.user_id, user_id=user_id, org_id=org_id)
    return result.to_dict()


# ---------------------------------------------------------------------------
# Advisers (admin only)
# ---------------------------------------------------------------------------
@router.post("/organizations/{org_id}/advisers", status_code=201)
def assign_adviser(
    org_id: str,
    body: ManagerAssign,
    admin: UserRoles = Depends(require_admin),
    engine=Depends(get_engine),
):
    result = role_service.assign_adviser(
        engine, actor_id=admin.user_id, user_id=body.user_id, org_id=org_id, position=body.position,
    )
    return result.to_dict()


@router.delete("/organizations/{org_id}/advisers/{user_id}")
def remove_adviser(
    org_id: str,
    user_id: str,
    admin: UserRoles = Depends(require_admin),
    engine=Depends(get_engine),
):
    result = role_service.remove_adviser(engine, actor_id=admin.user_id, user_id=user_id, org_id=org_id)
    return result.to_dict()

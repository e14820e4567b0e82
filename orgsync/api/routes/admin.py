"""
orgsync.api.routes.admin — Settings, audit log and program mapping (admin only)
=================================================================================
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from orgsync.api.deps import get_engine, require_admin
from orgsync.engine.roles import UserRoles
from orgsync.errors import ValidationError
from orgsync.services import admin_service, member_service, role_service, settings_service
from orgsync.services.admin_service import row_to_dict

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)

ROLE_CACHE_TTL_KEY = "roles.cache_ttl_seconds"


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SettingUpdate(BaseModel):
    key: str
    value: Any
    category: str | None = None
    description: str | None = None


class ProgramMapping(BaseModel):
    program: str
    org_id: str | None = None


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
@router.get("/settings")
def get_all_settings(
    admin: UserRoles = Depends(require_admin),
    engine=Depends(get_engine),
):
    return {"settings": settings_service.get_all_settings(engine)}


@router.put("/settings")
def update_settings(
    body: list[SettingUpdate],
    admin: UserRoles = Depends(require_admin),
    engine=Depends(get_engine),
):
    ttl = None
    for s in body:
        if s.key == ROLE_CACHE_TTL_KEY:
            try:
                ttl = float(s.value)
            except (TypeError, ValueError):
                raise ValidationError("Role cache TTL must be a number") from None
    items = [
        {
            "key": s.key,
            "value": s.value,
            **({"category": s.category} if s.category else {}),
            **({"description": s.description} if s.description else {}),
        }
        for s in body
    ]
    count = settings_service.bulk_upsert(engine, items, actor_id=admin.user_id)
    if ttl is not None:
        role_service.set_cache_ttl(ttl)
    return {"updated": count}


# ---------------------------------------------------------------------------
# Audit Log
# ---------------------------------------------------------------------------
@router.get("/audit")
def get_audit_log(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    target_table: str | None = None,
    admin: UserRoles = Depends(require_admin),
    engine=Depends(get_engine),
):
    """Paginated admin audit log, newest first."""
    result = admin_service.list_audit_log(
        engine, page=page, page_size=page_size, target_table=target_table,
    )
    return result.to_dict(row_to_dict)


# ---------------------------------------------------------------------------
# Program → organization mapping
# ---------------------------------------------------------------------------
@router.put("/programs")
def map_program(
    body: ProgramMapping,
    admin: UserRoles = Depends(require_admin),
    engine=Depends(get_engine),
):
    member_service.set_program_org(engine, program=body.program, org_id=body.org_id)
    logger.info("Program %s mapped to org %s by %s", body.program, body.org_id, admin.user_id)
    return {"program": body.program.strip(), "org_id": body.org_id}

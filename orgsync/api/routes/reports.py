"""
orgsync.api.routes.reports — Admin dashboard and engagement reports
=====================================================================
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends

from orgsync.api.deps import get_engine, require_admin
from orgsync.engine.roles import UserRoles
from orgsync.services import report_service

router = APIRouter(prefix="/reports", tags=["reports"])

_RANGES = {"7d": 7, "30d": 30, "90d": 90, "all": None}


@router.get("/overview")
def overview(
    admin: UserRoles = Depends(require_admin),
    engine=Depends(get_engine),
):
    return report_service.admin_overview(engine)


@router.get("/engagement")
def engagement(
    department: str = "all",
    org_type: str = "all",
    status: str = "all",
    time_range: Literal["7d", "30d", "90d", "all"] = "30d",
    admin: UserRoles = Depends(require_admin),
    engine=Depends(get_engine),
):
    return report_service.engagement_report(
        engine,
        department=department,
        org_type=org_type,
        status=status,
        days=_RANGES[time_range],
    )

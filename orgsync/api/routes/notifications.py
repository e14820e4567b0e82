"""
orgsync.api.routes.notifications — Member notifications
=========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from orgsync.api.deps import get_current_roles, get_engine
from orgsync.engine.roles import UserRoles
from orgsync.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return {
        "notifications": notification_service.list_notifications(
            engine, roles.user_id, unread_only=unread_only, limit=limit,
        ),
        "unread": notification_service.unread_count(engine, roles.user_id),
    }


@router.post("/read-all")
def mark_all_read(
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return {"updated": notification_service.mark_all_read(engine, roles.user_id)}


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: int,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    if not notification_service.mark_read(engine, roles.user_id, notification_id):
        raise HTTPException(404, "Notification not found")
    return {"read": True}

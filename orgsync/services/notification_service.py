"""
orgsync.services.notification_service — Member inbox
======================================================
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from orgsync.database.models import Notification, OrgMember

logger = logging.getLogger(__name__)


def notify_org_members(
    session: Session,
    org_id: str,
    message: str,
    post_id: str | None = None,
    *,
    exclude_user_id: str | None = None,
) -> int:
    """Queue one notification per active member of *org_id* in *session*.

    Returns the number of notifications added.
    """
    user_ids = session.scalars(
        select(OrgMember.user_id).where(
            OrgMember.org_id == org_id, OrgMember.is_active.is_(True)
        )
    ).all()
    count = 0
    for user_id in user_ids:
        if user_id == exclude_user_id:
            continue
        session.add(Notification(user_id=user_id, message=message, post_id=post_id))
        count += 1
    if count:
        logger.info("Queued %d notifications for org %s", count, org_id)
    return count


def list_notifications(engine, user_id: str, *, unread_only: bool = False, limit: int = 50) -> list[dict]:
    stmt = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.date_sent.desc(), Notification.id.desc())
        .limit(limit)
    )
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    with Session(engine) as session:
        return [
            {
                "id": n.id,
                "message": n.message,
                "post_id": n.post_id,
                "read": n.read,
                "date_sent": n.date_sent.isoformat() if n.date_sent else None,
            }
            for n in session.scalars(stmt).all()
        ]


def unread_count(engine, user_id: str) -> int:
    with Session(engine) as session:
        return session.scalar(
            select(func.count()).select_from(Notification).where(
                Notification.user_id == user_id, Notification.read.is_(False)
            )
        ) or 0


def mark_read(engine, user_id: str, notification_id: int) -> bool:
    """Mark one of the user's notifications read.  False if not theirs."""
    with Session(engine) as session:
        note = session.get(Notification, notification_id)
        if note is None or note.user_id != user_id:
            return False
        note.read = True
        session.commit()
        return True


def mark_all_read(engine, user_id: str) -> int:
    with Session(engine) as session:
        result = session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        session.commit()
        return result.rowcount or 0

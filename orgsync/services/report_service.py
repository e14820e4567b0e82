"""
orgsync.services.report_service — Dashboard figures and reports
=================================================================
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from orgsync.constants import full_name
from orgsync.database.models import (
    EventAttendance,
    EventRegistration,
    ManagerRole,
    OrgManager,
    OrgMember,
    Organization,
    Post,
    PostType,
    PostView,
    Quiz,
    RewardLog,
    Rsvp,
    User,
)
from orgsync.engine import analytics
from orgsync.engine.listing import normalize_department
from orgsync.engine.windows import utcnow
from orgsync.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

RECENT_DAYS = 30
ENGAGEMENT_WINDOWS = {"30d": 30, "90d": 90, "all": None}


def _count(session: Session, stmt) -> int:
    return session.scalar(stmt) or 0


def admin_overview(engine) -> dict:
    """Totals for the admin home screen plus additions in the last 30 days."""
    cutoff = utcnow() - timedelta(days=RECENT_DAYS)
    with Session(engine) as session:
        return {
            "organizations": _count(session, select(func.count()).select_from(Organization)),
            "members": _count(session, select(func.count()).select_from(OrgMember)),
            "posts": _count(session, select(func.count()).select_from(Post)),
            "officers": _count(
                session,
                select(func.count()).select_from(OrgManager)
                .where(OrgManager.manager_role == ManagerRole.OFFICER.value),
            ),
            "recent_organizations": _count(
                session,
                select(func.count()).select_from(Organization).where(Organization.created_at >= cutoff),
            ),
            "recent_members": _count(
                session,
                select(func.count()).select_from(OrgMember).where(OrgMember.joined_at >= cutoff),
            ),
        }


def officer_overview(engine, org_id: str) -> dict:
    with Session(engine) as session:
        org = session.get(Organization, org_id)
        if org is None:
            raise NotFoundError("Organization not found")
        return {
            "org_id": org.id,
            "name": org.name,
            "abbrev_name": org.abbrev_name,
            "members": _count(
                session,
                select(func.count()).select_from(OrgMember)
                .where(OrgMember.org_id == org_id, OrgMember.is_active.is_(True)),
            ),
            "posts": _count(session, select(func.count()).select_from(Post).where(Post.org_id == org_id)),
            "events": _count(
                session,
                select(func.count()).select_from(Post)
                .where(Post.org_id == org_id, Post.post_type == PostType.EVENT.value),
            ),
            "quizzes": _count(session, select(func.count()).select_from(Quiz).where(Quiz.org_id == org_id)),
        }


def engagement_report(
    engine,
    *,
    department: str | None = None,
    org_type: str | None = None,
    status: str | None = None,
    days: int | None = 30,
) -> dict:
    """Engagement figures restricted to organizations matching the filters.

    ``days`` bounds posts, views, RSVPs and registrations to the recent
    window; ``None`` means all time.
    """
    cutoff = utcnow() - timedelta(days=days) if days else None
    org_stmt = select(Organization.id)
    filtered = False
    dept = normalize_department(department)
    if dept:
        org_stmt = org_stmt.where(Organization.department == dept)
        filtered = True
    if org_type and org_type != "all":
        org_stmt = org_stmt.where(Organization.org_type == org_type)
        filtered = True
    if status and status != "all":
        org_stmt = org_stmt.where(Organization.status == status)
        filtered = True

    with Session(engine) as session:
        org_ids = list(session.scalars(org_stmt).all())

        post_stmt = select(Post.id, Post.post_type).where(Post.org_id.in_(org_ids))
        if cutoff is not None:
            post_stmt = post_stmt.where(Post.created_at >= cutoff)
        posts = session.execute(post_stmt).all()
        post_ids = [pid for pid, _ in posts]
        event_ids = [pid for pid, ptype in posts if ptype == PostType.EVENT]

        def _activity(model: type, time_column) -> int:
            if not post_ids:
                return 0
            stmt = select(func.count()).select_from(model).where(model.post_id.in_(post_ids))
            if cutoff is not None:
                stmt = stmt.where(time_column >= cutoff)
            return _count(session, stmt)

        member_rows = session.execute(
            select(OrgMember.user_id, User.user_type)
            .join(User, User.id == OrgMember.user_id)
            .where(OrgMember.org_id.in_(org_ids), OrgMember.is_active.is_(True))
        ).all()
        if filtered:
            user_types = Counter(ut or "unknown" for _, ut in {(u, t) for u, t in member_rows})
            total_users = len({u for u, _ in member_rows})
        else:
            user_types = Counter(
                ut or "unknown" for ut in session.scalars(select(User.user_type)).all()
            )
            total_users = sum(user_types.values())

        reward_stmt = select(RewardLog.action, func.count(), func.sum(RewardLog.points)).group_by(RewardLog.action)
        if filtered:
            reward_stmt = reward_stmt.where(RewardLog.org_id.in_(org_ids))
        if cutoff is not None:
            reward_stmt = reward_stmt.where(RewardLog.created_at >= cutoff)
        rewards = {
            action: {"count": count, "points": int(points or 0)}
            for action, count, points in session.execute(reward_stmt).all()
        }

        event_rsvps = (
            _count(session, select(func.count()).select_from(Rsvp).where(Rsvp.post_id.in_(event_ids)))
            if event_ids else 0
        )
        attended = (
            _count(
                session,
                select(func.count()).select_from(EventAttendance).where(
                    EventAttendance.post_id.in_(event_ids), EventAttendance.attended.is_(True)
                ),
            )
            if event_ids else 0
        )

        now = utcnow()
        scope = org_ids if filtered else None
        report = {
            "filters": {"department": dept, "org_type": org_type, "status": status, "days": days},
            "organizations": len(org_ids),
            "active_organizations": _count(
                session,
                select(func.count()).select_from(Organization).where(
                    Organization.id.in_(org_ids), Organization.status == "active"
                ),
            ),
            "users": total_users,
            "user_types": dict(user_types),
            "posts": len(post_ids),
            "events": len(event_ids),
            "views": _activity(PostView, PostView.viewed_at),
            "rsvps": _activity(Rsvp, Rsvp.created_at),
            "registrations": _activity(EventRegistration, EventRegistration.created_at),
            "rewards": rewards,
            "daily_retention": _retention(session, now, timedelta(days=1), scope),
            "monthly_retention": _retention(session, now, timedelta(days=30), scope),
            "attendance_rate": _percent(attended, event_rsvps),
        }
    logger.info("Engagement report built for %d organizations", report["organizations"])
    return report


# ---------------------------------------------------------------------------
# Retention and member engagement
# ---------------------------------------------------------------------------
def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def _active_users(session: Session, start, end, org_ids: list[str] | None) -> set[str]:
    stmt = select(RewardLog.user_id).where(RewardLog.created_at >= start, RewardLog.created_at < end)
    if org_ids is not None:
        stmt = stmt.where(RewardLog.org_id.in_(org_ids))
    return set(session.scalars(stmt.distinct()).all())


def _retention(session: Session, now, period: timedelta, org_ids: list[str] | None) -> float:
    """Share of users active in the previous *period* who were active again in the latest one."""
    earlier = _active_users(session, now - 2 * period, now - period, org_ids)
    recent = _active_users(session, now - period, now + timedelta(seconds=1), org_ids)
    return _percent(len(earlier & recent), len(earlier))


def member_engagement(engine, org_id: str, window: str = "30d") -> dict:
    """Per-member engagement score, RSVP rate, segment and RSVP probability.

    Members are the users with reward activity in *org_id* during
    *window* (``30d``, ``90d`` or ``all``).
    """
    if window not in ENGAGEMENT_WINDOWS:
        raise ValidationError("Window must be one of: " + ", ".join(ENGAGEMENT_WINDOWS))
    days = ENGAGEMENT_WINDOWS[window]
    cutoff = utcnow() - timedelta(days=days) if days else None

    with Session(engine) as session:
        if session.get(Organization, org_id) is None:
            raise NotFoundError("Organization not found")

        event_stmt = select(Post.id).where(
            Post.org_id == org_id, Post.post_type == PostType.EVENT.value
        )
        if cutoff is not None:
            event_stmt = event_stmt.where(Post.created_at >= cutoff)
        event_ids = list(session.scalars(event_stmt.order_by(Post.created_at, Post.id)).all())
        if not event_ids:
            raise ValidationError("No events found in the selected time window")

        reward_stmt = (
            select(RewardLog.user_id, RewardLog.action, func.count())
            .where(RewardLog.org_id == org_id)
            .group_by(RewardLog.user_id, RewardLog.action)
        )
        if cutoff is not None:
            reward_stmt = reward_stmt.where(RewardLog.created_at >= cutoff)
        members: dict[str, analytics.MemberActivity] = {}
        for user_id, action, count in session.execute(reward_stmt).all():
            member = members.setdefault(user_id, analytics.MemberActivity(user_id=user_id))
            member.counts[action] = count

        for post_id, user_id in session.execute(
            select(Rsvp.post_id, Rsvp.user_id).where(Rsvp.post_id.in_(event_ids))
        ).all():
            if user_id in members:
                members[user_id].rsvp_events.add(post_id)

        if members:
            for user in session.scalars(select(User).where(User.id.in_(list(members)))).all():
                members[user.id].name = full_name(user.first_name, user.last_name)

    rows = sorted(members.values(), key=lambda m: m.user_id)
    trained = analytics.analyze_members(rows, event_ids)
    rows.sort(key=lambda m: (-m.engagement_score, m.user_id))
    if not trained:
        logger.info(
            "Engagement models skipped for %s: %d members with activity", org_id, len(rows),
        )
    return {
        "org_id": org_id,
        "window": window,
        "events": len(event_ids),
        "trained": trained,
        "message": None if trained else (
            f"Insufficient data for training. Need at least {analytics.MIN_MEMBERS} "
            "users with activity."
        ),
        "members": [m.to_dict() for m in rows],
    }

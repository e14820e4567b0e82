"""
orgsync.services.event_service — RSVP, registration, evaluation, attendance
============================================================================

The event lifecycle for a member is RSVP → register → evaluate; each step
happens once and awards coins once.  Registering RSVPs automatically when
the member hasn't yet.  Officers mark attendance on a roster of the
organization's members.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from orgsync.constants import EVALUATION_RATINGS, full_name
from orgsync.database.models import (
    EventAttendance,
    EventEvaluation,
    EventRegistration,
    OrgMember,
    Post,
    PostType,
    Rsvp,
    User,
)
from orgsync.errors import ConflictError, NotFoundError, ValidationError
from orgsync.services import coin_service
from orgsync.services.post_service import load_visible_post

logger = logging.getLogger(__name__)

REGISTRATION_FIELDS = (
    "first_name", "middle_initial", "last_name", "email", "college", "program", "section",
)


def _load_event(session: Session, post_id: str, user_id: str) -> Post:
    post = load_visible_post(session, post_id, user_id)
    if post.post_type != PostType.EVENT:
        raise ValidationError("Post is not an event")
    return post


def _has(session: Session, model: type, post_id: str, user_id: str) -> bool:
    return session.scalar(
        select(model.id).where(model.post_id == post_id, model.user_id == user_id)
    ) is not None


def _rsvp_in_session(session: Session, post_id: str, user_id: str) -> int:
    session.add(Rsvp(post_id=post_id, user_id=user_id, status="going"))
    return coin_service.award_once(session, user_id, post_id, "rsvp")


# ---------------------------------------------------------------------------
# Member actions
# ---------------------------------------------------------------------------
def rsvp(engine, post_id: str, user_id: str) -> dict:
    with Session(engine) as session:
        _load_event(session, post_id, user_id)
        if _has(session, Rsvp, post_id, user_id):
            raise ConflictError("You have already RSVP'd to this event")
        coins = _rsvp_in_session(session, post_id, user_id)
        session.commit()
        coin_service.publish_pending(session)
    logger.info("User %s RSVP'd to event %s", user_id, post_id)
    return {"coins": coins}


def register(engine, post_id: str, user_id: str, data: dict[str, Any]) -> dict:
    """Register for an event, RSVPing first when needed.

    Every registration field is required and the email must contain ``@``.
    Returns the coins awarded for the RSVP and the registration.
    """
    fields = {k: str(data.get(k) or "").strip() for k in REGISTRATION_FIELDS}
    missing = [k for k, v in fields.items() if not v]
    if missing:
        raise ValidationError(f"Missing registration fields: {', '.join(missing)}")
    if "@" not in fields["email"]:
        raise ValidationError("Invalid email address")

    with Session(engine) as session:
        _load_event(session, post_id, user_id)
        if _has(session, EventRegistration, post_id, user_id):
            raise ConflictError("You are already registered for this event")

        rsvp_coins = 0
        if not _has(session, Rsvp, post_id, user_id):
            rsvp_coins = _rsvp_in_session(session, post_id, user_id)

        session.add(EventRegistration(post_id=post_id, user_id=user_id, **fields))
        register_coins = coin_service.award_once(session, user_id, post_id, "register")
        session.commit()
        coin_service.publish_pending(session)
    logger.info("User %s registered for event %s", user_id, post_id)
    return {"rsvp_coins": rsvp_coins, "coins": register_coins}


def evaluate(engine, post_id: str, user_id: str, data: dict[str, Any]) -> dict:
    """Submit the post-event evaluation (each rating 1–5)."""
    ratings: dict[str, int] = {}
    for key in EVALUATION_RATINGS:
        try:
            value = int(data.get(key))
        except (TypeError, ValueError):
            raise ValidationError(f"Rating '{key}' is required") from None
        if not 1 <= value <= 5:
            raise ValidationError(f"Rating '{key}' must be between 1 and 5")
        ratings[key] = value

    with Session(engine) as session:
        _load_event(session, post_id, user_id)
        if not _has(session, EventRegistration, post_id, user_id):
            raise ValidationError("Register for the event before evaluating it")
        if _has(session, EventEvaluation, post_id, user_id):
            raise ConflictError("You have already evaluated this event")
        session.add(EventEvaluation(
            post_id=post_id,
            user_id=user_id,
            benefits=str(data.get("benefits") or "").strip(),
            problems=str(data.get("problems") or "").strip(),
            comments=str(data.get("comments") or "").strip(),
            **ratings,
        ))
        coins = coin_service.award_once(session, user_id, post_id, "evaluate")
        session.commit()
        coin_service.publish_pending(session)
    logger.info("User %s evaluated event %s", user_id, post_id)
    return {"coins": coins}


def my_event_status(engine, post_id: str, user_id: str) -> dict:
    with Session(engine) as session:
        attendance = session.get(EventAttendance, (post_id, user_id))
        return {
            "rsvp": _has(session, Rsvp, post_id, user_id),
            "registered": _has(session, EventRegistration, post_id, user_id),
            "evaluated": _has(session, EventEvaluation, post_id, user_id),
            "attended": bool(attendance and attendance.attended),
        }


# ---------------------------------------------------------------------------
# Officer views
# ---------------------------------------------------------------------------
def _require_org_event(session: Session, org_id: str, post_id: str) -> Post:
    post = session.get(Post, post_id)
    if post is None or post.org_id != org_id or post.post_type != PostType.EVENT:
        raise NotFoundError("Event not found in this organization")
    return post


def attendance_roster(engine, org_id: str, post_id: str) -> list[dict]:
    """Every active member of *org_id* with their progress on *post_id*."""
    with Session(engine) as session:
        _require_org_event(session, org_id, post_id)
        members = session.scalars(
            select(User)
            .join(OrgMember, OrgMember.user_id == User.id)
            .where(OrgMember.org_id == org_id, OrgMember.is_active.is_(True))
            .order_by(User.last_name, User.first_name)
        ).all()

        def _user_ids(model: type) -> set[str]:
            return set(session.scalars(select(model.user_id).where(model.post_id == post_id)).all())

        rsvps = _user_ids(Rsvp)
        registrations = _user_ids(EventRegistration)
        evaluations = _user_ids(EventEvaluation)
        attended = {
            a.user_id: a.attended
            for a in session.scalars(
                select(EventAttendance).where(EventAttendance.post_id == post_id)
            ).all()
        }
        return [
            {
                "user_id": u.id,
                "name": full_name(u.first_name, u.last_name),
                "email": u.email,
                "student_number": u.student_number,
                "rsvp": u.id in rsvps,
                "registration": u.id in registrations,
                "evaluation": u.id in evaluations,
                "attended": attended.get(u.id, False),
            }
            for u in members
        ]


def mark_attendance(engine, org_id: str, post_id: str, changes: dict[str, bool]) -> int:
    """Upsert ``{user_id: attended}`` rows; returns the number written."""
    with Session(engine) as session:
        _require_org_event(session, org_id, post_id)
        for user_id, attended in changes.items():
            row = session.get(EventAttendance, (post_id, user_id))
            if row is None:
                session.add(EventAttendance(post_id=post_id, user_id=user_id, attended=bool(attended)))
            else:
                row.attended = bool(attended)
        session.commit()
    logger.info("Attendance updated for %d members on event %s", len(changes), post_id)
    return len(changes)


def list_registrations(engine, post_id: str) -> list[dict]:
    with Session(engine) as session:
        rows = session.scalars(
            select(EventRegistration)
            .where(EventRegistration.post_id == post_id)
            .order_by(EventRegistration.last_name, EventRegistration.first_name)
        ).all()
        return [{"user_id": r.user_id, **{k: getattr(r, k) for k in REGISTRATION_FIELDS}} for r in rows]


def evaluation_summary(engine, post_id: str) -> dict:
    """Average rating per category plus the free-text answers."""
    with Session(engine) as session:
        rows = session.scalars(
            select(EventEvaluation).where(EventEvaluation.post_id == post_id)
        ).all()
        count = len(rows)
        averages = {
            key: round(sum(getattr(r, key) for r in rows) / count, 2) if count else 0.0
            for key in EVALUATION_RATINGS
        }
        return {
            "count": count,
            "averages": averages,
            "comments": [
                {"benefits": r.benefits, "problems": r.problems, "comments": r.comments}
                for r in rows
            ],
        }

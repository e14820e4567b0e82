"""
orgsync.services.contest_service — Room screenshot contests
=============================================================

Officers open contests; members submit a screenshot of their minigame
room.  One entry per member per contest: resubmitting replaces the image.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from orgsync.constants import full_name
from orgsync.database.models import ContestSubmission, Organization, RoomContest, User
from orgsync.errors import ForbiddenError, NotFoundError, ValidationError
from orgsync.services import storage_service
from orgsync.services.member_service import is_active_member
from orgsync.services.storage_service import ImageUpload

logger = logging.getLogger(__name__)


def contest_to_dict(contest: RoomContest, **extra) -> dict:
    return {
        "id": contest.id,
        "org_id": contest.org_id,
        "title": contest.title,
        "description": contest.description,
        "start_date": contest.start_date.isoformat() if contest.start_date else None,
        "end_date": contest.end_date.isoformat() if contest.end_date else None,
        "created_by": contest.created_by,
        "is_active": contest.is_active,
        "created_at": contest.created_at.isoformat() if contest.created_at else None,
        **extra,
    }


def create_contest(
    engine,
    *,
    org_id: str,
    created_by: str,
    title: str,
    description: str,
    start_date: date | None = None,
    end_date: date | None = None,
) -> RoomContest:
    title, description = (title or "").strip(), (description or "").strip()
    if not title:
        raise ValidationError("Please enter a contest title")
    if not description:
        raise ValidationError("Please enter a contest description")
    if start_date and end_date and start_date > end_date:
        raise ValidationError("Contest start date must not be after its end date")

    with Session(engine, expire_on_commit=False) as session:
        if session.get(Organization, org_id) is None:
            raise NotFoundError("Organization not found")
        contest = RoomContest(
            org_id=org_id,
            title=title,
            description=description,
            start_date=start_date,
            end_date=end_date,
            created_by=created_by,
            is_active=True,
        )
        session.add(contest)
        session.commit()
        session.refresh(contest)
        session.expunge(contest)
    logger.info("Contest %s created in org %s by %s", contest.id, org_id, created_by)
    return contest


def get_contest(engine, contest_id: str) -> RoomContest:
    with Session(engine) as session:
        contest = session.get(RoomContest, contest_id)
        if contest is None:
            raise NotFoundError("Contest not found")
        session.expunge(contest)
        return contest


def toggle_contest(engine, contest_id: str) -> bool:
    """Flip ``is_active``; returns the new state."""
    with Session(engine) as session:
        contest = session.get(RoomContest, contest_id)
        if contest is None:
            raise NotFoundError("Contest not found")
        contest.is_active = not contest.is_active
        session.commit()
        return contest.is_active


def delete_contest(engine, contest_id: str) -> bool:
    with Session(engine) as session:
        contest = session.get(RoomContest, contest_id)
        if contest is None:
            return False
        session.delete(contest)
        session.commit()
    logger.info("Contest %s deleted", contest_id)
    return True


def list_contests(engine, org_id: str) -> list[dict]:
    with Session(engine) as session:
        contests = session.scalars(
            select(RoomContest)
            .where(RoomContest.org_id == org_id)
            .order_by(RoomContest.created_at.desc())
        ).all()
        return [contest_to_dict(c, submission_count=len(c.submissions)) for c in contests]


def list_active_contests(engine, org_ids: list[str]) -> list[dict]:
    if not org_ids:
        return []
    with Session(engine) as session:
        contests = session.scalars(
            select(RoomContest)
            .where(RoomContest.org_id.in_(org_ids), RoomContest.is_active.is_(True))
            .order_by(RoomContest.created_at.desc())
        ).all()
        return [contest_to_dict(c) for c in contests]


def _accepting(contest: RoomContest, today: date) -> bool:
    if not contest.is_active:
        return False
    if contest.start_date and today < contest.start_date:
        return False
    if contest.end_date and today > contest.end_date:
        return False
    return True


def submit_entry(
    engine,
    contest_id: str,
    user_id: str,
    image: ImageUpload,
    *,
    today: date | None = None,
) -> dict:
    """Store the screenshot in the ``screenshots`` bucket and record the entry."""
    with Session(engine) as session:
        contest = session.get(RoomContest, contest_id)
        if contest is None:
            raise NotFoundError("Contest not found")
        if not _accepting(contest, today or date.today()):
            raise ValidationError("This contest is not accepting entries")
        if not is_active_member(session, user_id, contest.org_id):
            raise ForbiddenError("Only members of the organization can enter this contest")

        url = storage_service.store_image("screenshots", f"{contest_id}/{user_id}", image)
        entry = session.scalar(
            select(ContestSubmission).where(
                ContestSubmission.contest_id == contest_id,
                ContestSubmission.user_id == user_id,
            )
        )
        previous = None
        if entry is None:
            entry = ContestSubmission(
                contest_id=contest_id, org_id=contest.org_id, user_id=user_id, image_url=url,
            )
            session.add(entry)
        else:
            previous = entry.image_url
            entry.image_url = url
        session.commit()
        storage_service.discard_replaced("screenshots", previous, url)
        logger.info("Contest %s entry from %s", contest_id, user_id)
        return {"id": entry.id, "contest_id": contest_id, "user_id": user_id, "image_url": url}


def list_submissions(engine, contest_id: str) -> list[dict]:
    with Session(engine) as session:
        rows = session.execute(
            select(ContestSubmission, User)
            .outerjoin(User, User.id == ContestSubmission.user_id)
            .where(ContestSubmission.contest_id == contest_id)
            .order_by(ContestSubmission.submitted_at.desc())
        ).all()
        return [
            {
                "id": s.id,
                "user_id": s.user_id,
                "name": full_name(u.first_name, u.last_name) if u else "Unknown",
                "image_url": s.image_url,
                "submitted_at": s.submitted_at.isoformat() if s.submitted_at else None,
            }
            for s, u in rows
        ]

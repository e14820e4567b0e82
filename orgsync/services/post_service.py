"""
orgsync.services.post_service — Posts, polls, feedback forms and the feed
==========================================================================

Posts belong to one organization and come in four types: ``general``,
``event``, ``poll`` (``options`` list) and ``feedback`` (``form_fields``
list of ``{"question", "type", "required"}``).  Private posts are visible
only to active members of the organization.

Engagement actions (view, like, vote, form response) award coins once
per user and post.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orgsync.constants import POST_TYPES, POST_VISIBILITIES, full_name
from orgsync.database.models import (
    EventAttendance,
    EventEvaluation,
    EventRegistration,
    FormResponse,
    OrgMember,
    Organization,
    PollVote,
    Post,
    PostLike,
    PostType,
    PostView,
    Rsvp,
    User,
)
from orgsync.engine.listing import search_clause
from orgsync.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from orgsync.services import coin_service, notification_service

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = (
    "title", "content", "post_type", "visibility", "status", "tags", "media",
    "is_pinned", "event_date", "start_time", "end_time", "location",
    "options", "form_fields",
)
FORM_FIELD_TYPES = ("text", "textarea")


def post_to_dict(post: Post, **extra: Any) -> dict:
    data = {
        "id": post.id,
        "org_id": post.org_id,
        "user_id": post.user_id,
        "title": post.title,
        "content": post.content,
        "post_type": post.post_type,
        "visibility": post.visibility,
        "status": post.status,
        "tags": post.tags or [],
        "media": post.media or [],
        "is_pinned": post.is_pinned,
        "view_count": post.view_count,
        "event_date": post.event_date.isoformat() if post.event_date else None,
        "start_time": post.start_time,
        "end_time": post.end_time,
        "location": post.location,
        "options": post.options,
        "form_fields": post.form_fields,
        "created_at": post.created_at.isoformat() if post.created_at else None,
    }
    data.update(extra)
    return data


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
def _parse_time(value: Any) -> time | None:
    """``"9:00"``, ``"09:00"`` or ``"09:00:00"`` → :class:`datetime.time`."""
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    text = str(value).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValidationError("Event times must be HH:MM")


def _validate_post(fields: dict[str, Any]) -> dict[str, Any]:
    """Check the merged field set of a post; returns normalised fields."""
    title = (fields.get("title") or "").strip()
    if not title:
        raise ValidationError("Title is required")
    fields["title"] = title

    post_type = fields.get("post_type") or PostType.GENERAL.value
    if post_type not in POST_TYPES:
        raise ValidationError(f"Invalid post type: {post_type!r}")
    fields["post_type"] = post_type

    visibility = fields.get("visibility") or "public"
    if visibility not in POST_VISIBILITIES:
        raise ValidationError(f"Invalid visibility: {visibility!r}")
    fields["visibility"] = visibility

    if post_type == PostType.EVENT:
        if not fields.get("event_date"):
            raise ValidationError("Events need a date")
        if isinstance(fields["event_date"], str):
            try:
                fields["event_date"] = date.fromisoformat(fields["event_date"])
            except ValueError:
                raise ValidationError("Event date must be YYYY-MM-DD") from None
        start = _parse_time(fields.get("start_time"))
        end = _parse_time(fields.get("end_time"))
        fields["start_time"] = start.strftime("%H:%M") if start else None
        fields["end_time"] = end.strftime("%H:%M") if end else None
        if start and end and start >= end:
            raise ValidationError("Event start time must be before end time")

    if post_type == PostType.POLL:
        options = [str(o).strip() for o in (fields.get("options") or [])]
        if len(options) < 2 or any(not o for o in options):
            raise ValidationError("Polls need at least two non-empty options")
        if len(set(options)) != len(options):
            raise ValidationError("Poll options must be unique")
        fields["options"] = options

    if post_type == PostType.FEEDBACK:
        raw_fields = fields.get("form_fields") or []
        if not raw_fields:
            raise ValidationError("Feedback forms need at least one question")
        cleaned = []
        for item in raw_fields:
            question = str(item.get("question") or "").strip()
            if not question:
                raise ValidationError("Every form question needs text")
            field_type = item.get("type") or "text"
            if field_type not in FORM_FIELD_TYPES:
                raise ValidationError(f"Invalid form field type: {field_type!r}")
            cleaned.append({
                "question": question,
                "type": field_type,
                "required": bool(item.get("required", False)),
            })
        fields["form_fields"] = cleaned

    return fields


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------
def create_post(engine, *, author_id: str, org_id: str, **data: Any) -> Post:
    """Create a post and notify the organization's members."""
    fields = _validate_post({k: v for k, v in data.items() if k in _EDITABLE_FIELDS})
    with Session(engine, expire_on_commit=False) as session:
        org = session.get(Organization, org_id)
        if org is None:
            raise NotFoundError("Organization not found")
        post = Post(org_id=org_id, user_id=author_id, **fields)
        session.add(post)
        session.flush()
        notification_service.notify_org_members(
            session,
            org_id,
            f"New {post.post_type} post from {org.abbrev_name}: {post.title}",
            post.id,
            exclude_user_id=author_id,
        )
        session.commit()
        session.refresh(post)
        session.expunge(post)
    logger.info("Post %s (%s) created in org %s by %s", post.id, post.post_type, org_id, author_id)
    return post


def get_post(engine, post_id: str) -> Post:
    with Session(engine) as session:
        post = session.get(Post, post_id)
        if post is None:
            raise NotFoundError("Post not found")
        session.expunge(post)
        return post


def update_post(engine, post_id: str, **data: Any) -> Post:
    with Session(engine, expire_on_commit=False) as session:
        post = session.get(Post, post_id)
        if post is None:
            raise NotFoundError("Post not found")
        merged = {k: getattr(post, k) for k in _EDITABLE_FIELDS}
        merged.update({k: v for k, v in data.items() if k in _EDITABLE_FIELDS})
        fields = _validate_post(merged)
        for key, value in fields.items():
            setattr(post, key, value)
        session.commit()
        session.refresh(post)
        session.expunge(post)
    logger.info("Post %s updated", post_id)
    return post


def delete_post(engine, post_id: str) -> bool:
    with Session(engine) as session:
        post = session.get(Post, post_id)
        if post is None:
            return False
        for model in (
            PostLike, PostView, PollVote, FormResponse,
            Rsvp, EventRegistration, EventEvaluation, EventAttendance,
        ):
            for row in session.scalars(select(model).where(model.post_id == post_id)).all():
                session.delete(row)
        session.delete(post)
        session.commit()
    logger.info("Post %s deleted", post_id)
    return True


def toggle_pin(engine, post_id: str) -> bool:
    """Flip ``is_pinned``; returns the new state."""
    with Session(engine) as session:
        post = session.get(Post, post_id)
        if post is None:
            raise NotFoundError("Post not found")
        post.is_pinned = not post.is_pinned
        session.commit()
        return post.is_pinned


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------
def _like_counts(session: Session, post_ids: list[str]) -> dict[str, int]:
    if not post_ids:
        return {}
    rows = session.execute(
        select(PostLike.post_id, func.count())
        .where(PostLike.post_id.in_(post_ids))
        .group_by(PostLike.post_id)
    ).all()
    return {post_id: count for post_id, count in rows}


def _user_flags(session: Session, model: type, post_ids: list[str], user_id: str) -> set[str]:
    if not post_ids:
        return set()
    return set(session.scalars(
        select(model.post_id).where(model.post_id.in_(post_ids), model.user_id == user_id)
    ).all())


def list_org_posts(engine, org_id: str, post_type: str | None = None, search: str = "") -> list[dict]:
    """Management view of an organization's posts, pinned first."""
    stmt = select(Post).where(Post.org_id == org_id)
    if post_type:
        stmt = stmt.where(Post.post_type == post_type)
    clause = search_clause(search, (Post.title, Post.content))
    if clause is not None:
        stmt = stmt.where(clause)
    stmt = stmt.order_by(Post.is_pinned.desc(), Post.created_at.desc())
    with Session(engine) as session:
        posts = session.scalars(stmt).all()
        likes = _like_counts(session, [p.id for p in posts])
        return [post_to_dict(p, like_count=likes.get(p.id, 0)) for p in posts]


def get_feed(
    engine,
    user_id: str,
    *,
    search: str = "",
    post_type: str | None = None,
    org_id: str | None = None,
    limit: int = 50,
) -> list[dict]:
    """Posts from active organizations the viewer may see.

    Public posts are visible to everyone; private posts only to active
    members of the posting organization.  Pinned posts come first, then
    newest.
    """
    member_orgs = (
        select(OrgMember.org_id)
        .where(OrgMember.user_id == user_id, OrgMember.is_active.is_(True))
        .scalar_subquery()
    )
    stmt = (
        select(Post, Organization)
        .join(Organization, Organization.id == Post.org_id)
        .where(Organization.status == "active")
        .where(or_(Post.visibility == "public", Post.org_id.in_(member_orgs)))
    )
    if post_type:
        stmt = stmt.where(Post.post_type == post_type)
    if org_id:
        stmt = stmt.where(Post.org_id == org_id)
    clause = search_clause(search, (Post.title, Post.content, Organization.name))
    if clause is not None:
        stmt = stmt.where(clause)
    stmt = stmt.order_by(Post.is_pinned.desc(), Post.created_at.desc()).limit(limit)

    with Session(engine) as session:
        rows = session.execute(stmt).all()
        ids = [p.id for p, _ in rows]
        likes = _like_counts(session, ids)
        liked = _user_flags(session, PostLike, ids, user_id)
        viewed = _user_flags(session, PostView, ids, user_id)
        voted = _user_flags(session, PollVote, ids, user_id)
        responded = _user_flags(session, FormResponse, ids, user_id)
        return [
            post_to_dict(
                post,
                org_name=org.name,
                org_abbrev=org.abbrev_name,
                org_pic=org.org_pic,
                like_count=likes.get(post.id, 0),
                liked=post.id in liked,
                viewed=post.id in viewed,
                voted=post.id in voted,
                responded=post.id in responded,
            )
            for post, org in rows
        ]


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------
def load_visible_post(session: Session, post_id: str, user_id: str) -> Post:
    """Fetch *post_id*, raising unless *user_id* may see it."""
    post = session.get(Post, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    if post.visibility == "private":
        membership = session.get(OrgMember, (user_id, post.org_id))
        if membership is None or not membership.is_active:
            raise ForbiddenError("This post is visible to members only")
    return post


def record_view(engine, post_id: str, user_id: str) -> dict:
    """Count the first view per user and award the ``view`` coins."""
    with Session(engine) as session:
        post = load_visible_post(session, post_id, user_id)
        exists = session.scalar(
            select(PostView.id).where(PostView.post_id == post_id, PostView.user_id == user_id)
        )
        if exists is not None:
            return {"counted": False, "coins": 0, "view_count": post.view_count}
        try:
            with session.begin_nested():
                session.add(PostView(post_id=post_id, user_id=user_id))
        except IntegrityError:
            session.refresh(post)
            return {"counted": False, "coins": 0, "view_count": post.view_count}
        session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(view_count=func.coalesce(Post.view_count, 0) + 1)
            .execution_options(synchronize_session="fetch")
        )
        coins = coin_service.award_once(session, user_id, post_id, "view", org_id=post.org_id)
        session.commit()
        coin_service.publish_pending(session)
        return {"counted": True, "coins": coins, "view_count": post.view_count}


def toggle_like(engine, post_id: str, user_id: str) -> dict:
    """Like or unlike; the first like ever awards ``like`` coins."""
    with Session(engine) as session:
        load_visible_post(session, post_id, user_id)
        like = session.scalar(
            select(PostLike).where(PostLike.post_id == post_id, PostLike.user_id == user_id)
        )
        coins = 0
        if like is not None:
            session.delete(like)
            liked = False
        else:
            session.add(PostLike(post_id=post_id, user_id=user_id))
            coins = coin_service.award_once(session, user_id, post_id, "like")
            liked = True
        session.flush()
        count = session.scalar(
            select(func.count()).select_from(PostLike).where(PostLike.post_id == post_id)
        ) or 0
        session.commit()
        coin_service.publish_pending(session)
        return {"liked": liked, "like_count": count, "coins": coins}


def vote_poll(engine, post_id: str, user_id: str, option_index: int) -> dict:
    with Session(engine) as session:
        post = load_visible_post(session, post_id, user_id)
        if post.post_type != PostType.POLL:
            raise ValidationError("Post is not a poll")
        options = post.options or []
        if not 0 <= option_index < len(options):
            raise ValidationError("Invalid poll option")
        existing = session.scalar(
            select(PollVote.id).where(PollVote.post_id == post_id, PollVote.user_id == user_id)
        )
        if existing is not None:
            raise ConflictError("You have already voted on this poll")
        session.add(PollVote(post_id=post_id, user_id=user_id, option_index=option_index))
        coins = coin_service.award_once(session, user_id, post_id, "poll")
        session.commit()
        coin_service.publish_pending(session)
    logger.info("User %s voted option %d on poll %s", user_id, option_index, post_id)
    return {"coins": coins, "results": poll_results(engine, post_id)}


def poll_results(engine, post_id: str, user_id: str | None = None) -> list[dict]:
    """Vote tally per option.  With *user_id*, private polls need membership."""
    with Session(engine) as session:
        if user_id is None:
            post = session.get(Post, post_id)
            if post is None:
                raise NotFoundError("Post not found")
        else:
            post = load_visible_post(session, post_id, user_id)
        counts = dict(session.execute(
            select(PollVote.option_index, func.count())
            .where(PollVote.post_id == post_id)
            .group_by(PollVote.option_index)
        ).all())
        total = sum(counts.values())
        return [
            {
                "index": i,
                "option": option,
                "votes": counts.get(i, 0),
                "percent": round(counts.get(i, 0) / total * 100, 1) if total else 0.0,
            }
            for i, option in enumerate(post.options or [])
        ]


def submit_form_response(engine, post_id: str, user_id: str, responses: dict[str, str]) -> dict:
    """Store one answer set per user; required questions must be answered."""
    with Session(engine) as session:
        post = load_visible_post(session, post_id, user_id)
        if post.post_type != PostType.FEEDBACK:
            raise ValidationError("Post is not a feedback form")
        answers: dict[str, str] = {}
        for form_field in post.form_fields or []:
            question = form_field["question"]
            value = str(responses.get(question) or "").strip()
            if form_field.get("required") and not value:
                raise ValidationError(f"'{question}' is required")
            answers[question] = value
        existing = session.scalar(
            select(FormResponse.id).where(
                FormResponse.post_id == post_id, FormResponse.user_id == user_id
            )
        )
        if existing is not None:
            raise ConflictError("You have already responded to this form")
        session.add(FormResponse(post_id=post_id, user_id=user_id, responses=answers))
        coins = coin_service.award_once(session, user_id, post_id, "feedback")
        session.commit()
        coin_service.publish_pending(session)
    logger.info("User %s responded to form %s", user_id, post_id)
    return {"coins": coins}


def list_form_responses(engine, post_id: str) -> list[dict]:
    with Session(engine) as session:
        rows = session.execute(
            select(FormResponse, User)
            .outerjoin(User, User.id == FormResponse.user_id)
            .where(FormResponse.post_id == post_id)
            .order_by(FormResponse.submitted_at)
        ).all()
        return [
            {
                "user_id": r.user_id,
                "name": full_name(u.first_name, u.last_name) if u else "Unknown",
                "email": u.email if u else None,
                "responses": r.responses,
                "submitted_at": r.submitted_at.isoformat() if r.submitted_at else None,
            }
            for r, u in rows
        ]

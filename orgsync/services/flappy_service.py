"""
orgsync.services.flappy_service — Minigame challenges
=======================================================

Officers configure Flappy-style challenges with a player sprite, a
background and an optional availability window.  Members play inside the
window; the best score per (challenge, user) is kept and the challenge's
community goals are recomputed.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from orgsync.database.models import FlappyConfig, FlappyScore, Organization
from orgsync.engine.leaderboard import build_leaderboard
from orgsync.engine.windows import in_window, utcnow, validate_window
from orgsync.errors import ForbiddenError, NotFoundError, ValidationError
from orgsync.services import coin_service, goal_service, storage_service
from orgsync.services.member_service import is_active_member
from orgsync.services.settings_service import get_int
from orgsync.services.storage_service import ImageUpload

logger = logging.getLogger(__name__)


def challenge_to_dict(challenge: FlappyConfig, now: datetime | None = None) -> dict:
    return {
        "challenge_id": challenge.challenge_id,
        "org_id": challenge.org_id,
        "name": challenge.name,
        "description": challenge.description,
        "player_image_url": challenge.player_image_url,
        "background_image_url": challenge.background_image_url,
        "start_time": challenge.start_time.isoformat() if challenge.start_time else None,
        "end_time": challenge.end_time.isoformat() if challenge.end_time else None,
        "is_available": is_available(challenge, now),
    }


def is_available(challenge: FlappyConfig, now: datetime | None = None) -> bool:
    return in_window(now or utcnow(), challenge.start_time, challenge.end_time)


def _check_text(name: str, description: str) -> tuple[str, str]:
    name, description = (name or "").strip(), (description or "").strip()
    if not name or not description:
        raise ValidationError("Challenge name and description are required")
    return name, description


def _check_window(start_time: datetime | None, end_time: datetime | None) -> None:
    try:
        validate_window(start_time, end_time)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None


def _store(org_id: str, challenge_id: str, role: str, upload: ImageUpload) -> str:
    return storage_service.store_image("flappy", f"{org_id}/{challenge_id}-{role}", upload)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------
def create_challenge(
    engine,
    *,
    org_id: str,
    name: str,
    description: str,
    player_image: ImageUpload | None,
    background_image: ImageUpload | None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
) -> FlappyConfig:
    name, description = _check_text(name, description)
    if player_image is None or background_image is None:
        raise ValidationError("Player and background images are required")
    _check_window(start_time, end_time)

    challenge_id = str(uuid.uuid4())
    with Session(engine, expire_on_commit=False) as session:
        if session.get(Organization, org_id) is None:
            raise NotFoundError("Organization not found")
        challenge = FlappyConfig(
            challenge_id=challenge_id,
            org_id=org_id,
            name=name,
            description=description,
            player_image_url=_store(org_id, challenge_id, "player", player_image),
            background_image_url=_store(org_id, challenge_id, "background", background_image),
            start_time=start_time,
            end_time=end_time,
        )
        session.add(challenge)
        session.commit()
        session.refresh(challenge)
        session.expunge(challenge)
    logger.info("Flappy challenge %s (%s) created in org %s", challenge_id, name, org_id)
    return challenge


def update_challenge(
    engine,
    challenge_id: str,
    *,
    name: str,
    description: str,
    player_image: ImageUpload | None = None,
    background_image: ImageUpload | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
) -> FlappyConfig:
    """Edit a challenge; images are replaced only when new ones are given."""
    name, description = _check_text(name, description)
    _check_window(start_time, end_time)
    with Session(engine, expire_on_commit=False) as session:
        challenge = session.get(FlappyConfig, challenge_id)
        if challenge is None:
            raise NotFoundError("Challenge not found")
        challenge.name = name
        challenge.description = description
        challenge.start_time = start_time
        challenge.end_time = end_time
        if player_image is not None:
            challenge.player_image_url = _store(challenge.org_id, challenge_id, "player", player_image)
        if background_image is not None:
            challenge.background_image_url = _store(
                challenge.org_id, challenge_id, "background", background_image,
            )
        session.commit()
        session.refresh(challenge)
        session.expunge(challenge)
    logger.info("Flappy challenge %s updated", challenge_id)
    return challenge


def get_challenge(engine, challenge_id: str) -> FlappyConfig:
    with Session(engine) as session:
        challenge = session.get(FlappyConfig, challenge_id)
        if challenge is None:
            raise NotFoundError("Challenge not found")
        session.expunge(challenge)
        return challenge


def delete_challenge(engine, challenge_id: str) -> bool:
    with Session(engine) as session:
        challenge = session.get(FlappyConfig, challenge_id)
        if challenge is None:
            return False
        for model in (FlappyScore, goal_service.KINDS["flappy"].goal_model):
            for row in session.scalars(select(model).where(model.challenge_id == challenge_id)).all():
                session.delete(row)
        session.delete(challenge)
        session.commit()
    logger.info("Flappy challenge %s deleted", challenge_id)
    return True


def list_challenges(engine, org_id: str) -> list[dict]:
    now = utcnow()
    with Session(engine) as session:
        rows = session.scalars(
            select(FlappyConfig)
            .where(FlappyConfig.org_id == org_id)
            .order_by(FlappyConfig.created_at.desc())
        ).all()
        return [challenge_to_dict(c, now) for c in rows]


def list_available_challenges(engine, org_ids: list[str]) -> list[dict]:
    if not org_ids:
        return []
    now = utcnow()
    with Session(engine) as session:
        rows = session.scalars(
            select(FlappyConfig).where(FlappyConfig.org_id.in_(org_ids))
        ).all()
        return [challenge_to_dict(c, now) for c in rows if is_available(c, now)]


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------
def submit_flappy_score(
    engine,
    challenge_id: str,
    user_id: str,
    score: int,
    *,
    now: datetime | None = None,
) -> dict:
    if score < 0:
        raise ValidationError("Score cannot be negative")
    with Session(engine) as session:
        challenge = session.get(FlappyConfig, challenge_id)
        if challenge is None:
            raise NotFoundError("Challenge not found")
        if not is_available(challenge, now):
            raise ValidationError("This challenge is not available right now")
        if not is_active_member(session, user_id, challenge.org_id):
            raise ForbiddenError("Only members of the organization can play this challenge")

        row = session.scalar(
            select(FlappyScore).where(
                FlappyScore.challenge_id == challenge_id, FlappyScore.user_id == user_id
            )
        )
        improved = False
        if row is None:
            session.add(FlappyScore(
                challenge_id=challenge_id, org_id=challenge.org_id, user_id=user_id, score=score,
            ))
            improved = True
        elif score > (row.score or 0):
            row.score = score
            improved = True
        best = score if improved else row.score

        completed = goal_service.recompute_goals(session, "flappy", challenge_id) if improved else []
        session.commit()
        coin_service.publish_pending(session)

    logger.info("Flappy %s score %d by %s (best %d)", challenge_id, score, user_id, best)
    return {"best_score": best, "improved": improved, "completed_goals": completed}


def flappy_leaderboard(
    engine,
    challenge_id: str,
    user_id: str | None = None,
    limit: int | None = None,
) -> list[dict]:
    with Session(engine) as session:
        if session.get(FlappyConfig, challenge_id) is None:
            raise NotFoundError("Challenge not found")
        size = limit or get_int(session, "leaderboard.top_n", 10)
        entries = build_leaderboard(
            session, FlappyScore, FlappyScore.challenge_id, challenge_id, user_id, size,
        )
        return [e.to_dict() for e in entries]

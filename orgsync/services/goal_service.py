"""
orgsync.services.goal_service — Community goals
=================================================

Goals attach to a quiz (``community_goals``) or a minigame challenge
(``community_goals_flappy``).  Progress is recomputed whenever a score is
submitted; when a goal first reaches its target it is marked complete and
every participant is paid ``reward_coins``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from orgsync.constants import GOAL_TYPES
from orgsync.database.models import (
    CommunityGoal,
    FlappyCommunityGoal,
    FlappyConfig,
    FlappyScore,
    OrgMember,
    Quiz,
    Score,
)
from orgsync.engine.goals import is_reached, measure_progress, progress_percent
from orgsync.engine.windows import utcnow
from orgsync.errors import NotFoundError, ValidationError
from orgsync.services import coin_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _GoalKind:
    goal_model: type
    source_field: str
    score_model: type
    source_model: type
    source_pk: str
    source_title: str


KINDS: dict[str, _GoalKind] = {
    "quiz": _GoalKind(CommunityGoal, "quiz_id", Score, Quiz, "id", "title"),
    "flappy": _GoalKind(FlappyCommunityGoal, "challenge_id", FlappyScore, FlappyConfig, "challenge_id", "name"),
}


def _kind(kind: str) -> _GoalKind:
    try:
        return KINDS[kind]
    except KeyError:
        raise ValidationError(f"Unknown goal kind: {kind!r}") from None


def goal_to_dict(goal: Any, kind: str, source_name: str | None = None) -> dict:
    meta = _kind(kind)
    return {
        "id": goal.id,
        "kind": kind,
        "org_id": goal.org_id,
        "source_id": getattr(goal, meta.source_field),
        "source_name": source_name,
        "goal_type": goal.goal_type,
        "goal_target": goal.goal_target,
        "reward_coins": goal.reward_coins,
        "current_progress": goal.current_progress,
        "progress_percent": progress_percent(goal.current_progress or 0, goal.goal_target),
        "is_completed": goal.is_completed,
        "completed_at": goal.completed_at.isoformat() if goal.completed_at else None,
    }


def _validate_numbers(goal_target: Any, reward_coins: Any) -> tuple[int, int]:
    try:
        target, reward = int(goal_target), int(reward_coins)
    except (TypeError, ValueError):
        raise ValidationError("Goal target and reward must be numbers") from None
    if target <= 0 or reward <= 0:
        raise ValidationError("Goal target and reward must be positive")
    return target, reward


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------
def _best_scores(session: Session, meta: _GoalKind, source_id: Any) -> list[tuple[str, int]]:
    column = getattr(meta.score_model, meta.source_field)
    return [
        (user_id, score or 0)
        for user_id, score in session.execute(
            select(meta.score_model.user_id, meta.score_model.score).where(column == source_id)
        ).all()
    ]


def _apply_progress(session: Session, goal: Any, kind: str, scores: list[tuple[str, int]]) -> bool:
    """Update one goal's progress; pay out on first completion.  True if it completed now."""
    goal.current_progress = measure_progress(goal.goal_type, scores)
    if goal.is_completed or not is_reached(goal.current_progress, goal.goal_target):
        return False
    goal.is_completed = True
    goal.completed_at = utcnow()
    for user_id in sorted({uid for uid, _ in scores}):
        coin_service.add_coins(
            session, user_id, goal.reward_coins, "community_goal",
            reference=f"{kind}-goal:{goal.id}", org_id=goal.org_id,
        )
    logger.info(
        "%s goal %s completed (%d/%d); paid %d participants %d coins",
        kind, goal.id, goal.current_progress, goal.goal_target, len(scores), goal.reward_coins,
    )
    return True


def recompute_goals(session: Session, kind: str, source_id: Any) -> list[str]:
    """Refresh every goal on *source_id* in *session*.

    Returns the ids of goals that completed during this call.  The caller
    commits and then calls :func:`coin_service.publish_pending`.
    """
    meta = _kind(kind)
    goals = session.scalars(
        select(meta.goal_model).where(getattr(meta.goal_model, meta.source_field) == source_id)
    ).all()
    if not goals:
        return []
    scores = _best_scores(session, meta, source_id)
    return [g.id for g in goals if _apply_progress(session, g, kind, scores)]


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------
def create_goal(
    engine,
    *,
    kind: str,
    org_id: str,
    source_id: Any,
    goal_type: str,
    goal_target: Any,
    reward_coins: Any,
) -> dict:
    meta = _kind(kind)
    if goal_type not in GOAL_TYPES:
        raise ValidationError(f"Invalid goal type: {goal_type!r}")
    target, reward = _validate_numbers(goal_target, reward_coins)
    if kind == "quiz":
        try:
            source_id = int(source_id)
        except (TypeError, ValueError):
            raise ValidationError("Quiz id must be a number") from None

    with Session(engine) as session:
        source = session.get(meta.source_model, source_id)
        if source is None or source.org_id != org_id:
            raise ValidationError(f"The {kind} does not belong to this organization")
        goal = meta.goal_model(
            org_id=org_id,
            goal_type=goal_type,
            goal_target=target,
            reward_coins=reward,
            current_progress=0,
            is_completed=False,
            **{meta.source_field: source_id},
        )
        session.add(goal)
        session.flush()
        _apply_progress(session, goal, kind, _best_scores(session, meta, source_id))
        session.commit()
        coin_service.publish_pending(session)
        logger.info("Created %s goal %s on %s (%s ≥ %d)", kind, goal.id, source_id, goal_type, target)
        return goal_to_dict(goal, kind, getattr(source, meta.source_title))


def update_goal(
    engine,
    *,
    kind: str,
    goal_id: str,
    goal_target: Any,
    reward_coins: Any,
    goal_type: str | None = None,
) -> dict:
    meta = _kind(kind)
    target, reward = _validate_numbers(goal_target, reward_coins)
    if goal_type is not None and goal_type not in GOAL_TYPES:
        raise ValidationError(f"Invalid goal type: {goal_type!r}")

    with Session(engine) as session:
        goal = session.get(meta.goal_model, goal_id)
        if goal is None:
            raise NotFoundError("Goal not found")
        if goal.is_completed:
            raise ValidationError("Completed goals cannot be edited")
        goal.goal_target = target
        goal.reward_coins = reward
        if goal_type is not None:
            goal.goal_type = goal_type
        source_id = getattr(goal, meta.source_field)
        _apply_progress(session, goal, kind, _best_scores(session, meta, source_id))
        session.commit()
        coin_service.publish_pending(session)
        return goal_to_dict(goal, kind)


def get_goal(engine, *, kind: str, goal_id: str) -> dict:
    meta = _kind(kind)
    with Session(engine) as session:
        goal = session.get(meta.goal_model, goal_id)
        if goal is None:
            raise NotFoundError("Goal not found")
        return goal_to_dict(goal, kind)


def delete_goal(engine, *, kind: str, goal_id: str) -> bool:
    meta = _kind(kind)
    with Session(engine) as session:
        goal = session.get(meta.goal_model, goal_id)
        if goal is None:
            return False
        session.delete(goal)
        session.commit()
    logger.info("Deleted %s goal %s", kind, goal_id)
    return True


def list_goals(engine, *, kind: str, org_id: str) -> list[dict]:
    meta = _kind(kind)
    source_pk = getattr(meta.source_model, meta.source_pk)
    stmt = (
        select(meta.goal_model, getattr(meta.source_model, meta.source_title))
        .join(meta.source_model, source_pk == getattr(meta.goal_model, meta.source_field))
        .where(meta.goal_model.org_id == org_id)
        .order_by(meta.goal_model.is_completed, meta.goal_model.created_at.desc())
    )
    with Session(engine) as session:
        return [goal_to_dict(g, kind, name) for g, name in session.execute(stmt).all()]


def list_member_goals(engine, user_id: str) -> list[dict]:
    """Goals of both kinds across the organizations the user belongs to."""
    with Session(engine) as session:
        org_ids = session.scalars(
            select(OrgMember.org_id).where(
                OrgMember.user_id == user_id, OrgMember.is_active.is_(True)
            )
        ).all()
    goals: list[dict] = []
    for org_id in org_ids:
        for kind in KINDS:
            goals.extend(list_goals(engine, kind=kind, org_id=org_id))
    return goals

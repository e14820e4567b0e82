"""
orgsync.services.coin_service — Coins
=======================================

A user's coin balance lives on their ``game_rooms`` row.  Engagement
rewards are idempotent on ``(user, post, action)`` through ``reward_log``;
goal payouts use the goal id as the reference so a goal pays once.
Balances are incremented in SQL, never read-modify-written in Python, so
concurrent awards to the same user all land.

Session-level helpers (``award_once``, ``add_coins``) record the new
balance on ``session.info``; call :func:`publish_pending` after committing
to push the balances to :data:`~orgsync.engine.realtime.coin_feed`.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orgsync.database.models import GameRoom, Post, RewardLog
from orgsync.engine.realtime import coin_feed
from orgsync.errors import ValidationError
from orgsync.services.settings_service import coin_amount

logger = logging.getLogger(__name__)

_PENDING_KEY = "coin_updates"


def get_or_create_room(session: Session, user_id: str) -> GameRoom:
    room = session.scalar(select(GameRoom).where(GameRoom.user_id == user_id))
    if room is not None:
        return room
    session.flush()
    try:
        with session.begin_nested():
            room = GameRoom(user_id=user_id, coins=0)
            session.add(room)
    except IntegrityError:
        # created by a concurrent request
        room = session.scalar(select(GameRoom).where(GameRoom.user_id == user_id))
    return room


def _credit(session: Session, user_id: str, amount: int) -> int:
    """Add *amount* to the stored balance in SQL; returns the new balance."""
    get_or_create_room(session, user_id)
    session.execute(
        update(GameRoom)
        .where(GameRoom.user_id == user_id)
        .values(coins=func.coalesce(GameRoom.coins, 0) + amount)
        .execution_options(synchronize_session="fetch")
    )
    coins = session.scalar(select(GameRoom.coins).where(GameRoom.user_id == user_id)) or 0
    session.info.setdefault(_PENDING_KEY, {})[user_id] = coins
    return coins


def _already_rewarded(session: Session, user_id: str, post_id: str | None, action: str) -> bool:
    return session.scalar(
        select(RewardLog.id).where(
            RewardLog.user_id == user_id,
            RewardLog.post_id == post_id,
            RewardLog.action == action,
        )
    ) is not None


def award_once(
    session: Session,
    user_id: str,
    post_id: str | None,
    action: str,
    points: int | None = None,
    *,
    org_id: str | None = None,
) -> int:
    """Award coins for *action* on *post_id* unless already rewarded.

    Returns the points awarded, or 0 when the reward already exists,
    including when a concurrent request recorded it first.  *points*
    defaults to the ``coins.<action>`` setting; *org_id* defaults to the
    post's organization.
    """
    if _already_rewarded(session, user_id, post_id, action):
        return 0
    amount = coin_amount(session, action) if points is None else points
    if amount <= 0:
        return 0
    if org_id is None and post_id is not None:
        org_id = session.scalar(select(Post.org_id).where(Post.id == post_id))
    session.flush()
    try:
        with session.begin_nested():
            session.add(RewardLog(
                user_id=user_id, post_id=post_id, org_id=org_id, action=action, points=amount,
            ))
    except IntegrityError:
        logger.info("Reward %s on %s for %s already recorded", action, post_id, user_id)
        return 0
    _credit(session, user_id, amount)
    logger.info("Awarded %d coins to %s for %s on %s", amount, user_id, action, post_id)
    return amount


def add_coins(
    session: Session,
    user_id: str,
    amount: int,
    action: str,
    reference: str | None = None,
    *,
    org_id: str | None = None,
) -> int:
    """Unconditionally credit *amount* coins; returns the new balance."""
    if amount <= 0:
        raise ValidationError("Coin amount must be positive")
    session.add(RewardLog(user_id=user_id, post_id=reference, org_id=org_id, action=action, points=amount))
    return _credit(session, user_id, amount)


def publish_pending(session: Session) -> None:
    """Push balances changed in *session* to realtime subscribers."""
    updates: dict[str, int] = session.info.pop(_PENDING_KEY, {})
    for user_id, coins in updates.items():
        coin_feed.publish(user_id, coins)


# ---------------------------------------------------------------------------
# Engine-level entry points
# ---------------------------------------------------------------------------
def award_user_coins_once(
    engine,
    user_id: str,
    post_id: str | None,
    action: str,
    points: int | None = None,
    *,
    org_id: str | None = None,
) -> int:
    with Session(engine) as session:
        awarded = award_once(session, user_id, post_id, action, points, org_id=org_id)
        session.commit()
        publish_pending(session)
    return awarded


def get_coins(engine, user_id: str) -> int:
    with Session(engine) as session:
        coins = session.scalar(select(GameRoom.coins).where(GameRoom.user_id == user_id))
        return coins or 0


def coin_history(engine, user_id: str, limit: int = 50) -> list[dict]:
    with Session(engine) as session:
        rows = session.scalars(
            select(RewardLog)
            .where(RewardLog.user_id == user_id)
            .order_by(RewardLog.created_at.desc(), RewardLog.id.desc())
            .limit(limit)
        ).all()
        return [
            {
                "action": r.action,
                "post_id": r.post_id,
                "points": r.points,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in rows
        ]


def save_room(engine, user_id: str, save_data: dict) -> dict:
    """Persist the minigame room's save data (furniture, layout)."""
    if not isinstance(save_data, dict):
        raise ValidationError("save_data must be an object")
    with Session(engine) as session:
        room = get_or_create_room(session, user_id)
        room.save_data = save_data
        session.commit()
        return {"user_id": user_id, "coins": room.coins, "save_data": room.save_data}


def get_room(engine, user_id: str) -> dict:
    with Session(engine) as session:
        room = get_or_create_room(session, user_id)
        session.commit()
        return {"user_id": user_id, "coins": room.coins, "save_data": room.save_data}

"""
orgsync.engine.leaderboard — Top-N Ranking
===========================================

Leaderboards show the top N scores of a quiz or minigame challenge.  When
the viewing user is outside the top N their own row is appended with
their true rank (one plus the number of strictly higher scores), so a
player always sees where they stand.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from orgsync.constants import full_name
from orgsync.database.models import User


@dataclass(slots=True)
class LeaderboardEntry:
    user_id: str
    name: str
    score: int
    rank: int = 0
    is_caller: bool = False

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "name": self.name,
            "score": self.score,
            "rank": self.rank,
            "is_caller": self.is_caller,
        }


def rank_entries(
    top: list[LeaderboardEntry],
    caller_entry: LeaderboardEntry | None = None,
    caller_rank: int | None = None,
) -> list[LeaderboardEntry]:
    """Order *top* by score and merge in the caller.

    Ties share a rank (``1, 2, 2, 4``).  A caller already present in *top*
    is flagged in place; otherwise it is appended with *caller_rank*.
    """
    ordered = sorted(top, key=lambda e: (-e.score, e.name))
    previous_score: int | None = None
    previous_rank = 0
    for position, entry in enumerate(ordered, start=1):
        if entry.score != previous_score:
            previous_rank = position
            previous_score = entry.score
        entry.rank = previous_rank

    if caller_entry is None:
        return ordered

    for entry in ordered:
        if entry.user_id == caller_entry.user_id:
            entry.is_caller = True
            return ordered

    caller_entry.is_caller = True
    caller_entry.rank = caller_rank if caller_rank is not None else len(ordered) + 1
    ordered.append(caller_entry)
    return ordered


def build_leaderboard(
    session: Session,
    score_model: type,
    source_column,
    source_id,
    caller_id: str | None = None,
    limit: int = 10,
) -> list[LeaderboardEntry]:
    """Query the top *limit* best scores for *source_id* and rank them."""
    stmt = (
        select(score_model.user_id, score_model.score, User.first_name, User.last_name)
        .outerjoin(User, User.id == score_model.user_id)
        .where(source_column == source_id)
        .order_by(score_model.score.desc(), score_model.updated_at)
        .limit(limit)
    )
    top = [
        LeaderboardEntry(user_id=uid, name=full_name(first, last), score=score or 0)
        for uid, score, first, last in session.execute(stmt).all()
    ]

    caller_entry = None
    caller_rank = None
    if caller_id is not None and all(e.user_id != caller_id for e in top):
        row = session.execute(
            select(score_model.score, User.first_name, User.last_name)
            .outerjoin(User, User.id == score_model.user_id)
            .where(source_column == source_id, score_model.user_id == caller_id)
        ).first()
        if row is not None:
            score, first, last = row
            caller_entry = LeaderboardEntry(
                user_id=caller_id, name=full_name(first, last), score=score or 0,
            )
            higher = session.scalar(
                select(func.count()).select_from(score_model).where(
                    source_column == source_id, score_model.score > (score or 0)
                )
            ) or 0
            caller_rank = higher + 1
    elif caller_id is not None:
        caller_entry = next(e for e in top if e.user_id == caller_id)

    return rank_entries(top, caller_entry, caller_rank)

"""
orgsync.engine.goals — Community Goal Progress
===============================================

A community goal is a coin-reward threshold attached to a quiz or a
minigame challenge.  ``score`` goals sum every participant's best score;
``participants`` goals count distinct players.
"""

from __future__ import annotations

from collections.abc import Iterable

from orgsync.database.models import GoalType


def progress_percent(current: int, target: int) -> float:
    if target <= 0:
        return 0.0
    return round(min(current / target * 100, 100.0), 1)


def measure_progress(goal_type: str, scores: Iterable[tuple[str, int]]) -> int:
    """Progress for *goal_type* given ``(user_id, best_score)`` pairs."""
    if goal_type == GoalType.SCORE:
        return sum(score for _, score in scores)
    if goal_type == GoalType.PARTICIPANTS:
        return len({user_id for user_id, _ in scores})
    raise ValueError(f"Unknown goal type: {goal_type!r}")


def is_reached(current: int, target: int) -> bool:
    return target > 0 and current >= target

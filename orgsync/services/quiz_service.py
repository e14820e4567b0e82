"""
orgsync.services.quiz_service — Quizzes, scores and the quiz leaderboard
=========================================================================

A quiz's ``data`` column holds the game definition consumed by the
embedded quiz runtime::

    {
        "timeLimitInSeconds": 30,
        "pointsAddedForCorrectAnswer": 10,
        "questions": [
            {"questionText": "...",
             "answers": [{"answerText": "...", "isCorrect": true}, ...]},
        ],
    }

Only the best score per (quiz, user) is kept.  Every accepted score
recomputes the quiz's community goals.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from orgsync.database.models import Organization, Quiz, Score
from orgsync.engine.leaderboard import build_leaderboard
from orgsync.engine.listing import search_clause
from orgsync.engine.windows import as_utc, in_window, utcnow
from orgsync.errors import ForbiddenError, NotFoundError, ValidationError
from orgsync.services import coin_service, goal_service
from orgsync.services.member_service import is_active_member
from orgsync.services.settings_service import get_int

logger = logging.getLogger(__name__)


def quiz_to_dict(quiz: Quiz, *, include_answers: bool = True, now: datetime | None = None) -> dict:
    data = dict(quiz.data or {})
    if not include_answers:
        data["questions"] = [
            {
                "questionText": q.get("questionText"),
                "answers": [{"answerText": a.get("answerText")} for a in q.get("answers", [])],
            }
            for q in data.get("questions", [])
        ]
    return {
        "id": quiz.id,
        "org_id": quiz.org_id,
        "title": quiz.title,
        "data": data,
        "question_count": len((quiz.data or {}).get("questions", [])),
        "open_at": quiz.open_at.isoformat() if quiz.open_at else None,
        "close_at": quiz.close_at.isoformat() if quiz.close_at else None,
        "is_open": is_quiz_open(quiz, now),
    }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
def validate_quiz(
    title: str,
    data: dict[str, Any],
    open_at: datetime | None = None,
    close_at: datetime | None = None,
) -> list[str]:
    """Return every problem with the quiz definition (empty when valid)."""
    errors: list[str] = []
    if not (title or "").strip():
        errors.append("Quiz name is required.")

    try:
        time_limit = int(data.get("timeLimitInSeconds") or 0)
        points = int(data.get("pointsAddedForCorrectAnswer") or 0)
    except (TypeError, ValueError):
        time_limit, points = 0, 0
    if time_limit <= 0:
        errors.append("Time limit must be greater than 0.")
    if points <= 0:
        errors.append("Points must be greater than 0.")

    questions = data.get("questions") or []
    if not questions:
        errors.append("At least one question is required.")
    for qi, question in enumerate(questions, start=1):
        if not str(question.get("questionText") or "").strip():
            errors.append(f"Question {qi} cannot be empty.")
        answers = question.get("answers") or []
        if len(answers) < 2:
            errors.append(f"Question {qi} must have at least 2 answers.")
        if not any(a.get("isCorrect") for a in answers):
            errors.append(f"Question {qi} must have at least 1 correct answer.")
        for ai, answer in enumerate(answers, start=1):
            if not str(answer.get("answerText") or "").strip():
                errors.append(f"Answer {ai} in Question {qi} cannot be empty.")

    if open_at and close_at and as_utc(open_at) >= as_utc(close_at):
        errors.append("Open time must be before close time.")
    return errors


def _normalise_data(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "timeLimitInSeconds": int(data["timeLimitInSeconds"]),
        "pointsAddedForCorrectAnswer": int(data["pointsAddedForCorrectAnswer"]),
        "questions": [
            {
                "questionText": str(q["questionText"]).strip(),
                "answers": [
                    {"answerText": str(a["answerText"]).strip(), "isCorrect": bool(a.get("isCorrect"))}
                    for a in q["answers"]
                ],
            }
            for q in data["questions"]
        ],
    }


def is_quiz_open(quiz: Quiz, now: datetime | None = None) -> bool:
    return in_window(now or utcnow(), quiz.open_at, quiz.close_at)


def max_score(quiz: Quiz) -> int:
    data = quiz.data or {}
    return len(data.get("questions", [])) * int(data.get("pointsAddedForCorrectAnswer") or 0)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------
def create_quiz(
    engine,
    *,
    org_id: str,
    title: str,
    data: dict[str, Any],
    open_at: datetime | None = None,
    close_at: datetime | None = None,
) -> Quiz:
    errors = validate_quiz(title, data, open_at, close_at)
    if errors:
        raise ValidationError(" ".join(errors))
    with Session(engine, expire_on_commit=False) as session:
        if session.get(Organization, org_id) is None:
            raise NotFoundError("Organization not found")
        quiz = Quiz(
            org_id=org_id,
            title=title.strip(),
            data=_normalise_data(data),
            open_at=open_at,
            close_at=close_at,
        )
        session.add(quiz)
        session.commit()
        session.refresh(quiz)
        session.expunge(quiz)
    logger.info("Quiz %s (%s) created in org %s", quiz.id, quiz.title, org_id)
    return quiz


def update_quiz(
    engine,
    quiz_id: int,
    *,
    title: str,
    data: dict[str, Any],
    open_at: datetime | None = None,
    close_at: datetime | None = None,
) -> Quiz:
    errors = validate_quiz(title, data, open_at, close_at)
    if errors:
        raise ValidationError(" ".join(errors))
    with Session(engine, expire_on_commit=False) as session:
        quiz = session.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found")
        quiz.title = title.strip()
        quiz.data = _normalise_data(data)
        quiz.open_at = open_at
        quiz.close_at = close_at
        session.commit()
        session.refresh(quiz)
        session.expunge(quiz)
    logger.info("Quiz %s updated", quiz_id)
    return quiz


def get_quiz(engine, quiz_id: int) -> Quiz:
    with Session(engine) as session:
        quiz = session.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found")
        session.expunge(quiz)
        return quiz


def delete_quiz(engine, quiz_id: int) -> bool:
    with Session(engine) as session:
        quiz = session.get(Quiz, quiz_id)
        if quiz is None:
            return False
        for model in (Score, goal_service.KINDS["quiz"].goal_model):
            for row in session.scalars(select(model).where(model.quiz_id == quiz_id)).all():
                session.delete(row)
        session.delete(quiz)
        session.commit()
    logger.info("Quiz %s deleted", quiz_id)
    return True


def list_quizzes(engine, org_id: str, search: str = "") -> list[dict]:
    stmt = select(Quiz).where(Quiz.org_id == org_id).order_by(Quiz.created_at.desc(), Quiz.id.desc())
    clause = search_clause(search, (Quiz.title,))
    if clause is not None:
        stmt = stmt.where(clause)
    with Session(engine) as session:
        quizzes = session.scalars(stmt).all()
        counts = dict(session.execute(
            select(Score.quiz_id, func.count())
            .where(Score.quiz_id.in_([q.id for q in quizzes]))
            .group_by(Score.quiz_id)
        ).all()) if quizzes else {}
        return [{**quiz_to_dict(q), "participants": counts.get(q.id, 0)} for q in quizzes]


def list_open_quizzes(engine, org_ids: list[str]) -> list[dict]:
    """Quizzes of the user's organizations currently accepting plays (answers hidden)."""
    if not org_ids:
        return []
    now = utcnow()
    with Session(engine) as session:
        quizzes = session.scalars(
            select(Quiz).where(Quiz.org_id.in_(org_ids)).order_by(Quiz.created_at.desc())
        ).all()
        return [
            quiz_to_dict(q, include_answers=False, now=now)
            for q in quizzes
            if is_quiz_open(q, now)
        ]


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------
def submit_score(engine, quiz_id: int, user_id: str, score: int, *, now: datetime | None = None) -> dict:
    """Record a play.  Keeps the best score and recomputes goals.

    Returns ``{"best_score", "improved", "completed_goals"}``.
    """
    with Session(engine) as session:
        quiz = session.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found")
        if not is_quiz_open(quiz, now):
            raise ValidationError("This quiz is not open")
        if not is_active_member(session, user_id, quiz.org_id):
            raise ForbiddenError("Only members of the organization can play this quiz")
        if score < 0 or score > max_score(quiz):
            raise ValidationError(f"Score must be between 0 and {max_score(quiz)}")

        row = session.scalar(select(Score).where(Score.quiz_id == quiz_id, Score.user_id == user_id))
        improved = False
        if row is None:
            session.add(Score(quiz_id=quiz_id, org_id=quiz.org_id, user_id=user_id, score=score))
            improved = True
        elif score > (row.score or 0):
            row.score = score
            improved = True
        best = score if improved else row.score

        completed = goal_service.recompute_goals(session, "quiz", quiz_id) if improved else []
        session.commit()
        coin_service.publish_pending(session)

    logger.info("Quiz %s score %d by %s (best %d)", quiz_id, score, user_id, best)
    return {"best_score": best, "improved": improved, "completed_goals": completed}


def quiz_leaderboard(engine, quiz_id: int, user_id: str | None = None, limit: int | None = None) -> list[dict]:
    with Session(engine) as session:
        if session.get(Quiz, quiz_id) is None:
            raise NotFoundError("Quiz not found")
        size = limit or get_int(session, "leaderboard.top_n", 10)
        entries = build_leaderboard(session, Score, Score.quiz_id, quiz_id, user_id, size)
        return [e.to_dict() for e in entries]

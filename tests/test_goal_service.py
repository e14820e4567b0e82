"""
tests/test_goal_service.py — Community Goals
==============================================
Progress tracking, one-time payout on completion, and immutability of
completed goals, for both quiz and minigame goals.
"""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from conftest import add_member, make_org, make_user, quiz_data
from orgsync.database.models import FlappyConfig
from orgsync.errors import NotFoundError, ValidationError
from orgsync.services import coin_service, flappy_service, goal_service, quiz_service


@pytest.fixture
def engine(db_engine):
    make_org(db_engine, "ACM")
    make_org(db_engine, "RCY")
    for uid in ("ana", "ben", "cy"):
        make_user(db_engine, uid)
        add_member(db_engine, uid, "org-acm")
    return db_engine


@pytest.fixture
def quiz_id(engine):
    return quiz_service.create_quiz(engine, org_id="org-acm", title="Trivia", data=quiz_data()).id


def _goal(engine, source_id, **kw):
    fields = {
        "kind": "quiz", "org_id": "org-acm", "source_id": source_id,
        "goal_type": "participants", "goal_target": 2, "reward_coins": 15,
    }
    fields.update(kw)
    return goal_service.create_goal(engine, **fields)


# ===========================================================================
# Creation
# ===========================================================================
class TestCreateGoal:
    def test_starts_at_zero(self, engine, quiz_id):
        goal = _goal(engine, quiz_id)
        assert goal["current_progress"] == 0
        assert goal["progress_percent"] == 0.0
        assert goal["source_name"] == "Trivia"
        assert not goal["is_completed"]

    def test_string_quiz_id_accepted(self, engine, quiz_id):
        assert _goal(engine, str(quiz_id))["source_id"] == quiz_id

    def test_non_numeric_quiz_id(self, engine, quiz_id):
        with pytest.raises(ValidationError, match="Quiz id"):
            _goal(engine, "trivia")

    def test_source_must_belong_to_org(self, engine, quiz_id):
        with pytest.raises(ValidationError, match="does not belong"):
            _goal(engine, quiz_id, org_id="org-rcy")

    @pytest.mark.parametrize("target, reward", [(0, 10), (5, 0), (-1, 10), ("x", 10)])
    def test_numbers(self, engine, quiz_id, target, reward):
        with pytest.raises(ValidationError):
            _goal(engine, quiz_id, goal_target=target, reward_coins=reward)

    def test_unknown_type_and_kind(self, engine, quiz_id):
        with pytest.raises(ValidationError, match="goal type"):
            _goal(engine, quiz_id, goal_type="likes")
        with pytest.raises(ValidationError, match="goal kind"):
            _goal(engine, quiz_id, kind="trivia")

    def test_measures_existing_scores(self, engine, quiz_id):
        quiz_service.submit_score(engine, quiz_id, "ana", 10)
        quiz_service.submit_score(engine, quiz_id, "ben", 20)
        goal = _goal(engine, quiz_id, goal_type="score", goal_target=100)
        assert goal["current_progress"] == 30
        assert goal["progress_percent"] == 30.0

    def test_already_reached_completes_and_pays(self, engine, quiz_id):
        quiz_service.submit_score(engine, quiz_id, "ana", 10)
        goal = _goal(engine, quiz_id, goal_target=1)
        assert goal["is_completed"]
        assert coin_service.get_coins(engine, "ana") == 15


# ===========================================================================
# Completion
# ===========================================================================
class TestCompletion:
    def test_pays_every_participant_once(self, engine, quiz_id):
        goal = _goal(engine, quiz_id)
        assert quiz_service.submit_score(engine, quiz_id, "ana", 10)["completed_goals"] == []
        result = quiz_service.submit_score(engine, quiz_id, "ben", 20)
        assert result["completed_goals"] == [goal["id"]]
        assert coin_service.get_coins(engine, "ana") == 15
        assert coin_service.get_coins(engine, "ben") == 15

        # later participants and improvements never pay again
        quiz_service.submit_score(engine, quiz_id, "cy", 10)
        quiz_service.submit_score(engine, quiz_id, "ana", 20)
        assert coin_service.get_coins(engine, "cy") == 0
        assert coin_service.get_coins(engine, "ana") == 15

        refreshed = goal_service.get_goal(engine, kind="quiz", goal_id=goal["id"])
        assert refreshed["current_progress"] == 3
        assert refreshed["progress_percent"] == 100.0

    def test_payout_logged_with_goal_reference(self, engine, quiz_id):
        goal = _goal(engine, quiz_id, goal_target=1)
        quiz_service.submit_score(engine, quiz_id, "ana", 10)
        history = coin_service.coin_history(engine, "ana")
        assert history[0]["action"] == "community_goal"
        assert history[0]["post_id"] == f"quiz-goal:{goal['id']}"

    def test_completed_goal_is_frozen(self, engine, quiz_id):
        goal = _goal(engine, quiz_id, goal_target=1)
        quiz_service.submit_score(engine, quiz_id, "ana", 10)
        with pytest.raises(ValidationError, match="Completed goals"):
            goal_service.update_goal(engine, kind="quiz", goal_id=goal["id"], goal_target=5, reward_coins=5)

    def test_update_lowering_target_completes(self, engine, quiz_id):
        goal = _goal(engine, quiz_id, goal_target=5)
        quiz_service.submit_score(engine, quiz_id, "ana", 10)
        updated = goal_service.update_goal(engine, kind="quiz", goal_id=goal["id"], goal_target=1, reward_coins=40)
        assert updated["is_completed"]
        assert coin_service.get_coins(engine, "ana") == 40


# ===========================================================================
# Reads and deletes
# ===========================================================================
class TestGoalReads:
    def test_list_and_delete(self, engine, quiz_id):
        goal = _goal(engine, quiz_id)
        assert [g["id"] for g in goal_service.list_goals(engine, kind="quiz", org_id="org-acm")] == [goal["id"]]
        assert goal_service.delete_goal(engine, kind="quiz", goal_id=goal["id"]) is True
        assert goal_service.delete_goal(engine, kind="quiz", goal_id=goal["id"]) is False
        with pytest.raises(NotFoundError):
            goal_service.get_goal(engine, kind="quiz", goal_id=goal["id"])

    def test_member_goals_span_kinds(self, engine, quiz_id):
        with Session(engine) as session:
            session.add(FlappyConfig(challenge_id="ch-1", org_id="org-acm", name="Run", description="d"))
            session.commit()
        _goal(engine, quiz_id)
        _goal(engine, "ch-1", kind="flappy", goal_type="score", goal_target=100)
        kinds = sorted(g["kind"] for g in goal_service.list_member_goals(engine, "ana"))
        assert kinds == ["flappy", "quiz"]
        assert goal_service.list_member_goals(engine, "outsider") == []


class TestFlappyGoals:
    def test_score_goal_completes_from_minigame(self, engine):
        with Session(engine) as session:
            session.add(FlappyConfig(challenge_id="ch-1", org_id="org-acm", name="Run", description="d"))
            session.commit()
        goal = _goal(engine, "ch-1", kind="flappy", goal_type="score", goal_target=50, reward_coins=5)
        flappy_service.submit_flappy_score(engine, "ch-1", "ana", 30)
        result = flappy_service.submit_flappy_score(engine, "ch-1", "ben", 25)
        assert result["completed_goals"] == [goal["id"]]
        assert coin_service.get_coins(engine, "ben") == 5
        assert coin_service.coin_history(engine, "ben")[0]["post_id"] == f"flappy-goal:{goal['id']}"

"""
tests/test_event_service.py — Event Lifecycle
===============================================
RSVP → register → evaluate, plus the officer-side roster.
"""

from __future__ import annotations

import pytest

from conftest import add_member, make_org, make_user
from orgsync.errors import ConflictError, NotFoundError, ValidationError
from orgsync.services import coin_service, event_service, post_service

REGISTRATION = {
    "first_name": "Ana",
    "middle_initial": "B",
    "last_name": "Reyes",
    "email": "ana@example.edu",
    "college": "CITE",
    "program": "BS Computer Science",
    "section": "CS-2A",
}
RATINGS = {"design": 5, "facilities": 4, "overall": 5, "participation": 3, "speakers": 4}


@pytest.fixture
def event_id(db_engine):
    make_org(db_engine, "ACM")
    for uid, last in (("officer", "Cruz"), ("ana", "Reyes"), ("ben", "Bautista")):
        make_user(db_engine, uid, last_name=last)
        add_member(db_engine, uid, "org-acm")
    post = post_service.create_post(
        db_engine, author_id="officer", org_id="org-acm",
        title="Hackathon", post_type="event", event_date="2026-11-20",
    )
    return post.id


class TestMemberActions:
    def test_rsvp_once(self, db_engine, event_id):
        assert event_service.rsvp(db_engine, event_id, "ana") == {"coins": 30}
        with pytest.raises(ConflictError):
            event_service.rsvp(db_engine, event_id, "ana")

    def test_rsvp_requires_event(self, db_engine, event_id):
        plain = post_service.create_post(db_engine, author_id="officer", org_id="org-acm", title="News")
        with pytest.raises(ValidationError, match="not an event"):
            event_service.rsvp(db_engine, plain.id, "ana")

    def test_register_auto_rsvps(self, db_engine, event_id):
        result = event_service.register(db_engine, event_id, "ana", REGISTRATION)
        assert result == {"rsvp_coins": 30, "coins": 50}
        status = event_service.my_event_status(db_engine, event_id, "ana")
        assert status == {"rsvp": True, "registered": True, "evaluated": False, "attended": False}
        assert coin_service.get_coins(db_engine, "ana") == 80

    def test_register_after_rsvp_skips_rsvp_reward(self, db_engine, event_id):
        event_service.rsvp(db_engine, event_id, "ana")
        assert event_service.register(db_engine, event_id, "ana", REGISTRATION)["rsvp_coins"] == 0

    def test_register_twice(self, db_engine, event_id):
        event_service.register(db_engine, event_id, "ana", REGISTRATION)
        with pytest.raises(ConflictError):
            event_service.register(db_engine, event_id, "ana", REGISTRATION)

    @pytest.mark.parametrize("field", ["middle_initial", "section", "email"])
    def test_all_fields_required(self, db_engine, event_id, field):
        with pytest.raises(ValidationError, match="Missing registration fields"):
            event_service.register(db_engine, event_id, "ana", {**REGISTRATION, field: " "})

    def test_email_needs_at_sign(self, db_engine, event_id):
        with pytest.raises(ValidationError, match="email"):
            event_service.register(db_engine, event_id, "ana", {**REGISTRATION, "email": "ana.example.edu"})

    def test_evaluate_requires_registration(self, db_engine, event_id):
        with pytest.raises(ValidationError, match="Register for the event"):
            event_service.evaluate(db_engine, event_id, "ana", RATINGS)

    def test_evaluate(self, db_engine, event_id):
        event_service.register(db_engine, event_id, "ana", REGISTRATION)
        assert event_service.evaluate(db_engine, event_id, "ana", {**RATINGS, "comments": " Great "}) == {"coins": 100}
        with pytest.raises(ConflictError):
            event_service.evaluate(db_engine, event_id, "ana", RATINGS)

    @pytest.mark.parametrize("bad", [{"design": 0}, {"speakers": 6}, {"overall": None}, {"facilities": "good"}])
    def test_rating_bounds(self, db_engine, event_id, bad):
        with pytest.raises(ValidationError, match="Rating"):
            event_service.evaluate(db_engine, event_id, "ana", {**RATINGS, **bad})


class TestOfficerViews:
    def test_roster_tracks_progress(self, db_engine, event_id):
        event_service.rsvp(db_engine, event_id, "ben")
        event_service.register(db_engine, event_id, "ana", REGISTRATION)
        event_service.mark_attendance(db_engine, "org-acm", event_id, {"ana": True})
        roster = {r["user_id"]: r for r in event_service.attendance_roster(db_engine, "org-acm", event_id)}
        assert list(roster) == ["ben", "officer", "ana"]
        assert roster["ana"]["registration"] and roster["ana"]["attended"]
        assert roster["ben"]["rsvp"] and not roster["ben"]["registration"]
        assert not roster["officer"]["rsvp"]

    def test_mark_attendance_upserts(self, db_engine, event_id):
        assert event_service.mark_attendance(db_engine, "org-acm", event_id, {"ana": True, "ben": True}) == 2
        event_service.mark_attendance(db_engine, "org-acm", event_id, {"ana": False})
        assert not event_service.my_event_status(db_engine, event_id, "ana")["attended"]
        assert event_service.my_event_status(db_engine, event_id, "ben")["attended"]

    def test_event_must_belong_to_org(self, db_engine, event_id):
        make_org(db_engine, "RCY")
        with pytest.raises(NotFoundError, match="Event not found"):
            event_service.attendance_roster(db_engine, "org-rcy", event_id)

    def test_registrations_and_summary(self, db_engine, event_id):
        event_service.register(db_engine, event_id, "ana", REGISTRATION)
        event_service.register(db_engine, event_id, "ben", {**REGISTRATION, "first_name": "Ben", "last_name": "Bautista"})
        event_service.evaluate(db_engine, event_id, "ana", RATINGS)
        event_service.evaluate(db_engine, event_id, "ben", {**RATINGS, "participation": 4, "comments": "More food"})

        assert [r["last_name"] for r in event_service.list_registrations(db_engine, event_id)] == ["Bautista", "Reyes"]
        summary = event_service.evaluation_summary(db_engine, event_id)
        assert summary["count"] == 2
        assert summary["averages"]["participation"] == 3.5
        assert summary["averages"]["design"] == 5.0
        assert {c["comments"] for c in summary["comments"]} == {"", "More food"}

    def test_empty_summary(self, db_engine, event_id):
        summary = event_service.evaluation_summary(db_engine, event_id)
        assert summary == {"count": 0, "averages": dict.fromkeys(RATINGS, 0.0), "comments": []}

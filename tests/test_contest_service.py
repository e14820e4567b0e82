"""
tests/test_contest_service.py — Room Screenshot Contests
==========================================================
"""

from __future__ import annotations

from datetime import date

import pytest

from conftest import add_member, make_org, make_user
from orgsync.errors import ForbiddenError, NotFoundError, ValidationError
from orgsync.services import contest_service
from orgsync.services.storage_service import ImageUpload

SHOT = ImageUpload("room.png", b"\x89PNG room", "image/png")


@pytest.fixture
def engine(db_engine, storage_dir):
    make_org(db_engine, "ACM")
    make_user(db_engine, "ana", first_name="Ana", last_name="Reyes")
    add_member(db_engine, "ana", "org-acm")
    make_user(db_engine, "outsider")
    return db_engine


def _contest(engine, **kw):
    fields = {
        "org_id": "org-acm",
        "created_by": "officer",
        "title": "Coziest Room",
        "description": "Show us your room",
        "start_date": date(2026, 11, 1),
        "end_date": date(2026, 11, 30),
    }
    fields.update(kw)
    return contest_service.create_contest(engine, **fields)


class TestCreateContest:
    def test_created_active(self, engine):
        contest = _contest(engine)
        assert contest.is_active
        assert contest_service.contest_to_dict(contest)["start_date"] == "2026-11-01"

    @pytest.mark.parametrize("field, message", [("title", "title"), ("description", "description")])
    def test_text_required(self, engine, field, message):
        with pytest.raises(ValidationError, match=message):
            _contest(engine, **{field: " "})

    def test_dates_ordered(self, engine):
        with pytest.raises(ValidationError, match="start date"):
            _contest(engine, start_date=date(2026, 12, 1))

    def test_unknown_org(self, engine):
        with pytest.raises(NotFoundError):
            _contest(engine, org_id="org-none")


class TestToggleDelete:
    def test_toggle(self, engine):
        contest = _contest(engine)
        assert contest_service.toggle_contest(engine, contest.id) is False
        assert contest_service.list_active_contests(engine, ["org-acm"]) == []
        assert contest_service.toggle_contest(engine, contest.id) is True
        assert len(contest_service.list_active_contests(engine, ["org-acm"])) == 1

    def test_delete_cascades_submissions(self, engine):
        contest = _contest(engine)
        contest_service.submit_entry(engine, contest.id, "ana", SHOT, today=date(2026, 11, 15))
        assert contest_service.delete_contest(engine, contest.id) is True
        assert contest_service.delete_contest(engine, contest.id) is False
        assert contest_service.list_submissions(engine, contest.id) == []


class TestSubmitEntry:
    def test_stores_screenshot(self, engine, storage_dir):
        contest = _contest(engine)
        entry = contest_service.submit_entry(engine, contest.id, "ana", SHOT, today=date(2026, 11, 15))
        assert entry["image_url"] == f"/api/storage/screenshots/{contest.id}/ana.png"
        assert (storage_dir / "screenshots" / contest.id / "ana.png").exists()
        counts = {c["id"]: c["submission_count"] for c in contest_service.list_contests(engine, "org-acm")}
        assert counts[contest.id] == 1

    def test_resubmission_replaces_entry(self, engine, storage_dir):
        contest = _contest(engine)
        first = contest_service.submit_entry(engine, contest.id, "ana", SHOT, today=date(2026, 11, 15))
        second = contest_service.submit_entry(
            engine, contest.id, "ana", ImageUpload("room.jpg", b"\xff\xd8", "image/jpeg"),
            today=date(2026, 11, 16),
        )
        assert second["id"] == first["id"]
        submissions = contest_service.list_submissions(engine, contest.id)
        assert len(submissions) == 1
        assert submissions[0]["image_url"].endswith("/ana.jpg")
        assert submissions[0]["name"] == "Ana Reyes"
        assert (storage_dir / "screenshots" / contest.id / "ana.jpg").exists()
        assert not (storage_dir / "screenshots" / contest.id / "ana.png").exists()

    @pytest.mark.parametrize("today", [date(2026, 10, 31), date(2026, 12, 1)])
    def test_outside_dates(self, engine, today):
        contest = _contest(engine)
        with pytest.raises(ValidationError, match="not accepting"):
            contest_service.submit_entry(engine, contest.id, "ana", SHOT, today=today)

    def test_inactive_contest(self, engine):
        contest = _contest(engine)
        contest_service.toggle_contest(engine, contest.id)
        with pytest.raises(ValidationError, match="not accepting"):
            contest_service.submit_entry(engine, contest.id, "ana", SHOT, today=date(2026, 11, 15))

    def test_members_only(self, engine):
        contest = _contest(engine)
        with pytest.raises(ForbiddenError):
            contest_service.submit_entry(engine, contest.id, "outsider", SHOT, today=date(2026, 11, 15))

"""
tests/test_notification_service.py — Member Inbox
===================================================
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from conftest import add_member, make_org, make_user
from orgsync.services import notification_service


def _seed(engine) -> None:
    make_org(engine, "ACM")
    for uid in ("ana", "ben", "author"):
        make_user(engine, uid)
        add_member(engine, uid, "org-acm")
    make_user(engine, "gone")
    add_member(engine, "gone", "org-acm", active=False)


class TestNotifyOrgMembers:
    def test_active_members_except_author(self, db_engine):
        _seed(db_engine)
        with Session(db_engine) as session:
            added = notification_service.notify_org_members(
                session, "org-acm", "Meeting at 5", "p1", exclude_user_id="author",
            )
            session.commit()
        assert added == 2
        assert notification_service.unread_count(db_engine, "ana") == 1
        assert notification_service.unread_count(db_engine, "gone") == 0
        assert notification_service.unread_count(db_engine, "author") == 0

    def test_empty_org(self, db_engine):
        make_org(db_engine, "RCY")
        with Session(db_engine) as session:
            assert notification_service.notify_org_members(session, "org-rcy", "hi") == 0


class TestInbox:
    def _inbox(self, engine, messages=("one", "two", "three")):
        _seed(engine)
        with Session(engine) as session:
            for message in messages:
                notification_service.notify_org_members(session, "org-acm", message)
            session.commit()

    def test_newest_first(self, db_engine):
        self._inbox(db_engine)
        assert [n["message"] for n in notification_service.list_notifications(db_engine, "ana")] == [
            "three", "two", "one",
        ]

    def test_mark_read(self, db_engine):
        self._inbox(db_engine)
        first = notification_service.list_notifications(db_engine, "ana")[0]
        assert notification_service.mark_read(db_engine, "ana", first["id"]) is True
        assert notification_service.unread_count(db_engine, "ana") == 2
        unread = notification_service.list_notifications(db_engine, "ana", unread_only=True)
        assert first["id"] not in [n["id"] for n in unread]

    def test_cannot_mark_someone_elses(self, db_engine):
        self._inbox(db_engine)
        theirs = notification_service.list_notifications(db_engine, "ben")[0]
        assert notification_service.mark_read(db_engine, "ana", theirs["id"]) is False
        assert notification_service.mark_read(db_engine, "ana", 9999) is False

    def test_mark_all_read(self, db_engine):
        self._inbox(db_engine)
        assert notification_service.mark_all_read(db_engine, "ana") == 3
        assert notification_service.mark_all_read(db_engine, "ana") == 0
        assert notification_service.unread_count(db_engine, "ben") == 3

    def test_limit(self, db_engine):
        self._inbox(db_engine)
        assert len(notification_service.list_notifications(db_engine, "ana", limit=2)) == 2

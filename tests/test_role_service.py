"""
tests/test_role_service.py — Role Resolution & Assignment
===========================================================
Promotion, demotion and adviser assignment against SQLite, including the
audit trail and role-cache invalidation.
"""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import add_manager, add_member, make_org, make_user
from orgsync.database.models import AdminLog, OrgManager, UserRoleRow
from orgsync.errors import ConflictError, NotFoundError, ValidationError
from orgsync.services import role_service


@pytest.fixture
def engine(db_engine):
    make_user(db_engine, "admin", role="admin")
    make_org(db_engine, "ACM")
    make_org(db_engine, "RCY")
    return db_engine


def _global_role(engine, user_id: str) -> str | None:
    with Session(engine) as session:
        row = session.get(UserRoleRow, user_id)
        return row.role if row else None


# ===========================================================================
# Resolution and caching
# ===========================================================================
class TestGetUserRoles:
    def test_resolves_role_and_managers(self, engine):
        make_user(engine, "off")
        add_member(engine, "off", "org-acm")
        add_manager(engine, "off", "org-acm")
        roles = role_service.get_user_roles(engine, "off")
        assert roles.is_officer()
        assert roles.managed_org_ids == ["org-acm"]
        assert roles.can_edit("org-acm")

    def test_unknown_user_has_no_role(self, engine):
        roles = role_service.get_user_roles(engine, "stranger")
        assert roles.role is None
        assert not roles.can_manage("org-acm")

    def test_cached_until_cleared(self, engine):
        make_user(engine, "u1")
        assert role_service.get_user_roles(engine, "u1").is_member()
        with Session(engine) as session:
            session.get(UserRoleRow, "u1").role = "admin"
            session.commit()
        assert role_service.get_user_roles(engine, "u1").is_member()
        role_service.clear_role_cache()
        assert role_service.get_user_roles(engine, "u1").is_admin()

    def test_zero_ttl_disables_cache(self, engine):
        make_user(engine, "u1")
        role_service.set_cache_ttl(0)
        try:
            role_service.get_user_roles(engine, "u1")
            with Session(engine) as session:
                session.get(UserRoleRow, "u1").role = "admin"
                session.commit()
            assert role_service.get_user_roles(engine, "u1").is_admin()
        finally:
            role_service.set_cache_ttl(300)


# ===========================================================================
# Global role
# ===========================================================================
class TestSetGlobalRole:
    def test_sets_role_and_audits(self, engine):
        make_user(engine, "u1")
        roles = role_service.set_global_role(engine, actor_id="admin", user_id="u1", role="admin")
        assert roles.is_admin()
        with Session(engine) as session:
            log = session.scalars(select(AdminLog).where(AdminLog.target_table == "user_roles")).one()
            assert log.before_snapshot["role"] == "member"
            assert log.after_snapshot["role"] == "admin"

    def test_invalid_role(self, engine):
        make_user(engine, "u1")
        with pytest.raises(ValidationError, match="Invalid role"):
            role_service.set_global_role(engine, actor_id="admin", user_id="u1", role="superuser")

    def test_missing_user(self, engine):
        with pytest.raises(NotFoundError):
            role_service.set_global_role(engine, actor_id="admin", user_id="ghost", role="member")

    def test_invalidates_cached_roles(self, engine):
        make_user(engine, "u1")
        role_service.get_user_roles(engine, "u1")
        role_service.set_global_role(engine, actor_id="admin", user_id="u1", role="admin")
        assert role_service.get_user_roles(engine, "u1").is_admin()


# ===========================================================================
# Officers
# ===========================================================================
class TestPromoteToOfficer:
    def test_member_becomes_officer(self, engine):
        make_user(engine, "stu")
        add_member(engine, "stu", "org-acm")
        roles = role_service.promote_to_officer(
            engine, actor_id="admin", user_id="stu", org_id="org-acm", position=" Treasurer ",
        )
        assert roles.is_officer()
        assert roles.org_managers[0].position == "Treasurer"
        assert _global_role(engine, "stu") == "officer"

    def test_requires_active_membership(self, engine):
        make_user(engine, "stu")
        add_member(engine, "stu", "org-acm", active=False)
        with pytest.raises(ValidationError, match="active member"):
            role_service.promote_to_officer(engine, actor_id="admin", user_id="stu", org_id="org-acm")

    def test_already_officer_conflicts(self, engine):
        make_user(engine, "stu")
        add_member(engine, "stu", "org-acm")
        add_member(engine, "stu", "org-rcy")
        role_service.promote_to_officer(engine, actor_id="admin", user_id="stu", org_id="org-acm")
        with pytest.raises(ConflictError, match="already an officer"):
            role_service.promote_to_officer(engine, actor_id="admin", user_id="stu", org_id="org-rcy")

    def test_admin_keeps_admin_role(self, engine):
        make_user(engine, "boss", role="admin")
        add_member(engine, "boss", "org-acm")
        role_service.promote_to_officer(engine, actor_id="admin", user_id="boss", org_id="org-acm")
        assert _global_role(engine, "boss") == "admin"

    def test_unknown_org(self, engine):
        make_user(engine, "stu")
        with pytest.raises(NotFoundError, match="Organization"):
            role_service.promote_to_officer(engine, actor_id="admin", user_id="stu", org_id="org-x")

    def test_logged_as_promote(self, engine):
        make_user(engine, "stu")
        add_member(engine, "stu", "org-acm")
        role_service.promote_to_officer(engine, actor_id="admin", user_id="stu", org_id="org-acm")
        with Session(engine) as session:
            log = session.scalars(select(AdminLog).where(AdminLog.action_type == "PROMOTE")).one()
            assert log.target_id == "stu,org-acm"
            assert log.after_snapshot["manager_role"] == "officer"


class TestDemoteOfficer:
    def test_drops_to_member(self, engine):
        make_user(engine, "stu")
        add_member(engine, "stu", "org-acm")
        role_service.promote_to_officer(engine, actor_id="admin", user_id="stu", org_id="org-acm")
        roles = role_service.demote_officer(engine, actor_id="admin", user_id="stu", org_id="org-acm")
        assert roles.is_member()
        assert roles.managed_org_ids == []

    def test_not_an_officer(self, engine):
        make_user(engine, "stu")
        with pytest.raises(NotFoundError, match="not an officer"):
            role_service.demote_officer(engine, actor_id="admin", user_id="stu", org_id="org-acm")

    def test_admin_role_survives(self, engine):
        make_user(engine, "boss", role="admin")
        add_manager(engine, "boss", "org-acm")
        role_service.demote_officer(engine, actor_id="admin", user_id="boss", org_id="org-acm")
        assert _global_role(engine, "boss") == "admin"


# ===========================================================================
# Advisers
# ===========================================================================
class TestAdvisers:
    def test_assign_faculty(self, engine):
        make_user(engine, "prof", user_type="faculty", position="Instructor")
        roles = role_service.assign_adviser(engine, actor_id="admin", user_id="prof", org_id="org-acm")
        assert roles.is_adviser()
        assert roles.can_manage("org-acm")
        assert not roles.can_edit("org-acm")
        assert roles.org_managers[0].position == "Instructor"

    def test_students_cannot_advise(self, engine):
        make_user(engine, "stu")
        with pytest.raises(ValidationError, match="faculty"):
            role_service.assign_adviser(engine, actor_id="admin", user_id="stu", org_id="org-acm")

    def test_assign_is_upsert(self, engine):
        make_user(engine, "prof", user_type="faculty")
        role_service.assign_adviser(engine, actor_id="admin", user_id="prof", org_id="org-acm")
        role_service.assign_adviser(
            engine, actor_id="admin", user_id="prof", org_id="org-acm", position="Co-adviser",
        )
        with Session(engine) as session:
            rows = session.scalars(select(OrgManager).where(OrgManager.user_id == "prof")).all()
            assert len(rows) == 1
            assert rows[0].position == "Co-adviser"

    def test_remove_keeps_role_while_other_orgs_remain(self, engine):
        make_user(engine, "prof", user_type="faculty")
        role_service.assign_adviser(engine, actor_id="admin", user_id="prof", org_id="org-acm")
        role_service.assign_adviser(engine, actor_id="admin", user_id="prof", org_id="org-rcy")
        roles = role_service.remove_adviser(engine, actor_id="admin", user_id="prof", org_id="org-acm")
        assert roles.is_adviser()
        assert roles.managed_org_ids == ["org-rcy"]

    def test_remove_last_drops_to_member(self, engine):
        make_user(engine, "prof", user_type="faculty")
        role_service.assign_adviser(engine, actor_id="admin", user_id="prof", org_id="org-acm")
        roles = role_service.remove_adviser(engine, actor_id="admin", user_id="prof", org_id="org-acm")
        assert roles.is_member()


class TestListings:
    def test_list_org_managers_officers_first(self, engine):
        make_user(engine, "prof", user_type="faculty", first_name="Maria", last_name="Santos")
        make_user(engine, "stu", first_name="Jose", last_name="Rizal")
        add_manager(engine, "prof", "org-acm", "adviser")
        add_manager(engine, "stu", "org-acm", "officer")
        managers = role_service.list_org_managers(engine, "org-acm")
        assert [m["manager_role"] for m in managers] == ["officer", "adviser"]
        assert managers[0]["name"] == "Jose Rizal"

    def test_list_org_managers_filtered(self, engine):
        make_user(engine, "prof", user_type="faculty")
        add_manager(engine, "prof", "org-acm", "adviser")
        assert role_service.list_org_managers(engine, "org-acm", "officer") == []

    def test_list_faculty_search(self, engine):
        make_user(engine, "p1", user_type="faculty", first_name="Maria", last_name="Santos")
        make_user(engine, "p2", user_type="faculty", first_name="Juan", last_name="Cruz")
        make_user(engine, "s1", first_name="Maria", last_name="Student")
        assert [f["user_id"] for f in role_service.list_faculty(engine, "maria")] == ["p1"]

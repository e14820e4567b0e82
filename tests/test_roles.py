"""
tests/test_roles.py — Role Resolver Unit Tests
================================================
Pure checks of UserRoles predicates, can_manage_org / can_edit_org and
the TTL RoleCache.  No database needed.
"""

from __future__ import annotations

import pytest

from orgsync.engine.roles import (
    OrgManagerRole,
    RoleCache,
    UserRoles,
    can_edit_org,
    can_manage_org,
    has_role_access,
)

OFFICER_OF_A = (OrgManagerRole("org-a", "officer", "President"),)
ADVISER_OF_A = (OrgManagerRole("org-a", "adviser"),)


# ===========================================================================
# Predicates
# ===========================================================================
class TestUserRolesPredicates:
    @pytest.mark.parametrize(
        "role, expected",
        [
            ("admin", (True, False, False, False)),
            ("officer", (False, True, False, False)),
            ("adviser", (False, False, True, False)),
            ("member", (False, False, False, True)),
            (None, (False, False, False, False)),
        ],
    )
    def test_global_role_flags(self, role, expected):
        roles = UserRoles(user_id="u1", role=role)
        assert (
            roles.is_admin(), roles.is_officer(), roles.is_adviser(), roles.is_member()
        ) == expected

    def test_primary_org_is_first_managed(self):
        roles = UserRoles(
            user_id="u1",
            role="adviser",
            org_managers=(OrgManagerRole("org-b", "adviser"), OrgManagerRole("org-a", "adviser")),
        )
        assert roles.managed_org_ids == ["org-b", "org-a"]
        assert roles.primary_org_id == "org-b"

    def test_primary_org_none_without_managers(self):
        assert UserRoles(user_id="u1", role="member").primary_org_id is None

    def test_get_org_role(self):
        roles = UserRoles(user_id="u1", role="officer", org_managers=OFFICER_OF_A)
        assert roles.get_org_role("org-a") == "officer"
        assert roles.get_org_role("org-b") is None

    def test_has_org_access(self):
        officer = UserRoles(user_id="u1", role="officer", org_managers=OFFICER_OF_A)
        admin = UserRoles(user_id="u2", role="admin")
        assert officer.has_org_access("org-a")
        assert not officer.has_org_access("org-b")
        assert admin.has_org_access("anything")

    def test_to_dict_shape(self):
        data = UserRoles(user_id="u1", role="officer", org_managers=OFFICER_OF_A).to_dict()
        assert data["is_officer"] is True
        assert data["primary_org_id"] == "org-a"
        assert data["org_managers"] == [
            {"org_id": "org-a", "manager_role": "officer", "position": "President"}
        ]


class TestHasRoleAccess:
    def test_single_role(self):
        assert has_role_access("admin", "admin")
        assert not has_role_access("member", "admin")

    def test_role_set(self):
        assert has_role_access("adviser", ["officer", "adviser"])
        assert not has_role_access("member", ("officer", "adviser"))

    def test_none_role_never_matches(self):
        assert not has_role_access(None, "member")


# ===========================================================================
# Manage vs edit
# ===========================================================================
class TestOrgPermissions:
    def test_admin_manages_and_edits_everything(self):
        assert can_manage_org("admin", (), "org-z")
        assert can_edit_org("admin", (), "org-z")

    def test_officer_manages_and_edits_own_org(self):
        assert can_manage_org("officer", OFFICER_OF_A, "org-a")
        assert can_edit_org("officer", OFFICER_OF_A, "org-a")

    def test_officer_has_no_rights_elsewhere(self):
        assert not can_manage_org("officer", OFFICER_OF_A, "org-b")
        assert not can_edit_org("officer", OFFICER_OF_A, "org-b")

    def test_adviser_views_but_never_edits(self):
        assert can_manage_org("adviser", ADVISER_OF_A, "org-a")
        assert not can_edit_org("adviser", ADVISER_OF_A, "org-a")

    def test_officer_role_with_adviser_row_cannot_edit(self):
        assert not can_edit_org("officer", ADVISER_OF_A, "org-a")

    def test_member_has_no_rights(self):
        assert not can_manage_org("member", OFFICER_OF_A, "org-a")
        assert not can_edit_org("member", OFFICER_OF_A, "org-a")

    def test_methods_delegate(self):
        roles = UserRoles(user_id="u1", role="adviser", org_managers=ADVISER_OF_A)
        assert roles.can_manage("org-a")
        assert not roles.can_edit("org-a")


# ===========================================================================
# TTL cache
# ===========================================================================
class _FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestRoleCache:
    def test_put_then_get(self):
        cache = RoleCache(ttl_seconds=60, clock=_FakeClock())
        roles = UserRoles(user_id="u1", role="member")
        cache.put(roles)
        assert cache.get("u1") is roles
        assert len(cache) == 1

    def test_entry_expires_after_ttl(self):
        clock = _FakeClock()
        cache = RoleCache(ttl_seconds=60, clock=clock)
        cache.put(UserRoles(user_id="u1", role="member"))
        clock.now += 59
        assert cache.get("u1") is not None
        clock.now += 1
        assert cache.get("u1") is None
        assert len(cache) == 0

    def test_invalidate_only_affects_one_user(self):
        cache = RoleCache(clock=_FakeClock())
        cache.put(UserRoles(user_id="u1", role="member"))
        cache.put(UserRoles(user_id="u2", role="admin"))
        cache.invalidate("u1")
        assert cache.get("u1") is None
        assert cache.get("u2").is_admin()

    def test_clear(self):
        cache = RoleCache(clock=_FakeClock())
        cache.put(UserRoles(user_id="u1", role="member"))
        cache.clear()
        assert len(cache) == 0

    def test_missing_user(self):
        assert RoleCache().get("nobody") is None

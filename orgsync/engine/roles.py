"""
orgsync.engine.roles — Role Resolution
=======================================

Pure functions over a user's global role and their per-organization
manager rows, plus a small TTL cache of resolved roles.

Every user holds at most one global role (``admin``, ``officer``,
``adviser``, ``member``).  Officers and advisers additionally hold one
:class:`OrgManagerRole` per organization they manage.

* ``can_manage_org`` — may *view* the org's management screens.
* ``can_edit_org``   — may *write*; advisers are view-only.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass, field

from orgsync.database.models import ManagerRole, UserRole


@dataclass(frozen=True, slots=True)
class OrgManagerRole:
    org_id: str
    manager_role: str
    position: str | None = None


@dataclass(frozen=True, slots=True)
class UserRoles:
    """Resolved role snapshot for one user."""

    user_id: str
    role: str | None = None
    org_managers: tuple[OrgManagerRole, ...] = field(default_factory=tuple)

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def is_officer(self) -> bool:
        return self.role == UserRole.OFFICER

    def is_adviser(self) -> bool:
        return self.role == UserRole.ADVISER

    def is_member(self) -> bool:
        return self.role == UserRole.MEMBER

    @property
    def managed_org_ids(self) -> list[str]:
        return [m.org_id for m in self.org_managers]

    @property
    def primary_org_id(self) -> str | None:
        """The org an officer/adviser dashboard opens on (first managed org)."""
        ids = self.managed_org_ids
        return ids[0] if ids else None

    def has_org_access(self, org_id: str) -> bool:
        return self.is_admin() or org_id in self.managed_org_ids

    def get_org_role(self, org_id: str) -> str | None:
        for m in self.org_managers:
            if m.org_id == org_id:
                return m.manager_role
        return None

    def can_manage(self, org_id: str) -> bool:
        return can_manage_org(self.role, self.org_managers, org_id)

    def can_edit(self, org_id: str) -> bool:
        return can_edit_org(self.role, self.org_managers, org_id)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "role": self.role,
            "is_admin": self.is_admin(),
            "is_officer": self.is_officer(),
            "is_adviser": self.is_adviser(),
            "is_member": self.is_member(),
            "org_managers": [
                {"org_id": m.org_id, "manager_role": m.manager_role, "position": m.position}
                for m in self.org_managers
            ],
            "primary_org_id": self.primary_org_id,
        }


# ---------------------------------------------------------------------------
# Free functions
# ---------------------------------------------------------------------------
def has_role_access(role: str | None, required: str | Iterable[str]) -> bool:
    """True when *role* equals *required* (or is one of them)."""
    if role is None:
        return False
    if isinstance(required, str):
        return role == required
    return role in set(required)


def can_manage_org(
    role: str | None,
    org_managers: Iterable[OrgManagerRole],
    org_id: str,
) -> bool:
    if role == UserRole.ADMIN:
        return True
    if role in (UserRole.OFFICER, UserRole.ADVISER):
        return any(m.org_id == org_id for m in org_managers)
    return False


def can_edit_org(
    role: str | None,
    org_managers: Iterable[OrgManagerRole],
    org_id: str,
) -> bool:
    if role == UserRole.ADMIN:
        return True
    if role == UserRole.OFFICER:
        return any(
            m.org_id == org_id and m.manager_role == ManagerRole.OFFICER
            for m in org_managers
        )
    return False


# ---------------------------------------------------------------------------
# TTL cache
# ---------------------------------------------------------------------------
class RoleCache:
    """Thread-safe TTL cache of :class:`UserRoles` keyed by user id.

    Role writes call :meth:`invalidate` for the affected user.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock=time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, UserRoles]] = {}

    def get(self, user_id: str) -> UserRoles | None:
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return None
            stored_at, roles = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[user_id]
                return None
            return roles

    def put(self, roles: UserRoles) -> None:
        with self._lock:
            self._entries[roles.user_id] = (self._clock(), roles)

    def invalidate(self, user_id: str) -> None:
        with self._lock:
            self._entries.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

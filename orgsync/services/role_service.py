"""
orgsync.services.role_service — Role resolution and assignment
===============================================================

Resolves a user's global role plus per-organization manager rows into a
:class:`~orgsync.engine.roles.UserRoles`, cached for
``roles.cache_ttl_seconds``.  Every write invalidates the affected user's
cache entry and is recorded in ``admin_log``.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from orgsync.constants import GLOBAL_ROLES, full_name
from orgsync.database.models import (
    ManagerRole,
    OrgManager,
    OrgMember,
    Organization,
    User,
    UserRole,
    UserRoleRow,
)
from orgsync.engine.roles import OrgManagerRole, RoleCache, UserRoles
from orgsync.errors import ConflictError, NotFoundError, ValidationError
from orgsync.services.admin_service import log_admin_action, row_to_dict

logger = logging.getLogger(__name__)

_role_cache = RoleCache(ttl_seconds=300)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------
def resolve_roles(session: Session, user_id: str) -> UserRoles:
    """Read the user's roles from an open session (uncached)."""
    role_row = session.get(UserRoleRow, user_id)
    managers = session.scalars(
        select(OrgManager)
        .where(OrgManager.user_id == user_id)
        .order_by(OrgManager.assigned_at, OrgManager.org_id)
    ).all()
    return UserRoles(
        user_id=user_id,
        role=role_row.role if role_row else None,
        org_managers=tuple(
            OrgManagerRole(org_id=m.org_id, manager_role=m.manager_role, position=m.position)
            for m in managers
        ),
    )


def get_user_roles(engine, user_id: str, *, use_cache: bool = True) -> UserRoles:
    if use_cache:
        cached = _role_cache.get(user_id)
        if cached is not None:
            return cached
    with Session(engine) as session:
        roles = resolve_roles(session, user_id)
    _role_cache.put(roles)
    return roles


def clear_role_cache() -> None:
    _role_cache.clear()


def set_cache_ttl(seconds: float) -> None:
    _role_cache.ttl_seconds = seconds


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def _set_role(session: Session, user_id: str, role: str) -> tuple[dict | None, dict]:
    row = session.get(UserRoleRow, user_id)
    before = row_to_dict(row)
    if row is None:
        row = UserRoleRow(user_id=user_id, role=role)
        session.add(row)
    else:
        row.role = role
    session.flush()
    return before, row_to_dict(row)


def _require_user(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _require_org(session: Session, org_id: str) -> Organization:
    org = session.get(Organization, org_id)
    if org is None:
        raise NotFoundError("Organization not found")
    return org


def set_global_role(engine, *, actor_id: str, user_id: str, role: str) -> UserRoles:
    if role not in GLOBAL_ROLES:
        raise ValidationError(f"Invalid role: {role!r}")
    with Session(engine) as session:
        _require_user(session, user_id)
        before, after = _set_role(session, user_id, role)
        log_admin_action(
            session, actor_id=actor_id, action_type="UPDATE",
            target_table="user_roles", target_id=user_id, before=before, after=after,
        )
        session.commit()
    _role_cache.invalidate(user_id)
    logger.info("User %s role set to %s by %s", user_id, role, actor_id)
    return get_user_roles(engine, user_id, use_cache=False)


def promote_to_officer(
    engine,
    *,
    actor_id: str,
    user_id: str,
    org_id: str,
    position: str | None = None,
) -> UserRoles:
    """Make an active member of *org_id* one of its officers.

    Refused once the user is an officer anywhere.  The user's global role
    becomes ``officer`` unless it is already something other than
    ``member``.
    """
    with Session(engine) as session:
        _require_user(session, user_id)
        _require_org(session, org_id)

        membership = session.get(OrgMember, (user_id, org_id))
        if membership is None or not membership.is_active:
            raise ValidationError("User must be an active member of the organization")

        officer_of = session.scalar(
            select(OrgManager.org_id).where(
                OrgManager.user_id == user_id,
                OrgManager.manager_role == ManagerRole.OFFICER.value,
            ).limit(1)
        )
        if officer_of is not None:
            # Officers manage exactly one organization
            raise ConflictError("User is already an officer")
        existing = session.get(OrgManager, (user_id, org_id))
        if existing is not None:
            raise ConflictError("User already manages this organization as an adviser")

        manager = OrgManager(
            user_id=user_id,
            org_id=org_id,
            manager_role=ManagerRole.OFFICER.value,
            position=(position or "").strip() or None,
        )
        session.add(manager)

        role_row = session.get(UserRoleRow, user_id)
        if role_row is None or role_row.role == UserRole.MEMBER:
            _set_role(session, user_id, UserRole.OFFICER.value)

        session.flush()
        log_admin_action(
            session, actor_id=actor_id, action_type="PROMOTE",
            target_table="org_managers", target_id=f"{user_id},{org_id}",
            before=None, after=row_to_dict(manager),
        )
        session.commit()

    _role_cache.invalidate(user_id)
    logger.info("User %s promoted to officer of %s by %s", user_id, org_id, actor_id)
    return get_user_roles(engine, user_id, use_cache=False)


def _remove_manager(
    engine, *, actor_id: str, user_id: str, org_id: str, manager_role: ManagerRole, action: str,
) -> UserRoles:
    with Session(engine) as session:
        manager = session.get(OrgManager, (user_id, org_id))
        if manager is None or manager.manager_role != manager_role:
            raise NotFoundError(f"User is not an {manager_role.value} of this organization")
        before = row_to_dict(manager)
        session.delete(manager)
        session.flush()

        remaining = session.scalar(
            select(OrgManager.org_id).where(OrgManager.user_id == user_id).limit(1)
        )
        role_row = session.get(UserRoleRow, user_id)
        if remaining is None and (role_row is None or role_row.role != UserRole.ADMIN):
            _set_role(session, user_id, UserRole.MEMBER.value)

        log_admin_action(
            session, actor_id=actor_id, action_type=action,
            target_table="org_managers", target_id=f"{user_id},{org_id}",
            before=before, after=None,
        )
        session.commit()

    _role_cache.invalidate(user_id)
    logger.info("User %s removed as %s of %s by %s", user_id, manager_role.value, org_id, actor_id)
    return get_user_roles(engine, user_id, use_cache=False)


def demote_officer(engine, *, actor_id: str, user_id: str, org_id: str) -> UserRoles:
    """Remove an officer; the global role drops to ``member`` when the user
    manages no other organization (admins keep their role)."""
    return _remove_manager(
        engine, actor_id=actor_id, user_id=user_id, org_id=org_id,
        manager_role=ManagerRole.OFFICER, action="DEMOTE",
    )


def assign_adviser(
    engine,
    *,
    actor_id: str,
    user_id: str,
    org_id: str,
    position: str | None = None,
) -> UserRoles:
    """Upsert a faculty user as adviser of *org_id*."""
    with Session(engine) as session:
        user = _require_user(session, user_id)
        _require_org(session, org_id)
        if user.user_type != "faculty":
            raise ValidationError("Only faculty users can be assigned as advisers")

        manager = session.get(OrgManager, (user_id, org_id))
        before = row_to_dict(manager)
        if manager is None:
            manager = OrgManager(user_id=user_id, org_id=org_id, manager_role=ManagerRole.ADVISER.value)
            session.add(manager)
        manager.manager_role = ManagerRole.ADVISER.value
        manager.position = (position or "").strip() or user.position

        role_row = session.get(UserRoleRow, user_id)
        if role_row is None or role_row.role == UserRole.MEMBER:
            _set_role(session, user_id, UserRole.ADVISER.value)

        session.flush()
        log_admin_action(
            session, actor_id=actor_id, action_type="ASSIGN",
            target_table="org_managers", target_id=f"{user_id},{org_id}",
            before=before, after=row_to_dict(manager),
        )
        session.commit()

    _role_cache.invalidate(user_id)
    logger.info("User %s assigned adviser of %s by %s", user_id, org_id, actor_id)
    return get_user_roles(engine, user_id, use_cache=False)


def remove_adviser(engine, *, actor_id: str, user_id: str, org_id: str) -> UserRoles:
    return _remove_manager(
        engine, actor_id=actor_id, user_id=user_id, org_id=org_id,
        manager_role=ManagerRole.ADVISER, action="REVOKE",
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def list_org_managers(engine, org_id: str, manager_role: str | None = None) -> list[dict]:
    """Managers of *org_id* joined with their names, officers first."""
    stmt = (
        select(OrgManager, User)
        .join(User, User.id == OrgManager.user_id)
        .where(OrgManager.org_id == org_id)
        .order_by(OrgManager.manager_role.desc(), User.last_name, User.first_name)
    )
    if manager_role:
        stmt = stmt.where(OrgManager.manager_role == manager_role)
    with Session(engine) as session:
        return [
            {
                "user_id": m.user_id,
                "org_id": m.org_id,
                "manager_role": m.manager_role,
                "position": m.position,
                "name": full_name(u.first_name, u.last_name),
                "email": u.email,
                "avatar_url": u.avatar_url,
            }
            for m, u in session.execute(stmt).all()
        ]


def list_faculty(engine, search: str = "") -> list[dict]:
    """Faculty users selectable as advisers."""
    stmt = select(User).where(User.user_type == "faculty").order_by(User.last_name, User.first_name)
    term = search.strip().lower()
    with Session(engine) as session:
        users = session.scalars(stmt).all()
        return [
            {
                "user_id": u.id,
                "name": full_name(u.first_name, u.last_name),
                "email": u.email,
                "position": u.position,
            }
            for u in users
            if not term or term in full_name(u.first_name, u.last_name).lower()
            or term in (u.email or "").lower()
        ]

"""
orgsync.services.member_service — Users and memberships
=========================================================

Users are created on first sign-in (the id is the identity provider's
``sub``).  Students complete a profile with their academic details and are
auto-enrolled in the organization mapped to their program; faculty supply
an employee id and position instead.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from orgsync.constants import PROGRAM_DEPARTMENTS, USER_TYPES, full_name, year_level_label
from orgsync.database.models import (
    ManagerRole,
    OrgManager,
    OrgMember,
    Organization,
    Program,
    User,
    UserRole,
    UserRoleRow,
)
from orgsync.engine.listing import ListQuery, Page, normalize_department, normalize_year_filter, run_listing
from orgsync.errors import NotFoundError, ValidationError
from orgsync.services import storage_service

logger = logging.getLogger(__name__)

USER_SORTABLE = ("first_name", "last_name", "email", "department", "program", "year_level", "created_at")

_PROFILE_FIELDS = (
    "first_name", "last_name", "user_type", "student_number", "employee_id",
    "year_level", "program", "department", "college", "position",
)


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "name": full_name(user.first_name, user.last_name),
        "avatar_url": user.avatar_url,
        "user_type": user.user_type,
        "student_number": user.student_number,
        "employee_id": user.employee_id,
        "year_level": user.year_level,
        "year_level_label": year_level_label(user.year_level),
        "program": user.program,
        "department": user.department,
        "college": user.college,
        "position": user.position,
        "profile_completed": user.profile_completed,
    }


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
def get_or_create_user(session: Session, user_id: str, email: str | None = None) -> User:
    """Return the user row, creating it (with the ``member`` role) if absent."""
    user = session.get(User, user_id)
    if user is None:
        user = User(id=user_id, email=email)
        session.add(user)
        session.add(UserRoleRow(user_id=user_id, role=UserRole.MEMBER.value))
        session.flush()
        logger.info("Created user %s (%s)", user_id, email)
    elif email and not user.email:
        user.email = email
    return user


def get_user(engine, user_id: str) -> User:
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        session.expunge(user)
        return user


def list_users(engine, query: ListQuery) -> Page:
    """Members directory page.

    Filters: ``department`` (whitelisted), ``year_level`` (``'1'``–``'5'``
    only), ``program``.  Each item is a dict with ``is_officer`` and
    ``is_member`` flags.
    """
    raw = dict(query.filters)
    filters: dict[str, Any] = {
        "department": normalize_department(raw.get("department")),
        "year_level": normalize_year_filter(raw.get("year_level")),
        "program": (raw.get("program") or "").strip() or None,
        "user_type": raw.get("user_type") if raw.get("user_type") in USER_TYPES else None,
    }
    normalized = ListQuery(
        search=query.search,
        filters=filters,
        sort_field=query.sort_field,
        sort_dir=query.sort_dir,
        page=query.page,
        page_size=query.page_size,
    )
    with Session(engine) as session:
        page = run_listing(
            session, select(User), User, normalized,
            search_columns=(User.first_name, User.last_name, User.email, User.department, User.program),
            sortable=USER_SORTABLE,
            default_sort="last_name",
        )
        ids = [u.id for u in page.items]
        officers = set(session.scalars(
            select(OrgManager.user_id).where(
                OrgManager.user_id.in_(ids),
                OrgManager.manager_role == ManagerRole.OFFICER.value,
            )
        ).all())
        members = set(session.scalars(
            select(OrgMember.user_id).where(
                OrgMember.user_id.in_(ids), OrgMember.is_active.is_(True)
            )
        ).all())
        page.items = [
            {**user_to_dict(u), "is_officer": u.id in officers, "is_member": u.id in members}
            for u in page.items
        ]
        return page


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------
def _clean(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def complete_profile(engine, user_id: str, data: dict[str, Any]) -> User:
    """Validate and save the profile-setup form, then auto-join by program.

    Students need ``student_number``, ``year_level`` (1–5) and ``program``;
    faculty need ``employee_id`` and ``position``.  Both need first and
    last names.
    """
    fields = {k: _clean(v) for k, v in data.items() if k in _PROFILE_FIELDS}
    if not fields.get("first_name") or not fields.get("last_name"):
        raise ValidationError("First and last name are required")

    with Session(engine, expire_on_commit=False) as session:
        user = get_or_create_user(session, user_id)
        user_type = fields.get("user_type") or user.user_type
        if user_type not in USER_TYPES:
            raise ValidationError("user_type must be 'student' or 'faculty'")
        fields["user_type"] = user_type

        if user_type == "student":
            if not fields.get("student_number") or not fields.get("program"):
                raise ValidationError("Student number and program are required")
            try:
                year_level = int(fields.get("year_level"))
            except (TypeError, ValueError):
                raise ValidationError("Year level must be between 1 and 5") from None
            if not 1 <= year_level <= 5:
                raise ValidationError("Year level must be between 1 and 5")
            fields["year_level"] = year_level
            fields["department"] = PROGRAM_DEPARTMENTS.get(
                fields["program"], fields.get("department") or "OTHERS"
            )
        else:
            if not fields.get("employee_id") or not fields.get("position"):
                raise ValidationError("Employee ID and position are required")
            fields["year_level"] = None
            if not fields.get("department"):
                raise ValidationError("Department is required")

        for key, value in fields.items():
            setattr(user, key, value)
        user.profile_completed = True

        joined = None
        if user_type == "student":
            joined = _auto_join_program_org(session, user_id, fields["program"])

        session.commit()
        session.refresh(user)
        session.expunge(user)

    logger.info("Profile completed for %s (auto-joined %s)", user_id, joined)
    return user


def _auto_join_program_org(session: Session, user_id: str, program: str) -> str | None:
    mapping = session.get(Program, program)
    if mapping is None or not mapping.org_id:
        return None
    membership = session.get(OrgMember, (user_id, mapping.org_id))
    if membership is None:
        session.add(OrgMember(user_id=user_id, org_id=mapping.org_id, is_active=True))
    elif not membership.is_active:
        membership.is_active = True
    return mapping.org_id


def update_profile(engine, user_id: str, data: dict[str, Any]) -> User:
    """Edit profile fields.  ``user_type`` cannot change after setup."""
    fields = {k: _clean(v) for k, v in data.items() if k in _PROFILE_FIELDS and k != "user_type"}
    if "year_level" in fields and fields["year_level"] is not None:
        try:
            fields["year_level"] = int(fields["year_level"])
        except (TypeError, ValueError):
            raise ValidationError("Year level must be between 1 and 5") from None
        if not 1 <= fields["year_level"] <= 5:
            raise ValidationError("Year level must be between 1 and 5")
    for key in ("first_name", "last_name"):
        if key in fields and not fields[key]:
            raise ValidationError(f"{key} cannot be blank")

    with Session(engine, expire_on_commit=False) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        for key, value in fields.items():
            setattr(user, key, value)
        session.commit()
        session.refresh(user)
        session.expunge(user)
        return user


def upload_avatar(
    engine,
    user_id: str,
    filename: str,
    content: bytes,
    content_type: str | None = None,
) -> str:
    """Store the avatar under ``avatars/<user_id><ext>`` and save its URL."""
    ext = storage_service.validate_image(filename, content, content_type)
    url = storage_service.save_object(
        "avatars", f"{user_id}{ext}", content, content_type, upsert=True,
    )
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        previous = user.avatar_url
        user.avatar_url = url
        session.commit()
    storage_service.discard_replaced("avatars", previous, url)
    logger.info("Avatar updated for %s → %s", user_id, Path(url).name)
    return url


# ---------------------------------------------------------------------------
# Memberships
# ---------------------------------------------------------------------------
def join_organization(engine, user_id: str, org_id: str) -> None:
    with Session(engine) as session:
        org = session.get(Organization, org_id)
        if org is None:
            raise NotFoundError("Organization not found")
        if org.status != "active":
            raise ValidationError("Organization is not accepting members")
        get_or_create_user(session, user_id)
        membership = session.get(OrgMember, (user_id, org_id))
        if membership is None:
            session.add(OrgMember(user_id=user_id, org_id=org_id, is_active=True))
        else:
            membership.is_active = True
        session.commit()
    logger.info("User %s joined org %s", user_id, org_id)


def leave_organization(engine, user_id: str, org_id: str) -> bool:
    """Deactivate a membership.  Returns False if the user wasn't a member."""
    with Session(engine) as session:
        membership = session.get(OrgMember, (user_id, org_id))
        if membership is None or not membership.is_active:
            return False
        membership.is_active = False
        session.commit()
    logger.info("User %s left org %s", user_id, org_id)
    return True


def is_active_member(session: Session, user_id: str, org_id: str) -> bool:
    membership = session.get(OrgMember, (user_id, org_id))
    return membership is not None and membership.is_active


def member_org_ids(engine, user_id: str) -> list[str]:
    with Session(engine) as session:
        return list(session.scalars(
            select(OrgMember.org_id).where(
                OrgMember.user_id == user_id, OrgMember.is_active.is_(True)
            )
        ).all())


def list_org_members(engine, org_id: str, search: str = "") -> list[dict]:
    """Active members of *org_id* with their manager role, if any."""
    stmt = (
        select(User, OrgManager.manager_role, OrgManager.position, OrgMember.joined_at)
        .join(OrgMember, OrgMember.user_id == User.id)
        .outerjoin(
            OrgManager,
            (OrgManager.user_id == User.id) & (OrgManager.org_id == org_id),
        )
        .where(OrgMember.org_id == org_id, OrgMember.is_active.is_(True))
        .order_by(User.last_name, User.first_name)
    )
    term = search.strip().lower()
    with Session(engine) as session:
        rows = []
        for user, manager_role, position, joined_at in session.execute(stmt).all():
            data = user_to_dict(user)
            if term and not any(
                term in (data.get(k) or "").lower()
                for k in ("name", "email", "program", "department")
            ):
                continue
            data.update({
                "manager_role": manager_role,
                "officer_position": position,
                "is_officer": manager_role == ManagerRole.OFFICER,
                "joined_at": joined_at.isoformat() if joined_at else None,
            })
            rows.append(data)
        return rows


def set_program_org(engine, *, program: str, org_id: str | None) -> None:
    """Map an academic *program* to the organization its students auto-join."""
    program = (program or "").strip()
    if not program:
        raise ValidationError("Program is required")
    with Session(engine) as session:
        if org_id is not None and session.get(Organization, org_id) is None:
            raise NotFoundError("Organization not found")
        mapping = session.get(Program, program)
        if mapping is None:
            session.add(Program(program=program, org_id=org_id))
        else:
            mapping.org_id = org_id
        session.commit()

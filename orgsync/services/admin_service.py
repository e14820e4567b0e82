"""
orgsync.services.admin_service — Audited Mutations & Organizations
===================================================================

Every admin write follows the same pattern:
  1. Open a session
  2. Read the "before" snapshot
  3. Apply the change
  4. Write ``admin_log`` with before/after JSON
  5. Commit

The generic helpers here are shared by the other service modules; the
organization roster (create / edit / delete / list / overview) lives here
too since it is the admin dashboard's main screen.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import func, inspect, select
from sqlalchemy.orm import Session

from orgsync.constants import DEPARTMENTS, ORG_STATUSES, ORG_TYPES
from orgsync.database.models import (
    AdminLog,
    ManagerRole,
    OrgManager,
    OrgMember,
    Organization,
    Post,
    PostType,
    Quiz,
)
from orgsync.engine.listing import ListQuery, Page, run_listing
from orgsync.engine.roles import UserRoles
from orgsync.errors import ConflictError, NotFoundError, ValidationError
from orgsync.services import storage_service

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Generic audit helpers
# ---------------------------------------------------------------------------
def row_to_dict(obj: Any) -> dict | None:
    """Convert a model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        val = getattr(obj, col.key, None)
        if isinstance(val, (datetime, date)):
            val = val.isoformat()
        result[col.name] = val
    return result


def _identity(obj: Any) -> str:
    key = inspect(obj).identity or ()
    return ",".join(str(part) for part in key)


def log_admin_action(
    session: Session,
    *,
    actor_id: str,
    action_type: str,
    target_table: str,
    target_id: str | None,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> None:
    """Insert a row into admin_log within the current transaction."""
    session.add(AdminLog(
        actor_id=actor_id,
        action_type=action_type,
        target_table=target_table,
        target_id=target_id,
        before_snapshot=before,
        after_snapshot=after,
        reason=reason,
    ))


def audited_create(engine, row: Any, *, table_name: str, actor_id: str) -> Any:
    """add → flush → log → commit → return the expunged row."""
    with Session(engine, expire_on_commit=False) as session:
        session.add(row)
        session.flush()
        log_admin_action(
            session,
            actor_id=actor_id,
            action_type="CREATE",
            target_table=table_name,
            target_id=_identity(row),
            before=None,
            after=row_to_dict(row),
        )
        session.commit()
        session.refresh(row)
        session.expunge(row)
        return row


def audited_update(
    engine,
    model_cls: type,
    pk: Any,
    *,
    table_name: str,
    actor_id: str,
    frozen_keys: tuple[str, ...] = ("id", "created_at"),
    **kwargs: Any,
) -> Any:
    """get → before → apply kwargs → log → commit.

    Raises :class:`NotFoundError` when the row doesn't exist.
    """
    with Session(engine, expire_on_commit=False) as session:
        obj = session.get(model_cls, pk)
        if obj is None:
            raise NotFoundError(f"{table_name} row {pk} not found")
        before = row_to_dict(obj)
        for key, value in kwargs.items():
            if hasattr(obj, key) and key not in frozen_keys:
                setattr(obj, key, value)
        session.flush()
        log_admin_action(
            session,
            actor_id=actor_id,
            action_type="UPDATE",
            target_table=table_name,
            target_id=_identity(obj),
            before=before,
            after=row_to_dict(obj),
        )
        session.commit()
        session.refresh(obj)
        session.expunge(obj)
        return obj


def audited_delete(engine, model_cls: type, pk: Any, *, table_name: str, actor_id: str) -> bool:
    """get → log → delete → commit.  Returns True if the row existed."""
    with Session(engine) as session:
        obj = session.get(model_cls, pk)
        if obj is None:
            return False
        log_admin_action(
            session,
            actor_id=actor_id,
            action_type="DELETE",
            target_table=table_name,
            target_id=_identity(obj),
            before=row_to_dict(obj),
            after=None,
        )
        session.delete(obj)
        session.commit()
        return True


def list_audit_log(engine, *, page: int = 1, page_size: int = 50, target_table: str | None = None) -> Page:
    """Newest-first page of ``admin_log`` rows."""
    with Session(engine) as session:
        query = ListQuery(
            filters={"target_table": target_table},
            sort_field="timestamp",
            sort_dir="desc",
            page=page,
            page_size=page_size,
        )
        result = run_listing(
            session, select(AdminLog), AdminLog, query,
            sortable=("timestamp",), default_sort="timestamp",
        )
        for row in result.items:
            session.expunge(row)
        return result


# ---------------------------------------------------------------------------
# Organization validation
# ---------------------------------------------------------------------------
_ORG_FIELDS = (
    "org_code", "name", "abbrev_name", "email", "description", "department",
    "status", "org_type", "date_established", "org_pic",
)


def _validate_org_fields(fields: dict[str, Any]) -> dict[str, Any]:
    cleaned = {k: v for k, v in fields.items() if k in _ORG_FIELDS}
    for key in ("org_code", "name", "abbrev_name"):
        if key in cleaned:
            value = (cleaned[key] or "").strip()
            if not value:
                raise ValidationError(f"{key} is required")
            cleaned[key] = value
    if "department" in cleaned:
        dept = (cleaned["department"] or "OTHERS").strip().upper()
        if dept not in DEPARTMENTS:
            raise ValidationError(f"Invalid department: {cleaned['department']!r}")
        cleaned["department"] = dept
    if "org_type" in cleaned and cleaned["org_type"] not in ORG_TYPES:
        raise ValidationError(f"Invalid organization type: {cleaned['org_type']!r}")
    if "status" in cleaned and cleaned["status"] not in ORG_STATUSES:
        raise ValidationError(f"Invalid status: {cleaned['status']!r}")
    return cleaned


def _ensure_unique_code(session: Session, org_code: str, exclude_id: str | None = None) -> None:
    stmt = select(Organization.id).where(Organization.org_code == org_code)
    if exclude_id is not None:
        stmt = stmt.where(Organization.id != exclude_id)
    if session.scalar(stmt) is not None:
        raise ConflictError(f"Organization code {org_code!r} is already in use")


# ---------------------------------------------------------------------------
# Organization CRUD
# ---------------------------------------------------------------------------
def create_organization(
    engine,
    *,
    actor_id: str,
    org_code: str,
    name: str,
    abbrev_name: str,
    org_type: str,
    department: str = "OTHERS",
    status: str = "active",
    email: str | None = None,
    description: str | None = None,
    date_established: date | None = None,
) -> Organization:
    fields = _validate_org_fields({
        "org_code": org_code,
        "name": name,
        "abbrev_name": abbrev_name,
        "org_type": org_type,
        "department": department,
        "status": status,
        "email": email,
        "description": description,
        "date_established": date_established,
    })
    with Session(engine) as session:
        _ensure_unique_code(session, fields["org_code"])
    org = audited_create(engine, Organization(**fields), table_name="organizations", actor_id=actor_id)
    logger.info("Organization %s created by %s", org.org_code, actor_id)
    return org


def update_organization(engine, *, org_id: str, actor_id: str, **kwargs: Any) -> Organization:
    fields = _validate_org_fields(kwargs)
    if "org_code" in fields:
        with Session(engine) as session:
            _ensure_unique_code(session, fields["org_code"], exclude_id=org_id)
    org = audited_update(
        engine, Organization, org_id,
        table_name="organizations", actor_id=actor_id, **fields,
    )
    logger.info("Organization %s updated by %s", org.org_code, actor_id)
    return org


def delete_organization(engine, *, org_id: str, org_code_confirmation: str, actor_id: str) -> bool:
    """Delete an organization after the caller retypes its ``org_code``."""
    with Session(engine) as session:
        org = session.get(Organization, org_id)
        if org is None:
            raise NotFoundError("Organization not found")
        if (org_code_confirmation or "").strip() != org.org_code:
            raise ValidationError("Organization code confirmation does not match")
    deleted = audited_delete(
        engine, Organization, org_id, table_name="organizations", actor_id=actor_id,
    )
    logger.info("Organization %s deleted by %s", org_id, actor_id)
    return deleted


def upload_org_pic(
    engine,
    *,
    org_id: str,
    actor_id: str,
    filename: str,
    content: bytes,
    content_type: str | None = None,
) -> Organization:
    ext = storage_service.validate_image(filename, content, content_type)
    url = storage_service.save_object(
        "org-pics", f"{org_id}{ext}", content, content_type, upsert=True,
    )
    previous = get_organization(engine, org_id).org_pic
    org = audited_update(
        engine, Organization, org_id,
        table_name="organizations", actor_id=actor_id, org_pic=url,
    )
    storage_service.discard_replaced("org-pics", previous, url)
    return org


# ---------------------------------------------------------------------------
# Organization reads
# ---------------------------------------------------------------------------
ORG_SORTABLE = ("name", "org_code", "abbrev_name", "department", "status", "org_type", "created_at")


def get_organization(engine, org_id: str) -> Organization:
    with Session(engine) as session:
        org = session.get(Organization, org_id)
        if org is None:
            raise NotFoundError("Organization not found")
        session.expunge(org)
        return org


def list_organizations(engine, query: ListQuery, viewer: UserRoles) -> Page:
    """Roster visible to *viewer*.

    Admins see every organization, officers and advisers the ones they
    manage, everyone else the active ones.
    """
    stmt = select(Organization)
    if viewer.is_admin():
        pass
    elif viewer.managed_org_ids:
        stmt = stmt.where(Organization.id.in_(viewer.managed_org_ids))
    else:
        stmt = stmt.where(Organization.status == "active")

    with Session(engine) as session:
        page = run_listing(
            session, stmt, Organization, query,
            search_columns=(Organization.name, Organization.org_code, Organization.abbrev_name),
            sortable=ORG_SORTABLE,
            default_sort="name",
        )
        for org in page.items:
            session.expunge(org)
        return page


def get_organization_overview(engine, org_id: str) -> dict:
    """Organization row plus member / manager / content counts."""
    with Session(engine) as session:
        org = session.get(Organization, org_id)
        if org is None:
            raise NotFoundError("Organization not found")

        def _count(stmt) -> int:
            return session.scalar(stmt) or 0

        members = _count(
            select(func.count()).select_from(OrgMember)
            .where(OrgMember.org_id == org_id, OrgMember.is_active.is_(True))
        )
        officers = _count(
            select(func.count()).select_from(OrgManager)
            .where(OrgManager.org_id == org_id, OrgManager.manager_role == ManagerRole.OFFICER.value)
        )
        advisers = _count(
            select(func.count()).select_from(OrgManager)
            .where(OrgManager.org_id == org_id, OrgManager.manager_role == ManagerRole.ADVISER.value)
        )
        posts = _count(select(func.count()).select_from(Post).where(Post.org_id == org_id))
        events = _count(
            select(func.count()).select_from(Post)
            .where(Post.org_id == org_id, Post.post_type == PostType.EVENT.value)
        )
        quizzes = _count(select(func.count()).select_from(Quiz).where(Quiz.org_id == org_id))

        return {
            "organization": row_to_dict(org),
            "counts": {
                "members": members,
                "officers": officers,
                "advisers": advisers,
                "posts": posts,
                "events": events,
                "quizzes": quizzes,
            },
        }

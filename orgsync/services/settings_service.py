"""
orgsync.services.settings_service — Settings CRUD
==================================================

Typed read/write access to the ``settings`` table.  Writes made through
the admin dashboard are recorded in ``admin_log``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from orgsync.constants import DEFAULT_COIN_AWARDS
from orgsync.database.models import AdminLog, Setting
from orgsync.errors import ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_setting_value(session: Session, key: str, default=None):
    """Read a single setting's parsed value from an open session.

    Returns *default* when the key is missing; a value that is not valid
    JSON is returned as the raw string.
    """
    row = session.get(Setting, key)
    if row is None:
        return default
    try:
        return json.loads(row.value_json)
    except (json.JSONDecodeError, TypeError):
        return row.value_json


def get_int(session: Session, key: str, default: int) -> int:
    value = get_setting_value(session, key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Setting %s is not an integer (%r); using %d", key, value, default)
        return default


def coin_amount(session: Session, action: str) -> int:
    """Coins awarded for an engagement *action* (``coins.<action>``)."""
    return get_int(session, f"coins.{action}", DEFAULT_COIN_AWARDS.get(action, 0))


def get_all_settings(engine) -> list[dict]:
    """Every setting, ordered by category then key."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Setting).order_by(Setting.category, Setting.key)
        ).all()
        return [_setting_dict(r) for r in rows]


def _setting_dict(row: Setting) -> dict:
    try:
        value = json.loads(row.value_json)
    except (json.JSONDecodeError, TypeError):
        value = row.value_json
    return {
        "key": row.key,
        "value": value,
        "category": row.category,
        "description": row.description,
    }


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def upsert_setting(
    engine,
    *,
    key: str,
    value: Any,
    actor_id: str | None = None,
    category: str | None = None,
    description: str | None = None,
) -> dict:
    """Insert or update a single setting and return it as a dict.

    When *actor_id* is given the change is written to ``admin_log`` with
    before/after snapshots.
    """
    key = key.strip()
    if not key:
        raise ValidationError("Setting key is required")

    with Session(engine) as session:
        existing = session.get(Setting, key)
        before = _setting_dict(existing) if existing else None
        if existing:
            existing.value_json = json.dumps(value)
            if category:
                existing.category = category
            if description is not None:
                existing.description = description
        else:
            existing = Setting(
                key=key,
                value_json=json.dumps(value),
                category=category or "general",
                description=description,
            )
            session.add(existing)
        after = _setting_dict(existing)

        if actor_id is not None and before != after:
            session.add(AdminLog(
                actor_id=actor_id,
                action_type="UPDATE" if before else "CREATE",
                target_table="settings",
                target_id=key,
                before_snapshot=before,
                after_snapshot=after,
            ))
        session.commit()

    logger.info("Setting %s updated by %s", key, actor_id or "system")
    return after


def bulk_upsert(engine, settings: list[dict], *, actor_id: str | None = None) -> int:
    """Upsert many ``{"key", "value", ["category"], ["description"]}`` items.

    Returns the number of items processed.
    """
    count = 0
    for item in settings:
        upsert_setting(
            engine,
            key=item["key"],
            value=item["value"],
            actor_id=actor_id,
            category=item.get("category"),
            description=item.get("description"),
        )
        count += 1
    return count

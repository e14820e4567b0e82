"""
orgsync.database.seed — Default Settings Seeder
=================================================

Baseline settings written on first startup: coin amounts per engagement
action, directory page size, leaderboard size and the role-cache TTL.

Idempotent — only inserts keys that don't already exist, so admin edits
are never overwritten.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine
from sqlalchemy.orm import Session

from orgsync.constants import DEFAULT_COIN_AWARDS
from orgsync.database.models import Setting

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default settings catalogue
# ---------------------------------------------------------------------------
DEFAULT_SETTINGS: dict[str, tuple[object, str, str]] = {
    **{
        f"coins.{action}": (points, "coins", f"Coins awarded for the '{action}' action")
        for action, points in DEFAULT_COIN_AWARDS.items()
    },
    "directory.page_size": (10, "display", "Rows per page on directory screens"),
    "leaderboard.top_n": (10, "display", "Entries shown on quiz and minigame leaderboards"),
    "roles.cache_ttl_seconds": (300, "roles", "Seconds a resolved user role stays cached"),
}
"""Each entry maps ``key`` → ``(default_value, category, description)``."""


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_default_settings(engine: Engine) -> int:
    """Insert default settings that don't yet exist.

    Returns the number of rows inserted.
    """
    session = Session(engine)
    inserted = 0
    try:
        for key, (value, category, desc) in DEFAULT_SETTINGS.items():
            if session.get(Setting, key) is None:
                session.add(Setting(
                    key=key,
                    value_json=json.dumps(value),
                    category=category,
                    description=desc,
                ))
                inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d default settings.", inserted)
    return inserted

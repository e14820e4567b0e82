"""
orgsync.config — YAML Configuration Loader
===========================================

Reads ``config.yaml`` for **infrastructure-only** settings (identity,
dashboard port, contact address).  Tunable values such as coin amounts,
page sizes and the role-cache TTL live in the ``settings`` table, editable
from the admin dashboard.

Usage::

    from orgsync.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.app_name)          # "OrgSync"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object: infrastructure and identity only.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class OrgSyncConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    app_name: str
    university_name: str

    # Dashboard
    dashboard_port: int

    # Optional
    admin_email: str | None = None  # Shown on access-denied pages


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> OrgSyncConfig:
    """Read *path* and return an :class:`OrgSyncConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return OrgSyncConfig(
        app_name=raw["app_name"],
        university_name=raw["university_name"],
        dashboard_port=int(raw["dashboard_port"]),
        admin_email=raw.get("admin_email") or None,
    )

"""
orgsync.api.deps — FastAPI dependency injection
=================================================

Bearer tokens are issued by the hosted identity provider and verified
here; ``sub`` is the user id.  Roles are resolved server-side on every
request (through the role cache) and permission helpers raise 403.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from orgsync.config import OrgSyncConfig, load_config
from orgsync.database.engine import create_db_engine
from orgsync.engine.roles import UserRoles
from orgsync.services import role_service

_WEAK_SECRETS = frozenset({
    "orgsync-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Use the signing secret of your identity provider project."
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> OrgSyncConfig:
    return load_config()


def decode_token(token: str) -> dict:
    """Verify *token* and return its payload.  Raises 401 on any failure."""
    try:
        payload = jwt.decode(
            token, JWT_SECRET, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE,
        )
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not payload.get("sub"):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    return payload


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate the bearer JWT and return its payload.  Raises 401 if invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    return decode_token(authorization.split(" ", 1)[1])


def get_current_roles(
    user: dict = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
) -> UserRoles:
    return role_service.get_user_roles(engine, user["sub"])


def require_admin(roles: UserRoles = Depends(get_current_roles)) -> UserRoles:
    if not roles.is_admin():
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Admin access required")
    return roles


def require_manage_org(roles: UserRoles, org_id: str) -> None:
    """403 unless *roles* may view the management screens of *org_id*."""
    if not roles.can_manage(org_id):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "You do not manage this organization")


def require_edit_org(roles: UserRoles, org_id: str) -> None:
    """403 unless *roles* may write to *org_id* (advisers are view-only)."""
    if not roles.can_edit(org_id):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "You cannot edit this organization")

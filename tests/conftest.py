"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# JWT_SECRET must be valid before orgsync.api.deps is imported; the module
# validates it at load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# SQLite has no JSONB; render it as TEXT so the JSON columns still work.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from orgsync.database.models import (  # noqa: E402
    Base,
    OrgManager,
    OrgMember,
    Organization,
    User,
    UserRoleRow,
)

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with every OrgSync table.

    StaticPool keeps one shared connection so worker threads (TestClient's
    thread pool, ``run_db``) see the same database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture(autouse=True)
def _reset_role_cache():
    from orgsync.services import role_service

    role_service.clear_role_cache()
    yield
    role_service.clear_role_cache()


@pytest.fixture
def storage_dir(tmp_path, monkeypatch):
    """Point object storage at a per-test temporary directory."""
    from orgsync.services import storage_service

    monkeypatch.setattr(storage_service, "STORAGE_DIR", tmp_path)
    monkeypatch.delenv("ORGSYNC_PUBLIC_URL", raising=False)
    return tmp_path


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------
def make_user_token(sub: str, email: str | None = None, aud: str | None = None) -> str:
    """Create a bearer JWT as the identity provider would issue it."""
    import jwt

    from orgsync.api.deps import JWT_ALGORITHM, JWT_AUDIENCE, JWT_SECRET

    payload = {"sub": sub, "aud": aud or JWT_AUDIENCE}
    if email:
        payload["email"] = email
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth_header(sub: str) -> dict:
    return {"Authorization": f"Bearer {make_user_token(sub)}"}


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------
def make_user(
    engine: Engine,
    user_id: str,
    *,
    role: str = "member",
    user_type: str = "student",
    first_name: str = "Test",
    last_name: str | None = None,
    **fields,
) -> str:
    with Session(engine) as session:
        session.add(User(
            id=user_id,
            email=fields.pop("email", f"{user_id}@example.edu"),
            first_name=first_name,
            last_name=last_name or user_id.title(),
            user_type=user_type,
            profile_completed=True,
            **fields,
        ))
        session.add(UserRoleRow(user_id=user_id, role=role))
        session.commit()
    return user_id


def make_org(engine: Engine, code: str = "ACM", **fields) -> str:
    org_id = fields.pop("id", f"org-{code.lower()}")
    with Session(engine) as session:
        session.add(Organization(
            id=org_id,
            org_code=code,
            name=fields.pop("name", f"{code} Society"),
            abbrev_name=fields.pop("abbrev_name", code),
            org_type=fields.pop("org_type", "Prof"),
            department=fields.pop("department", "CITE"),
            status=fields.pop("status", "active"),
            **fields,
        ))
        session.commit()
    return org_id


def add_member(engine: Engine, user_id: str, org_id: str, *, active: bool = True) -> None:
    with Session(engine) as session:
        session.add(OrgMember(user_id=user_id, org_id=org_id, is_active=active))
        session.commit()


def add_manager(engine: Engine, user_id: str, org_id: str, manager_role: str = "officer") -> None:
    """Insert an org_managers row and set the matching global role."""
    with Session(engine) as session:
        session.add(OrgManager(user_id=user_id, org_id=org_id, manager_role=manager_role))
        role = session.get(UserRoleRow, user_id)
        if role is not None and role.role == "member":
            role.role = manager_role
        session.commit()


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------
@pytest.fixture
def client(db_engine, storage_dir):
    """TestClient bound to the SQLite engine (lifespan not run)."""
    from fastapi.testclient import TestClient

    from orgsync.api.deps import get_engine
    from orgsync.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def quiz_data(questions: int = 2, points: int = 10) -> dict:
    """A valid quiz definition with one correct answer per question."""
    return {
        "timeLimitInSeconds": 30,
        "pointsAddedForCorrectAnswer": points,
        "questions": [
            {
                "questionText": f"Question {i}?",
                "answers": [
                    {"answerText": "Right", "isCorrect": True},
                    {"answerText": "Wrong", "isCorrect": False},
                ],
            }
            for i in range(1, questions + 1)
        ],
    }

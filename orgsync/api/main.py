"""
orgsync.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn orgsync.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.staticfiles import StaticFiles

load_dotenv()

from orgsync.api.auth import router as auth_router  # noqa: E402
from orgsync.api.deps import get_config, get_engine  # noqa: E402
from orgsync.api.routes.admin import router as admin_router  # noqa: E402
from orgsync.api.routes.coins import realtime_router  # noqa: E402
from orgsync.api.routes.coins import router as coins_router  # noqa: E402
from orgsync.api.routes.contests import router as contests_router  # noqa: E402
from orgsync.api.routes.events import router as events_router  # noqa: E402
from orgsync.api.routes.flappy import router as flappy_router  # noqa: E402
from orgsync.api.routes.goals import router as goals_router  # noqa: E402
from orgsync.api.routes.members import router as members_router  # noqa: E402
from orgsync.api.routes.notifications import router as notifications_router  # noqa: E402
from orgsync.api.routes.organizations import router as organizations_router  # noqa: E402
from orgsync.api.routes.posts import router as posts_router  # noqa: E402
from orgsync.api.routes.quizzes import router as quizzes_router  # noqa: E402
from orgsync.api.routes.reports import router as reports_router  # noqa: E402
from orgsync.api.routes.roles import router as roles_router  # noqa: E402
from orgsync.config import OrgSyncConfig  # noqa: E402
from orgsync.database.engine import get_session, init_db  # noqa: E402
from orgsync.errors import OrgSyncError  # noqa: E402
from orgsync.services import role_service  # noqa: E402
from orgsync.services.settings_service import get_int  # noqa: E402
from orgsync.services.storage_service import STORAGE_DIR, ensure_storage_dirs  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: storage buckets, schema and default settings."""
    ensure_storage_dirs()
    engine = get_engine()
    init_db(engine)
    with get_session(engine) as session:
        role_service.set_cache_ttl(get_int(session, "roles.cache_ttl_seconds", 300))
    logger.info("OrgSync API started, engine ready (%s)", engine.url.database)
    yield
    logger.info("OrgSync API shutting down")


app = FastAPI(
    title="OrgSync API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OrgSyncError)
async def orgsync_error_handler(request: Request, exc: OrgSyncError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(organizations_router, prefix="/api")
app.include_router(members_router, prefix="/api")
app.include_router(roles_router, prefix="/api")
app.include_router(posts_router, prefix="/api")
app.include_router(events_router, prefix="/api")
app.include_router(quizzes_router, prefix="/api")
app.include_router(goals_router, prefix="/api")
app.include_router(flappy_router, prefix="/api")
app.include_router(contests_router, prefix="/api")
app.include_router(coins_router, prefix="/api")
app.include_router(realtime_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(reports_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/meta")
def meta(cfg: OrgSyncConfig = Depends(get_config)):
    """Public identity shown by the frontend shell."""
    return {
        "app_name": cfg.app_name,
        "university_name": cfg.university_name,
        "admin_email": cfg.admin_email,
    }


# Public storage objects (avatars, sprites, screenshots, org pictures)
app.mount(
    "/api/storage",
    StaticFiles(directory=str(STORAGE_DIR), check_dir=False),
    name="storage",
)

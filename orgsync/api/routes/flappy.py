"""
orgsync.api.routes.flappy — Minigame challenges, scores and leaderboard
=========================================================================

Challenge writes are multipart forms carrying the player and background
sprites.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from orgsync.api.deps import get_current_roles, get_engine, require_edit_org, require_manage_org
from orgsync.database.engine import run_db
from orgsync.engine.roles import UserRoles
from orgsync.services import flappy_service, member_service
from orgsync.services.storage_service import ImageUpload

router = APIRouter(tags=["flappy"])


class ScoreBody(BaseModel):
    score: int


async def _to_upload(file: UploadFile | None) -> ImageUpload | None:
    if file is None:
        return None
    return ImageUpload(
        filename=file.filename or "",
        content=await file.read(),
        content_type=file.content_type,
    )


# ---------------------------------------------------------------------------
# Management
# ---------------------------------------------------------------------------
@router.get("/organizations/{org_id}/flappy")
def list_challenges(
    org_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, org_id)
    return {"challenges": flappy_service.list_challenges(engine, org_id)}


@router.post("/organizations/{org_id}/flappy", status_code=201)
async def create_challenge(
    org_id: str,
    name: str = Form(...),
    description: str = Form(...),
    start_time: datetime | None = Form(None),
    end_time: datetime | None = Form(None),
    player_image: UploadFile | None = File(None),
    background_image: UploadFile | None = File(None),
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, org_id)
    challenge = await run_db(
        flappy_service.create_challenge,
        engine,
        org_id=org_id,
        name=name,
        description=description,
        player_image=await _to_upload(player_image),
        background_image=await _to_upload(background_image),
        start_time=start_time,
        end_time=end_time,
    )
    return flappy_service.challenge_to_dict(challenge)


@router.put("/flappy/{challenge_id}")
async def update_challenge(
    challenge_id: str,
    name: str = Form(...),
    description: str = Form(...),
    start_time: datetime | None = Form(None),
    end_time: datetime | None = Form(None),
    player_image: UploadFile | None = File(None),
    background_image: UploadFile | None = File(None),
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    existing = await run_db(flappy_service.get_challenge, engine, challenge_id)
    require_edit_org(roles, existing.org_id)
    challenge = await run_db(
        flappy_service.update_challenge,
        engine,
        challenge_id,
        name=name,
        description=description,
        player_image=await _to_upload(player_image),
        background_image=await _to_upload(background_image),
        start_time=start_time,
        end_time=end_time,
    )
    return flappy_service.challenge_to_dict(challenge)


@router.delete("/flappy/{challenge_id}")
def delete_challenge(
    challenge_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, flappy_service.get_challenge(engine, challenge_id).org_id)
    return {"deleted": flappy_service.delete_challenge(engine, challenge_id)}


# ---------------------------------------------------------------------------
# Play
# ---------------------------------------------------------------------------
@router.get("/flappy/available")
def available_challenges(
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    org_ids = member_service.member_org_ids(engine, roles.user_id)
    return {"challenges": flappy_service.list_available_challenges(engine, org_ids)}


@router.post("/flappy/{challenge_id}/score")
def submit_score(
    challenge_id: str,
    body: ScoreBody,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return flappy_service.submit_flappy_score(engine, challenge_id, roles.user_id, body.score)


@router.get("/flappy/{challenge_id}/leaderboard")
def leaderboard(
    challenge_id: str,
    limit: int | None = None,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return {
        "leaderboard": flappy_service.flappy_leaderboard(engine, challenge_id, roles.user_id, limit),
    }

"""
orgsync.api.routes.coins — Coin balance, history, minigame room and live feed
===============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, Field

from orgsync.api.deps import decode_token, get_current_roles, get_engine
from orgsync.database.engine import run_db
from orgsync.engine.realtime import coin_feed
from orgsync.engine.roles import UserRoles
from orgsync.services import coin_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/coins", tags=["coins"])
realtime_router = APIRouter(prefix="/realtime", tags=["realtime"])


class RoomSave(BaseModel):
    save_data: dict[str, Any] = Field(default_factory=dict)


@router.get("")
def balance(
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return {"user_id": roles.user_id, "coins": coin_service.get_coins(engine, roles.user_id)}


@router.get("/history")
def history(
    limit: int = Query(50, ge=1, le=200),
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return {"history": coin_service.coin_history(engine, roles.user_id, limit)}


@router.get("/room")
def get_room(
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return coin_service.get_room(engine, roles.user_id)


@router.put("/room")
def save_room(
    body: RoomSave,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    return coin_service.save_room(engine, roles.user_id, body.save_data)


# ---------------------------------------------------------------------------
# Live coin counter
# ---------------------------------------------------------------------------
@realtime_router.websocket("/coins")
async def coin_stream(
    websocket: WebSocket,
    token: str = Query(""),
    engine=Depends(get_engine),
):
    """Send the current balance, then every change, as ``{"user_id", "coins"}``."""
    try:
        user_id = decode_token(token)["sub"]
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    queue = coin_feed.subscribe(user_id)

    async def _forward() -> None:
        while True:
            await websocket.send_json(await queue.get())

    forward = asyncio.create_task(_forward())
    try:
        coins = await run_db(coin_service.get_coins, engine, user_id)
        await queue.put({"user_id": user_id, "coins": coins})
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Coin stream for %s disconnected", user_id)
    finally:
        forward.cancel()
        coin_feed.unsubscribe(user_id, queue)

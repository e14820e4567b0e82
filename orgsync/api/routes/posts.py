"""
orgsync.api.routes.posts — Feed, post management and engagement
=================================================================
"""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from orgsync.api.deps import get_current_roles, get_engine, require_edit_org, require_manage_org
from orgsync.engine.roles import UserRoles
from orgsync.services import post_service

router = APIRouter(tags=["posts"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class FormField(BaseModel):
    question: str
    type: str = "text"
    required: bool = False


class PostBody(BaseModel):
    title: str | None = None
    content: str | None = None
    post_type: str | None = None
    visibility: str | None = None
    status: str | None = None
    tags: list[str] | None = None
    media: list[str] | None = None
    is_pinned: bool | None = None
    event_date: date | None = None
    start_time: str | None = None
    end_time: str | None = None
    location: str | None = None
    options: list[str] | None = None
    form_fields: list[FormField] | None = None


class VoteBody(BaseModel):
    option_index: int


class FormResponseBody(BaseModel):
    responses: dict[str, str] = Field(default_factory=dict)


def _org_of(engine, post_id: str) -> str:
    return post_service.get_post(engine, post_id).org_id


# ---------------------------------------------------------------------------
# Feed
# ---------------------------------------------------------------------------
@router.get("/feed")
def feed(
    search: str = "",
    post_type: str | None = None,
    org_id: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    posts = post_service.get_feed(
        engine, roles.user_id, search=search, post_type=post_type, org_id=org_id, limit=limit,
    )
    return {"posts": posts}


# ---------------------------------------------------------------------------
# Management
# ---------------------------------------------------------------------------
@router.get("/organizations/{org_id}/posts")
def list_org_posts(
    org_id: str,
    post_type: str | None = None,
    search: str = "",
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, org_id)
    return {"posts": post_service.list_org_posts(engine, org_id, post_type, search)}


@router.post("/organizations/{org_id}/posts", status_code=201)
def create_post(
    org_id: str,
    body: PostBody,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, org_id)
    post = post_service.create_post(
        engine, author_id=roles.user_id, org_id=org_id, **body.model_dump(exclude_none=True),
    )
    return post_service.post_to_dict(post)


@router.patch("/posts/{post_id}")
def update_post(
    post_id: str,
    body: PostBody,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, _org_of(engine, post_id))
    post = post_service.update_post(engine, post_id, **body.model_dump(exclude_none=True))
    return post_service.post_to_dict(post)


@router.delete("/posts/{post_id}")
def delete_post(
    post_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, _org_of(engine, post_id))
    return {"deleted": post_service.delete_post(engine, post_id)}


@router.post("/posts/{post_id}/pin")
def toggle_pin(
    post_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_edit_org(roles, _org_of(engine, post_id))
    return {"is_pinned": post_service.toggle_pin(engine, post_id)}


@router.get("/posts/{post_id}/responses")
def list_responses(
    post_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    require_manage_org(roles, _org_of(engine, post_id))
    return {"responses": post_service.list_form_responses(engine, post_id)}


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------
@router.post("/posts/{post_id}/view")
def view_post(
    post_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
) -> dict[str, Any]:
    return post_service.record_view(engine, post_id, roles.user_id)


@router.post("/posts/{post_id}/like")
def like_post(
    post_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
) -> dict[str, Any]:
    return post_service.toggle_like(engine, post_id, roles.user_id)


@router.post("/posts/{post_id}/vote")
def vote(
    post_id: str,
    body: VoteBody,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
) -> dict[str, Any]:
    return post_service.vote_poll(engine, post_id, roles.user_id, body.option_index)


@router.get("/posts/{post_id}/poll-results")
def poll_results(
    post_id: str,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
):
    viewer = None if roles.can_manage(_org_of(engine, post_id)) else roles.user_id
    return {"results": post_service.poll_results(engine, post_id, viewer)}


@router.post("/posts/{post_id}/responses")
def submit_response(
    post_id: str,
    body: FormResponseBody,
    roles: UserRoles = Depends(get_current_roles),
    engine=Depends(get_engine),
) -> dict[str, Any]:
    return post_service.submit_form_response(engine, post_id, roles.user_id, body.responses)

"""Territory violations API: request authorization, authorize, deny, justify."""
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from post_scheduler.auth import Principal, get_principal
from post_scheduler.db import get_db
from post_scheduler.routers.errors import raise_http
from post_scheduler.routers.posts_router import ERROR_RESPONSES, post_out
from post_scheduler.schemas.posts import PostOut
from post_scheduler.schemas.violations import JustifyRequest, ViolationsListResponse
from post_scheduler.services import violation_service

router = APIRouter(prefix="/api/violations", tags=["violations"])


@router.get("", response_model=ViolationsListResponse)
async def list_violations(
    status_: Optional[
        Literal["unresolved", "authorization_requested", "authorized", "denied", "justified"]
    ] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> ViolationsListResponse:
    """Author: own violations. Manager: dealership. Admin: all."""
    posts = await violation_service.list_violations(db, principal, status=status_, limit=limit)
    return ViolationsListResponse(items=[post_out(p) for p in posts])


@router.post("/{post_id}/request-authorization", response_model=PostOut, responses=ERROR_RESPONSES)
async def request_authorization(
    post_id: UUID,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> PostOut:
    try:
        post = await violation_service.request_authorization(db, principal, post_id)
    except ValueError as e:
        raise_http(e)
    return post_out(post)


@router.post("/{post_id}/authorize", response_model=PostOut, responses=ERROR_RESPONSES)
async def authorize(
    post_id: UUID,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> PostOut:
    """Manager of the author's dealership (or admin) approves the request."""
    try:
        post = await violation_service.authorize(db, principal, post_id)
    except ValueError as e:
        raise_http(e)
    return post_out(post)


@router.post("/{post_id}/deny", response_model=PostOut, responses=ERROR_RESPONSES)
async def deny(
    post_id: UUID,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> PostOut:
    try:
        post = await violation_service.deny(db, principal, post_id)
    except ValueError as e:
        raise_http(e)
    return post_out(post)


@router.post("/{post_id}/justify", response_model=PostOut, responses=ERROR_RESPONSES)
async def justify(
    post_id: UUID,
    payload: JustifyRequest,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> PostOut:
    """Author explains the out-of-territory post (from unresolved or denied)."""
    try:
        post = await violation_service.justify(db, principal, post_id, payload.justification)
    except ValueError as e:
        raise_http(e)
    return post_out(post)

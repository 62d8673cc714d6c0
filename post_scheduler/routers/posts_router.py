"""Scheduled posts API: schedule, list, edit, delete, mark as posted, audit trail."""
from datetime import datetime, timezone
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from post_scheduler.auth import Principal, get_principal
from post_scheduler.db import get_db
from post_scheduler.models import ScheduledPost
from post_scheduler.routers.errors import raise_http
from post_scheduler.schemas.audit import PostEventOut, PostEventsResponse
from post_scheduler.schemas.common import ErrorResponse, MessageResponse
from post_scheduler.schemas.posts import (
    PostCreateRequest,
    PostOut,
    PostsListResponse,
    PostUpdateRequest,
    ViolationOut,
)
from post_scheduler.services import audit_service, post_service
from post_scheduler.services.post_lifecycle import PostStatus, is_overdue

router = APIRouter(prefix="/api/posts", tags=["posts"])

ERROR_RESPONSES = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def post_out(post: ScheduledPost, now: Optional[datetime] = None) -> PostOut:
    now = now or datetime.now(timezone.utc)
    violation = None
    if post.territory_violation:
        violation = ViolationOut(
            status=post.violation_status,
            justification=post.violation_justification,
            authorization_requested_at=post.authorization_requested_at,
            authorization_granted_by=post.authorization_granted_by,
            authorization_granted_at=post.authorization_granted_at,
        )
    return PostOut(
        id=post.id,
        author_id=post.author_id,
        group_id=post.group_id,
        territory_id=post.territory_id,
        generated_content=post.generated_content,
        post_type=post.post_type,
        special_offer=post.special_offer,
        vehicle_data=post.vehicle_data,
        testimonial_data=post.testimonial_data,
        special_context=post.special_context,
        scheduled_for=post.scheduled_for,
        status=post.status,
        overdue=is_overdue(PostStatus(post.status), post.scheduled_for, now),
        posted_at=post.posted_at,
        created_at=post.created_at,
        updated_at=post.updated_at,
        reminder_sent=bool(post.reminder_sent),
        reminder_sent_at=post.reminder_sent_at,
        reminder_attempts=post.reminder_attempts or 0,
        reminder_last_error=post.reminder_last_error,
        reminder_dispatched_at=post.reminder_dispatched_at,
        territory_violation=post.territory_violation,
        violation=violation,
    )


@router.post("", response_model=PostOut, status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
async def create_post(
    payload: PostCreateRequest,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> PostOut:
    """Schedule a post; out-of-territory groups are flagged as an unresolved violation."""
    try:
        post = await post_service.create_post(db, principal, **payload.model_dump())
    except ValueError as e:
        raise_http(e)
    return post_out(post)


@router.get("", response_model=PostsListResponse)
async def list_posts(
    status_: Optional[Literal["pending", "ready", "posted", "failed"]] = Query(None, alias="status"),
    overdue: Optional[bool] = Query(None, description="Only (not) overdue posts"),
    violations_only: bool = Query(False, description="Only territory violations"),
    author_id: Optional[UUID] = Query(None),
    from_: Optional[datetime] = Query(None, alias="from", description="scheduled_for >= from (ISO)"),
    to: Optional[datetime] = Query(None, description="scheduled_for <= to (ISO)"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> PostsListResponse:
    """Posts visible to the caller: own, dealership (manager) or all (admin)."""
    now = datetime.now(timezone.utc)
    posts = await post_service.list_posts(
        db,
        principal,
        status=status_,
        overdue=overdue,
        violations_only=violations_only,
        author_id=author_id,
        from_date=from_,
        to_date=to,
        limit=limit,
        offset=offset,
        now=now,
    )
    return PostsListResponse(items=[post_out(p, now) for p in posts])


@router.get("/{post_id}", response_model=PostOut, responses=ERROR_RESPONSES)
async def get_post(
    post_id: UUID,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> PostOut:
    try:
        post = await post_service.get_post(db, principal, post_id)
    except ValueError as e:
        raise_http(e)
    return post_out(post)


@router.patch("/{post_id}", response_model=PostOut, responses=ERROR_RESPONSES)
async def update_post(
    post_id: UUID,
    payload: PostUpdateRequest,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> PostOut:
    """Author edit while pending/ready. The territory check runs again on every edit."""
    try:
        post = await post_service.update_post(db, principal, post_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise_http(e)
    return post_out(post)


@router.delete("/{post_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_post(
    post_id: UUID,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await post_service.delete_post(db, principal, post_id)
    except ValueError as e:
        raise_http(e)
    return MessageResponse(message="deleted")


@router.post("/{post_id}/mark-posted", response_model=PostOut, responses=ERROR_RESPONSES)
async def mark_posted(
    post_id: UUID,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> PostOut:
    """Author confirms the post went out on Facebook."""
    try:
        post = await post_service.mark_posted(db, principal, post_id)
    except ValueError as e:
        raise_http(e)
    return post_out(post)


@router.get("/{post_id}/events", response_model=PostEventsResponse, responses=ERROR_RESPONSES)
async def get_post_events(
    post_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> PostEventsResponse:
    """Audit trail of a post, newest first."""
    try:
        await post_service.get_post(db, principal, post_id)
    except ValueError as e:
        raise_http(e)
    events = await audit_service.list_post_events(db, post_id=post_id, limit=limit)
    return PostEventsResponse(
        post_id=post_id,
        events=[
            PostEventOut(
                id=ev.id,
                post_id=ev.post_id,
                actor_id=ev.actor_id,
                event_type=ev.event_type,
                metadata=ev.metadata_,
                created_at=ev.created_at,
            )
            for ev in events
        ],
    )

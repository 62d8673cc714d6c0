"""
Territory violation workflow: request authorization, authorize/deny (manager), justify.
Transitions are validated by territory_compliance.ViolationState; this module loads,
checks who is acting, persists and writes the audit trail.
"""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from post_scheduler.auth import Principal
from post_scheduler.logging_config import get_logger
from post_scheduler.models import Profile, ScheduledPost
from post_scheduler.services import audit_service
from post_scheduler.services.post_service import (
    can_view,
    load_post,
    store_violation_state,
    violation_state_of,
    visibility_filter,
)
from post_scheduler.services.territory_compliance import ActorRole, ViolationAction

logger = get_logger(__name__)

EVENT_BY_ACTION = {
    ViolationAction.REQUEST_AUTHORIZATION: audit_service.AUTHORIZATION_REQUESTED,
    ViolationAction.AUTHORIZE: audit_service.AUTHORIZATION_GRANTED,
    ViolationAction.DENY: audit_service.AUTHORIZATION_DENIED,
    ViolationAction.JUSTIFY: audit_service.VIOLATION_JUSTIFIED,
}


def _actor_role(principal: Principal, post: ScheduledPost, author_dealership_id: Optional[UUID]) -> ActorRole:
    """
    Role the principal acts in for this post.
    The author is always AUTHOR, so nobody reviews their own violation.
    """
    if post.author_id == principal.profile_id:
        return ActorRole.AUTHOR
    if principal.manages(author_dealership_id):
        return ActorRole.MANAGER
    raise ValueError("violation_action_forbidden")


async def _apply(
    db: AsyncSession,
    principal: Principal,
    post_id: UUID,
    action: ViolationAction,
    justification: Optional[str] = None,
) -> ScheduledPost:
    post, dealership_id = await load_post(db, post_id)
    if not can_view(principal, post, dealership_id):
        raise ValueError("post_not_found")
    state = violation_state_of(post)
    if state is None:
        raise ValueError("post_not_violating")

    role = _actor_role(principal, post, dealership_id)
    now = datetime.now(timezone.utc)
    new_state = state.apply(action, role, principal.profile_id, now, justification=justification)
    store_violation_state(post, new_state)
    await db.flush()

    metadata = {"from": state.status.value, "to": new_state.status.value}
    if action == ViolationAction.JUSTIFY:
        metadata["justification"] = new_state.justification
    await audit_service.log_post_event(
        db,
        post_id=post.id,
        event_type=EVENT_BY_ACTION[action],
        actor_id=principal.profile_id,
        metadata_=metadata,
    )
    logger.info(
        "violation.transition",
        post_id=str(post.id),
        action=action.value,
        status=new_state.status.value,
        actor_id=str(principal.profile_id),
    )
    return post


async def request_authorization(db: AsyncSession, principal: Principal, post_id: UUID) -> ScheduledPost:
    """Author asks a manager to approve the out-of-territory post."""
    return await _apply(db, principal, post_id, ViolationAction.REQUEST_AUTHORIZATION)


async def authorize(db: AsyncSession, principal: Principal, post_id: UUID) -> ScheduledPost:
    """Manager of the author's dealership (or admin) approves a pending request."""
    return await _apply(db, principal, post_id, ViolationAction.AUTHORIZE)


async def deny(db: AsyncSession, principal: Principal, post_id: UUID) -> ScheduledPost:
    return await _apply(db, principal, post_id, ViolationAction.DENY)


async def justify(db: AsyncSession, principal: Principal, post_id: UUID, text: str) -> ScheduledPost:
    """Author explains the violation; allowed from unresolved or after a denial."""
    return await _apply(db, principal, post_id, ViolationAction.JUSTIFY, justification=text)


async def list_violations(
    db: AsyncSession,
    principal: Principal,
    status: Optional[str] = None,
    limit: int = 100,
) -> List[ScheduledPost]:
    """Violating posts visible to the principal, most recent schedule first."""
    q = (
        select(ScheduledPost)
        .join(Profile, ScheduledPost.author_id == Profile.id)
        .where(ScheduledPost.territory_violation.is_(True))
    )
    clause = visibility_filter(principal)
    if clause is not None:
        q = q.where(clause)
    if status:
        q = q.where(ScheduledPost.violation_status == status)
    q = q.order_by(ScheduledPost.scheduled_for.desc()).limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())

"""
Scheduled posts: create, read, edit, delete, mark as posted.
Violation is evaluated against the author's CURRENT territory assignments on every
create/edit; nothing about territories is cached on the post except the group's
territory at the time of the last edit.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy import Select, and_, not_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from post_scheduler.auth import Principal
from post_scheduler.db_types import ensure_utc
from post_scheduler.logging_config import get_logger
from post_scheduler.models import FacebookGroup, PostEvent, Profile, ProfileTerritory, ScheduledPost
from post_scheduler.services import audit_service
from post_scheduler.services.post_lifecycle import PostStatus, ensure_editable, transition
from post_scheduler.services.territory_compliance import (
    ViolationState,
    ViolationStatus,
    evaluate_violation,
    flag,
    reconcile,
)

logger = get_logger(__name__)

# Fields the author may change on edit.
EDITABLE_FIELDS = (
    "generated_content",
    "scheduled_for",
    "group_id",
    "post_type",
    "special_offer",
    "vehicle_data",
    "testimonial_data",
    "special_context",
)


def violation_state_of(post: ScheduledPost) -> Optional[ViolationState]:
    """Violation record of a post as a value object; None when not violating."""
    if not post.territory_violation:
        return None
    return ViolationState(
        status=ViolationStatus(post.violation_status or ViolationStatus.UNRESOLVED.value),
        justification=post.violation_justification,
        authorization_requested_at=post.authorization_requested_at,
        authorization_granted_by=post.authorization_granted_by,
        authorization_granted_at=post.authorization_granted_at,
    )


def store_violation_state(post: ScheduledPost, state: Optional[ViolationState]) -> None:
    """Write a violation record back to the row. None wipes every violation field."""
    if state is None:
        post.territory_violation = False
        post.violation_status = None
        post.violation_justification = None
        post.authorization_requested_at = None
        post.authorization_granted_by = None
        post.authorization_granted_at = None
        return
    post.territory_violation = True
    post.violation_status = state.status.value
    post.violation_justification = state.justification
    post.authorization_requested_at = state.authorization_requested_at
    post.authorization_granted_by = state.authorization_granted_by
    post.authorization_granted_at = state.authorization_granted_at


async def get_author_territory_ids(db: AsyncSession, author_id: UUID) -> Set[UUID]:
    """All territories assigned to the author (primary or not)."""
    r = await db.execute(
        select(ProfileTerritory.territory_id).where(ProfileTerritory.profile_id == author_id)
    )
    return set(r.scalars().all())


async def _get_group(db: AsyncSession, group_id: UUID) -> FacebookGroup:
    r = await db.execute(select(FacebookGroup).where(FacebookGroup.id == group_id))
    group = r.scalar_one_or_none()
    if not group:
        raise ValueError("group_not_found")
    if not group.is_active:
        raise ValueError("group_inactive")
    return group


def visibility_filter(principal: Principal) -> Optional[Any]:
    """
    WHERE clause of posts the principal may read (query must join Profile on the author).
    Author: own posts. Manager: own + authors of the same dealership. Admin: all (None).
    """
    if principal.is_admin:
        return None
    own = ScheduledPost.author_id == principal.profile_id
    if principal.is_manager and principal.dealership_id is not None:
        return or_(own, Profile.dealership_id == principal.dealership_id)
    return own


def _visible_posts_query(principal: Principal) -> Select:
    q = select(ScheduledPost).join(Profile, ScheduledPost.author_id == Profile.id)
    clause = visibility_filter(principal)
    if clause is not None:
        q = q.where(clause)
    return q


async def load_post(db: AsyncSession, post_id: UUID) -> Tuple[ScheduledPost, Optional[UUID]]:
    """Post and its author's dealership id. Raises post_not_found."""
    r = await db.execute(
        select(ScheduledPost, Profile.dealership_id)
        .join(Profile, ScheduledPost.author_id == Profile.id)
        .where(ScheduledPost.id == post_id)
    )
    row = r.one_or_none()
    if row is None:
        raise ValueError("post_not_found")
    return row[0], row[1]


def can_view(principal: Principal, post: ScheduledPost, author_dealership_id: Optional[UUID]) -> bool:
    if post.author_id == principal.profile_id:
        return True
    return principal.manages(author_dealership_id)


def ensure_author(principal: Principal, post: ScheduledPost) -> None:
    if post.author_id != principal.profile_id:
        raise ValueError("not_post_author")


async def get_post(db: AsyncSession, principal: Principal, post_id: UUID) -> ScheduledPost:
    """Post visible to the principal. Invisible posts are reported as not found."""
    post, dealership_id = await load_post(db, post_id)
    if not can_view(principal, post, dealership_id):
        raise ValueError("post_not_found")
    return post


async def list_posts(
    db: AsyncSession,
    principal: Principal,
    status: Optional[str] = None,
    overdue: Optional[bool] = None,
    violations_only: bool = False,
    author_id: Optional[UUID] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
    now: Optional[datetime] = None,
) -> List[ScheduledPost]:
    """Visible posts ordered by scheduled_for. overdue filters on the derived view."""
    now = now or datetime.now(timezone.utc)
    q = _visible_posts_query(principal)
    if status:
        q = q.where(ScheduledPost.status == status)
    if author_id:
        q = q.where(ScheduledPost.author_id == author_id)
    if violations_only:
        q = q.where(ScheduledPost.territory_violation.is_(True))
    if from_date is not None:
        q = q.where(ScheduledPost.scheduled_for >= ensure_utc(from_date))
    if to_date is not None:
        q = q.where(ScheduledPost.scheduled_for <= ensure_utc(to_date))
    if overdue is True:
        q = q.where(_overdue_clause(now))
    elif overdue is False:
        q = q.where(not_(_overdue_clause(now)))
    q = q.order_by(ScheduledPost.scheduled_for.asc(), ScheduledPost.id).limit(limit).offset(offset)
    r = await db.execute(q)
    return list(r.scalars().all())


async def create_post(
    db: AsyncSession,
    principal: Principal,
    group_id: UUID,
    scheduled_for: datetime,
    generated_content: Optional[str] = None,
    post_type: str = "brand_awareness",
    special_offer: Optional[str] = None,
    vehicle_data: Optional[Dict[str, Any]] = None,
    testimonial_data: Optional[Dict[str, Any]] = None,
    special_context: Optional[str] = None,
) -> ScheduledPost:
    """Schedule a post for the principal; flags a territory violation when the group is outside their territories."""
    group = await _get_group(db, group_id)
    territory_ids = await get_author_territory_ids(db, principal.profile_id)
    is_violation = evaluate_violation(territory_ids, group.territory_id)

    post = ScheduledPost(
        author_id=principal.profile_id,
        group_id=group.id,
        territory_id=group.territory_id,
        generated_content=generated_content,
        post_type=post_type,
        special_offer=special_offer,
        vehicle_data=vehicle_data,
        testimonial_data=testimonial_data,
        special_context=special_context,
        scheduled_for=ensure_utc(scheduled_for),
        status=PostStatus.PENDING.value,
        reminder_sent=False,
        reminder_attempts=0,
    )
    store_violation_state(post, flag() if is_violation else None)
    db.add(post)
    await db.flush()

    await audit_service.log_post_event(
        db,
        post_id=post.id,
        event_type=audit_service.POST_CREATED,
        actor_id=principal.profile_id,
        metadata_={"group_id": str(group.id), "scheduled_for": post.scheduled_for.isoformat()},
    )
    if is_violation:
        await audit_service.log_post_event(
            db,
            post_id=post.id,
            event_type=audit_service.VIOLATION_FLAGGED,
            actor_id=principal.profile_id,
            metadata_={"group_territory_id": str(group.territory_id)},
        )
    logger.info(
        "post.created",
        post_id=str(post.id),
        author_id=str(principal.profile_id),
        territory_violation=is_violation,
    )
    return post


async def update_post(
    db: AsyncSession,
    principal: Principal,
    post_id: UUID,
    changes: Dict[str, Any],
) -> ScheduledPost:
    """
    Author edit of a pending/ready post. Territory violation is re-evaluated on every edit.
    Rescheduling never re-arms a reminder that was already sent.
    """
    post = await get_post(db, principal, post_id)
    ensure_author(principal, post)
    ensure_editable(PostStatus(post.status))

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError("field_not_editable")

    old_group_id = post.group_id
    new_group_id = changes.get("group_id") or old_group_id
    group_changed = new_group_id != old_group_id
    if group_changed:
        group = await _get_group(db, new_group_id)
    else:
        r = await db.execute(select(FacebookGroup).where(FacebookGroup.id == old_group_id))
        group = r.scalar_one()

    for field, value in changes.items():
        if field == "group_id":
            continue
        if field == "scheduled_for":
            if value is None:
                raise ValueError("scheduled_for_required")
            value = ensure_utc(value)
        setattr(post, field, value)
    post.group_id = group.id
    post.territory_id = group.territory_id

    territory_ids = await get_author_territory_ids(db, post.author_id)
    is_violation = evaluate_violation(territory_ids, group.territory_id)
    before = violation_state_of(post)
    after = reconcile(before, is_violation, group_changed)
    store_violation_state(post, after)
    await db.flush()

    await audit_service.log_post_event(
        db,
        post_id=post.id,
        event_type=audit_service.POST_EDITED,
        actor_id=principal.profile_id,
        metadata_={"fields": sorted(changes)},
    )
    if before is not None and after is None:
        await audit_service.log_post_event(
            db,
            post_id=post.id,
            event_type=audit_service.VIOLATION_CLEARED,
            actor_id=principal.profile_id,
            metadata_={"previous_status": before.status.value},
        )
    elif after is not None and after is not before:
        await audit_service.log_post_event(
            db,
            post_id=post.id,
            event_type=audit_service.VIOLATION_FLAGGED,
            actor_id=principal.profile_id,
            metadata_={"group_territory_id": str(group.territory_id)},
        )
    logger.info(
        "post.updated",
        post_id=str(post.id),
        fields=sorted(changes),
        territory_violation=post.territory_violation,
    )
    return post


async def delete_post(db: AsyncSession, principal: Principal, post_id: UUID) -> None:
    """Hard delete by the author. Posted posts are kept. The audit trail survives with post_id unset."""
    post = await get_post(db, principal, post_id)
    ensure_author(principal, post)
    transition(PostStatus(post.status), PostStatus.DELETED)

    await db.execute(
        update(PostEvent).where(PostEvent.post_id == post.id).values(post_id=None)
    )
    await audit_service.log_post_event(
        db,
        post_id=None,
        event_type=audit_service.POST_DELETED,
        actor_id=principal.profile_id,
        metadata_={"post_id": str(post.id), "status": post.status},
    )
    await db.delete(post)
    await db.flush()
    logger.info("post.deleted", post_id=str(post_id), author_id=str(principal.profile_id))


async def mark_posted(db: AsyncSession, principal: Principal, post_id: UUID) -> ScheduledPost:
    """Author confirms publication. Allowed whether or not a reminder fired."""
    post = await get_post(db, principal, post_id)
    ensure_author(principal, post)
    post.status = transition(PostStatus(post.status), PostStatus.POSTED).value
    post.posted_at = datetime.now(timezone.utc)
    await db.flush()

    await audit_service.log_post_event(
        db,
        post_id=post.id,
        event_type=audit_service.POST_MARKED_POSTED,
        actor_id=principal.profile_id,
        metadata_={"posted_at": post.posted_at.isoformat()},
    )
    logger.info("post.marked_posted", post_id=str(post.id))
    return post


def _overdue_clause(now: datetime) -> Any:
    return and_(ScheduledPost.scheduled_for < now, ScheduledPost.status != PostStatus.POSTED.value)

"""
Audit log of scheduled posts (post_events).
Every lifecycle, compliance and reminder mutation writes one row; actor None = SYSTEM.
"""
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from post_scheduler.models import PostEvent

POST_CREATED = "POST_CREATED"
POST_EDITED = "POST_EDITED"
POST_DELETED = "POST_DELETED"
POST_MARKED_POSTED = "POST_MARKED_POSTED"
VIOLATION_FLAGGED = "VIOLATION_FLAGGED"
VIOLATION_CLEARED = "VIOLATION_CLEARED"
AUTHORIZATION_REQUESTED = "AUTHORIZATION_REQUESTED"
AUTHORIZATION_GRANTED = "AUTHORIZATION_GRANTED"
AUTHORIZATION_DENIED = "AUTHORIZATION_DENIED"
VIOLATION_JUSTIFIED = "VIOLATION_JUSTIFIED"
REMINDER_SENT = "REMINDER_SENT"
REMINDER_FAILED = "REMINDER_FAILED"
REMINDER_GAVE_UP = "REMINDER_GAVE_UP"
REMINDER_DELIVERY_UNKNOWN = "REMINDER_DELIVERY_UNKNOWN"


async def log_post_event(
    db: AsyncSession,
    post_id: Optional[UUID],
    event_type: str,
    actor_id: Optional[UUID] = None,
    metadata_: Optional[Dict[str, Any]] = None,
) -> PostEvent:
    """Add one audit row to the session and flush."""
    ev = PostEvent(
        post_id=post_id,
        actor_id=actor_id,
        event_type=event_type,
        metadata_=metadata_ or {},
    )
    db.add(ev)
    await db.flush()
    return ev


async def list_post_events(
    db: AsyncSession,
    post_id: UUID,
    limit: int = 50,
) -> List[PostEvent]:
    """Events of one post, newest first."""
    q = (
        select(PostEvent)
        .where(PostEvent.post_id == post_id)
        .order_by(PostEvent.created_at.desc())
        .limit(limit)
    )
    r = await db.execute(q)
    return list(r.scalars().all())

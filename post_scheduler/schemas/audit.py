"""Audit event schemas."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel


class PostEventOut(BaseModel):
    """One audit row; actor_id is null for the reminder scheduler."""

    id: UUID
    post_id: Optional[UUID] = None
    actor_id: Optional[UUID] = None
    event_type: str
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime


class PostEventsResponse(BaseModel):
    """Response for GET /api/posts/{post_id}/events."""

    post_id: UUID
    events: List[PostEventOut]

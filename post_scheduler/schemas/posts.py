"""Scheduled post request/response schemas."""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

PostType = Literal["brand_awareness", "vehicle_spotlight", "special_offer", "community", "testimonial_style"]


class PostCreateRequest(BaseModel):
    """Body for POST /api/posts. Naive datetimes are taken as UTC."""

    group_id: UUID = Field(..., description="Facebook group UUID")
    scheduled_for: datetime = Field(..., description="When the post should go out (ISO 8601)")
    generated_content: Optional[str] = Field(None, description="Post copy; generated before the reminder when empty")
    post_type: PostType = "brand_awareness"
    special_offer: Optional[str] = None
    vehicle_data: Optional[Dict[str, Any]] = None
    testimonial_data: Optional[Dict[str, Any]] = None
    special_context: Optional[str] = None


class PostUpdateRequest(BaseModel):
    """Body for PATCH /api/posts/{post_id}. Only fields that are sent are changed."""

    group_id: Optional[UUID] = None
    scheduled_for: Optional[datetime] = None
    generated_content: Optional[str] = None
    post_type: Optional[PostType] = None
    special_offer: Optional[str] = None
    vehicle_data: Optional[Dict[str, Any]] = None
    testimonial_data: Optional[Dict[str, Any]] = None
    special_context: Optional[str] = None

    @model_validator(mode="after")
    def _required_fields_not_null(self) -> "PostUpdateRequest":
        for name in ("group_id", "scheduled_for", "post_type"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class ViolationOut(BaseModel):
    """Violation record of a post; absent for in-territory posts."""

    status: str
    justification: Optional[str] = None
    authorization_requested_at: Optional[datetime] = None
    authorization_granted_by: Optional[UUID] = None
    authorization_granted_at: Optional[datetime] = None


class PostOut(BaseModel):
    """One scheduled post; overdue is derived at read time."""

    id: UUID
    author_id: UUID
    group_id: UUID
    territory_id: Optional[UUID] = None
    generated_content: Optional[str] = None
    post_type: str
    special_offer: Optional[str] = None
    vehicle_data: Optional[Dict[str, Any]] = None
    testimonial_data: Optional[Dict[str, Any]] = None
    special_context: Optional[str] = None
    scheduled_for: datetime
    status: str
    overdue: bool
    posted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    reminder_sent: bool
    reminder_sent_at: Optional[datetime] = None
    reminder_attempts: int = 0
    reminder_last_error: Optional[str] = None
    reminder_dispatched_at: Optional[datetime] = None
    territory_violation: bool
    violation: Optional[ViolationOut] = None


class PostsListResponse(BaseModel):
    """Response for GET /api/posts."""

    items: List[PostOut]

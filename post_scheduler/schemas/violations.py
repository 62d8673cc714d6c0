"""Territory violation workflow schemas."""
from typing import List

from pydantic import BaseModel, Field

from post_scheduler.schemas.posts import PostOut


class JustifyRequest(BaseModel):
    """Body for POST /api/violations/{post_id}/justify."""

    justification: str = Field(..., min_length=1, max_length=2000, description="Why the out-of-territory post stands")


class ViolationsListResponse(BaseModel):
    """Response for GET /api/violations."""

    items: List[PostOut]

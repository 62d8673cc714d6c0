"""Common schemas (errors, messages)."""
from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body produced by HTTPException."""

    detail: str = Field(..., description="Error message")
    code: Optional[str] = Field(None, description="Stable error code")


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str = Field(..., description="Message text")

"""Pydantic request/response schemas."""
from post_scheduler.schemas.common import ErrorResponse, MessageResponse
from post_scheduler.schemas.posts import (
    PostCreateRequest,
    PostOut,
    PostsListResponse,
    PostUpdateRequest,
    ViolationOut,
)
from post_scheduler.schemas.violations import JustifyRequest, ViolationsListResponse
from post_scheduler.schemas.compliance import (
    AuthorComplianceOut,
    ComplianceSummaryOut,
    DealershipComplianceOut,
)
from post_scheduler.schemas.scheduler import (
    ReminderRunOut,
    ReminderRunsResponse,
    ReminderTriggerResponse,
    SchedulerStatusResponse,
)
from post_scheduler.schemas.audit import PostEventOut, PostEventsResponse

__all__ = [
    "ErrorResponse",
    "MessageResponse",
    "PostCreateRequest",
    "PostOut",
    "PostsListResponse",
    "PostUpdateRequest",
    "ViolationOut",
    "JustifyRequest",
    "ViolationsListResponse",
    "AuthorComplianceOut",
    "ComplianceSummaryOut",
    "DealershipComplianceOut",
    "ReminderRunOut",
    "ReminderRunsResponse",
    "ReminderTriggerResponse",
    "SchedulerStatusResponse",
    "PostEventOut",
    "PostEventsResponse",
]

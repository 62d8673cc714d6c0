"""
Scheduled post lifecycle: pending -> ready -> posted, failed/deleted terminal-ish.
overdue is derived (never stored). Pure logic, no I/O.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional

from post_scheduler.db_types import ensure_utc


class PostStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    POSTED = "posted"
    FAILED = "failed"
    DELETED = "deleted"


TRANSITIONS: Dict[PostStatus, FrozenSet[PostStatus]] = {
    PostStatus.PENDING: frozenset({PostStatus.READY, PostStatus.POSTED, PostStatus.FAILED, PostStatus.DELETED}),
    PostStatus.READY: frozenset({PostStatus.POSTED, PostStatus.DELETED}),
    # failed = the reminder pipeline gave up; the author can still post or delete.
    PostStatus.FAILED: frozenset({PostStatus.POSTED, PostStatus.DELETED}),
    PostStatus.POSTED: frozenset(),
    PostStatus.DELETED: frozenset(),
}

EDITABLE = frozenset({PostStatus.PENDING, PostStatus.READY})
# Statuses the reminder scheduler considers.
REMINDABLE = frozenset({PostStatus.PENDING, PostStatus.READY})
OPEN = frozenset({PostStatus.PENDING, PostStatus.READY, PostStatus.FAILED})


class LifecycleTransitionError(ValueError):
    """Illegal status change. str(e) is the error code."""

    def __init__(self, code: str, current: PostStatus, target: Optional[PostStatus] = None) -> None:
        super().__init__(code)
        self.code = code
        self.current = current
        self.target = target


def can_transition(current: PostStatus, target: PostStatus) -> bool:
    return target in TRANSITIONS[current]


def transition(current: PostStatus, target: PostStatus) -> PostStatus:
    """Validate current -> target and return target."""
    if not can_transition(current, target):
        raise LifecycleTransitionError("illegal_transition", current, target)
    return target


def mark_ready(current: PostStatus) -> bool:
    """
    Scheduler step after a successful reminder. Returns True if status must change,
    False when already ready (idempotent re-entry).
    """
    if current == PostStatus.READY:
        return False
    transition(current, PostStatus.READY)
    return True


def can_edit(status: PostStatus) -> bool:
    return status in EDITABLE


def ensure_editable(status: PostStatus) -> None:
    if not can_edit(status):
        raise LifecycleTransitionError("post_not_editable", status)


def is_overdue(status: PostStatus, scheduled_for: datetime, now: datetime) -> bool:
    """Past its time and not yet posted. Display/filtering only, gates nothing."""
    if status in (PostStatus.POSTED, PostStatus.DELETED):
        return False
    return ensure_utc(scheduled_for) < ensure_utc(now)

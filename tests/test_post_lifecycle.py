"""Post lifecycle: transition table, idempotent ready, edit window, derived overdue."""
from datetime import datetime, timedelta, timezone

import pytest

from post_scheduler.services.post_lifecycle import (
    LifecycleTransitionError,
    PostStatus,
    can_edit,
    can_transition,
    ensure_editable,
    is_overdue,
    mark_ready,
    transition,
)

NOW = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "current,target",
    [
        (PostStatus.PENDING, PostStatus.READY),
        (PostStatus.PENDING, PostStatus.POSTED),
        (PostStatus.READY, PostStatus.POSTED),
        (PostStatus.FAILED, PostStatus.POSTED),
        (PostStatus.PENDING, PostStatus.DELETED),
        (PostStatus.READY, PostStatus.DELETED),
        (PostStatus.FAILED, PostStatus.DELETED),
    ],
)
def test_legal_transitions(current: PostStatus, target: PostStatus) -> None:
    assert transition(current, target) == target


def test_posted_and_deleted_are_final() -> None:
    for terminal in (PostStatus.POSTED, PostStatus.DELETED):
        for target in PostStatus:
            assert not can_transition(terminal, target)


def test_ready_never_goes_back_to_pending() -> None:
    with pytest.raises(LifecycleTransitionError) as exc:
        transition(PostStatus.READY, PostStatus.PENDING)
    assert str(exc.value) == "illegal_transition"
    assert exc.value.current == PostStatus.READY
    assert exc.value.target == PostStatus.PENDING


def test_mark_ready_is_idempotent() -> None:
    assert mark_ready(PostStatus.PENDING) is True
    assert mark_ready(PostStatus.READY) is False
    with pytest.raises(LifecycleTransitionError):
        mark_ready(PostStatus.POSTED)


def test_edit_window() -> None:
    assert can_edit(PostStatus.PENDING)
    assert can_edit(PostStatus.READY)
    assert not can_edit(PostStatus.FAILED)
    with pytest.raises(LifecycleTransitionError) as exc:
        ensure_editable(PostStatus.POSTED)
    assert exc.value.code == "post_not_editable"


def test_overdue_is_derived() -> None:
    past = NOW - timedelta(minutes=1)
    future = NOW + timedelta(minutes=1)
    assert is_overdue(PostStatus.PENDING, past, NOW)
    assert is_overdue(PostStatus.READY, past, NOW)
    assert is_overdue(PostStatus.FAILED, past, NOW)
    assert not is_overdue(PostStatus.POSTED, past, NOW)
    assert not is_overdue(PostStatus.PENDING, future, NOW)


def test_overdue_accepts_naive_utc() -> None:
    naive_past = (NOW - timedelta(hours=1)).replace(tzinfo=None)
    assert is_overdue(PostStatus.PENDING, naive_past, NOW)

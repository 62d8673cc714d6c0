"""
Reminder scheduler: one email per scheduled post, shortly before it is due.

A run selects posts with status pending/ready, reminder not sent and scheduled_for
before now + REMINDER_LEAD_MINUTES (past posts included, optional staleness cutoff),
then for each post:

    claim (conditional UPDATE, rowcount 1 = ours) -> generate copy if missing
    -> mark dispatched (guarded by the claim token) -> send
    -> success: reminder_sent = true, pending -> ready      (guarded by the claim token)
    -> failure: claim and dispatch mark released, attempts + 1,
                pending -> failed at REMINDER_MAX_ATTEMPTS
    -> unknown outcome (send timed out or Resend may have accepted it): claim released,
                dispatch mark kept, never retried

reminder_sent only ever goes false -> true; the claim lives in reminder_claim_token /
reminder_claimed_at and may be taken over once older than REMINDER_CLAIM_TTL_SECONDS,
unless reminder_dispatched_at is set. Claims are stamped with the time they are taken.
Runs may overlap (external cron + in-process loop); the claim makes that safe.

Triggered by GET|POST /api/cron/send-notifications or, with SCHEDULER_ENABLED, by the
in-process loop started from the app lifespan.
"""
import asyncio
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import structlog
from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from post_scheduler.config import Settings, get_settings
from post_scheduler.db import async_session_factory, session_scope
from post_scheduler.logging_config import get_logger
from post_scheduler.models import FacebookGroup, Profile, ReminderRun, ScheduledPost, Territory
from post_scheduler.services import audit_service
from post_scheduler.services.content_generation import GenerationRequest
from post_scheduler.services.dispatch_client import (
    DeliveryUnknownError,
    DispatchClient,
    DispatchConfigurationError,
    ReminderMessage,
)
from post_scheduler.services.post_lifecycle import REMINDABLE, PostStatus, can_transition

logger = get_logger(__name__)

ERROR_MAX_LENGTH = 1000

REMINDABLE_STATUSES = sorted(s.value for s in REMINDABLE)
# Statuses a successful reminder moves to ready / an exhausted one moves to failed.
READYABLE_STATUSES = sorted(s.value for s in REMINDABLE if can_transition(s, PostStatus.READY))
FAILABLE_STATUSES = sorted(s.value for s in REMINDABLE if can_transition(s, PostStatus.FAILED))

_scheduler_task: Optional[asyncio.Task[None]] = None
_stop_event: Optional[asyncio.Event] = None
_last_tick_at: Optional[datetime] = None
_last_summary: Optional["ReminderRunSummary"] = None
_enabled = False


class DataError(Exception):
    """Candidate query failed; nothing was claimed or sent."""


@dataclass(frozen=True)
class ReminderCandidate:
    """Post + author + group + territory, loaded with one typed join."""

    post_id: uuid.UUID
    scheduled_for: datetime
    status: str
    generated_content: Optional[str]
    post_type: str
    special_offer: Optional[str]
    vehicle_data: Optional[Dict[str, Any]]
    testimonial_data: Optional[Dict[str, Any]]
    special_context: Optional[str]
    author_email: Optional[str]
    author_name: Optional[str]
    group_name: Optional[str]
    group_url: Optional[str]
    group_description: Optional[str]
    territory_name: Optional[str]

    @property
    def needs_content(self) -> bool:
        return not (self.generated_content or "").strip()

    def generation_request(self) -> GenerationRequest:
        return GenerationRequest(
            group_name=self.group_name or "your group",
            post_type=self.post_type or "brand_awareness",
            territory_name=self.territory_name,
            group_description=self.group_description,
            special_offer=self.special_offer,
            vehicle_data=self.vehicle_data,
            testimonial_data=self.testimonial_data,
            special_context=self.special_context,
        )

    def message(self, content: str) -> ReminderMessage:
        return ReminderMessage(
            post_id=self.post_id,
            recipient=self.author_email,
            full_name=self.author_name,
            group_name=self.group_name,
            group_url=self.group_url,
            scheduled_for=self.scheduled_for,
            content=content,
        )


@dataclass
class ReminderRunSummary:
    """Per-run counts, for observability only."""

    run_id: uuid.UUID = field(default_factory=uuid.uuid4)
    trigger: str = "http"
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    found: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    deferred: int = 0
    stale: int = 0
    error: Optional[str] = None

    def count(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def run_clock(now: datetime) -> Callable[[], datetime]:
    """The run's now, advanced by the wall time elapsed since this call."""
    started = time.monotonic()
    return lambda: now + timedelta(seconds=time.monotonic() - started)


def _not_sent():
    return or_(ScheduledPost.reminder_sent.is_(None), ScheduledPost.reminder_sent.is_(False))


def _not_dispatched():
    return ScheduledPost.reminder_dispatched_at.is_(None)


def _claim_free(now: datetime, ttl_seconds: int):
    return or_(
        ScheduledPost.reminder_claim_token.is_(None),
        ScheduledPost.reminder_claimed_at < now - timedelta(seconds=ttl_seconds),
    )


def _due_filters(now: datetime, settings: Settings) -> List[Any]:
    """Window: scheduled_for < now + lead (exclusive), no lower bound except the staleness cutoff."""
    filters = [
        ScheduledPost.status.in_(REMINDABLE_STATUSES),
        _not_sent(),
        _not_dispatched(),
        ScheduledPost.scheduled_for < now + timedelta(minutes=settings.reminder_lead_minutes),
    ]
    if settings.reminder_stale_after_minutes:
        filters.append(
            ScheduledPost.scheduled_for >= now - timedelta(minutes=settings.reminder_stale_after_minutes)
        )
    return filters


async def find_candidates(db: AsyncSession, now: datetime, settings: Settings) -> List[ReminderCandidate]:
    """Due, unsent, unclaimed posts in scheduled_for order, at most REMINDER_BATCH_LIMIT."""
    q = (
        select(
            ScheduledPost.id,
            ScheduledPost.scheduled_for,
            ScheduledPost.status,
            ScheduledPost.generated_content,
            ScheduledPost.post_type,
            ScheduledPost.special_offer,
            ScheduledPost.vehicle_data,
            ScheduledPost.testimonial_data,
            ScheduledPost.special_context,
            Profile.email,
            Profile.full_name,
            FacebookGroup.name,
            FacebookGroup.group_url,
            FacebookGroup.description,
            Territory.name,
        )
        .join(Profile, ScheduledPost.author_id == Profile.id)
        .join(FacebookGroup, ScheduledPost.group_id == FacebookGroup.id)
        .outerjoin(Territory, ScheduledPost.territory_id == Territory.id)
        .where(*_due_filters(now, settings), _claim_free(now, settings.reminder_claim_ttl_seconds))
        .order_by(ScheduledPost.scheduled_for.asc(), ScheduledPost.id)
        .limit(settings.reminder_batch_limit)
    )
    r = await db.execute(q)
    return [ReminderCandidate(*row) for row in r.all()]


async def count_stale(db: AsyncSession, now: datetime, settings: Settings) -> int:
    """Unsent posts older than the staleness cutoff; reported and left for manual handling."""
    if not settings.reminder_stale_after_minutes:
        return 0
    cutoff = now - timedelta(minutes=settings.reminder_stale_after_minutes)
    r = await db.execute(
        select(func.count(ScheduledPost.id)).where(
            ScheduledPost.status.in_(REMINDABLE_STATUSES),
            _not_sent(),
            _not_dispatched(),
            ScheduledPost.scheduled_for < cutoff,
        )
    )
    return r.scalar() or 0


async def count_due(db: AsyncSession, now: datetime, settings: Settings) -> int:
    r = await db.execute(select(func.count(ScheduledPost.id)).where(*_due_filters(now, settings)))
    return r.scalar() or 0


async def count_delivery_unknown(db: AsyncSession, now: datetime, ttl_seconds: int) -> int:
    """Dispatched, never confirmed and no longer in flight."""
    r = await db.execute(
        select(func.count(ScheduledPost.id)).where(
            _not_sent(),
            ScheduledPost.reminder_dispatched_at.is_not(None),
            _claim_free(now, ttl_seconds),
        )
    )
    return r.scalar() or 0


async def claim(db: AsyncSession, post_id: uuid.UUID, token: uuid.UUID, at: datetime, ttl_seconds: int) -> bool:
    """
    Atomic compare-and-set, stamped with `at` (the moment of claiming).
    True only for the one run whose UPDATE touched the row.
    """
    r = await db.execute(
        update(ScheduledPost)
        .where(
            ScheduledPost.id == post_id,
            _not_sent(),
            _not_dispatched(),
            ScheduledPost.status.in_(REMINDABLE_STATUSES),
            _claim_free(at, ttl_seconds),
        )
        .values(reminder_claim_token=token, reminder_claimed_at=at)
        .execution_options(synchronize_session=False)
    )
    return r.rowcount == 1


async def mark_dispatched(db: AsyncSession, post_id: uuid.UUID, token: uuid.UUID, at: datetime) -> bool:
    """Last write before the email leaves. False when the claim is no longer ours."""
    r = await db.execute(
        update(ScheduledPost)
        .where(
            ScheduledPost.id == post_id,
            ScheduledPost.reminder_claim_token == token,
            _not_dispatched(),
        )
        .values(reminder_dispatched_at=at)
        .execution_options(synchronize_session=False)
    )
    return r.rowcount == 1


async def record_success(
    db: AsyncSession,
    post_id: uuid.UUID,
    token: uuid.UUID,
    now: datetime,
    delivery_id: str,
    generated_content: Optional[str],
) -> bool:
    """reminder_sent = true, pending -> ready (ready stays ready, a concurrent mark-posted is kept)."""
    values: Dict[str, Any] = {
        "reminder_sent": True,
        "reminder_sent_at": now,
        "reminder_delivery_id": delivery_id,
        "reminder_last_error": None,
        "reminder_claim_token": None,
        "reminder_claimed_at": None,
        "status": case(
            (ScheduledPost.status.in_(READYABLE_STATUSES), PostStatus.READY.value),
            else_=ScheduledPost.status,
        ),
    }
    if generated_content is not None:
        values["generated_content"] = generated_content
    r = await db.execute(
        update(ScheduledPost)
        .where(ScheduledPost.id == post_id, ScheduledPost.reminder_claim_token == token)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if r.rowcount != 1:
        return False
    await audit_service.log_post_event(
        db,
        post_id=post_id,
        event_type=audit_service.REMINDER_SENT,
        metadata_={"delivery_id": delivery_id},
    )
    return True


async def release_claim(
    db: AsyncSession,
    post_id: uuid.UUID,
    token: uuid.UUID,
    error: str,
    generated_content: Optional[str],
    max_attempts: int,
) -> Optional[int]:
    """
    Give the post back for a later run; only for failures where no email left.
    Returns the attempt count, None if the claim was no longer ours.
    At max_attempts (0 = never) a pending post becomes failed.
    """
    attempts = ScheduledPost.reminder_attempts + 1
    values: Dict[str, Any] = {
        "reminder_attempts": attempts,
        "reminder_last_error": error[:ERROR_MAX_LENGTH],
        "reminder_claim_token": None,
        "reminder_claimed_at": None,
        "reminder_dispatched_at": None,
    }
    if max_attempts > 0:
        values["status"] = case(
            (
                and_(attempts >= max_attempts, ScheduledPost.status.in_(FAILABLE_STATUSES)),
                PostStatus.FAILED.value,
            ),
            else_=ScheduledPost.status,
        )
    if generated_content is not None:
        values["generated_content"] = generated_content
    r = await db.execute(
        update(ScheduledPost)
        .where(ScheduledPost.id == post_id, ScheduledPost.reminder_claim_token == token)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if r.rowcount != 1:
        return None
    row = (
        await db.execute(
            select(ScheduledPost.reminder_attempts, ScheduledPost.status).where(ScheduledPost.id == post_id)
        )
    ).one()
    gave_up = row.status == PostStatus.FAILED.value
    await audit_service.log_post_event(
        db,
        post_id=post_id,
        event_type=audit_service.REMINDER_GAVE_UP if gave_up else audit_service.REMINDER_FAILED,
        metadata_={"attempt": row.reminder_attempts, "error": error[:ERROR_MAX_LENGTH]},
    )
    return row.reminder_attempts


async def record_delivery_unknown(
    db: AsyncSession,
    post_id: uuid.UUID,
    token: uuid.UUID,
    error: str,
    generated_content: Optional[str],
) -> bool:
    """Send may have gone through: drop the claim, keep reminder_dispatched_at, status unchanged."""
    values: Dict[str, Any] = {
        "reminder_attempts": ScheduledPost.reminder_attempts + 1,
        "reminder_last_error": error[:ERROR_MAX_LENGTH],
        "reminder_claim_token": None,
        "reminder_claimed_at": None,
    }
    if generated_content is not None:
        values["generated_content"] = generated_content
    r = await db.execute(
        update(ScheduledPost)
        .where(ScheduledPost.id == post_id, ScheduledPost.reminder_claim_token == token)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if r.rowcount != 1:
        return False
    await audit_service.log_post_event(
        db,
        post_id=post_id,
        event_type=audit_service.REMINDER_DELIVERY_UNKNOWN,
        metadata_={"error": error[:ERROR_MAX_LENGTH]},
    )
    return True


def _remaining(deadline: float) -> float:
    return max(0.0, deadline - time.monotonic())


def _error_text(e: BaseException, timeout: float) -> str:
    if isinstance(e, asyncio.TimeoutError):
        return f"timed out after {timeout:g}s"
    return str(e) or type(e).__name__


async def _give_back(
    session_factory: async_sessionmaker[AsyncSession],
    candidate: ReminderCandidate,
    token: uuid.UUID,
    e: BaseException,
    generated: Optional[str],
    settings: Settings,
) -> str:
    post_id = str(candidate.post_id)
    error = _error_text(e, settings.reminder_candidate_timeout_seconds)
    try:
        async with session_scope(session_factory) as db:
            attempts = await release_claim(
                db, candidate.post_id, token, error, generated, settings.reminder_max_attempts
            )
    except SQLAlchemyError as db_error:
        # Claim stays until its TTL expires.
        logger.error("reminder.release_error", post_id=post_id, error=str(db_error))
        return "failed"
    logger.warning(
        "reminder.failed",
        post_id=post_id,
        error=error,
        error_type=type(e).__name__,
        attempts=attempts,
    )
    return "failed"


async def _settle_unknown(
    session_factory: async_sessionmaker[AsyncSession],
    candidate: ReminderCandidate,
    token: uuid.UUID,
    e: BaseException,
    generated: Optional[str],
    settings: Settings,
) -> str:
    post_id = str(candidate.post_id)
    error = _error_text(e, settings.reminder_candidate_timeout_seconds)
    try:
        async with session_scope(session_factory) as db:
            await record_delivery_unknown(db, candidate.post_id, token, error, generated)
    except SQLAlchemyError as db_error:
        logger.error("reminder.record_error", post_id=post_id, error=str(db_error))
        return "failed"
    logger.error("reminder.delivery_unknown", post_id=post_id, error=error, error_type=type(e).__name__)
    return "failed"


async def process_candidate(
    session_factory: async_sessionmaker[AsyncSession],
    dispatch: DispatchClient,
    candidate: ReminderCandidate,
    now: datetime,
    settings: Settings,
    clock: Optional[Callable[[], datetime]] = None,
) -> str:
    """
    Claim, dispatch and settle one post. Returns the summary field to count: sent | failed | skipped.

    Once reminder_dispatched_at is written no later run touches the post, whatever
    happens to this one; only a definite transport rejection hands it back.
    """
    clock = clock or run_clock(now)
    post_id = str(candidate.post_id)
    token = uuid.uuid4()
    deadline = time.monotonic() + settings.reminder_candidate_timeout_seconds
    try:
        async with session_scope(session_factory) as db:
            won = await claim(db, candidate.post_id, token, clock(), settings.reminder_claim_ttl_seconds)
    except SQLAlchemyError as e:
        logger.warning("reminder.claim_error", post_id=post_id, error=str(e))
        return "failed"
    if not won:
        logger.info("reminder.claim_lost", post_id=post_id)
        return "skipped"
    logger.info("reminder.claimed", post_id=post_id)

    generated: Optional[str] = None
    content = candidate.generated_content
    try:
        if candidate.needs_content:
            content = generated = await asyncio.wait_for(
                dispatch.prepare_content(candidate.generation_request()), timeout=_remaining(deadline)
            )
        if _remaining(deadline) <= 0:
            raise asyncio.TimeoutError()
        async with session_scope(session_factory) as db:
            dispatched = await mark_dispatched(db, candidate.post_id, token, clock())
    except Exception as e:
        return await _give_back(session_factory, candidate, token, e, generated, settings)
    if not dispatched:
        logger.warning("reminder.claim_taken_over", post_id=post_id)
        return "skipped"

    try:
        delivery_id = await asyncio.wait_for(
            dispatch.send_reminder(candidate.message(content or ""), now=now), timeout=_remaining(deadline)
        )
    except (DeliveryUnknownError, asyncio.TimeoutError) as e:
        return await _settle_unknown(session_factory, candidate, token, e, generated, settings)
    except Exception as e:
        return await _give_back(session_factory, candidate, token, e, generated, settings)

    try:
        async with session_scope(session_factory) as db:
            recorded = await record_success(db, candidate.post_id, token, clock(), delivery_id, generated)
    except SQLAlchemyError as e:
        # reminder_dispatched_at keeps every later run away from the post.
        logger.error("reminder.record_error", post_id=post_id, delivery_id=delivery_id, error=str(e))
        return "sent"
    if not recorded:
        logger.warning("reminder.post_gone", post_id=post_id, delivery_id=delivery_id)
    logger.info("reminder.sent", post_id=post_id, delivery_id=delivery_id)
    return "sent"


async def _record_run(session_factory: async_sessionmaker[AsyncSession], summary: ReminderRunSummary) -> None:
    try:
        async with session_scope(session_factory) as db:
            db.add(
                ReminderRun(
                    id=summary.run_id,
                    trigger=summary.trigger,
                    started_at=summary.started_at,
                    finished_at=summary.finished_at,
                    found=summary.found,
                    sent=summary.sent,
                    failed=summary.failed,
                    skipped=summary.skipped,
                    deferred=summary.deferred,
                    stale=summary.stale,
                    error=summary.error,
                )
            )
    except SQLAlchemyError as e:
        logger.warning("reminder.run_record_error", run_id=str(summary.run_id), error=str(e))


async def run_reminders(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    dispatch: Optional[DispatchClient] = None,
    settings: Optional[Settings] = None,
    trigger: str = "http",
    now: Optional[datetime] = None,
) -> ReminderRunSummary:
    """
    One reminder run. Raises DataError when the candidate query fails and
    DispatchConfigurationError when a key is missing; in both cases nothing is claimed.
    """
    settings = settings or get_settings()
    session_factory = session_factory or async_session_factory
    dispatch = dispatch or DispatchClient(settings)
    now = now or datetime.now(timezone.utc)
    clock = run_clock(now)
    summary = ReminderRunSummary(trigger=trigger, started_at=now)

    with structlog.contextvars.bound_contextvars(run_id=str(summary.run_id)):
        logger.info("reminder.run_started", trigger=trigger, at=now.isoformat())
        try:
            async with session_scope(session_factory) as db:
                candidates = await find_candidates(db, now, settings)
                summary.stale = await count_stale(db, now, settings)
        except SQLAlchemyError as e:
            summary.error = f"candidate query failed: {e}"
            summary.finished_at = datetime.now(timezone.utc)
            logger.error("reminder.query_failed", error=str(e))
            await _record_run(session_factory, summary)
            raise DataError(str(e)) from e

        summary.found = len(candidates)
        if candidates:
            try:
                dispatch.ensure_configured(need_generation=any(c.needs_content for c in candidates))
            except DispatchConfigurationError as e:
                summary.error = f"configuration: {e.reason}"
                summary.finished_at = datetime.now(timezone.utc)
                logger.error("reminder.not_configured", reason=e.reason)
                await _record_run(session_factory, summary)
                raise

        started = time.monotonic()
        semaphore = asyncio.Semaphore(settings.reminder_concurrency)

        async def _one(candidate: ReminderCandidate) -> str:
            async with semaphore:
                if time.monotonic() - started >= settings.reminder_run_budget_seconds:
                    return "deferred"
                return await process_candidate(session_factory, dispatch, candidate, now, settings, clock)

        outcomes = await asyncio.gather(*(_one(c) for c in candidates))
        for outcome in outcomes:
            summary.count(outcome)

        summary.finished_at = datetime.now(timezone.utc)
        await _record_run(session_factory, summary)
        logger.info(
            "reminder.run_finished",
            found=summary.found,
            sent=summary.sent,
            failed=summary.failed,
            skipped=summary.skipped,
            deferred=summary.deferred,
            stale=summary.stale,
        )
    return summary


async def list_runs(db: AsyncSession, limit: int = 20) -> List[ReminderRun]:
    """Most recent runs first."""
    r = await db.execute(select(ReminderRun).order_by(ReminderRun.started_at.desc()).limit(limit))
    return list(r.scalars().all())


async def get_scheduler_status(db: AsyncSession) -> dict:
    """enabled, interval_seconds, last_tick_at, last run counts, posts due and posts in doubt."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    return {
        "enabled": _enabled,
        "interval_seconds": settings.scheduler_interval_seconds,
        "lead_minutes": settings.reminder_lead_minutes,
        "last_tick_at": _last_tick_at.isoformat() if _last_tick_at else None,
        "last_run": _last_summary.as_dict() if _last_summary else None,
        "pending_count": await count_due(db, now, settings),
        "delivery_unknown_count": await count_delivery_unknown(db, now, settings.reminder_claim_ttl_seconds),
    }


async def _tick() -> None:
    global _last_tick_at, _last_summary
    _last_tick_at = datetime.now(timezone.utc)
    logger.info("scheduler.tick", at=_last_tick_at.isoformat())
    try:
        _last_summary = await run_reminders(trigger="loop")
    except (DataError, DispatchConfigurationError) as e:
        logger.warning("scheduler.tick_error", error=str(e), error_type=type(e).__name__)


async def _scheduler_loop() -> None:
    settings = get_settings()
    interval = max(1, settings.scheduler_interval_seconds)
    while _stop_event is not None and not _stop_event.is_set():
        try:
            await _tick()
        except Exception as e:
            logger.warning("scheduler.loop_error", error=str(e))
        try:
            await asyncio.wait_for(_stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass


async def start_scheduler(app: object) -> None:
    """Start the in-process reminder loop when SCHEDULER_ENABLED (lifespan startup)."""
    global _scheduler_task, _stop_event, _enabled
    settings = get_settings()
    if _scheduler_task is not None:
        return
    _enabled = settings.scheduler_enabled
    if not _enabled:
        logger.info("scheduler.disabled")
        return
    _stop_event = asyncio.Event()
    _scheduler_task = asyncio.create_task(_scheduler_loop())
    logger.info("scheduler.started", interval_seconds=settings.scheduler_interval_seconds)


async def stop_scheduler() -> None:
    """Stop the loop (lifespan shutdown)."""
    global _scheduler_task, _stop_event, _enabled
    _enabled = False
    if _stop_event:
        _stop_event.set()
    if _scheduler_task:
        _scheduler_task.cancel()
        try:
            await _scheduler_task
        except asyncio.CancelledError:
            pass
    _scheduler_task = None
    _stop_event = None
    logger.info("scheduler.stopped")

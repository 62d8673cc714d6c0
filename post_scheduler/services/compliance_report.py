"""Compliance reporting per author and per dealership."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from post_scheduler.auth import Principal
from post_scheduler.db_types import ensure_utc
from post_scheduler.models import Profile, ScheduledPost
from post_scheduler.services.territory_compliance import ComplianceSummary


async def _get_profile(db: AsyncSession, profile_id: UUID) -> Profile:
    r = await db.execute(select(Profile).where(Profile.id == profile_id))
    profile = r.scalar_one_or_none()
    if not profile:
        raise ValueError("profile_not_found")
    return profile


async def author_report(
    db: AsyncSession,
    principal: Principal,
    author_id: UUID,
    since: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Summary of one author's posts. Readable by the author and their managers."""
    author = await _get_profile(db, author_id)
    if author.id != principal.profile_id and not principal.manages(author.dealership_id):
        raise ValueError("report_forbidden")

    q = select(ScheduledPost.territory_violation, ScheduledPost.violation_status).where(
        ScheduledPost.author_id == author_id
    )
    if since is not None:
        q = q.where(ScheduledPost.scheduled_for >= ensure_utc(since))
    r = await db.execute(q)
    summary = ComplianceSummary()
    for territory_violation, violation_status in r.all():
        summary.add(territory_violation, violation_status)
    return {"author_id": author.id, "full_name": author.full_name, "summary": summary}


async def dealership_report(
    db: AsyncSession,
    principal: Principal,
    dealership_id: UUID,
    since: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Overall and per-author summaries of a dealership. Managers of it and admins only."""
    if not principal.manages(dealership_id):
        raise ValueError("report_forbidden")

    q = (
        select(
            Profile.id,
            Profile.full_name,
            ScheduledPost.territory_violation,
            ScheduledPost.violation_status,
        )
        .join(ScheduledPost, ScheduledPost.author_id == Profile.id)
        .where(Profile.dealership_id == dealership_id)
    )
    if since is not None:
        q = q.where(ScheduledPost.scheduled_for >= ensure_utc(since))
    r = await db.execute(q)

    overall = ComplianceSummary()
    per_author: Dict[UUID, Dict[str, Any]] = {}
    for profile_id, full_name, territory_violation, violation_status in r.all():
        overall.add(territory_violation, violation_status)
        entry = per_author.setdefault(
            profile_id,
            {"author_id": profile_id, "full_name": full_name, "summary": ComplianceSummary()},
        )
        entry["summary"].add(territory_violation, violation_status)

    authors: List[Dict[str, Any]] = sorted(
        per_author.values(),
        key=lambda e: (e["summary"].compliance_rate, e["full_name"] or ""),
    )
    return {"dealership_id": dealership_id, "summary": overall, "authors": authors}

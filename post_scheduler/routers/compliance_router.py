"""Compliance reports per author and per dealership."""
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from post_scheduler.auth import Principal, get_principal
from post_scheduler.db import get_db
from post_scheduler.routers.errors import raise_http
from post_scheduler.routers.posts_router import ERROR_RESPONSES
from post_scheduler.schemas.compliance import (
    AuthorComplianceOut,
    ComplianceSummaryOut,
    DealershipComplianceOut,
)
from post_scheduler.services import compliance_report
from post_scheduler.services.territory_compliance import ComplianceSummary

router = APIRouter(prefix="/api/compliance", tags=["compliance"])


def _summary_out(s: ComplianceSummary) -> ComplianceSummaryOut:
    return ComplianceSummaryOut(
        total=s.total,
        violations=s.violations,
        unresolved=s.unresolved,
        authorization_requested=s.authorization_requested,
        authorized=s.authorized,
        denied=s.denied,
        justified=s.justified,
        compliant=s.compliant,
        non_compliant=s.non_compliant,
        compliance_rate=s.compliance_rate,
    )


def _author_out(entry: Dict[str, Any]) -> AuthorComplianceOut:
    return AuthorComplianceOut(
        author_id=entry["author_id"],
        full_name=entry["full_name"],
        summary=_summary_out(entry["summary"]),
    )


@router.get("/authors/{author_id}", response_model=AuthorComplianceOut, responses=ERROR_RESPONSES)
async def get_author_compliance(
    author_id: UUID,
    since: Optional[datetime] = Query(None, description="Only posts scheduled at or after (ISO)"),
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> AuthorComplianceOut:
    try:
        report = await compliance_report.author_report(db, principal, author_id, since=since)
    except ValueError as e:
        raise_http(e)
    return _author_out(report)


@router.get("/dealerships/{dealership_id}", response_model=DealershipComplianceOut, responses=ERROR_RESPONSES)
async def get_dealership_compliance(
    dealership_id: UUID,
    since: Optional[datetime] = Query(None, description="Only posts scheduled at or after (ISO)"),
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> DealershipComplianceOut:
    """Dealership total plus one row per author, lowest compliance first."""
    try:
        report = await compliance_report.dealership_report(db, principal, dealership_id, since=since)
    except ValueError as e:
        raise_http(e)
    return DealershipComplianceOut(
        dealership_id=report["dealership_id"],
        summary=_summary_out(report["summary"]),
        authors=[_author_out(a) for a in report["authors"]],
    )

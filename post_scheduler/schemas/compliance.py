"""Compliance report schemas."""
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


class ComplianceSummaryOut(BaseModel):
    """Counts and rate of a post population. Justified posts are compliant but still violations."""

    total: int
    violations: int
    unresolved: int
    authorization_requested: int
    authorized: int
    denied: int
    justified: int
    compliant: int
    non_compliant: int
    compliance_rate: int


class AuthorComplianceOut(BaseModel):
    author_id: UUID
    full_name: Optional[str] = None
    summary: ComplianceSummaryOut


class DealershipComplianceOut(BaseModel):
    """Response for GET /api/compliance/dealerships/{dealership_id}; authors sorted worst first."""

    dealership_id: UUID
    summary: ComplianceSummaryOut
    authors: List[AuthorComplianceOut]

"""
Territory compliance: violation detection and the violation-resolution state machine.
Pure logic, no I/O. Persistence lives in post_service / violation_service.

States: unresolved -> authorization_requested -> authorized | denied
        unresolved | denied -> justified
"""
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Hashable, Iterable, Optional, Tuple


class ViolationStatus(str, Enum):
    UNRESOLVED = "unresolved"
    AUTHORIZATION_REQUESTED = "authorization_requested"
    AUTHORIZED = "authorized"
    DENIED = "denied"
    JUSTIFIED = "justified"


class ViolationAction(str, Enum):
    REQUEST_AUTHORIZATION = "request_authorization"
    AUTHORIZE = "authorize"
    DENY = "deny"
    JUSTIFY = "justify"


class ActorRole(str, Enum):
    """Role of the acting principal relative to the post."""

    AUTHOR = "author"
    MANAGER = "manager"


TRANSITIONS: Dict[Tuple[ViolationStatus, ViolationAction], ViolationStatus] = {
    (ViolationStatus.UNRESOLVED, ViolationAction.REQUEST_AUTHORIZATION): ViolationStatus.AUTHORIZATION_REQUESTED,
    (ViolationStatus.AUTHORIZATION_REQUESTED, ViolationAction.AUTHORIZE): ViolationStatus.AUTHORIZED,
    (ViolationStatus.AUTHORIZATION_REQUESTED, ViolationAction.DENY): ViolationStatus.DENIED,
    (ViolationStatus.UNRESOLVED, ViolationAction.JUSTIFY): ViolationStatus.JUSTIFIED,
    (ViolationStatus.DENIED, ViolationAction.JUSTIFY): ViolationStatus.JUSTIFIED,
}

ACTION_ROLES: Dict[ViolationAction, ActorRole] = {
    ViolationAction.REQUEST_AUTHORIZATION: ActorRole.AUTHOR,
    ViolationAction.AUTHORIZE: ActorRole.MANAGER,
    ViolationAction.DENY: ActorRole.MANAGER,
    ViolationAction.JUSTIFY: ActorRole.AUTHOR,
}

# Counted as "addressed" for compliance. Justified posts still count as violations in totals.
RESOLVED_STATUSES = frozenset({ViolationStatus.AUTHORIZED, ViolationStatus.JUSTIFIED})


class ViolationTransitionError(ValueError):
    """Illegal or unauthorised move in the violation state machine. str(e) is the error code."""

    def __init__(
        self,
        code: str,
        current: Optional[ViolationStatus] = None,
        action: Optional[ViolationAction] = None,
    ) -> None:
        super().__init__(code)
        self.code = code
        self.current = current
        self.action = action


def evaluate_violation(
    author_territory_ids: Iterable[Hashable],
    group_territory_id: Optional[Hashable],
) -> bool:
    """
    True when the group belongs to a territory the author is not assigned to.
    Global groups (no territory) never violate. Every assignment counts, not only the primary one.
    """
    if group_territory_id is None:
        return False
    return group_territory_id not in set(author_territory_ids)


@dataclass(frozen=True)
class ViolationState:
    """Resolution record of a flagged post. Absent (None) for non-violating posts."""

    status: ViolationStatus = ViolationStatus.UNRESOLVED
    justification: Optional[str] = None
    authorization_requested_at: Optional[datetime] = None
    authorization_granted_by: Optional[Hashable] = None
    authorization_granted_at: Optional[datetime] = None

    @property
    def is_resolved(self) -> bool:
        return self.status in RESOLVED_STATUSES

    def allowed_actions(self) -> Tuple[ViolationAction, ...]:
        return tuple(action for (state, action) in TRANSITIONS if state == self.status)

    def apply(
        self,
        action: ViolationAction,
        role: ActorRole,
        actor_id: Hashable,
        now: datetime,
        justification: Optional[str] = None,
    ) -> "ViolationState":
        """Return the state after `action`, or raise ViolationTransitionError."""
        if ACTION_ROLES[action] != role:
            raise ViolationTransitionError("violation_action_forbidden", self.status, action)
        target = TRANSITIONS.get((self.status, action))
        if target is None:
            raise ViolationTransitionError("illegal_violation_transition", self.status, action)

        if action == ViolationAction.REQUEST_AUTHORIZATION:
            return replace(self, status=target, authorization_requested_at=now)
        if action == ViolationAction.AUTHORIZE:
            return replace(
                self,
                status=target,
                authorization_granted_by=actor_id,
                authorization_granted_at=now,
            )
        if action == ViolationAction.DENY:
            return replace(self, status=target, authorization_requested_at=None)
        text = (justification or "").strip()
        if not text:
            raise ViolationTransitionError("justification_required", self.status, action)
        return replace(self, status=target, justification=text)


def flag() -> ViolationState:
    """Fresh violation record."""
    return ViolationState()


def reconcile(
    current: Optional[ViolationState],
    is_violation: bool,
    group_changed: bool,
) -> Optional[ViolationState]:
    """
    Violation record after an edit, given a freshly evaluated `is_violation`.
    In-territory -> record removed entirely. Newly violating or moved to another
    out-of-territory group -> starts over at unresolved. Same violating group -> kept.
    """
    if not is_violation:
        return None
    if current is None or group_changed:
        return flag()
    return current


def is_compliant(territory_violation: bool, violation_status: Optional[str]) -> bool:
    """Non-violating, or violating but authorized/justified."""
    if not territory_violation:
        return True
    if violation_status is None:
        return False
    return ViolationStatus(violation_status) in RESOLVED_STATUSES


def compliance_rate(total: int, non_compliant: int) -> int:
    """Percentage of compliant posts, rounded half-up. Empty population is fully compliant."""
    if total <= 0:
        return 100
    pct = Decimal(total - non_compliant) * 100 / Decimal(total)
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class ComplianceSummary:
    """Aggregate over a population of posts."""

    total: int = 0
    violations: int = 0
    unresolved: int = 0
    authorization_requested: int = 0
    authorized: int = 0
    denied: int = 0
    justified: int = 0

    @property
    def non_compliant(self) -> int:
        return self.unresolved + self.authorization_requested + self.denied

    @property
    def compliant(self) -> int:
        return self.total - self.non_compliant

    @property
    def compliance_rate(self) -> int:
        return compliance_rate(self.total, self.non_compliant)

    def add(self, territory_violation: bool, violation_status: Optional[str]) -> None:
        self.total += 1
        if not territory_violation:
            return
        self.violations += 1
        status = ViolationStatus(violation_status or ViolationStatus.UNRESOLVED.value)
        field = status.value
        setattr(self, field, getattr(self, field) + 1)


def summarize(records: Iterable[Tuple[bool, Optional[str]]]) -> ComplianceSummary:
    """Build a ComplianceSummary from (territory_violation, violation_status) pairs."""
    summary = ComplianceSummary()
    for territory_violation, violation_status in records:
        summary.add(territory_violation, violation_status)
    return summary

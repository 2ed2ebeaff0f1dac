# app/services/approval_workflow.py
"""
Sequential multi-role approval.

The approval log is the only source of truth: the state machine folds the
APPROVED/REJECTED rows to find who has to act next and never trusts a stored
cursor. The same machine drives loans, withdrawals and membership requests,
each with its own immutable `ApprovalHierarchy`.
"""
import enum
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from app.core.exceptions import AuthorizationError, SequenceViolation
from app.models.user_model import UserRole


class Decision(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


REJECTION_ORDER = -1


@dataclass(frozen=True)
class ApprovalHierarchy:
    roles: Tuple[UserRole, ...]
    # last stage that needs several distinct approvers
    committee_role: Optional[UserRole] = None
    min_committee_approvals: int = 1

    def __post_init__(self):
        if not self.roles:
            raise ValueError("approval hierarchy needs at least one role")
        if len(set(self.roles)) != len(self.roles):
            raise ValueError(f"duplicate role in approval hierarchy: {self.roles}")
        if self.committee_role is not None and self.committee_role != self.roles[-1]:
            raise ValueError("committee role must be the last stage of the hierarchy")
        if int(self.min_committee_approvals) < 1:
            raise ValueError("min_committee_approvals must be >= 1")

    def index_of(self, role: UserRole) -> int:
        try:
            return self.roles.index(role)
        except ValueError:
            raise AuthorizationError(
                f"{role.value if isinstance(role, UserRole) else role} role not found in hierarchy",
                requirement="Approval Hierarchy",
                hierarchy=[r.value for r in self.roles],
            )

    def required_approvals(self, role: UserRole) -> int:
        return int(self.min_committee_approvals) if role == self.committee_role else 1


@dataclass(frozen=True)
class LogEntry:
    role: str
    decision: str
    actor_id: Optional[int] = None


@dataclass(frozen=True)
class ApprovalOutcome:
    role: UserRole
    approval_order: int
    # running count for the committee stage, None elsewhere
    committee_approval: Optional[int]
    is_final: bool
    next_role: Optional[UserRole]
    # cursor to store on the entity after this approval
    next_order: int


class ApprovalStateMachine:
    def __init__(self, hierarchy: ApprovalHierarchy, subject: str = "request"):
        self.hierarchy = hierarchy
        self.subject = subject

    def _approved_by_role(self, log: Iterable[LogEntry]) -> Dict[UserRole, List[Optional[int]]]:
        approved: Dict[UserRole, List[Optional[int]]] = {}
        for entry in log:
            if entry.decision != Decision.APPROVED.value:
                continue
            try:
                role = UserRole(entry.role)
            except ValueError:
                continue
            if role in self.hierarchy.roles:
                approved.setdefault(role, []).append(entry.actor_id)
        return approved

    @staticmethod
    def is_rejected(log: Iterable[LogEntry]) -> bool:
        return any(e.decision == Decision.REJECTED.value for e in log)

    def next_required(self, log: Iterable[LogEntry]) -> Optional[UserRole]:
        """First role whose approvals are incomplete; None once fully approved."""
        approved = self._approved_by_role(log)
        for role in self.hierarchy.roles:
            if len(approved.get(role, [])) < self.hierarchy.required_approvals(role):
                return role
        return None

    def current_order(self, log: Iterable[LogEntry]) -> int:
        role = self.next_required(log)
        return len(self.hierarchy.roles) if role is None else self.hierarchy.roles.index(role)

    def check_approval(self, log: List[LogEntry], role: UserRole, actor_id: Optional[int]) -> ApprovalOutcome:
        """Validate an APPROVED decision by `role`. Raises before anything is written."""
        idx = self.hierarchy.index_of(role)

        if self.is_rejected(log):
            raise SequenceViolation(
                f"This {self.subject} has already been rejected",
                requirement="Approval Sequence",
            )

        approved = self._approved_by_role(log)
        for earlier in self.hierarchy.roles[:idx]:
            if len(approved.get(earlier, [])) < self.hierarchy.required_approvals(earlier):
                raise SequenceViolation(
                    f"{earlier.value} must approve the {self.subject} before {role.value}",
                    requirement="Approval Sequence",
                    required_role=earlier.value,
                )

        actors = approved.get(role, [])
        needed = self.hierarchy.required_approvals(role)

        if role == self.hierarchy.committee_role:
            if actor_id is not None and actor_id in actors:
                raise SequenceViolation(
                    f"You have already approved this {self.subject}",
                    requirement="Distinct Committee Approval",
                    role=role.value,
                )
            if len(actors) >= needed:
                raise SequenceViolation(
                    f"{role.value} has already approved this {self.subject}",
                    requirement="Approval Sequence",
                    role=role.value,
                )
            count = len(actors) + 1
            final = count >= needed
            return ApprovalOutcome(
                role=role,
                approval_order=idx,
                committee_approval=count,
                is_final=final,
                next_role=None if final else role,
                next_order=len(self.hierarchy.roles) if final else idx,
            )

        if actors:
            raise SequenceViolation(
                f"{role.value} has already approved this {self.subject}",
                requirement="Approval Sequence",
                role=role.value,
            )

        final = idx == len(self.hierarchy.roles) - 1
        next_role = None if final else self.hierarchy.roles[idx + 1]
        return ApprovalOutcome(
            role=role,
            approval_order=idx,
            committee_approval=None,
            is_final=final,
            next_role=next_role,
            next_order=idx + 1,
        )

    def check_rejection(self, log: List[LogEntry], role: UserRole) -> int:
        """Validate a REJECTED decision. Returns the sentinel order to log."""
        self.hierarchy.index_of(role)
        if self.is_rejected(log):
            raise SequenceViolation(
                f"This {self.subject} has already been rejected",
                requirement="Approval Sequence",
            )
        if self.next_required(log) is None:
            raise SequenceViolation(
                f"This {self.subject} is already fully approved",
                requirement="Approval Sequence",
            )
        return REJECTION_ORDER


# =================================================
# Hierarchies
# =================================================
def loan_hierarchy(min_committee_approvals: int = 1) -> ApprovalHierarchy:
    return ApprovalHierarchy(
        roles=(UserRole.ACCOUNTANT, UserRole.SUPERVISOR, UserRole.MANAGER, UserRole.COMMITTEE),
        committee_role=UserRole.COMMITTEE,
        min_committee_approvals=min_committee_approvals,
    )


WITHDRAWAL_HIERARCHY = ApprovalHierarchy(
    roles=(UserRole.ACCOUNTANT, UserRole.SUPERVISOR, UserRole.MANAGER),
)

MEMBERSHIP_HIERARCHY = ApprovalHierarchy(
    roles=(UserRole.ACCOUNTANT, UserRole.SUPERVISOR, UserRole.MANAGER),
)


def build_status_table(hierarchy: ApprovalHierarchy, mapping: Mapping[UserRole, enum.Enum]) -> Dict[UserRole, enum.Enum]:
    """Role -> status lookup, checked once at import time against the hierarchy."""
    missing = [r.value for r in hierarchy.roles if r not in mapping]
    extra = [r.value for r in mapping if r not in hierarchy.roles]
    if missing or extra:
        raise ValueError(f"status table does not match hierarchy (missing={missing}, extra={extra})")
    return dict(mapping)

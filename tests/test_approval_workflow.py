import pytest

from app.core.exceptions import AuthorizationError, SequenceViolation
from app.models.user_model import UserRole
from app.services.approval_workflow import (
    ApprovalHierarchy,
    ApprovalStateMachine,
    LogEntry,
    REJECTION_ORDER,
    WITHDRAWAL_HIERARCHY,
    build_status_table,
    loan_hierarchy,
)
from app.models.withdrawal_model import WithdrawalStatus


def approved(role, actor_id):
    return LogEntry(role=role.value, decision="APPROVED", actor_id=actor_id)


APPLICATION = LogEntry(role="MEMBER", decision="PENDING", actor_id=None)


def test_supervisor_before_accountant_names_accountant():
    machine = ApprovalStateMachine(loan_hierarchy(), subject="loan")

    with pytest.raises(SequenceViolation) as exc:
        machine.check_approval([APPLICATION], UserRole.SUPERVISOR, actor_id=2)

    assert exc.value.details["required_role"] == "ACCOUNTANT"
    assert "ACCOUNTANT must approve the loan before SUPERVISOR" in exc.value.message


def test_role_cannot_approve_twice():
    machine = ApprovalStateMachine(loan_hierarchy(), subject="loan")
    log = [APPLICATION, approved(UserRole.ACCOUNTANT, 1)]

    with pytest.raises(SequenceViolation) as exc:
        machine.check_approval(log, UserRole.ACCOUNTANT, actor_id=1)
    assert "already approved" in exc.value.message


def test_role_outside_hierarchy_is_refused():
    machine = ApprovalStateMachine(WITHDRAWAL_HIERARCHY)

    with pytest.raises(AuthorizationError) as exc:
        machine.check_approval([], UserRole.COMMITTEE, actor_id=9)
    assert "role not found in hierarchy" in exc.value.message


def test_approval_advances_cursor_and_names_next_role():
    machine = ApprovalStateMachine(loan_hierarchy())

    outcome = machine.check_approval([APPLICATION], UserRole.ACCOUNTANT, actor_id=1)

    assert outcome.approval_order == 0
    assert outcome.next_order == 1
    assert outcome.next_role == UserRole.SUPERVISOR
    assert not outcome.is_final


def test_committee_needs_distinct_members():
    machine = ApprovalStateMachine(loan_hierarchy(min_committee_approvals=2))
    log = [
        APPLICATION,
        approved(UserRole.ACCOUNTANT, 1),
        approved(UserRole.SUPERVISOR, 2),
        approved(UserRole.MANAGER, 3),
    ]

    first = machine.check_approval(log, UserRole.COMMITTEE, actor_id=10)
    assert first.committee_approval == 1
    assert not first.is_final
    assert first.next_role == UserRole.COMMITTEE

    log.append(approved(UserRole.COMMITTEE, 10))
    with pytest.raises(SequenceViolation):
        machine.check_approval(log, UserRole.COMMITTEE, actor_id=10)

    second = machine.check_approval(log, UserRole.COMMITTEE, actor_id=11)
    assert second.committee_approval == 2
    assert second.is_final


def test_next_required_is_a_fold_over_the_log():
    machine = ApprovalStateMachine(loan_hierarchy())

    assert machine.next_required([APPLICATION]) == UserRole.ACCOUNTANT
    # order of rows does not matter, only which roles approved
    log = [approved(UserRole.SUPERVISOR, 2), approved(UserRole.ACCOUNTANT, 1)]
    assert machine.next_required(log) == UserRole.MANAGER
    assert machine.current_order(log) == 2


def test_rejection_uses_sentinel_and_closes_the_chain():
    machine = ApprovalStateMachine(loan_hierarchy())
    log = [APPLICATION, approved(UserRole.ACCOUNTANT, 1)]

    assert machine.check_rejection(log, UserRole.MANAGER) == REJECTION_ORDER

    log.append(LogEntry(role="MANAGER", decision="REJECTED", actor_id=3))
    with pytest.raises(SequenceViolation):
        machine.check_approval(log, UserRole.SUPERVISOR, actor_id=2)


def test_hierarchy_is_validated_at_construction():
    with pytest.raises(ValueError):
        ApprovalHierarchy(roles=())
    with pytest.raises(ValueError):
        ApprovalHierarchy(roles=(UserRole.ACCOUNTANT, UserRole.ACCOUNTANT))
    with pytest.raises(ValueError):
        ApprovalHierarchy(roles=(UserRole.COMMITTEE, UserRole.MANAGER), committee_role=UserRole.COMMITTEE)
    with pytest.raises(ValueError):
        loan_hierarchy(min_committee_approvals=0)


def test_status_table_must_cover_the_hierarchy():
    with pytest.raises(ValueError):
        build_status_table(WITHDRAWAL_HIERARCHY, {UserRole.ACCOUNTANT: WithdrawalStatus.APPROVED_BY_ACCOUNTANT})

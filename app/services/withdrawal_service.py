# app/services/withdrawal_service.py
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, SequenceViolation, ValidationError, AuthorizationError
from app.core.security import Principal
from app.models.transaction_model import Transaction, TransactionType
from app.models.user_model import UserRole
from app.models.withdrawal_model import WithdrawalApprovalLog, WithdrawalRequest, WithdrawalStatus
from app.services import accounting_service
from app.services.approval_workflow import (
    ApprovalStateMachine,
    Decision,
    LogEntry,
    WITHDRAWAL_HIERARCHY,
    build_status_table,
)
from app.services.member_service import get_member, willing_deposit_balance
from app.services.notification_service import Notifier
from app.utils.loan_calculations import money, parse_amount, ZERO

logger = logging.getLogger(__name__)

APPROVED_STATUS_BY_ROLE = build_status_table(
    WITHDRAWAL_HIERARCHY,
    {
        UserRole.ACCOUNTANT: WithdrawalStatus.APPROVED_BY_ACCOUNTANT,
        UserRole.SUPERVISOR: WithdrawalStatus.APPROVED_BY_SUPERVISOR,
        UserRole.MANAGER: WithdrawalStatus.APPROVED_BY_MANAGER,
    },
)

# requests a role can act on, keyed by the status they wait in
WAITING_STATUS_BY_ROLE = build_status_table(
    WITHDRAWAL_HIERARCHY,
    {
        UserRole.ACCOUNTANT: WithdrawalStatus.PENDING,
        UserRole.SUPERVISOR: WithdrawalStatus.APPROVED_BY_ACCOUNTANT,
        UserRole.MANAGER: WithdrawalStatus.APPROVED_BY_SUPERVISOR,
    },
)

OPEN_STATUSES = (
    WithdrawalStatus.PENDING.value,
    WithdrawalStatus.APPROVED_BY_ACCOUNTANT.value,
    WithdrawalStatus.APPROVED_BY_SUPERVISOR.value,
    WithdrawalStatus.APPROVED_BY_MANAGER.value,
)

machine = ApprovalStateMachine(WITHDRAWAL_HIERARCHY, subject="withdrawal request")


def _log(req: WithdrawalRequest) -> List[LogEntry]:
    return [
        LogEntry(role=row.approval_level, decision=row.status, actor_id=row.approved_by_user_id)
        for row in req.approval_logs
    ]


def get_request(db: Session, request_id: int) -> WithdrawalRequest:
    req = db.query(WithdrawalRequest).filter(WithdrawalRequest.request_id == request_id).first()
    if not req:
        raise NotFoundError("Withdrawal request not found", requirement="Withdrawal Request", request_id=request_id)
    return req


def reserved_amount(db: Session, member_id: int, exclude_request_id: Optional[int] = None) -> Decimal:
    """Σ of requests still moving through approval."""
    q = db.query(func.coalesce(func.sum(WithdrawalRequest.amount), 0)).filter(
        WithdrawalRequest.member_id == member_id,
        WithdrawalRequest.approval_status.in_(OPEN_STATUSES),
    )
    if exclude_request_id is not None:
        q = q.filter(WithdrawalRequest.request_id != exclude_request_id)
    return money(q.scalar())


def balance_summary(db: Session, member_id: int) -> dict:
    get_member(db, member_id)
    balance = willing_deposit_balance(db, member_id)
    reserved = reserved_amount(db, member_id)
    return {
        "member_id": member_id,
        "willing_deposit_balance": balance,
        "reserved_amount": reserved,
        "available_balance": money(max(balance - reserved, ZERO)),
    }


def submit_request(db: Session, member_id: int, amount, notifier: Notifier) -> WithdrawalRequest:
    amt = parse_amount(amount)
    if amt is None or amt <= 0:
        raise ValidationError(
            "Amount must be a number greater than 0",
            requirement="Withdrawal Amount",
            current=str(amount),
        )

    member = get_member(db, member_id)
    summary = balance_summary(db, member_id)
    if summary["available_balance"] < amt:
        raise ValidationError(
            "Insufficient willing deposit balance",
            requirement="Willing Deposit Balance",
            available_balance=float(summary["available_balance"]),
            requested_amount=float(amt),
        )

    req = WithdrawalRequest(
        member_id=member_id,
        amount=amt,
        requested_amount=amt,
        approval_status=WithdrawalStatus.PENDING.value,
    )
    db.add(req)
    db.flush()

    logger.info("Withdrawal request %s submitted by member %s for %s", req.request_id, member_id, amt)
    notifier.notify_role(
        UserRole.ACCOUNTANT,
        "New Withdrawal Request",
        f"Member {member.full_name} has requested a withdrawal of {amt}. "
        f"Available balance: {summary['available_balance']}",
        "WITHDRAWAL_REQUEST",
    )
    return req


def pending_for_role(db: Session, role: UserRole) -> List[WithdrawalRequest]:
    status = WAITING_STATUS_BY_ROLE.get(role)
    if status is None:
        raise AuthorizationError(
            f"{role.value} role not found in hierarchy",
            requirement="Approval Hierarchy",
            hierarchy=[r.value for r in WITHDRAWAL_HIERARCHY.roles],
        )
    return (
        db.query(WithdrawalRequest)
        .filter(WithdrawalRequest.approval_status == status.value)
        .order_by(WithdrawalRequest.created_on.desc(), WithdrawalRequest.request_id.desc())
        .all()
    )


def approve_request(db: Session, request_id: int, principal: Principal, remarks: Optional[str],
                    notifier: Notifier) -> WithdrawalRequest:
    req = get_request(db, request_id)
    if req.approval_status not in OPEN_STATUSES:
        raise SequenceViolation(
            f"Withdrawal request is already {req.approval_status}",
            requirement="Approval Sequence",
            status=req.approval_status,
        )

    outcome = machine.check_approval(_log(req), principal.role, principal.id)

    req.approval_logs.append(
        WithdrawalApprovalLog(
            approved_by_user_id=principal.id,
            approval_level=principal.role.value,
            status=Decision.APPROVED.value,
            approval_order=outcome.approval_order,
            remarks=remarks,
        )
    )
    req.approval_status = APPROVED_STATUS_BY_ROLE[principal.role].value
    db.flush()

    logger.info("Withdrawal %s approved by %s", req.request_id, principal.role.value)
    if outcome.is_final:
        notifier.notify_member(
            req.member_id,
            "Withdrawal Request Approved",
            f"Your withdrawal request of {money(req.amount)} has been approved and will be disbursed.",
            "WITHDRAWAL_APPROVED",
        )
    else:
        notifier.notify_role(
            outcome.next_role,
            f"Withdrawal Request Approved by {principal.role.value}",
            f"Withdrawal request of {money(req.amount)} is ready for your approval.",
            "WITHDRAWAL_APPROVAL",
        )
    return req


def reject_request(db: Session, request_id: int, principal: Principal, remarks: Optional[str],
                   notifier: Notifier) -> WithdrawalRequest:
    remarks = (remarks or "").strip()
    if not remarks:
        raise ValidationError("Remarks are required to reject a withdrawal", requirement="Rejection Remarks")

    req = get_request(db, request_id)
    if req.approval_status not in OPEN_STATUSES:
        raise SequenceViolation(
            f"Withdrawal request is already {req.approval_status}",
            requirement="Approval Sequence",
            status=req.approval_status,
        )

    log = _log(req)
    if machine.next_required(log) is None:
        raise SequenceViolation(
            "Withdrawal request is fully approved and awaiting disbursement",
            requirement="Approval Sequence",
            status=req.approval_status,
        )
    order = machine.check_rejection(log, principal.role)

    req.approval_logs.append(
        WithdrawalApprovalLog(
            approved_by_user_id=principal.id,
            approval_level=principal.role.value,
            status=Decision.REJECTED.value,
            approval_order=order,
            remarks=remarks,
        )
    )
    req.approval_status = WithdrawalStatus.REJECTED.value
    db.flush()

    logger.info("Withdrawal %s rejected by %s", req.request_id, principal.role.value)
    notifier.notify_member(
        req.member_id,
        "Withdrawal Request Rejected",
        f"Your withdrawal request of {money(req.amount)} has been rejected. Reason: {remarks}",
        "WITHDRAWAL_REJECTED",
    )
    return req


def disburse_request(db: Session, request_id: int, principal: Principal, notifier: Notifier) -> WithdrawalRequest:
    """Pay out a manager-approved request; the only step that reduces the balance."""
    req = get_request(db, request_id)
    if req.approval_status != WithdrawalStatus.APPROVED_BY_MANAGER.value:
        raise SequenceViolation(
            "Withdrawal request must be approved by manager before disbursement",
            requirement="Approval Sequence",
            status=req.approval_status,
        )

    amt = money(req.amount)
    balance = willing_deposit_balance(db, req.member_id)
    if balance < amt:
        raise ValidationError(
            "Insufficient willing deposit balance",
            requirement="Willing Deposit Balance",
            available_balance=float(balance),
            requested_amount=float(amt),
        )

    today = date.today()
    reference = f"WITHDRAWAL-{req.request_id}"
    txn = Transaction(
        member_id=req.member_id,
        txn_type=TransactionType.WILLING_DEPOSIT.value,
        amount=-amt,
        transaction_date=today,
        reference=reference,
        source_type="WITHDRAWAL",
    )
    db.add(txn)
    db.flush()

    accounting_service.record_withdrawal(db, req.member_id, amt, today, reference, transaction_id=txn.transaction_id)

    req.approval_status = WithdrawalStatus.DISBURSED.value
    req.disbursed_on = datetime.now()
    db.flush()

    logger.info("Withdrawal %s disbursed by user %s (%s)", req.request_id, principal.id, amt)
    notifier.notify_member(
        req.member_id,
        "Withdrawal Disbursed",
        f"Your withdrawal of {amt} has been successfully disbursed.",
        "WITHDRAWAL_DISBURSED",
    )
    return req


def history(db: Session, member_id: int) -> List[WithdrawalRequest]:
    return (
        db.query(WithdrawalRequest)
        .filter(WithdrawalRequest.member_id == member_id)
        .order_by(WithdrawalRequest.created_on.desc(), WithdrawalRequest.request_id.desc())
        .all()
    )

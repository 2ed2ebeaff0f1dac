# app/services/membership_service.py
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError, SequenceViolation, ValidationError
from app.core.security import Principal
from app.models.member_model import Member
from app.models.membership_model import MembershipApprovalLog, MembershipRequest
from app.models.user_model import UserRole
from app.services.approval_workflow import (
    ApprovalStateMachine,
    Decision,
    LogEntry,
    MEMBERSHIP_HIERARCHY,
)
from app.services.notification_service import Notifier
from app.utils.loan_calculations import money, parse_amount

logger = logging.getLogger(__name__)

machine = ApprovalStateMachine(MEMBERSHIP_HIERARCHY, subject="membership request")


def _log(req: MembershipRequest) -> List[LogEntry]:
    return [LogEntry(role=row.role, decision=row.status, actor_id=row.actor_user_id) for row in req.approval_logs]


def get_request(db: Session, request_id: int) -> MembershipRequest:
    req = db.query(MembershipRequest).filter(MembershipRequest.request_id == request_id).first()
    if not req:
        raise NotFoundError("Membership request not found", requirement="Membership Request", request_id=request_id)
    return req


def _next_member_number(db: Session) -> int:
    last = db.query(func.max(Member.member_number)).scalar() or 0
    return int(last) + 1


def submit_request(db: Session, data: dict, notifier: Notifier) -> MembershipRequest:
    full_name = (data.get("full_name") or "").strip()
    if not full_name:
        raise ValidationError("Full name is required", requirement="Full Name")

    et_number = data.get("et_number")
    if et_number is None:
        raise ValidationError("ET number is required", requirement="ET Number")

    salary = parse_amount(data.get("salary", 0))
    if salary is None or salary < 0:
        raise ValidationError("Salary must be a non-negative number", requirement="Salary", current=str(data.get("salary")))

    if db.query(Member.member_id).filter(Member.et_number == et_number).first():
        raise ConflictError("A member with this ET number already exists", requirement="Unique ET Number",
                            et_number=et_number)
    open_request = (
        db.query(MembershipRequest.request_id)
        .filter(MembershipRequest.et_number == et_number, MembershipRequest.status == Decision.PENDING.value)
        .first()
    )
    if open_request:
        raise ConflictError("A membership request for this ET number is already pending",
                            requirement="Unique ET Number", request_id=open_request.request_id)

    req = MembershipRequest(
        full_name=full_name,
        email=data.get("email"),
        phone=data.get("phone"),
        et_number=et_number,
        department=data.get("department"),
        salary=salary,
        status=Decision.PENDING.value,
        approval_order=0,
    )
    db.add(req)
    db.flush()

    logger.info("Membership request %s submitted for ET %s", req.request_id, et_number)
    notifier.notify_all_of_role(
        UserRole.ACCOUNTANT,
        "Membership Request",
        f"Membership request from {full_name} needs your approval",
        "MEMBERSHIP_APPROVAL",
    )
    return req


def _create_member(db: Session, req: MembershipRequest) -> Member:
    member = Member(
        et_number=req.et_number,
        member_number=_next_member_number(db),
        full_name=req.full_name,
        email=req.email,
        phone=req.phone,
        department=req.department,
        salary=money(req.salary),
        is_active=True,
    )
    db.add(member)
    db.flush()
    return member


def approve_request(db: Session, request_id: int, principal: Principal, comments: Optional[str],
                    notifier: Notifier) -> Tuple[MembershipRequest, Optional[Member]]:
    req = get_request(db, request_id)
    if req.status != Decision.PENDING.value:
        raise SequenceViolation(
            f"Membership request is already {req.status}",
            requirement="Approval Sequence",
            status=req.status,
        )

    outcome = machine.check_approval(_log(req), principal.role, principal.id)

    req.approval_logs.append(
        MembershipApprovalLog(
            actor_user_id=principal.id,
            role=principal.role.value,
            status=Decision.APPROVED.value,
            approval_order=outcome.approval_order,
            comments=comments,
        )
    )
    req.approval_order = outcome.next_order

    member = None
    if outcome.is_final:
        if db.query(Member.member_id).filter(Member.et_number == req.et_number).first():
            raise ConflictError("A member with this ET number already exists", requirement="Unique ET Number",
                                et_number=req.et_number)
        member = _create_member(db, req)
        req.member_id = member.member_id
        req.status = Decision.APPROVED.value
        logger.info("Membership request %s approved, member %s created", req.request_id, member.member_id)
    else:
        logger.info("Membership request %s approved by %s", req.request_id, principal.role.value)
        notifier.notify_all_of_role(
            outcome.next_role,
            "Membership Request",
            f"Membership request from {req.full_name} was approved by {principal.role.value} and needs your approval",
            "MEMBERSHIP_APPROVAL",
        )
    db.flush()
    return req, member


def reject_request(db: Session, request_id: int, principal: Principal, comments: Optional[str]) -> MembershipRequest:
    req = get_request(db, request_id)
    if req.status != Decision.PENDING.value:
        raise SequenceViolation(
            f"Membership request is already {req.status}",
            requirement="Approval Sequence",
            status=req.status,
        )

    order = machine.check_rejection(_log(req), principal.role)
    req.approval_logs.append(
        MembershipApprovalLog(
            actor_user_id=principal.id,
            role=principal.role.value,
            status=Decision.REJECTED.value,
            approval_order=order,
            comments=comments,
        )
    )
    req.status = Decision.REJECTED.value
    db.flush()

    logger.info("Membership request %s rejected by %s", req.request_id, principal.role.value)
    return req


def list_requests(db: Session, principal: Principal, status: Optional[str] = None,
                  awaiting_me: bool = False) -> List[MembershipRequest]:
    q = db.query(MembershipRequest)
    if status:
        q = q.filter(MembershipRequest.status == status.strip().upper())
    rows = q.order_by(MembershipRequest.created_on.desc(), MembershipRequest.request_id.desc()).all()
    if not awaiting_me:
        return rows
    return [
        r for r in rows
        if r.status == Decision.PENDING.value and machine.next_required(_log(r)) == principal.role
    ]

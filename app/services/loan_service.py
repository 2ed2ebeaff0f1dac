# app/services/loan_service.py
"""
Loan lifecycle: application, approval chain, schedule generation and
disbursement posting. Functions mutate the session and flush; the router
commits once per request and then flushes the notifier.
"""
import logging
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError, SequenceViolation, ValidationError
from app.core.security import Principal
from app.models.loan_approval_log_model import LoanApprovalLog
from app.models.loan_model import Loan, LoanStatus
from app.models.loan_repayment_model import LoanRepayment, RepaymentStatus
from app.models.member_model import Member
from app.models.user_model import UserRole
from app.services import accounting_service
from app.services.approval_workflow import (
    ApprovalOutcome,
    ApprovalStateMachine,
    Decision,
    LogEntry,
    loan_hierarchy,
)
from app.services.loan_qualification import QualificationResult, qualify_member
from app.services.notification_service import Notifier
from app.utils.loan_calculations import build_monthly_schedule, money
from app.utils.settings import min_committee_approval

logger = logging.getLogger(__name__)


def loan_state_machine(db: Session) -> ApprovalStateMachine:
    return ApprovalStateMachine(loan_hierarchy(min_committee_approval(db)), subject="loan")


def loan_log(loan: Loan) -> List[LogEntry]:
    return [LogEntry(role=row.role, decision=row.status, actor_id=row.actor_user_id) for row in loan.approval_logs]


def get_loan(db: Session, loan_id: int) -> Loan:
    loan = db.query(Loan).filter(Loan.loan_id == loan_id).first()
    if not loan:
        raise NotFoundError("Loan not found", requirement="Loan", loan_id=loan_id)
    return loan


# =================================================
# Application
# =================================================
def apply_for_loan(
        db: Session,
        member: Member,
        amount,
        tenure_months: int,
        purpose: Optional[str],
        notifier: Notifier,
) -> Tuple[Loan, QualificationResult]:
    result = qualify_member(db, member, amount, tenure_months)

    loan = Loan(
        member_id=member.member_id,
        product_id=result.product.product_id,
        amount=result.amount,
        remaining_amount=result.amount,
        interest_rate=result.product.interest_rate,
        tenure_months=result.tenure_months,
        purpose=purpose,
        status=LoanStatus.PENDING.value,
        approval_order=0,
    )
    loan.approval_logs.append(
        LoanApprovalLog(
            actor_user_id=None,
            role=UserRole.MEMBER.value,
            status=Decision.PENDING.value,
            approval_order=0,
            comments="Loan application submitted",
        )
    )
    db.add(loan)
    db.flush()

    logger.info(
        "Loan %s applied by member %s: %s over %s months on %s",
        loan.loan_id, member.member_id, result.amount, result.tenure_months, result.product.product_name,
    )

    notifier.notify_role(
        UserRole.ACCOUNTANT,
        "New Loan Application",
        f"Loan application #{loan.loan_id} for {result.amount} requires your approval",
        "LOAN_APPROVAL",
    )
    return loan, result


# =================================================
# Approval chain
# =================================================
def generate_repayment_schedule(db: Session, loan: Loan, start: Optional[date] = None) -> List[LoanRepayment]:
    """Create the equal monthly installments once; later calls return the existing ones."""
    if loan.repayments:
        return list(loan.repayments)

    start = start or loan.disbursed_on or date.today()
    for no, due, amount in build_monthly_schedule(loan.amount, loan.tenure_months, start):
        loan.repayments.append(
            LoanRepayment(
                installment_no=no,
                repayment_date=due,
                amount=amount,
                paid_amount=0,
                status=RepaymentStatus.PENDING.value,
                source_type="SCHEDULE",
            )
        )
    db.flush()
    logger.info("Repayment schedule created for loan %s (%s installments)", loan.loan_id, loan.tenure_months)
    return list(loan.repayments)


def approve_loan(
        db: Session,
        loan_id: int,
        principal: Principal,
        comments: Optional[str],
        notifier: Notifier,
) -> Tuple[Loan, ApprovalOutcome]:
    loan = get_loan(db, loan_id)
    if loan.status != LoanStatus.PENDING.value:
        raise SequenceViolation(
            f"Loan is already {loan.status}",
            requirement="Approval Sequence",
            status=loan.status,
        )

    machine = loan_state_machine(db)
    outcome = machine.check_approval(loan_log(loan), principal.role, principal.id)

    loan.approval_logs.append(
        LoanApprovalLog(
            actor_user_id=principal.id,
            role=principal.role.value,
            status=Decision.APPROVED.value,
            approval_order=outcome.approval_order,
            comments=comments,
            committee_approval=outcome.committee_approval,
        )
    )
    loan.approval_order = outcome.next_order

    if outcome.is_final:
        loan.status = LoanStatus.DISBURSED.value
        loan.disbursed_on = date.today()
        db.flush()
        generate_repayment_schedule(db, loan, loan.disbursed_on)
        logger.info("Loan %s fully approved and disbursed", loan.loan_id)
        notifier.notify_member(
            loan.member_id,
            "Loan Approved",
            f"Your loan #{loan.loan_id} of {money(loan.amount)} has been approved and disbursed",
            "LOAN_STATUS",
        )
    elif outcome.committee_approval is not None:
        db.flush()
        logger.info(
            "Loan %s committee approval %s by user %s", loan.loan_id, outcome.committee_approval, principal.id
        )
        # skip everyone who already signed, including this approval
        signed = {
            e.actor_id
            for e in loan_log(loan)
            if e.role == UserRole.COMMITTEE.value and e.decision == Decision.APPROVED.value
        }
        notifier.notify_role(
            UserRole.COMMITTEE,
            "Loan Approval Required",
            f"Loan #{loan.loan_id} needs another committee approval",
            "LOAN_APPROVAL",
            exclude_user_ids=signed | {principal.id},
        )
    else:
        db.flush()
        logger.info("Loan %s approved by %s, next %s", loan.loan_id, principal.role.value, outcome.next_role.value)
        notifier.notify_role(
            outcome.next_role,
            "Loan Approval Required",
            f"Loan #{loan.loan_id} was approved by {principal.role.value} and needs your approval",
            "LOAN_APPROVAL",
        )

    return loan, outcome


def reject_loan(
        db: Session,
        loan_id: int,
        principal: Principal,
        comments: Optional[str],
        notifier: Notifier,
) -> Loan:
    loan = get_loan(db, loan_id)
    if loan.status != LoanStatus.PENDING.value:
        raise SequenceViolation(
            f"Only pending loans can be rejected (loan is {loan.status})",
            requirement="Approval Sequence",
            status=loan.status,
        )

    order = loan_state_machine(db).check_rejection(loan_log(loan), principal.role)

    loan.approval_logs.append(
        LoanApprovalLog(
            actor_user_id=principal.id,
            role=principal.role.value,
            status=Decision.REJECTED.value,
            approval_order=order,
            comments=comments,
        )
    )
    loan.status = LoanStatus.REJECTED.value
    db.flush()

    logger.info("Loan %s rejected by %s", loan.loan_id, principal.role.value)
    notifier.notify_member(
        loan.member_id,
        "Loan Rejected",
        f"Your loan #{loan.loan_id} was rejected by {principal.role.value}"
        + (f": {comments}" if comments else ""),
        "LOAN_STATUS",
    )
    return loan


def post_disbursement(db: Session, loan_id: int, entry_date: Optional[date] = None):
    """Book the cash leaving for a DISBURSED loan. Allowed once per loan."""
    loan = get_loan(db, loan_id)
    if loan.status not in (LoanStatus.DISBURSED.value, LoanStatus.REPAID.value):
        raise ValidationError(
            "Only disbursed loans can be posted to the ledger",
            requirement="Loan Disbursed",
            status=loan.status,
        )
    if loan.disbursement_posted_on is not None:
        raise ConflictError(
            "Loan disbursement already posted",
            requirement="Single Disbursement Posting",
            posted_on=loan.disbursement_posted_on.isoformat(),
        )

    entry = accounting_service.record_loan_disbursement(
        db,
        member_id=loan.member_id,
        amount=loan.amount,
        entry_date=entry_date or loan.disbursed_on or date.today(),
        reference=f"LOAN-{loan.loan_id}",
    )
    loan.disbursement_posted_on = datetime.now()
    db.flush()
    return loan, entry


# =================================================
# Queries
# =================================================
def pending_loans_for(db: Session, principal: Principal) -> List[Loan]:
    """Pending loans whose next required approver is the caller's role."""
    machine = loan_state_machine(db)
    loans = (
        db.query(Loan)
        .filter(Loan.status == LoanStatus.PENDING.value)
        .order_by(Loan.created_on.asc(), Loan.loan_id.asc())
        .all()
    )
    out = []
    for loan in loans:
        log = loan_log(loan)
        if machine.next_required(log) != principal.role:
            continue
        # committee members only see loans they have not approved yet
        if any(e.actor_id == principal.id and e.decision == Decision.APPROVED.value for e in log):
            continue
        out.append(loan)
    return out


def approval_history(
        db: Session,
        actor_user_id: Optional[int] = None,
        status: Optional[str] = None,
        role: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
) -> dict:
    page = max(1, page)
    limit = max(1, min(limit, 200))

    q = db.query(LoanApprovalLog).filter(LoanApprovalLog.role != UserRole.MEMBER.value)
    if actor_user_id is not None:
        q = q.filter(LoanApprovalLog.actor_user_id == actor_user_id)
    if status:
        q = q.filter(LoanApprovalLog.status == status.strip().upper())
    if role:
        q = q.filter(LoanApprovalLog.role == role.strip().upper())

    total = q.count()
    rows = (
        q.order_by(LoanApprovalLog.approval_date.desc(), LoanApprovalLog.log_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": rows, "page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit}


def disbursed_loans(db: Session, member_id: Optional[int] = None) -> List[Loan]:
    q = db.query(Loan).filter(Loan.status == LoanStatus.DISBURSED.value)
    if member_id is not None:
        q = q.filter(Loan.member_id == member_id)
    return q.order_by(Loan.disbursed_on.desc(), Loan.loan_id.desc()).all()


def loans_by_member(db: Session, member_id: int, status: Optional[str] = None) -> List[Loan]:
    q = db.query(Loan).filter(Loan.member_id == member_id)
    if status:
        q = q.filter(Loan.status == status.strip().upper())
    return q.order_by(Loan.loan_id.desc()).all()

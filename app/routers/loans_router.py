from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from starlette import status

from app.utils.database import get_db
from app.core.exceptions import AuthorizationError
from app.core.security import Principal, get_current_principal, require_role, require_staff
from app.models.loan_model import Loan
from app.models.user_model import UserRole
from app.services import loan_service
from app.services.member_service import member_for_principal
from app.services.notification_service import Notifier
from app.services.repayment_service import apply_repayment
from app.utils.loan_calculations import calculate_loan

from app.schemas.loan_schema import (
    LoanApply,
    LoanApplyResult,
    ApprovalDecision,
    ApprovalResult,
    ApprovalHistoryOut,
    LoanCalculate,
    LoanCalculationOut,
    LoanOut,
    LoanDetailOut,
    RepaymentCreate,
    RepaymentOut,
    RepaymentResultOut,
    DisbursementPostOut,
)

router = APIRouter(prefix="/loans", tags=["Loans"])


def ensure_can_view(db: Session, principal: Principal, loan: Loan) -> None:
    if principal.is_staff:
        return
    member = member_for_principal(db, principal)
    if member.member_id != loan.member_id:
        raise AuthorizationError("You can only view your own loans", requirement="Loan Ownership")


# =================================================
# 🔹 STATIC ROUTES (ALWAYS FIRST)
# =================================================
@router.post("/apply", response_model=LoanApplyResult, status_code=status.HTTP_201_CREATED)
def apply_loan(
        payload: LoanApply,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_role(principal, UserRole.MEMBER)
    member = member_for_principal(db, principal)

    notifier = Notifier(db)
    loan, result = loan_service.apply_for_loan(
        db,
        member=member,
        amount=payload.amount,
        tenure_months=payload.tenure_months,
        purpose=payload.purpose,
        notifier=notifier,
    )
    db.commit()
    db.refresh(loan)
    notifier.flush()

    return {
        "loan": loan,
        "product_id": result.product.product_id,
        "product_name": result.product.product_name,
        "monthly_payment": float(result.monthly_payment),
        "total_contributions": float(result.total_contributions),
    }


@router.post("/calculate", response_model=LoanCalculationOut)
def calculate(payload: LoanCalculate):
    return calculate_loan(payload.amount, payload.interest_rate, payload.tenure_months)


@router.get("/pending", response_model=list[LoanOut])
def pending_loans(
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)
    return loan_service.pending_loans_for(db, principal)


@router.get("/approval-history", response_model=ApprovalHistoryOut)
def approval_history(
        mine: bool = Query(False),
        status_filter: Optional[str] = Query(None, alias="status"),
        role: Optional[str] = Query(None),
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=200),
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)
    return loan_service.approval_history(
        db,
        actor_user_id=principal.id if mine else None,
        status=status_filter,
        role=role,
        page=page,
        limit=limit,
    )


@router.get("/disbursed", response_model=list[LoanOut])
def disbursed_loans(
        member_id: Optional[int] = Query(None),
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)
    return loan_service.disbursed_loans(db, member_id)


@router.get("/by-member/{member_id}", response_model=list[LoanOut])
def loans_by_member(
        member_id: int,
        status_filter: Optional[str] = Query(None, alias="status"),
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    if not principal.is_staff and member_for_principal(db, principal).member_id != member_id:
        raise AuthorizationError("You can only view your own loans", requirement="Loan Ownership")
    return loan_service.loans_by_member(db, member_id, status_filter)


@router.post("/repayments", response_model=RepaymentResultOut)
def record_repayment(
        payload: RepaymentCreate,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_role(principal, UserRole.ACCOUNTANT, UserRole.MANAGER)

    notifier = Notifier(db)
    result = apply_repayment(
        db,
        member_id=payload.member_id,
        amount=payload.amount,
        payment_date=payload.payment_date,
        source_type=payload.source_type,
        reference=payload.reference,
        notifier=notifier,
    )
    db.commit()
    notifier.flush()
    return result


# =================================================
# 🔹 LOAN ROUTES
# =================================================
@router.get("/{loan_id}", response_model=LoanDetailOut)
def loan_detail(
        loan_id: int,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    loan = loan_service.get_loan(db, loan_id)
    ensure_can_view(db, principal, loan)
    return loan


@router.get("/{loan_id}/repayments", response_model=list[RepaymentOut])
def loan_repayments(
        loan_id: int,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    loan = loan_service.get_loan(db, loan_id)
    ensure_can_view(db, principal, loan)
    return sorted(loan.repayments, key=lambda r: (r.repayment_date, r.installment_no))


@router.post("/{loan_id}/approve", response_model=ApprovalResult)
def approve_loan(
        loan_id: int,
        payload: ApprovalDecision,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)

    notifier = Notifier(db)
    loan, outcome = loan_service.approve_loan(db, loan_id, principal, payload.comments, notifier)
    db.commit()
    db.refresh(loan)
    notifier.flush()

    return {
        "loan": loan,
        "approval_order": outcome.approval_order,
        "committee_approval": outcome.committee_approval,
        "is_final": outcome.is_final,
        "next_role": outcome.next_role.value if outcome.next_role else None,
    }


@router.post("/{loan_id}/reject", response_model=LoanOut)
def reject_loan(
        loan_id: int,
        payload: ApprovalDecision,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)

    notifier = Notifier(db)
    loan = loan_service.reject_loan(db, loan_id, principal, payload.comments, notifier)
    db.commit()
    db.refresh(loan)
    notifier.flush()
    return loan


@router.post("/{loan_id}/post-disbursement", response_model=DisbursementPostOut)
def post_disbursement(
        loan_id: int,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_role(principal, UserRole.ACCOUNTANT, UserRole.MANAGER)

    loan, entry = loan_service.post_disbursement(db, loan_id)
    db.commit()
    return {
        "loan_id": loan.loan_id,
        "entry_number": entry.entry_number,
        "amount": float(loan.amount),
        "posted_on": loan.disbursement_posted_on,
    }

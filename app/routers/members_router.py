from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from starlette import status

from app.utils.database import get_db
from app.core.exceptions import AuthorizationError
from app.core.security import Principal, get_current_principal, require_role, require_staff
from app.models.member_model import Member
from app.models.user_model import UserRole
from app.services import member_service
from app.services.notification_service import Notifier
from app.services.repayment_service import RepaymentResult

from app.schemas.loan_schema import RepaymentResultOut
from app.schemas.member_schema import (
    MemberOut,
    MemberBalancesOut,
    TransactionCreate,
    TransactionOut,
    PayrollImport,
    PayrollImportOut,
)

router = APIRouter(prefix="/members", tags=["Members"])


def ensure_self_or_staff(db: Session, principal: Principal, member_id: int) -> None:
    if principal.is_staff:
        return
    if member_service.member_for_principal(db, principal).member_id != member_id:
        raise AuthorizationError("You can only view your own records", requirement="Member Ownership")


# =================================================
# 🔹 STATIC ROUTES (ALWAYS FIRST)
# =================================================
@router.get("/me", response_model=MemberOut)
def me(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return member_service.member_for_principal(db, principal)


@router.post("/payroll-import", response_model=PayrollImportOut)
def payroll_import(
        payload: PayrollImport,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_role(principal, UserRole.ACCOUNTANT, UserRole.MANAGER)

    notifier = Notifier(db)
    summary = member_service.import_payroll(
        db, payload.rows, payload.period, source_type=payload.source_type, notifier=notifier
    )
    db.commit()
    notifier.flush()
    return summary


@router.get("", response_model=list[MemberOut])
def list_members(
        search: Optional[str] = None,
        limit: int = Query(50, ge=1, le=200),
        offset: int = Query(0, ge=0),
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)
    q = db.query(Member)
    if search:
        q = q.filter(Member.full_name.ilike(f"%{search}%"))
    return q.order_by(Member.member_id.asc()).offset(offset).limit(limit).all()


@router.get("/by-et/{et_number}", response_model=MemberOut)
def member_by_et_number(
        et_number: int,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    member = member_service.get_member_by_et_number(db, et_number)
    ensure_self_or_staff(db, principal, member.member_id)
    return member


# =================================================
# 🔹 MEMBER ROUTES
# =================================================
@router.get("/{member_id}", response_model=MemberOut)
def get_member(
        member_id: int,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    ensure_self_or_staff(db, principal, member_id)
    return member_service.get_member(db, member_id)


@router.get("/{member_id}/balances", response_model=MemberBalancesOut)
def member_balances(
        member_id: int,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    ensure_self_or_staff(db, principal, member_id)
    return member_service.member_balances(db, member_id)


@router.get("/{member_id}/transactions", response_model=list[TransactionOut])
def member_transactions(
        member_id: int,
        txn_type: Optional[str] = Query(None),
        limit: int = Query(50, ge=1, le=200),
        offset: int = Query(0, ge=0),
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    ensure_self_or_staff(db, principal, member_id)
    member_service.get_member(db, member_id)
    return member_service.member_transactions(db, member_id, txn_type, limit, offset)


@router.post(
    "/{member_id}/transactions",
    response_model=TransactionOut | RepaymentResultOut,
    status_code=status.HTTP_201_CREATED,
)
def record_transaction(
        member_id: int,
        payload: TransactionCreate,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_role(principal, UserRole.ACCOUNTANT, UserRole.MANAGER)

    notifier = Notifier(db)
    result = member_service.record_transaction(
        db,
        member_id=member_id,
        txn_type=payload.txn_type,
        amount=payload.amount,
        transaction_date=payload.transaction_date,
        reference=payload.reference,
        source_type=payload.source_type,
        notifier=notifier,
    )
    db.commit()
    if not isinstance(result, RepaymentResult):
        db.refresh(result)
    notifier.flush()
    return result

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from starlette import status

from app.utils.database import get_db
from app.core.exceptions import AuthorizationError, ValidationError
from app.core.security import Principal, get_current_principal, require_role, require_staff
from app.models.user_model import UserRole
from app.services import withdrawal_service
from app.services.member_service import member_for_principal
from app.services.notification_service import Notifier

from app.schemas.withdrawal_schema import (
    WithdrawalSubmit,
    WithdrawalDecision,
    WithdrawalOut,
    WithdrawalBalanceOut,
)

router = APIRouter(prefix="/withdrawals", tags=["Withdrawals"])


def resolve_member_id(db: Session, principal: Principal, member_id: int | None) -> int:
    """Members act on themselves; staff must name the member."""
    if principal.is_staff:
        if member_id is None:
            raise ValidationError("member_id is required", requirement="Member")
        return member_id
    own = member_for_principal(db, principal).member_id
    if member_id is not None and member_id != own:
        raise AuthorizationError("You can only act on your own deposits", requirement="Member Ownership")
    return own


@router.get("/balance/{member_id}", response_model=WithdrawalBalanceOut)
def willing_deposit_balance(
        member_id: int,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    return withdrawal_service.balance_summary(db, resolve_member_id(db, principal, member_id))


@router.post("/submit", response_model=WithdrawalOut, status_code=status.HTTP_201_CREATED)
def submit_withdrawal(
        payload: WithdrawalSubmit,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    member_id = resolve_member_id(db, principal, payload.member_id)

    notifier = Notifier(db)
    req = withdrawal_service.submit_request(db, member_id, payload.amount, notifier)
    db.commit()
    db.refresh(req)
    notifier.flush()
    return req


@router.get("/pending", response_model=list[WithdrawalOut])
def pending_withdrawals(
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)
    return withdrawal_service.pending_for_role(db, principal.role)


@router.get("/history/{member_id}", response_model=list[WithdrawalOut])
def withdrawal_history(
        member_id: int,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    return withdrawal_service.history(db, resolve_member_id(db, principal, member_id))


@router.post("/{request_id}/approve", response_model=WithdrawalOut)
def approve_withdrawal(
        request_id: int,
        payload: WithdrawalDecision,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)

    notifier = Notifier(db)
    req = withdrawal_service.approve_request(db, request_id, principal, payload.remarks, notifier)
    db.commit()
    db.refresh(req)
    notifier.flush()
    return req


@router.post("/{request_id}/reject", response_model=WithdrawalOut)
def reject_withdrawal(
        request_id: int,
        payload: WithdrawalDecision,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)

    notifier = Notifier(db)
    req = withdrawal_service.reject_request(db, request_id, principal, payload.remarks, notifier)
    db.commit()
    db.refresh(req)
    notifier.flush()
    return req


@router.post("/{request_id}/disburse", response_model=WithdrawalOut)
def disburse_withdrawal(
        request_id: int,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_role(principal, UserRole.MANAGER)

    notifier = Notifier(db)
    req = withdrawal_service.disburse_request(db, request_id, principal, notifier)
    db.commit()
    db.refresh(req)
    notifier.flush()
    return req

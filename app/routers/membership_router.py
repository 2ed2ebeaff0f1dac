from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from starlette import status

from app.utils.database import get_db
from app.core.security import Principal, get_current_principal, require_staff
from app.services import membership_service
from app.services.notification_service import Notifier

from app.schemas.membership_schema import (
    MembershipRequestCreate,
    MembershipDecision,
    MembershipRequestOut,
)

router = APIRouter(prefix="/membership", tags=["Membership"])


# public: applicants have no account yet
@router.post("/request", response_model=MembershipRequestOut, status_code=status.HTTP_201_CREATED)
def submit_membership_request(payload: MembershipRequestCreate, db: Session = Depends(get_db)):
    notifier = Notifier(db)
    req = membership_service.submit_request(db, payload.model_dump(), notifier)
    db.commit()
    db.refresh(req)
    notifier.flush()
    return req


@router.get("/requests", response_model=list[MembershipRequestOut])
def list_membership_requests(
        status_filter: Optional[str] = Query(None, alias="status"),
        awaiting_me: bool = Query(False),
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)
    return membership_service.list_requests(db, principal, status_filter, awaiting_me)


@router.get("/requests/{request_id}", response_model=MembershipRequestOut)
def get_membership_request(
        request_id: int,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)
    return membership_service.get_request(db, request_id)


@router.post("/requests/{request_id}/approve", response_model=MembershipRequestOut)
def approve_membership_request(
        request_id: int,
        payload: MembershipDecision,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)

    notifier = Notifier(db)
    req, _member = membership_service.approve_request(db, request_id, principal, payload.comments, notifier)
    db.commit()
    db.refresh(req)
    notifier.flush()
    return req


@router.post("/requests/{request_id}/reject", response_model=MembershipRequestOut)
def reject_membership_request(
        request_id: int,
        payload: MembershipDecision,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_staff(principal)

    req = membership_service.reject_request(db, request_id, principal, payload.comments)
    db.commit()
    db.refresh(req)
    return req

# app/models/withdrawal_model.py
import enum

from sqlalchemy import Column, Integer, String, DateTime, Numeric, Text, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.utils.database import Base


class WithdrawalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED_BY_ACCOUNTANT = "APPROVED_BY_ACCOUNTANT"
    APPROVED_BY_SUPERVISOR = "APPROVED_BY_SUPERVISOR"
    APPROVED_BY_MANAGER = "APPROVED_BY_MANAGER"
    DISBURSED = "DISBURSED"
    REJECTED = "REJECTED"


class WithdrawalRequest(Base):
    __tablename__ = "withdrawal_requests"

    request_id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.member_id", ondelete="RESTRICT"), nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    requested_amount = Column(Numeric(12, 2), nullable=False)

    approval_status = Column(String(30), nullable=False, server_default=WithdrawalStatus.PENDING.value, index=True)
    disbursed_on = Column(DateTime, nullable=True)

    created_on = Column(DateTime, server_default=func.now())

    member = relationship("Member")
    approval_logs = relationship(
        "WithdrawalApprovalLog",
        back_populates="request",
        order_by="WithdrawalApprovalLog.log_id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class WithdrawalApprovalLog(Base):
    __tablename__ = "withdrawal_approval_logs"

    log_id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("withdrawal_requests.request_id", ondelete="CASCADE"), nullable=False, index=True)

    approved_by_user_id = Column(Integer, nullable=False)
    approval_level = Column(String(20), nullable=False)

    # APPROVED / REJECTED
    status = Column(String(20), nullable=False)
    approval_order = Column(Integer, nullable=False)
    remarks = Column(Text, nullable=True)

    created_on = Column(DateTime, server_default=func.now())

    request = relationship("WithdrawalRequest", back_populates="approval_logs")

# app/models/membership_model.py
from sqlalchemy import Column, Integer, String, DateTime, Numeric, Text, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.utils.database import Base


class MembershipRequest(Base):
    __tablename__ = "membership_requests"

    request_id = Column(Integer, primary_key=True, index=True)

    full_name = Column(String(150), nullable=False)
    email = Column(String(150), nullable=True)
    phone = Column(String(30), nullable=True)
    et_number = Column(Integer, nullable=False, index=True)
    department = Column(String(120), nullable=True)
    salary = Column(Numeric(12, 2), nullable=False, default=0)

    # PENDING / APPROVED / REJECTED
    status = Column(String(20), nullable=False, server_default="PENDING")
    approval_order = Column(Integer, nullable=False, server_default="0")

    member_id = Column(Integer, ForeignKey("members.member_id", ondelete="SET NULL"), nullable=True)

    created_on = Column(DateTime, server_default=func.now())

    approval_logs = relationship(
        "MembershipApprovalLog",
        back_populates="request",
        order_by="MembershipApprovalLog.log_id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class MembershipApprovalLog(Base):
    __tablename__ = "membership_approval_logs"

    log_id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("membership_requests.request_id", ondelete="CASCADE"), nullable=False, index=True)

    actor_user_id = Column(Integer, nullable=False)
    role = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    approval_order = Column(Integer, nullable=False)
    comments = Column(Text, nullable=True)

    created_on = Column(DateTime, server_default=func.now())

    request = relationship("MembershipRequest", back_populates="approval_logs")

# app/models/loan_model.py
import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Numeric,
    Text,
    ForeignKey,
    Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.utils.database import Base


class LoanStatus(str, enum.Enum):
    PENDING = "PENDING"
    # no longer assigned; legacy rows still count as outstanding
    APPROVED = "APPROVED"
    DISBURSED = "DISBURSED"
    REJECTED = "REJECTED"
    REPAID = "REPAID"


# one of these per member at a time
OUTSTANDING_LOAN_STATUSES = (
    LoanStatus.PENDING.value,
    LoanStatus.APPROVED.value,
    LoanStatus.DISBURSED.value,
)


class Loan(Base):
    __tablename__ = "loans"

    __table_args__ = (
        Index("ix_loans_status", "status"),
        Index("ix_loans_member_status", "member_id", "status"),
        Index("ix_loans_order_status", "approval_order", "status"),
    )

    loan_id = Column(Integer, primary_key=True, index=True)

    member_id = Column(Integer, ForeignKey("members.member_id", ondelete="RESTRICT"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("loan_products.product_id", ondelete="RESTRICT"), nullable=True)

    amount = Column(Numeric(12, 2), nullable=False)
    remaining_amount = Column(Numeric(12, 2), nullable=False)

    # snapshot of the product rate at origination
    interest_rate = Column(Numeric(5, 2), nullable=False)
    tenure_months = Column(Integer, nullable=False)
    purpose = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, server_default=LoanStatus.PENDING.value)

    # index of the next required approver in the loan hierarchy
    approval_order = Column(Integer, nullable=False, server_default="0")

    disbursed_on = Column(Date, nullable=True)
    disbursement_posted_on = Column(DateTime, nullable=True)

    created_on = Column(DateTime, server_default=func.now(), nullable=True)

    member = relationship("Member", back_populates="loans")
    product = relationship("LoanProduct")

    approval_logs = relationship(
        "LoanApprovalLog",
        back_populates="loan",
        order_by="LoanApprovalLog.log_id",
        cascade="all, delete-orphan",
        lazy="selectin",
        passive_deletes=True,
    )
    repayments = relationship(
        "LoanRepayment",
        back_populates="loan",
        order_by="LoanRepayment.installment_no",
        cascade="all, delete-orphan",
        lazy="selectin",
        passive_deletes=True,
    )

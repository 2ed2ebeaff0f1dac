# app/models/loan_approval_log_model.py
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.utils.database import Base


class LoanApprovalLog(Base):
    """Append-only audit row. Rows are never updated after insert."""
    __tablename__ = "loan_approval_logs"

    log_id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.loan_id", ondelete="CASCADE"), nullable=False, index=True)

    actor_user_id = Column(Integer, nullable=True)
    role = Column(String(20), nullable=False)

    # PENDING (application marker) / APPROVED / REJECTED
    status = Column(String(20), nullable=False)

    # hierarchy index at decision time; -1 for rejections
    approval_order = Column(Integer, nullable=False)

    comments = Column(Text, nullable=True)
    committee_approval = Column(Integer, nullable=True)

    approval_date = Column(DateTime, server_default=func.now(), nullable=False)

    loan = relationship("Loan", back_populates="approval_logs")

import enum

from sqlalchemy import (
    Column, Integer, String, Date, Numeric, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from app.utils.database import Base


class RepaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


class LoanRepayment(Base):
    __tablename__ = "loan_repayments"
    __table_args__ = (
        UniqueConstraint("loan_id", "installment_no", name="uq_loan_repayment_no"),
    )

    repayment_id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.loan_id", ondelete="CASCADE"), nullable=False, index=True)

    installment_no = Column(Integer, nullable=False)
    repayment_date = Column(Date, nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default=RepaymentStatus.PENDING.value)
    paid_on = Column(Date, nullable=True)

    # SCHEDULE / ERP_PAYROLL / CASH / BANK ...
    source_type = Column(String(30), nullable=False, default="SCHEDULE")

    loan = relationship("Loan", back_populates="repayments")

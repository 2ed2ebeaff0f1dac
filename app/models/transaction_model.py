# app/models/transaction_model.py
import enum

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.utils.database import Base


class TransactionType(str, enum.Enum):
    SAVINGS = "SAVINGS"
    MEMBERSHIP_FEE = "MEMBERSHIP_FEE"
    REGISTRATION_FEE = "REGISTRATION_FEE"
    COST_OF_SHARE = "COST_OF_SHARE"
    WILLING_DEPOSIT = "WILLING_DEPOSIT"
    LOAN_REPAYMENT = "LOAN_REPAYMENT"


# counted as lifetime contributions / savings for loan qualification
CONTRIBUTION_TYPES = (
    TransactionType.SAVINGS.value,
    TransactionType.MEMBERSHIP_FEE.value,
    TransactionType.REGISTRATION_FEE.value,
    TransactionType.COST_OF_SHARE.value,
    TransactionType.WILLING_DEPOSIT.value,
)


class Transaction(Base):
    """Append-only cash movement of a member."""
    __tablename__ = "transactions"

    __table_args__ = (
        # the payment reference doubles as an idempotency key
        UniqueConstraint("member_id", "txn_type", "reference", name="uq_transaction_reference"),
        Index("ix_transactions_member_type", "member_id", "txn_type"),
    )

    transaction_id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.member_id", ondelete="RESTRICT"), nullable=False, index=True)

    txn_type = Column(String(30), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    transaction_date = Column(Date, nullable=False)

    reference = Column(String(120), nullable=True)
    source_type = Column(String(30), nullable=True)

    created_on = Column(DateTime, server_default=func.now())

    member = relationship("Member", back_populates="transactions")

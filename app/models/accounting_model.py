# app/models/accounting_model.py
import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
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


class AccountType(str, enum.Enum):
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


# accounts whose balance grows on the debit side
DEBIT_NORMAL_TYPES = (AccountType.ASSET.value, AccountType.EXPENSE.value)


class ChartOfAccounts(Base):
    __tablename__ = "chart_of_accounts"

    account_id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(120), nullable=False)
    account_type = Column(String(20), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_on = Column(DateTime, server_default=func.now())

    def __repr__(self) -> str:
        return f"<ChartOfAccounts(code={self.code}, name={self.name})>"


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    entry_id = Column(Integer, primary_key=True, index=True)
    entry_number = Column(String(20), unique=True, nullable=False)

    entry_date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=False)
    reference = Column(String(120), nullable=True)
    transaction_id = Column(Integer, ForeignKey("transactions.transaction_id", ondelete="SET NULL"), nullable=True)

    total_debit = Column(Numeric(14, 2), nullable=False)
    total_credit = Column(Numeric(14, 2), nullable=False)
    is_balanced = Column(Boolean, nullable=False, default=True)
    status = Column(String(20), nullable=False, default="POSTED")

    created_on = Column(DateTime, server_default=func.now())

    lines = relationship(
        "JournalLine",
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalLine.line_id",
    )


class JournalLine(Base):
    __tablename__ = "journal_lines"

    line_id = Column(Integer, primary_key=True, index=True)
    entry_id = Column(Integer, ForeignKey("journal_entries.entry_id", ondelete="CASCADE"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("chart_of_accounts.account_id", ondelete="RESTRICT"), nullable=False)

    debit = Column(Numeric(14, 2), nullable=False, default=0)
    credit = Column(Numeric(14, 2), nullable=False, default=0)
    description = Column(Text, nullable=True)

    entry = relationship("JournalEntry", back_populates="lines")
    account = relationship("ChartOfAccounts", lazy="joined")


class GeneralLedger(Base):
    """Per-account posting, mirrors JournalLine for running-balance queries."""
    __tablename__ = "general_ledger"

    __table_args__ = (
        Index("ix_general_ledger_account_date", "account_id", "transaction_date"),
    )

    ledger_id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("chart_of_accounts.account_id", ondelete="RESTRICT"), nullable=False)
    entry_id = Column(Integer, ForeignKey("journal_entries.entry_id", ondelete="CASCADE"), nullable=False, index=True)

    debit = Column(Numeric(14, 2), nullable=False, default=0)
    credit = Column(Numeric(14, 2), nullable=False, default=0)

    transaction_date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)

    created_on = Column(DateTime, server_default=func.now())

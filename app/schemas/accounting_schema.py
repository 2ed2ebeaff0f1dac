from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional, List


class AccountOut(BaseModel):
    account_id: int
    code: str
    name: str
    account_type: str
    is_active: bool

    class Config:
        from_attributes = True


class AccountBalanceOut(BaseModel):
    account_code: str
    account_name: str
    account_type: str
    balance: float
    natural_balance: float
    as_of_date: date


class TrialBalanceRow(BaseModel):
    account_code: str
    account_name: str
    account_type: str
    debit: float
    credit: float


class TrialBalanceOut(BaseModel):
    trial_balance: List[TrialBalanceRow]
    total_debit: float
    total_credit: float
    is_balanced: bool
    as_of_date: date


class BalanceSheetOut(BaseModel):
    assets: List[TrialBalanceRow]
    liabilities: List[TrialBalanceRow]
    equity: List[TrialBalanceRow]
    current_period_earnings: float
    total_assets: float
    total_liabilities: float
    total_equity: float
    total_liabilities_and_equity: float
    is_balanced: bool
    as_of_date: date


class StatementLine(BaseModel):
    account_code: str
    account_name: str
    amount: float


class IncomeStatementOut(BaseModel):
    revenues: List[StatementLine]
    expenses: List[StatementLine]
    total_revenue: float
    total_expense: float
    net_income: float
    from_date: date
    to_date: date


class LedgerRowOut(BaseModel):
    ledger_id: int
    entry_number: str
    reference: Optional[str] = None
    transaction_date: date
    description: Optional[str] = None
    debit: float
    credit: float
    running_balance: float


class GeneralLedgerOut(BaseModel):
    account_code: str
    account_name: str
    opening_balance: float
    closing_balance: float
    entries: List[LedgerRowOut]
    from_date: Optional[date] = None
    to_date: Optional[date] = None


class LedgerSummaryRow(BaseModel):
    account_code: str
    account_name: str
    account_type: str
    total_debit: float
    total_credit: float
    balance: float
    entry_count: int


class JournalLineOut(BaseModel):
    line_id: int
    account: AccountOut
    debit: float
    credit: float
    description: Optional[str] = None

    class Config:
        from_attributes = True


class JournalEntryOut(BaseModel):
    entry_id: int
    entry_number: str
    entry_date: date
    description: str
    reference: Optional[str] = None
    transaction_id: Optional[int] = None
    total_debit: float
    total_credit: float
    is_balanced: bool
    status: str
    created_on: Optional[datetime] = None
    lines: List[JournalLineOut] = []

    class Config:
        from_attributes = True


class JournalEntryPage(BaseModel):
    entries: List[JournalEntryOut]
    page: int
    limit: int
    total: int
    pages: int


class AccountingMetricsOut(BaseModel):
    total_assets: float
    total_liabilities: float
    total_equity: float
    total_revenue: float
    total_expense: float
    net_income: float
    account_count: int
    journal_entry_count: int


class GlobalTotalsOut(BaseModel):
    total_debit: float
    total_credit: float
    is_balanced: bool

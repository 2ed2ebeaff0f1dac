from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from typing import Optional, List, Dict, Union


class MemberOut(BaseModel):
    member_id: int
    et_number: int
    member_number: Optional[int] = None
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    department: Optional[str] = None
    salary: float
    is_active: bool
    created_on: Optional[datetime] = None

    class Config:
        from_attributes = True


class TransactionCreate(BaseModel):
    txn_type: str
    amount: Union[float, str]
    transaction_date: Optional[date] = None
    reference: Optional[str] = None
    source_type: str = "CASH"

    @field_validator("reference", mode="before")
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class TransactionOut(BaseModel):
    transaction_id: int
    member_id: int
    txn_type: str
    amount: float
    transaction_date: date
    reference: Optional[str] = None
    source_type: Optional[str] = None
    created_on: Optional[datetime] = None

    class Config:
        from_attributes = True


class MemberBalancesOut(BaseModel):
    member_id: int
    et_number: int
    full_name: str
    totals_by_type: Dict[str, float]
    total_contributions: float
    willing_deposit_balance: float
    active_loan_id: Optional[int] = None
    active_loan_status: Optional[str] = None
    active_loan_remaining: Optional[float] = None


class PayrollImport(BaseModel):
    period: date
    source_type: str = "ERP_PAYROLL"
    # [{"et_number": 1001, "SAVINGS": 500, "LOAN_REPAYMENT": 1200}, ...]
    rows: List[dict] = Field(..., min_length=1)


class PayrollImportOut(BaseModel):
    period: str
    transactions_recorded: int
    repayments_without_loan: int
    total_amount: float

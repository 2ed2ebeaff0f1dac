from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from typing import Optional, List, Union


class LoanApply(BaseModel):
    amount: float = Field(gt=0)
    tenure_months: int = Field(gt=0)
    purpose: Optional[str] = None

    @field_validator("purpose", mode="before")
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class ApprovalDecision(BaseModel):
    comments: Optional[str] = None


class LoanCalculate(BaseModel):
    amount: float = Field(gt=0)
    interest_rate: float = Field(ge=0, le=100)
    tenure_months: int = Field(gt=0)


class LoanCalculationOut(BaseModel):
    principal: float
    interest_rate: float
    tenure_months: int
    monthly_payment: float
    total_payment: float
    total_interest: float


class RepaymentCreate(BaseModel):
    member_id: int
    # validated by the allocator so bad input gets a structured error
    amount: Union[float, str]
    reference: Optional[str] = None
    payment_date: Optional[date] = None
    source_type: str = "CASH"


class ApprovalLogOut(BaseModel):
    log_id: int
    loan_id: int
    actor_user_id: Optional[int] = None
    role: str
    status: str
    approval_order: int
    comments: Optional[str] = None
    committee_approval: Optional[int] = None
    approval_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class RepaymentOut(BaseModel):
    repayment_id: int
    installment_no: int
    repayment_date: date
    amount: float
    paid_amount: float
    status: str
    paid_on: Optional[date] = None
    source_type: str

    class Config:
        from_attributes = True


class LoanOut(BaseModel):
    loan_id: int
    member_id: int
    product_id: Optional[int] = None

    amount: float
    remaining_amount: float
    interest_rate: float
    tenure_months: int
    purpose: Optional[str] = None

    status: str
    approval_order: int
    disbursed_on: Optional[date] = None
    disbursement_posted_on: Optional[datetime] = None
    created_on: Optional[datetime] = None

    class Config:
        from_attributes = True


class LoanDetailOut(LoanOut):
    approval_logs: List[ApprovalLogOut] = []
    repayments: List[RepaymentOut] = []


class LoanApplyResult(BaseModel):
    loan: LoanOut
    product_id: int
    product_name: str
    monthly_payment: float
    total_contributions: float


class ApprovalResult(BaseModel):
    loan: LoanOut
    approval_order: int
    committee_approval: Optional[int] = None
    is_final: bool
    next_role: Optional[str] = None


class ApprovalHistoryOut(BaseModel):
    items: List[ApprovalLogOut]
    page: int
    limit: int
    total: int
    pages: int


class InstallmentAllocationOut(BaseModel):
    repayment_id: Optional[int] = None
    installment_no: int
    applied_amount: float
    paid_amount: float
    status: str

    class Config:
        from_attributes = True


class RepaymentResultOut(BaseModel):
    applied: bool
    member_id: int
    amount: float
    loan_id: Optional[int] = None
    allocated: float = 0
    surplus: float = 0
    surplus_policy: Optional[str] = None
    remaining_amount: Optional[float] = None
    loan_status: Optional[str] = None
    transaction_id: Optional[int] = None
    journal_entry_number: Optional[str] = None
    allocations: List[InstallmentAllocationOut] = []

    class Config:
        from_attributes = True


class DisbursementPostOut(BaseModel):
    loan_id: int
    entry_number: str
    amount: float
    posted_on: datetime

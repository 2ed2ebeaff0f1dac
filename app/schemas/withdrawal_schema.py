from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


class WithdrawalSubmit(BaseModel):
    member_id: Optional[int] = None
    amount: float = Field(gt=0)


class WithdrawalDecision(BaseModel):
    remarks: Optional[str] = None


class WithdrawalLogOut(BaseModel):
    log_id: int
    approved_by_user_id: int
    approval_level: str
    status: str
    approval_order: int
    remarks: Optional[str] = None
    created_on: Optional[datetime] = None

    class Config:
        from_attributes = True


class WithdrawalOut(BaseModel):
    request_id: int
    member_id: int
    amount: float
    requested_amount: float
    approval_status: str
    disbursed_on: Optional[datetime] = None
    created_on: Optional[datetime] = None
    approval_logs: List[WithdrawalLogOut] = []

    class Config:
        from_attributes = True


class WithdrawalBalanceOut(BaseModel):
    member_id: int
    willing_deposit_balance: float
    reserved_amount: float
    available_balance: float

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional


class LoanProductBase(BaseModel):
    product_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    interest_rate: float = Field(ge=0, le=100)
    min_duration_months: int = Field(ge=1)
    max_duration_months: int = Field(ge=1)
    min_total_contributions: float = Field(ge=0)
    required_savings_percentage: float = Field(ge=0, le=100)
    required_savings_during_loan: float = Field(ge=0, le=100)
    max_loan_based_on_salary_months: int = Field(ge=1)
    is_active: bool = True

    @model_validator(mode="after")
    def check_duration(self):
        if self.max_duration_months < self.min_duration_months:
            raise ValueError("max_duration_months must be >= min_duration_months")
        return self


class LoanProductCreate(LoanProductBase):
    pass


class LoanProductUpdate(BaseModel):
    product_name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    interest_rate: Optional[float] = Field(None, ge=0, le=100)
    min_duration_months: Optional[int] = Field(None, ge=1)
    max_duration_months: Optional[int] = Field(None, ge=1)
    min_total_contributions: Optional[float] = Field(None, ge=0)
    required_savings_percentage: Optional[float] = Field(None, ge=0, le=100)
    required_savings_during_loan: Optional[float] = Field(None, ge=0, le=100)
    max_loan_based_on_salary_months: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class LoanProductOut(BaseModel):
    product_id: int
    product_name: str
    description: Optional[str] = None
    interest_rate: float
    min_duration_months: int
    max_duration_months: int
    min_total_contributions: float
    required_savings_percentage: float
    required_savings_during_loan: float
    max_loan_based_on_salary_months: int
    is_active: bool
    created_on: Optional[datetime] = None

    class Config:
        from_attributes = True


class AutoAssignRequest(BaseModel):
    member_id: int


class AutoAssignOut(BaseModel):
    member_id: int
    total_contributions: float
    max_loan_amount: float
    product: LoanProductOut

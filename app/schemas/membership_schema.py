from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List


class MembershipRequestCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=150)
    email: Optional[str] = None
    phone: Optional[str] = None
    et_number: int
    department: Optional[str] = None
    salary: float = Field(0, ge=0)

    @field_validator("email", "phone", "department", mode="before")
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class MembershipDecision(BaseModel):
    comments: Optional[str] = None


class MembershipLogOut(BaseModel):
    log_id: int
    actor_user_id: int
    role: str
    status: str
    approval_order: int
    comments: Optional[str] = None
    created_on: Optional[datetime] = None

    class Config:
        from_attributes = True


class MembershipRequestOut(BaseModel):
    request_id: int
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    et_number: int
    department: Optional[str] = None
    salary: float
    status: str
    approval_order: int
    member_id: Optional[int] = None
    created_on: Optional[datetime] = None
    approval_logs: List[MembershipLogOut] = []

    class Config:
        from_attributes = True

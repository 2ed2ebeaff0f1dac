# app/models/member_model.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.utils.database import Base


class Member(Base):
    __tablename__ = "members"

    member_id = Column(Integer, primary_key=True, index=True)
    et_number = Column(Integer, unique=True, nullable=False, index=True)
    member_number = Column(Integer, unique=True, nullable=True)

    full_name = Column(String(150), nullable=False)
    email = Column(String(150), nullable=True)
    phone = Column(String(30), nullable=True)
    department = Column(String(120), nullable=True)

    salary = Column(Numeric(12, 2), nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)
    created_on = Column(DateTime, server_default=func.now())

    loans = relationship("Loan", back_populates="member")
    transactions = relationship("Transaction", back_populates="member")

    def __repr__(self) -> str:
        return f"<Member(id={self.member_id}, et_number={self.et_number})>"

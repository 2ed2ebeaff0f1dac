from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, Text
from sqlalchemy.sql import func
from app.utils.database import Base


class LoanProduct(Base):
    __tablename__ = "loan_products"

    product_id = Column(Integer, primary_key=True, index=True)
    product_name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)

    interest_rate = Column(Numeric(5, 2), nullable=False)

    min_duration_months = Column(Integer, nullable=False, default=1)
    max_duration_months = Column(Integer, nullable=False)

    # tier gate: lifetime contributions needed to qualify
    min_total_contributions = Column(Numeric(14, 2), nullable=False, default=0)

    required_savings_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    required_savings_during_loan = Column(Numeric(5, 2), nullable=False, default=0)
    max_loan_based_on_salary_months = Column(Integer, nullable=False)

    is_active = Column(Boolean, default=True)
    created_on = Column(DateTime, server_default=func.now())

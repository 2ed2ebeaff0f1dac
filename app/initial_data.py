# app/initial_data.py
import logging

from sqlalchemy.orm import Session

from app.models.loan_product_model import LoanProduct
from app.services.accounting_service import initialize_chart_of_accounts
from app.utils.database import SessionLocal

logger = logging.getLogger(__name__)

# (name, min contributions, months min-max, savings %, during-loan %, salary multiple)
DEFAULT_LOAN_PRODUCTS = [
    ("Short-Term Loan", 32000, 1, 24, 30, 35, 30),
    ("Medium-Term Loan", 62000, 25, 60, 30, 35, 30),
    ("Long-Term Loan", 132000, 61, 120, 30, 35, 30),
    ("Business Loan", 332000, 12, 120, 35, 40, 36),
]
DEFAULT_INTEREST_RATE = 9.5


def seed_loan_products(db: Session) -> int:
    if db.query(LoanProduct.product_id).first():
        return 0
    for name, minimum, lo, hi, savings_pct, during_pct, salary_months in DEFAULT_LOAN_PRODUCTS:
        db.add(
            LoanProduct(
                product_name=name,
                interest_rate=DEFAULT_INTEREST_RATE,
                min_duration_months=lo,
                max_duration_months=hi,
                min_total_contributions=minimum,
                required_savings_percentage=savings_pct,
                required_savings_during_loan=during_pct,
                max_loan_based_on_salary_months=salary_months,
                is_active=True,
            )
        )
    db.flush()
    return len(DEFAULT_LOAN_PRODUCTS)


def init_seed(db: Session | None = None) -> None:
    own_session = db is None
    db = db or SessionLocal()
    try:
        added = initialize_chart_of_accounts(db)
        products = seed_loan_products(db)
        db.commit()
        logger.info("Seed complete: %s accounts, %s loan products added", added, products)
    except Exception:
        db.rollback()
        raise
    finally:
        if own_session:
            db.close()

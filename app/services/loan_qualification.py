# app/services/loan_qualification.py
"""
Loan qualification: tier selection plus origination checks.

`select_product` and `evaluate` are pure and work on plain values; the
`qualify_member` wrapper gathers those values from the database.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError, NotFoundError
from app.models.loan_model import Loan, OUTSTANDING_LOAN_STATUSES
from app.models.loan_product_model import LoanProduct
from app.models.member_model import Member
from app.models.transaction_model import Transaction, CONTRIBUTION_TYPES
from app.utils.loan_calculations import money, calculate_monthly_payment, ZERO
from app.utils.settings import tenure_upper_tolerance


@dataclass
class QualificationResult:
    product: LoanProduct
    amount: Decimal
    tenure_months: int
    monthly_payment: Decimal
    total_contributions: Decimal
    failures: List[ValidationError] = field(default_factory=list)

    @property
    def qualified(self) -> bool:
        return not self.failures


# ---------------------
# DB reads
# ---------------------
def total_contributions(db: Session, member_id: int) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(Transaction.amount), 0))
        .filter(Transaction.member_id == member_id, Transaction.txn_type.in_(CONTRIBUTION_TYPES))
        .scalar()
    )
    return money(total)


def has_outstanding_loan(db: Session, member_id: int) -> bool:
    return (
        db.query(Loan.loan_id)
        .filter(Loan.member_id == member_id, Loan.status.in_(OUTSTANDING_LOAN_STATUSES))
        .first()
        is not None
    )


def active_products(db: Session) -> List[LoanProduct]:
    return (
        db.query(LoanProduct)
        .filter(LoanProduct.is_active.is_(True))
        .order_by(LoanProduct.product_id.asc())
        .all()
    )


# ---------------------
# Pure rules
# ---------------------
def select_product(products: Sequence[LoanProduct], contributions) -> LoanProduct:
    """
    Best tier the member qualifies for: the highest `min_total_contributions`
    not above `contributions`. Ties keep the first product in `products`.
    """
    contributions = money(contributions)
    best: Optional[LoanProduct] = None
    for p in products:
        if p.is_active is False:
            continue
        minimum = money(p.min_total_contributions)
        if minimum > contributions:
            continue
        if best is None or minimum > money(best.min_total_contributions):
            best = p

    if best is None:
        active = [p for p in products if p.is_active is not False]
        lowest = min((money(p.min_total_contributions) for p in active), default=None)
        raise ValidationError(
            "No eligible loan product for your contribution level",
            requirement="Minimum Total Contributions",
            required=float(lowest) if lowest is not None else None,
            current=float(contributions),
        )
    return best


def evaluate(
        product: LoanProduct,
        amount,
        tenure_months: int,
        salary,
        savings,
        has_active_loan: bool,
        tenure_tolerance: int = 1,
) -> List[ValidationError]:
    """Run every origination rule against `product`; return all failures in rule order."""
    amount = money(amount)
    salary = money(salary)
    savings = money(savings)
    failures = []

    lo, hi = int(product.min_duration_months), int(product.max_duration_months)
    if tenure_months < lo or tenure_months > hi + tenure_tolerance:
        failures.append(
            ValidationError(
                f"Tenure must be between {lo} and {hi} months",
                requirement="Loan Tenure",
                min_months=lo,
                max_months=hi,
                current=tenure_months,
            )
        )

    if has_active_loan:
        failures.append(
            ValidationError(
                "You already have an active loan",
                requirement="Single Active Loan",
            )
        )

    max_by_salary = money(salary * int(product.max_loan_based_on_salary_months))
    if amount > max_by_salary:
        failures.append(
            ValidationError(
                f"Amount exceeds {product.max_loan_based_on_salary_months} months of salary",
                requirement="Maximum Loan Based On Salary",
                max_amount=float(max_by_salary),
                current=float(amount),
            )
        )

    required_savings = money(amount * money(product.required_savings_percentage) / Decimal("100"))
    if savings < required_savings:
        failures.append(
            ValidationError(
                f"Insufficient savings. Need at least {product.required_savings_percentage}% of the loan amount",
                requirement="Required Savings Percentage",
                required=float(required_savings),
                current=float(savings),
            )
        )

    if has_active_loan and salary <= 0:
        failures.append(
            ValidationError(
                f"Salary required to keep {product.required_savings_during_loan}% savings during the loan",
                requirement="Required Savings During Loan",
                required_percentage=float(money(product.required_savings_during_loan)),
                current=float(salary),
            )
        )

    return failures


def qualify(
        products: Sequence[LoanProduct],
        contributions,
        amount,
        tenure_months: int,
        salary,
        savings,
        has_active_loan: bool,
        tenure_tolerance: int = 1,
) -> QualificationResult:
    """Select a tier and raise the first failing rule; on success compute the payment."""
    amount = money(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0", requirement="Loan Amount", current=float(amount))
    if int(tenure_months) <= 0:
        raise ValidationError("Tenure must be at least 1 month", requirement="Loan Tenure", current=tenure_months)

    product = select_product(products, contributions)
    failures = evaluate(product, amount, int(tenure_months), salary, savings, has_active_loan, tenure_tolerance)
    if failures:
        raise failures[0]

    return QualificationResult(
        product=product,
        amount=amount,
        tenure_months=int(tenure_months),
        monthly_payment=calculate_monthly_payment(amount, product.interest_rate, int(tenure_months)),
        total_contributions=money(contributions),
    )


def qualify_member(db: Session, member: Member, amount, tenure_months: int) -> QualificationResult:
    contributions = total_contributions(db, member.member_id)
    return qualify(
        active_products(db),
        contributions=contributions,
        amount=amount,
        tenure_months=tenure_months,
        salary=member.salary or ZERO,
        # savings and lifetime contributions are the same ledger sum here
        savings=contributions,
        has_active_loan=has_outstanding_loan(db, member.member_id),
        tenure_tolerance=tenure_upper_tolerance(db),
    )


def auto_assign_product(db: Session, member_id: int) -> dict:
    """Tier lookup without an application, for the product picker."""
    member = db.query(Member).filter(Member.member_id == member_id).first()
    if not member:
        raise NotFoundError("Member not found", requirement="Member", member_id=member_id)

    contributions = total_contributions(db, member_id)
    product = select_product(active_products(db), contributions)
    return {
        "member_id": member_id,
        "total_contributions": contributions,
        "product": product,
        "max_loan_amount": money(money(member.salary) * int(product.max_loan_based_on_salary_months)),
    }

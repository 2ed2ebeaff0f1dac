from decimal import Decimal

import pytest

from app.core.exceptions import ValidationError
from app.models.loan_product_model import LoanProduct
from app.services.loan_qualification import evaluate, qualify, select_product
from app.utils.loan_calculations import calculate_monthly_payment


def product(minimum, lo=1, hi=24, name=None, rate="9.5", active=True):
    return LoanProduct(
        product_name=name or f"Tier {minimum}",
        interest_rate=Decimal(rate),
        min_duration_months=lo,
        max_duration_months=hi,
        min_total_contributions=Decimal(minimum),
        required_savings_percentage=Decimal("30"),
        required_savings_during_loan=Decimal("35"),
        max_loan_based_on_salary_months=30,
        is_active=active,
    )


TIERS = [product(32000), product(62000, 25, 60), product(132000, 61, 120)]


def test_best_tier_wins_not_first_match():
    assert select_product(TIERS, 70000).min_total_contributions == Decimal("62000")


def test_inactive_product_is_skipped():
    tiers = [product(32000), product(62000, active=False)]
    assert select_product(tiers, 70000).min_total_contributions == Decimal("32000")


def test_no_tier_discloses_lowest_minimum():
    with pytest.raises(ValidationError) as exc:
        select_product(TIERS, 1000)
    assert exc.value.requirement == "Minimum Total Contributions"
    assert exc.value.details["required"] == 32000.0
    assert exc.value.details["current"] == 1000.0


def test_evaluate_reports_every_failure():
    failures = evaluate(
        TIERS[0],
        amount=Decimal("500000"),
        tenure_months=40,
        salary=Decimal("0"),
        savings=Decimal("1000"),
        has_active_loan=True,
    )
    assert [f.requirement for f in failures] == [
        "Loan Tenure",
        "Single Active Loan",
        "Maximum Loan Based On Salary",
        "Required Savings Percentage",
        "Required Savings During Loan",
    ]


def test_tenure_upper_bound_tolerance():
    p = TIERS[0]
    assert evaluate(p, 1000, 25, 10000, 100000, False, tenure_tolerance=1) == []
    failures = evaluate(p, 1000, 25, 10000, 100000, False, tenure_tolerance=0)
    assert failures[0].requirement == "Loan Tenure"
    assert failures[0].details["max_months"] == 24


def test_savings_requirement_reports_threshold_and_value():
    failures = evaluate(TIERS[0], 10000, 12, 10000, 2000, False)
    assert len(failures) == 1
    assert failures[0].details == {"required": 3000.0, "current": 2000.0}


def test_qualify_raises_first_failure():
    with pytest.raises(ValidationError) as exc:
        qualify(TIERS, 70000, amount=20000, tenure_months=12, salary=10000, savings=70000, has_active_loan=False)
    # 62000 tier allows 25-60 months
    assert exc.value.requirement == "Loan Tenure"


def test_qualify_returns_product_and_monthly_payment():
    result = qualify(TIERS, 70000, amount=20000, tenure_months=36, salary=10000, savings=70000,
                     has_active_loan=False)
    assert result.product.min_total_contributions == Decimal("62000")
    assert result.monthly_payment == calculate_monthly_payment(20000, Decimal("9.5"), 36)


def test_zero_rate_payment_is_principal_over_months():
    tiers = [product(0, rate="0")]
    result = qualify(tiers, 0, amount=1200, tenure_months=12, salary=1000, savings=1000, has_active_loan=False)
    assert result.monthly_payment == Decimal("100.00")


@pytest.mark.parametrize("amount", [0, -5])
def test_non_positive_amount_rejected(amount):
    with pytest.raises(ValidationError):
        qualify(TIERS, 70000, amount=amount, tenure_months=36, salary=10000, savings=70000, has_active_loan=False)

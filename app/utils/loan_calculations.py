from datetime import date
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from dateutil.relativedelta import relativedelta

ZERO = Decimal("0.00")


def money(x) -> Decimal:
    """Always return 2-decimal Decimal with HALF_UP rounding."""
    if x is None:
        x = 0
    if not isinstance(x, Decimal):
        x = Decimal(str(x))
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def parse_amount(x):
    """
    Parse user-supplied money. Returns None when the value is not a finite
    number (None, "", "abc", NaN, inf, booleans).
    """
    if x is None or isinstance(x, bool):
        return None
    try:
        d = Decimal(str(x).strip())
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    return money(d)


def calculate_monthly_payment(principal, annual_rate_percent, months: int) -> Decimal:
    """
    Standard amortization:
      M = P * r * (1+r)^n / ((1+r)^n - 1),  r = annual% / 100 / 12

    Example:
      principal=12000, rate=0, months=12 => 1000.00
    """
    if int(months) <= 0:
        raise ValueError("months must be > 0")

    p = Decimal(str(principal))
    r = Decimal(str(annual_rate_percent)) / Decimal("100") / Decimal("12")
    n = int(months)

    if r == 0:
        return money(p / n)

    growth = (1 + r) ** n
    return money(p * r * growth / (growth - 1))


def calculate_loan(principal, annual_rate_percent, months: int) -> dict:
    """Monthly payment, total repayable and total interest for an amortized loan."""
    monthly = calculate_monthly_payment(principal, annual_rate_percent, months)
    total = money(monthly * int(months))
    return {
        "principal": money(principal),
        "interest_rate": money(annual_rate_percent),
        "tenure_months": int(months),
        "monthly_payment": monthly,
        "total_payment": total,
        "total_interest": money(total - money(principal)),
    }


def build_monthly_schedule(principal, tenure_months: int, start: date):
    """
    Equal principal installments, one per month after `start`.

    Returns a list of (installment_no, due_date, amount). Rounding drift is
    absorbed by the last installment so the schedule always sums to principal.

    Example:
      principal=5000, tenure=3 => 1666.67, 1666.67, 1666.66
    """
    principal = money(principal)
    months = int(tenure_months)
    if months <= 0:
        raise ValueError("tenure_months must be > 0")

    base = money(principal / months)
    rows = []
    allocated = ZERO
    for i in range(1, months + 1):
        amount = base if i < months else money(principal - allocated)
        allocated = money(allocated + amount)
        rows.append((i, start + relativedelta(months=i), amount))
    return rows

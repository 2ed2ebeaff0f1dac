from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import ValidationError
from app.models.transaction_model import Transaction
from app.services import member_service
from conftest import make_member

MAY = date(2024, 5, 1)


def test_payroll_skips_zero_cells(db):
    member = make_member(db, et_number=1001)
    rows = [{"et_number": 1001, "SAVINGS": "500", "WILLING_DEPOSIT": "0", "LOAN_REPAYMENT": "0.00"}]

    summary = member_service.import_payroll(db, rows, MAY)

    assert summary["transactions_recorded"] == 1
    assert summary["repayments_without_loan"] == 0
    assert summary["total_amount"] == Decimal("500.00")
    txns = db.query(Transaction).filter(Transaction.member_id == member.member_id).all()
    assert [t.txn_type for t in txns] == ["SAVINGS"]
    assert txns[0].reference == "PAYROLL-202405-1001-SAVINGS"


def test_payroll_non_numeric_cell_fails_the_batch(db):
    make_member(db, et_number=1001)

    with pytest.raises(ValidationError) as exc:
        member_service.import_payroll(db, [{"et_number": 1001, "SAVINGS": "abc"}], MAY)
    assert exc.value.requirement == "Transaction Amount"

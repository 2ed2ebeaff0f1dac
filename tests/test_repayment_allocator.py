from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import ConflictError, ValidationError
from app.models.accounting_model import JournalEntry, JournalLine
from app.models.loan_model import Loan, LoanStatus
from app.models.loan_repayment_model import LoanRepayment
from app.models.transaction_model import Transaction
from app.models.user_model import UserRole
from app.services import accounting_service as acc
from app.services.notification_service import Notifier
from app.services.repayment_service import allocate_repayment, apply_repayment, recompute_remaining_balance
from conftest import make_disbursed_loan, make_member, make_user, set_setting

PAY_DAY = date(2024, 2, 15)


def installments(*amounts):
    return [
        LoanRepayment(installment_no=i, repayment_date=date(2024, i, 1), amount=Decimal(a),
                      paid_amount=Decimal("0"), status="PENDING")
        for i, a in enumerate(amounts, start=1)
    ]


def lines_by_code(db, reference):
    entry = db.query(JournalEntry).filter(JournalEntry.reference == reference).one()
    rows = db.query(JournalLine).filter(JournalLine.entry_id == entry.entry_id).all()
    return {row.account.code: (row.debit, row.credit) for row in rows}


# ---------------------
# pure allocation
# ---------------------
def test_fifo_allocation_fills_oldest_first():
    insts = installments("100", "100", "100")

    allocations, leftover = allocate_repayment(insts, Decimal("150"), PAY_DAY)

    assert leftover == Decimal("0.00")
    assert [a.applied_amount for a in allocations] == [Decimal("100.00"), Decimal("50.00")]
    assert insts[0].status == "PAID"
    assert insts[0].paid_on == PAY_DAY
    assert insts[1].status == "PENDING"
    assert insts[1].paid_amount == Decimal("50.00")
    assert insts[2].paid_amount == Decimal("0")


def test_allocation_returns_leftover_beyond_schedule():
    insts = installments("100", "100")
    _, leftover = allocate_repayment(insts, Decimal("250"))
    assert leftover == Decimal("50.00")
    assert all(i.status == "PAID" for i in insts)


def test_recompute_is_idempotent():
    loan = Loan(amount=Decimal("300"), remaining_amount=Decimal("300"), status=LoanStatus.DISBURSED.value)
    loan.repayments = installments("100", "100", "100")
    allocate_repayment(loan.repayments, Decimal("150"))

    assert recompute_remaining_balance(loan) == Decimal("150.00")
    assert recompute_remaining_balance(loan) == Decimal("150.00")
    assert loan.status == LoanStatus.DISBURSED.value


# ---------------------
# apply_repayment
# ---------------------
def test_partial_payment_across_installments(db):
    member = make_member(db)
    loan = make_disbursed_loan(db, member, amount=5000, rate=10, tenure=3)

    result = apply_repayment(db, member.member_id, "2000", payment_date=PAY_DAY, reference="RP-1")

    assert result.applied
    assert result.remaining_amount == Decimal("3000.00")
    assert result.loan_status == LoanStatus.DISBURSED.value
    first, second, third = sorted(loan.repayments, key=lambda r: r.installment_no)
    assert first.status == "PAID"
    assert second.status == "PENDING"
    assert second.paid_amount == Decimal("333.33")
    assert third.paid_amount == Decimal("0.00")

    lines = lines_by_code(db, "RP-1")
    assert lines[acc.BANK] == (Decimal("2000.00"), Decimal("0.00"))
    assert lines[acc.LOAN_RECEIVABLE] == (Decimal("0.00"), Decimal("1800.00"))
    assert lines[acc.INTEREST_INCOME] == (Decimal("0.00"), Decimal("200.00"))
    assert acc.get_trial_balance(db)["is_balanced"]


def test_duplicate_reference_is_rejected(db):
    member = make_member(db)
    make_disbursed_loan(db, member)
    apply_repayment(db, member.member_id, 500, reference="RP-1")

    with pytest.raises(ConflictError) as exc:
        apply_repayment(db, member.member_id, 500, reference="RP-1")
    assert exc.value.requirement == "Unique Payment Reference"


def test_no_disbursed_loan_is_a_noop(db):
    member = make_member(db)

    result = apply_repayment(db, member.member_id, 500, reference="RP-1")

    assert not result.applied
    assert db.query(Transaction).count() == 0
    assert db.query(JournalEntry).count() == 0


@pytest.mark.parametrize("amount", ["abc", "", None, 0, -10, "NaN"])
def test_invalid_amount(db, amount):
    member = make_member(db)
    with pytest.raises(ValidationError) as exc:
        apply_repayment(db, member.member_id, amount, reference="RP-1")
    assert exc.value.requirement == "Repayment Amount"


def test_reference_is_required(db):
    member = make_member(db)
    with pytest.raises(ValidationError) as exc:
        apply_repayment(db, member.member_id, 100, reference="  ")
    assert exc.value.requirement == "Payment Reference"


def test_full_repayment_closes_loan_and_notifies(db):
    member = make_member(db)
    make_user(db, UserRole.MEMBER, member_id=member.member_id)
    loan = make_disbursed_loan(db, member)
    notifier = Notifier(db)

    result = apply_repayment(db, member.member_id, 5000, reference="RP-1", notifier=notifier)

    assert result.loan_status == LoanStatus.REPAID.value
    assert loan.remaining_amount == Decimal("0.00")
    assert [p.title for p in notifier.outbox] == ["Loan Repayment Received", "Loan Fully Repaid"]

    after = apply_repayment(db, member.member_id, 100, reference="RP-2")
    assert not after.applied


def test_overpayment_credited_to_savings(db):
    member = make_member(db)
    make_disbursed_loan(db, member)

    result = apply_repayment(db, member.member_id, 6000, reference="RP-9")

    assert result.surplus == Decimal("1000.00")
    assert result.surplus_policy == "CREDIT_SAVINGS"
    assert result.loan_status == LoanStatus.REPAID.value
    repayment = db.query(Transaction).filter(Transaction.reference == "RP-9").one()
    assert repayment.amount == Decimal("5000.00")
    saving = db.query(Transaction).filter(Transaction.reference == "RP-9/surplus").one()
    assert saving.txn_type == "SAVINGS"
    assert saving.amount == Decimal("1000.00")
    assert acc.get_account_balance(db, acc.MEMBER_SAVINGS)["natural_balance"] == Decimal("1000.00")


def test_overpayment_rejected_by_policy(db):
    member = make_member(db)
    loan = make_disbursed_loan(db, member)
    set_setting(db, "OVERPAYMENT_POLICY", "REJECT")

    with pytest.raises(ValidationError) as exc:
        apply_repayment(db, member.member_id, 6000, reference="RP-9")

    assert exc.value.details["outstanding"] == 5000.0
    assert db.query(Transaction).count() == 0
    assert all(r.paid_amount == 0 for r in loan.repayments)


def test_overpayment_discarded_by_policy(db):
    member = make_member(db)
    make_disbursed_loan(db, member)
    set_setting(db, "OVERPAYMENT_POLICY", "DISCARD")

    result = apply_repayment(db, member.member_id, 6000, reference="RP-9")

    assert result.surplus == Decimal("1000.00")
    assert result.loan_status == LoanStatus.REPAID.value
    assert db.query(Transaction).filter(Transaction.reference == "RP-9/surplus").count() == 0
    assert acc.get_trial_balance(db)["is_balanced"]

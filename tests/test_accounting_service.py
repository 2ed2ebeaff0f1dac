from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import InvariantViolation, ValidationError
from app.models.accounting_model import GeneralLedger, JournalEntry, JournalLine
from app.services import accounting_service as acc
from app.services.accounting_service import LedgerLine

D = date(2024, 3, 1)


def post_mixed_activity(db):
    acc.record_savings_deposit(db, 1, Decimal("1000"), D, "DEP-1")
    acc.record_membership_fee(db, 1, Decimal("100"), D, "FEE-1")
    acc.record_loan_disbursement(db, 1, Decimal("5000"), D, "LOAN-1")
    acc.record_loan_repayment(db, 1, principal=Decimal("1800"), interest=Decimal("200"),
                              entry_date=date(2024, 4, 1), reference="RP-1")
    db.flush()


def test_chart_of_accounts_initialization_is_idempotent(db):
    assert acc.initialize_chart_of_accounts(db) == 0
    assert len(acc.get_chart_of_accounts(db)) == len(acc.STANDARD_ACCOUNTS)


def test_balanced_entry_gets_sequential_numbers(db):
    lines = [LedgerLine(acc.BANK, debit=Decimal("50")), LedgerLine(acc.MEMBER_SAVINGS, credit=Decimal("50"))]

    first = acc.create_journal_entry(db, D, "Deposit", "REF-1", lines)
    second = acc.create_journal_entry(db, D, "Deposit", "REF-2", lines)

    assert first.entry_number == "JE-000001"
    assert second.entry_number == "JE-000002"
    assert first.total_debit == first.total_credit == Decimal("50.00")
    assert db.query(JournalLine).filter(JournalLine.entry_id == first.entry_id).count() == 2
    assert db.query(GeneralLedger).filter(GeneralLedger.entry_id == first.entry_id).count() == 2


def test_unbalanced_entry_writes_nothing(db):
    with pytest.raises(InvariantViolation) as exc:
        acc.create_journal_entry(
            db, D, "Broken", "REF-X",
            [LedgerLine(acc.BANK, debit=Decimal("100")), LedgerLine(acc.MEMBER_SAVINGS, credit=Decimal("90"))],
        )

    assert exc.value.details["total_debit"] == 100.0
    assert db.query(JournalEntry).count() == 0
    assert db.query(GeneralLedger).count() == 0


def test_rounding_within_a_cent_is_accepted(db):
    entry = acc.create_journal_entry(
        db, D, "Rounded", "REF-R",
        [LedgerLine(acc.BANK, debit=Decimal("100.00")), LedgerLine(acc.MEMBER_SAVINGS, credit=Decimal("99.99"))],
    )
    assert entry.is_balanced


def test_unknown_account_writes_nothing(db):
    with pytest.raises(InvariantViolation) as exc:
        acc.create_journal_entry(
            db, D, "Typo", "REF-Y",
            [LedgerLine(acc.BANK, debit=Decimal("10")), LedgerLine("9999", credit=Decimal("10"))],
        )

    assert exc.value.requirement == "Chart Of Accounts"
    assert db.query(JournalEntry).count() == 0


def test_negative_and_empty_entries_are_refused(db):
    with pytest.raises(InvariantViolation):
        acc.create_journal_entry(
            db, D, "Negative", None,
            [LedgerLine(acc.BANK, debit=Decimal("-10")), LedgerLine(acc.MEMBER_SAVINGS, credit=Decimal("-10"))],
        )
    with pytest.raises(ValidationError):
        acc.create_journal_entry(db, D, "Empty", None, [LedgerLine(acc.BANK), LedgerLine(acc.MEMBER_SAVINGS)])


def test_trial_balance_and_balance_sheet_after_mixed_activity(db):
    post_mixed_activity(db)

    tb = acc.get_trial_balance(db)
    assert tb["is_balanced"]
    assert tb["total_debit"] == tb["total_credit"]
    rows = {r["account_code"]: r for r in tb["trial_balance"]}
    assert rows[acc.LOAN_RECEIVABLE]["debit"] == Decimal("3200.00")
    assert rows[acc.BANK]["credit"] == Decimal("1900.00")
    assert rows[acc.INTEREST_INCOME]["credit"] == Decimal("200.00")

    sheet = acc.get_balance_sheet(db)
    assert sheet["current_period_earnings"] == Decimal("300.00")
    assert sheet["total_assets"] == Decimal("1300.00")
    assert sheet["total_liabilities_and_equity"] == Decimal("1300.00")
    assert sheet["is_balanced"]


def test_trial_balance_as_of_excludes_later_postings(db):
    post_mixed_activity(db)

    tb = acc.get_trial_balance(db, as_of=date(2024, 3, 31))
    codes = {r["account_code"] for r in tb["trial_balance"]}
    assert acc.INTEREST_INCOME not in codes
    assert tb["is_balanced"]


def test_income_statement_for_period(db):
    post_mixed_activity(db)

    stmt = acc.get_income_statement(db, from_date=date(2024, 1, 1), to_date=date(2024, 12, 31))
    assert stmt["total_revenue"] == Decimal("300.00")
    assert stmt["total_expense"] == Decimal("0.00")
    assert stmt["net_income"] == Decimal("300.00")
    assert {r["account_code"] for r in stmt["revenues"]} == {acc.INTEREST_INCOME, acc.MEMBERSHIP_FEES}


def test_general_ledger_running_and_opening_balance(db):
    post_mixed_activity(db)

    gl = acc.get_general_ledger(db, acc.BANK)
    assert [e["running_balance"] for e in gl["entries"]] == [
        Decimal("1000.00"), Decimal("1100.00"), Decimal("-3900.00"), Decimal("-1900.00"),
    ]
    assert gl["closing_balance"] == Decimal("-1900.00")

    april = acc.get_general_ledger(db, acc.BANK, from_date=date(2024, 4, 1))
    assert april["opening_balance"] == Decimal("-3900.00")
    assert len(april["entries"]) == 1


def test_account_balance_natural_sign(db):
    post_mixed_activity(db)

    savings = acc.get_account_balance(db, acc.MEMBER_SAVINGS)
    assert savings["balance"] == Decimal("-1000.00")
    assert savings["natural_balance"] == Decimal("1000.00")


def test_global_totals_and_journal_pages(db):
    post_mixed_activity(db)

    totals = acc.get_global_totals(db)
    assert totals["is_balanced"]
    assert totals["total_debit"] == Decimal("8100.00")

    page = acc.get_journal_entries(db, page=1, limit=3)
    assert page["total"] == 4
    assert page["pages"] == 2
    assert len(page["entries"]) == 3

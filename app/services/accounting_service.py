# app/services/accounting_service.py
"""
Double-entry ledger.

Every money-moving event is written as one balanced JournalEntry with one
JournalLine per account side and a mirrored GeneralLedger posting. Reports are
read-only folds over the GeneralLedger.
"""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import InvariantViolation, NotFoundError, ValidationError
from app.models.accounting_model import (
    AccountType,
    ChartOfAccounts,
    DEBIT_NORMAL_TYPES,
    GeneralLedger,
    JournalEntry,
    JournalLine,
)
from app.utils.loan_calculations import money, ZERO

logger = logging.getLogger(__name__)

BALANCE_TOLERANCE = Decimal("0.01")

# ---------------------
# Chart of accounts codes used by the posting recipes
# ---------------------
CASH = "1010"
BANK = "1020"
LOAN_RECEIVABLE = "1030"
MEMBER_SAVINGS = "2010"
INTEREST_INCOME = "4010"
MEMBERSHIP_FEES = "4020"
REGISTRATION_FEES = "4030"

STANDARD_ACCOUNTS = [
    # ASSETS
    ("1010", "Cash", AccountType.ASSET),
    ("1020", "Bank Account", AccountType.ASSET),
    ("1030", "Loan Receivable", AccountType.ASSET),
    ("1040", "Member Deposits", AccountType.ASSET),
    # LIABILITIES
    ("2010", "Member Savings Deposits", AccountType.LIABILITY),
    ("2020", "Loan Payable", AccountType.LIABILITY),
    ("2030", "Interest Payable", AccountType.LIABILITY),
    # EQUITY
    ("3010", "Share Capital", AccountType.EQUITY),
    ("3020", "Retained Earnings", AccountType.EQUITY),
    # INCOME
    ("4010", "Interest Income", AccountType.INCOME),
    ("4020", "Membership Fees", AccountType.INCOME),
    ("4030", "Registration Fees", AccountType.INCOME),
    ("4040", "Loan Origination Fees", AccountType.INCOME),
    # EXPENSES
    ("5010", "Interest Expense", AccountType.EXPENSE),
    ("5020", "Administrative Expenses", AccountType.EXPENSE),
    ("5030", "Loan Loss Provision", AccountType.EXPENSE),
]


@dataclass(frozen=True)
class LedgerLine:
    account_code: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: Optional[str] = None


def initialize_chart_of_accounts(db: Session) -> int:
    """Insert the standard accounts that are missing. Returns how many were added."""
    existing = {code for (code,) in db.query(ChartOfAccounts.code).all()}
    added = 0
    for code, name, account_type in STANDARD_ACCOUNTS:
        if code in existing:
            continue
        db.add(ChartOfAccounts(code=code, name=name, account_type=account_type.value, is_active=True))
        added += 1
    db.flush()
    if added:
        logger.info("Chart of accounts initialized (%s accounts added)", added)
    return added


def get_account(db: Session, code: str) -> ChartOfAccounts:
    account = db.query(ChartOfAccounts).filter(ChartOfAccounts.code == code).first()
    if not account:
        raise NotFoundError(f"Account not found: {code}", requirement="Chart Of Accounts", account_code=code)
    return account


def _next_entry_number(db: Session) -> str:
    last_id = db.query(func.max(JournalEntry.entry_id)).scalar() or 0
    return f"JE-{last_id + 1:06d}"


def create_journal_entry(
        db: Session,
        entry_date: date,
        description: str,
        reference: Optional[str],
        lines: Iterable[LedgerLine],
        transaction_id: Optional[int] = None,
) -> JournalEntry:
    """
    Validate and post one balanced entry.

    Nothing is written unless Σdebit == Σcredit (±0.01) and every account code
    resolves. The caller owns the transaction; an exception here leaves the
    session for the caller to roll back.
    """
    normalized: List[LedgerLine] = []
    for line in lines:
        debit, credit = money(line.debit), money(line.credit)
        if debit < 0 or credit < 0:
            raise InvariantViolation(
                "Journal lines cannot carry negative amounts",
                requirement="Balanced Journal Entry",
                account_code=line.account_code,
                debit=float(debit),
                credit=float(credit),
            )
        if debit == 0 and credit == 0:
            continue
        normalized.append(LedgerLine(line.account_code, debit, credit, line.description))

    total_debit = money(sum((ln.debit for ln in normalized), ZERO))
    total_credit = money(sum((ln.credit for ln in normalized), ZERO))

    if abs(total_debit - total_credit) > BALANCE_TOLERANCE:
        raise InvariantViolation(
            f"Journal entry not balanced. Debit: {total_debit}, Credit: {total_credit}",
            requirement="Balanced Journal Entry",
            total_debit=float(total_debit),
            total_credit=float(total_credit),
        )
    if total_debit == 0:
        raise ValidationError("Journal entry has no amounts to post", requirement="Balanced Journal Entry")

    # resolve every account before the first write
    accounts = {}
    for ln in normalized:
        if ln.account_code in accounts:
            continue
        account = db.query(ChartOfAccounts).filter(ChartOfAccounts.code == ln.account_code).first()
        if not account:
            raise InvariantViolation(
                f"Account not found: {ln.account_code}",
                requirement="Chart Of Accounts",
                account_code=ln.account_code,
            )
        accounts[ln.account_code] = account

    entry = JournalEntry(
        entry_number=_next_entry_number(db),
        entry_date=entry_date,
        description=description,
        reference=reference,
        transaction_id=transaction_id,
        total_debit=total_debit,
        total_credit=total_credit,
        is_balanced=True,
        status="POSTED",
    )
    db.add(entry)
    db.flush()

    for ln in normalized:
        account = accounts[ln.account_code]
        db.add(
            JournalLine(
                entry_id=entry.entry_id,
                account_id=account.account_id,
                debit=ln.debit,
                credit=ln.credit,
                description=ln.description,
            )
        )
        db.add(
            GeneralLedger(
                account_id=account.account_id,
                entry_id=entry.entry_id,
                debit=ln.debit,
                credit=ln.credit,
                transaction_date=entry_date,
                description=ln.description,
            )
        )
    db.flush()

    logger.info("Posted %s (%s) debit=%s credit=%s", entry.entry_number, reference, total_debit, total_credit)
    return entry


# =================================================
# Posting recipes
# =================================================
def record_savings_deposit(db: Session, member_id: int, amount, entry_date: date, reference: str,
                           transaction_id: Optional[int] = None) -> JournalEntry:
    amount = money(amount)
    return create_journal_entry(
        db,
        entry_date=entry_date,
        description=f"Savings deposit from member {member_id}",
        reference=reference,
        transaction_id=transaction_id,
        lines=[
            LedgerLine(BANK, debit=amount, description="Cash received"),
            LedgerLine(MEMBER_SAVINGS, credit=amount, description="Member savings liability"),
        ],
    )


def record_loan_disbursement(db: Session, member_id: int, amount, entry_date: date, reference: str) -> JournalEntry:
    amount = money(amount)
    return create_journal_entry(
        db,
        entry_date=entry_date,
        description=f"Loan disbursement to member {member_id}",
        reference=reference,
        lines=[
            LedgerLine(LOAN_RECEIVABLE, debit=amount, description="Loan given to member"),
            LedgerLine(BANK, credit=amount, description="Cash paid out"),
        ],
    )


def record_loan_repayment(db: Session, member_id: int, principal, interest, entry_date: date, reference: str,
                          transaction_id: Optional[int] = None) -> JournalEntry:
    principal, interest = money(principal), money(interest)
    return create_journal_entry(
        db,
        entry_date=entry_date,
        description=f"Loan repayment from member {member_id}",
        reference=reference,
        transaction_id=transaction_id,
        lines=[
            LedgerLine(BANK, debit=money(principal + interest), description="Cash received"),
            LedgerLine(LOAN_RECEIVABLE, credit=principal, description="Loan principal repaid"),
            LedgerLine(INTEREST_INCOME, credit=interest, description="Interest income"),
        ],
    )


def record_membership_fee(db: Session, member_id: int, amount, entry_date: date, reference: str,
                          transaction_id: Optional[int] = None) -> JournalEntry:
    amount = money(amount)
    return create_journal_entry(
        db,
        entry_date=entry_date,
        description=f"Membership fee from member {member_id}",
        reference=reference,
        transaction_id=transaction_id,
        lines=[
            LedgerLine(BANK, debit=amount, description="Cash received"),
            LedgerLine(MEMBERSHIP_FEES, credit=amount, description="Membership fee income"),
        ],
    )


def record_registration_fee(db: Session, member_id: int, amount, entry_date: date, reference: str,
                            transaction_id: Optional[int] = None) -> JournalEntry:
    amount = money(amount)
    return create_journal_entry(
        db,
        entry_date=entry_date,
        description=f"Registration fee from member {member_id}",
        reference=reference,
        transaction_id=transaction_id,
        lines=[
            LedgerLine(BANK, debit=amount, description="Cash received"),
            LedgerLine(REGISTRATION_FEES, credit=amount, description="Registration fee income"),
        ],
    )


def record_withdrawal(db: Session, member_id: int, amount, entry_date: date, reference: str,
                      transaction_id: Optional[int] = None) -> JournalEntry:
    amount = money(amount)
    return create_journal_entry(
        db,
        entry_date=entry_date,
        description=f"Willing deposit withdrawal by member {member_id}",
        reference=reference,
        transaction_id=transaction_id,
        lines=[
            LedgerLine(MEMBER_SAVINGS, debit=amount, description="Member savings released"),
            LedgerLine(BANK, credit=amount, description="Cash paid out"),
        ],
    )


# =================================================
# Reports (read-only)
# =================================================
def _ledger_totals(db: Session, from_date: Optional[date] = None, to_date: Optional[date] = None):
    """{account_id: (Σdebit, Σcredit, count)} over the GeneralLedger."""
    q = db.query(
        GeneralLedger.account_id,
        func.coalesce(func.sum(GeneralLedger.debit), 0),
        func.coalesce(func.sum(GeneralLedger.credit), 0),
        func.count(GeneralLedger.ledger_id),
    )
    if from_date:
        q = q.filter(GeneralLedger.transaction_date >= from_date)
    if to_date:
        q = q.filter(GeneralLedger.transaction_date <= to_date)
    rows = q.group_by(GeneralLedger.account_id).all()
    return {account_id: (money(d), money(c), n) for account_id, d, c, n in rows}


def get_account_balance(db: Session, code: str, as_of: Optional[date] = None) -> dict:
    account = get_account(db, code)
    debit, credit, _ = _ledger_totals(db, to_date=as_of).get(account.account_id, (ZERO, ZERO, 0))
    balance = money(debit - credit)
    return {
        "account_code": account.code,
        "account_name": account.name,
        "account_type": account.account_type,
        "balance": balance,
        # positive when the account grew on its normal side
        "natural_balance": balance if account.account_type in DEBIT_NORMAL_TYPES else -balance,
        "as_of_date": as_of or date.today(),
    }


def get_trial_balance(db: Session, as_of: Optional[date] = None) -> dict:
    accounts = (
        db.query(ChartOfAccounts)
        .filter(ChartOfAccounts.is_active.is_(True))
        .order_by(ChartOfAccounts.code.asc())
        .all()
    )
    totals = _ledger_totals(db, to_date=as_of)

    rows = []
    total_debit = ZERO
    total_credit = ZERO
    for account in accounts:
        debit, credit, _ = totals.get(account.account_id, (ZERO, ZERO, 0))
        balance = money(debit - credit)
        if balance == 0:
            continue
        row_debit = balance if balance > 0 else ZERO
        row_credit = -balance if balance < 0 else ZERO
        rows.append(
            {
                "account_code": account.code,
                "account_name": account.name,
                "account_type": account.account_type,
                "debit": row_debit,
                "credit": row_credit,
            }
        )
        total_debit += row_debit
        total_credit += row_credit

    return {
        "trial_balance": rows,
        "total_debit": money(total_debit),
        "total_credit": money(total_credit),
        "is_balanced": abs(total_debit - total_credit) < BALANCE_TOLERANCE,
        "as_of_date": as_of or date.today(),
    }


def _side_total(rows, natural_debit: bool) -> Decimal:
    """Net amount of rows on their natural side (contra balances subtract)."""
    if natural_debit:
        return money(sum((r["debit"] - r["credit"] for r in rows), ZERO))
    return money(sum((r["credit"] - r["debit"] for r in rows), ZERO))


def get_balance_sheet(db: Session, as_of: Optional[date] = None) -> dict:
    tb = get_trial_balance(db, as_of)
    rows = tb["trial_balance"]

    assets = [r for r in rows if r["account_type"] == AccountType.ASSET.value]
    liabilities = [r for r in rows if r["account_type"] == AccountType.LIABILITY.value]
    equity = [r for r in rows if r["account_type"] == AccountType.EQUITY.value]
    income = [r for r in rows if r["account_type"] == AccountType.INCOME.value]
    expenses = [r for r in rows if r["account_type"] == AccountType.EXPENSE.value]

    total_assets = _side_total(assets, natural_debit=True)
    total_liabilities = _side_total(liabilities, natural_debit=False)

    # income not yet closed into retained earnings still belongs to equity
    current_earnings = money(_side_total(income, natural_debit=False) - _side_total(expenses, natural_debit=True))
    total_equity = money(_side_total(equity, natural_debit=False) + current_earnings)
    total_le = money(total_liabilities + total_equity)

    return {
        "assets": assets,
        "liabilities": liabilities,
        "equity": equity,
        "current_period_earnings": current_earnings,
        "total_assets": total_assets,
        "total_liabilities": total_liabilities,
        "total_equity": total_equity,
        "total_liabilities_and_equity": total_le,
        "is_balanced": abs(total_assets - total_le) < BALANCE_TOLERANCE,
        "as_of_date": tb["as_of_date"],
    }


def get_income_statement(db: Session, from_date: Optional[date] = None, to_date: Optional[date] = None) -> dict:
    if from_date is None:
        from_date = date(date.today().year, 1, 1)
    if to_date is None:
        to_date = date.today()

    accounts = (
        db.query(ChartOfAccounts)
        .filter(
            ChartOfAccounts.is_active.is_(True),
            ChartOfAccounts.account_type.in_([AccountType.INCOME.value, AccountType.EXPENSE.value]),
        )
        .order_by(ChartOfAccounts.code.asc())
        .all()
    )
    totals = _ledger_totals(db, from_date=from_date, to_date=to_date)

    revenues, expenses = [], []
    total_revenue = ZERO
    total_expense = ZERO
    for account in accounts:
        debit, credit, _ = totals.get(account.account_id, (ZERO, ZERO, 0))
        if account.account_type == AccountType.INCOME.value:
            if credit != 0:
                revenues.append({"account_code": account.code, "account_name": account.name, "amount": credit})
                total_revenue += credit
        elif debit != 0:
            expenses.append({"account_code": account.code, "account_name": account.name, "amount": debit})
            total_expense += debit

    return {
        "revenues": revenues,
        "expenses": expenses,
        "total_revenue": money(total_revenue),
        "total_expense": money(total_expense),
        "net_income": money(total_revenue - total_expense),
        "from_date": from_date,
        "to_date": to_date,
    }


def get_general_ledger(db: Session, code: str, from_date: Optional[date] = None,
                       to_date: Optional[date] = None) -> dict:
    """Account statement with a running Σdebit − Σcredit balance."""
    account = get_account(db, code)

    opening = ZERO
    if from_date:
        d, c = (
            db.query(
                func.coalesce(func.sum(GeneralLedger.debit), 0),
                func.coalesce(func.sum(GeneralLedger.credit), 0),
            )
            .filter(GeneralLedger.account_id == account.account_id, GeneralLedger.transaction_date < from_date)
            .one()
        )
        opening = money(money(d) - money(c))

    q = db.query(GeneralLedger, JournalEntry.entry_number, JournalEntry.reference).join(
        JournalEntry, JournalEntry.entry_id == GeneralLedger.entry_id
    ).filter(GeneralLedger.account_id == account.account_id)
    if from_date:
        q = q.filter(GeneralLedger.transaction_date >= from_date)
    if to_date:
        q = q.filter(GeneralLedger.transaction_date <= to_date)
    q = q.order_by(GeneralLedger.transaction_date.asc(), GeneralLedger.ledger_id.asc())

    running = opening
    entries = []
    for row, entry_number, reference in q.all():
        running = money(running + money(row.debit) - money(row.credit))
        entries.append(
            {
                "ledger_id": row.ledger_id,
                "entry_number": entry_number,
                "reference": reference,
                "transaction_date": row.transaction_date,
                "description": row.description,
                "debit": money(row.debit),
                "credit": money(row.credit),
                "running_balance": running,
            }
        )

    return {
        "account_code": account.code,
        "account_name": account.name,
        "opening_balance": opening,
        "closing_balance": running,
        "entries": entries,
        "from_date": from_date,
        "to_date": to_date,
    }


def get_general_ledger_summary(db: Session, from_date: Optional[date] = None,
                               to_date: Optional[date] = None) -> List[dict]:
    accounts = (
        db.query(ChartOfAccounts)
        .filter(ChartOfAccounts.is_active.is_(True))
        .order_by(ChartOfAccounts.code.asc())
        .all()
    )
    totals = _ledger_totals(db, from_date=from_date, to_date=to_date)
    summary = []
    for account in accounts:
        debit, credit, count = totals.get(account.account_id, (ZERO, ZERO, 0))
        if debit == 0 and credit == 0:
            continue
        summary.append(
            {
                "account_code": account.code,
                "account_name": account.name,
                "account_type": account.account_type,
                "total_debit": debit,
                "total_credit": credit,
                "balance": money(debit - credit),
                "entry_count": count,
            }
        )
    return summary


def get_journal_entries(db: Session, page: int = 1, limit: int = 20,
                        from_date: Optional[date] = None, to_date: Optional[date] = None) -> dict:
    page = max(1, page)
    limit = max(1, min(limit, 200))

    q = db.query(JournalEntry)
    if from_date:
        q = q.filter(JournalEntry.entry_date >= from_date)
    if to_date:
        q = q.filter(JournalEntry.entry_date <= to_date)

    total = q.count()
    entries = (
        q.order_by(JournalEntry.entry_date.desc(), JournalEntry.entry_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "entries": entries,
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit,
    }


def get_global_totals(db: Session) -> dict:
    """System-wide Σdebit vs Σcredit over every journal line."""
    debit, credit = db.query(
        func.coalesce(func.sum(JournalLine.debit), 0),
        func.coalesce(func.sum(JournalLine.credit), 0),
    ).one()
    debit, credit = money(debit), money(credit)
    return {
        "total_debit": debit,
        "total_credit": credit,
        "is_balanced": abs(debit - credit) < BALANCE_TOLERANCE,
    }


def get_accounting_metrics(db: Session) -> dict:
    sheet = get_balance_sheet(db)
    income = get_income_statement(db)
    return {
        "total_assets": sheet["total_assets"],
        "total_liabilities": sheet["total_liabilities"],
        "total_equity": sheet["total_equity"],
        "total_revenue": income["total_revenue"],
        "total_expense": income["total_expense"],
        "net_income": income["net_income"],
        "account_count": db.query(ChartOfAccounts).filter(ChartOfAccounts.is_active.is_(True)).count(),
        "journal_entry_count": db.query(JournalEntry).count(),
    }


def get_chart_of_accounts(db: Session, is_active: Optional[bool] = None) -> List[ChartOfAccounts]:
    q = db.query(ChartOfAccounts)
    if is_active is not None:
        q = q.filter(ChartOfAccounts.is_active.is_(is_active))
    return q.order_by(ChartOfAccounts.code.asc()).all()

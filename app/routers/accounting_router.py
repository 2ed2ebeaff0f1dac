from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional

from app.utils.database import get_db
from app.core.security import Principal, get_current_principal, require_role, require_staff
from app.models.user_model import UserRole
from app.services import accounting_service

from app.schemas.accounting_schema import (
    AccountOut,
    AccountBalanceOut,
    TrialBalanceOut,
    BalanceSheetOut,
    IncomeStatementOut,
    GeneralLedgerOut,
    LedgerSummaryRow,
    JournalEntryPage,
    AccountingMetricsOut,
    GlobalTotalsOut,
)

router = APIRouter(prefix="/accounting", tags=["Accounting"])


def staff(principal: Principal = Depends(get_current_principal)) -> Principal:
    return require_staff(principal)


@router.post("/initialize-coa")
def initialize_coa(
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
):
    require_role(principal, UserRole.ACCOUNTANT, UserRole.MANAGER)
    added = accounting_service.initialize_chart_of_accounts(db)
    db.commit()
    return {"message": "Chart of accounts initialized", "accounts_added": added}


@router.get("/chart-of-accounts", response_model=list[AccountOut])
def chart_of_accounts(
        is_active: Optional[bool] = Query(None),
        _: Principal = Depends(staff),
        db: Session = Depends(get_db),
):
    return accounting_service.get_chart_of_accounts(db, is_active)


@router.get("/account-balance/{code}", response_model=AccountBalanceOut)
def account_balance(
        code: str,
        as_of: Optional[date] = Query(None),
        _: Principal = Depends(staff),
        db: Session = Depends(get_db),
):
    return accounting_service.get_account_balance(db, code, as_of)


@router.get("/trial-balance", response_model=TrialBalanceOut)
def trial_balance(
        as_of: Optional[date] = Query(None),
        _: Principal = Depends(staff),
        db: Session = Depends(get_db),
):
    return accounting_service.get_trial_balance(db, as_of)


@router.get("/balance-sheet", response_model=BalanceSheetOut)
def balance_sheet(
        as_of: Optional[date] = Query(None),
        _: Principal = Depends(staff),
        db: Session = Depends(get_db),
):
    return accounting_service.get_balance_sheet(db, as_of)


@router.get("/income-statement", response_model=IncomeStatementOut)
def income_statement(
        from_date: Optional[date] = Query(None),
        to_date: Optional[date] = Query(None),
        _: Principal = Depends(staff),
        db: Session = Depends(get_db),
):
    return accounting_service.get_income_statement(db, from_date, to_date)


@router.get("/metrics", response_model=AccountingMetricsOut)
def metrics(_: Principal = Depends(staff), db: Session = Depends(get_db)):
    return accounting_service.get_accounting_metrics(db)


@router.get("/integrity", response_model=GlobalTotalsOut)
def integrity(_: Principal = Depends(staff), db: Session = Depends(get_db)):
    return accounting_service.get_global_totals(db)


@router.get("/journal-entries", response_model=JournalEntryPage)
def journal_entries(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=200),
        from_date: Optional[date] = Query(None),
        to_date: Optional[date] = Query(None),
        _: Principal = Depends(staff),
        db: Session = Depends(get_db),
):
    return accounting_service.get_journal_entries(db, page, limit, from_date, to_date)


@router.get("/general-ledger-summary", response_model=list[LedgerSummaryRow])
def general_ledger_summary(
        from_date: Optional[date] = Query(None),
        to_date: Optional[date] = Query(None),
        _: Principal = Depends(staff),
        db: Session = Depends(get_db),
):
    return accounting_service.get_general_ledger_summary(db, from_date, to_date)


@router.get("/general-ledger/{code}", response_model=GeneralLedgerOut)
def general_ledger(
        code: str,
        from_date: Optional[date] = Query(None),
        to_date: Optional[date] = Query(None),
        _: Principal = Depends(staff),
        db: Session = Depends(get_db),
):
    return accounting_service.get_general_ledger(db, code, from_date, to_date)

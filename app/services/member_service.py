# app/services/member_service.py
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.security import Principal
from app.models.loan_model import Loan, OUTSTANDING_LOAN_STATUSES
from app.models.member_model import Member
from app.models.transaction_model import Transaction, TransactionType, CONTRIBUTION_TYPES
from app.models.user_model import User
from app.services import accounting_service
from app.services.notification_service import Notifier
from app.services.repayment_service import apply_repayment
from app.utils.loan_calculations import money, parse_amount, ZERO

logger = logging.getLogger(__name__)

# deposit-like types share the savings posting
SAVINGS_RECIPE_TYPES = (
    TransactionType.SAVINGS.value,
    TransactionType.WILLING_DEPOSIT.value,
    TransactionType.COST_OF_SHARE.value,
)


def get_member(db: Session, member_id: int) -> Member:
    member = db.query(Member).filter(Member.member_id == member_id).first()
    if not member:
        raise NotFoundError("Member not found", requirement="Member", member_id=member_id)
    return member


def get_member_by_et_number(db: Session, et_number: int) -> Member:
    member = db.query(Member).filter(Member.et_number == et_number).first()
    if not member:
        raise NotFoundError("Member not found", requirement="Member", et_number=et_number)
    return member


def member_for_principal(db: Session, principal: Principal) -> Member:
    """The Member a MEMBER principal acts as: by ET number, else via the user row."""
    if principal.et_number is not None:
        return get_member_by_et_number(db, principal.et_number)

    user = db.query(User).filter(User.user_id == principal.id).first()
    if not user or user.member_id is None:
        raise NotFoundError("Member not found", requirement="Member", user_id=principal.id)
    return get_member(db, user.member_id)


def willing_deposit_balance(db: Session, member_id: int) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(Transaction.amount), 0))
        .filter(Transaction.member_id == member_id, Transaction.txn_type == TransactionType.WILLING_DEPOSIT.value)
        .scalar()
    )
    return money(total)


def record_transaction(
        db: Session,
        member_id: int,
        txn_type: str,
        amount,
        transaction_date: Optional[date] = None,
        reference: Optional[str] = None,
        source_type: str = "CASH",
        notifier: Optional[Notifier] = None,
):
    """
    Record one member cash movement and its journal entry.

    LOAN_REPAYMENT goes through the repayment allocator and returns its
    RepaymentResult; every other type returns the Transaction row.
    """
    try:
        kind = TransactionType((txn_type or "").strip().upper())
    except ValueError:
        raise ValidationError(
            f"Unknown transaction type: {txn_type}",
            requirement="Transaction Type",
            allowed=[t.value for t in TransactionType],
        )

    get_member(db, member_id)
    transaction_date = transaction_date or date.today()

    if kind == TransactionType.LOAN_REPAYMENT:
        return apply_repayment(
            db,
            member_id=member_id,
            amount=amount,
            payment_date=transaction_date,
            source_type=source_type,
            reference=reference,
            notifier=notifier,
        )

    amt = parse_amount(amount)
    if amt is None or amt <= 0:
        raise ValidationError(
            "Amount must be a number greater than 0",
            requirement="Transaction Amount",
            current=str(amount),
        )

    reference = (reference or "").strip() or None
    if reference:
        exists = (
            db.query(Transaction.transaction_id)
            .filter(
                Transaction.member_id == member_id,
                Transaction.txn_type == kind.value,
                Transaction.reference == reference,
            )
            .first()
        )
        if exists:
            raise ConflictError(
                "This reference was already recorded",
                requirement="Unique Transaction Reference",
                reference=reference,
                transaction_id=exists.transaction_id,
            )

    txn = Transaction(
        member_id=member_id,
        txn_type=kind.value,
        amount=amt,
        transaction_date=transaction_date,
        reference=reference,
        source_type=(source_type or "CASH").strip().upper(),
    )
    db.add(txn)
    db.flush()

    journal_ref = reference or f"TXN-{txn.transaction_id}"
    if kind.value in SAVINGS_RECIPE_TYPES:
        accounting_service.record_savings_deposit(
            db, member_id, amt, transaction_date, journal_ref, transaction_id=txn.transaction_id
        )
    elif kind == TransactionType.MEMBERSHIP_FEE:
        accounting_service.record_membership_fee(
            db, member_id, amt, transaction_date, journal_ref, transaction_id=txn.transaction_id
        )
    elif kind == TransactionType.REGISTRATION_FEE:
        accounting_service.record_registration_fee(
            db, member_id, amt, transaction_date, journal_ref, transaction_id=txn.transaction_id
        )

    logger.info("Recorded %s of %s for member %s (%s)", kind.value, amt, member_id, journal_ref)

    if notifier is not None:
        notifier.notify_member(
            member_id,
            "Transaction Recorded",
            f"{kind.value.replace('_', ' ').title()} of {amt} recorded",
            "TRANSACTION",
        )
    return txn


def member_transactions(db: Session, member_id: int, txn_type: Optional[str] = None,
                        limit: int = 50, offset: int = 0) -> List[Transaction]:
    limit = max(1, min(limit, 200))
    offset = max(0, offset)

    q = db.query(Transaction).filter(Transaction.member_id == member_id)
    if txn_type:
        q = q.filter(Transaction.txn_type == txn_type.strip().upper())
    return (
        q.order_by(Transaction.transaction_date.desc(), Transaction.transaction_id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def member_balances(db: Session, member_id: int) -> dict:
    member = get_member(db, member_id)

    rows = (
        db.query(Transaction.txn_type, func.coalesce(func.sum(Transaction.amount), 0))
        .filter(Transaction.member_id == member_id)
        .group_by(Transaction.txn_type)
        .all()
    )
    by_type = {t.value: ZERO for t in TransactionType}
    for txn_type, total in rows:
        by_type[txn_type] = money(total)

    active_loan = (
        db.query(Loan)
        .filter(Loan.member_id == member_id, Loan.status.in_(OUTSTANDING_LOAN_STATUSES))
        .order_by(Loan.loan_id.desc())
        .first()
    )

    return {
        "member_id": member.member_id,
        "et_number": member.et_number,
        "full_name": member.full_name,
        "totals_by_type": by_type,
        "total_contributions": money(sum((by_type[t] for t in CONTRIBUTION_TYPES), ZERO)),
        "willing_deposit_balance": by_type[TransactionType.WILLING_DEPOSIT.value],
        "active_loan_id": active_loan.loan_id if active_loan else None,
        "active_loan_status": active_loan.status if active_loan else None,
        "active_loan_remaining": money(active_loan.remaining_amount) if active_loan else None,
    }


def import_payroll(
        db: Session,
        rows: Iterable[dict],
        period: date,
        source_type: str = "ERP_PAYROLL",
        notifier: Optional[Notifier] = None,
) -> dict:
    """
    Record a payroll deduction batch. Each row is {"et_number", <TXN_TYPE>: amount, ...}.

    All rows share the caller's unit of work: one bad row fails the batch.
    References are derived from period, ET number and type, so a re-run of the
    same payroll file conflicts instead of double-posting.
    """
    recorded = 0
    skipped_repayments = 0
    total = ZERO
    period_key = period.strftime("%Y%m")

    for idx, row in enumerate(rows, start=1):
        et_number = row.get("et_number")
        if et_number is None:
            raise ValidationError("Row has no ET number", requirement="Payroll Row", row=idx)
        member = get_member_by_et_number(db, int(et_number))

        for key, value in row.items():
            if key == "et_number" or value in (None, "") or parse_amount(value) == 0:
                continue
            kind = key.strip().upper()
            result = record_transaction(
                db,
                member_id=member.member_id,
                txn_type=kind,
                amount=value,
                transaction_date=period,
                reference=f"PAYROLL-{period_key}-{member.et_number}-{kind}",
                source_type=source_type,
                notifier=notifier,
            )
            if kind == TransactionType.LOAN_REPAYMENT.value and not result.applied:
                skipped_repayments += 1
                continue
            recorded += 1
            total = money(total + money(parse_amount(value)))

    logger.info("Payroll %s imported: %s transactions, total %s", period_key, recorded, total)
    return {
        "period": period_key,
        "transactions_recorded": recorded,
        "repayments_without_loan": skipped_repayments,
        "total_amount": total,
    }

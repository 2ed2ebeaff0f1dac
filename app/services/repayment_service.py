# app/services/repayment_service.py
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.loan_model import Loan, LoanStatus
from app.models.loan_repayment_model import LoanRepayment, RepaymentStatus
from app.models.member_model import Member
from app.models.transaction_model import Transaction, TransactionType
from app.services import accounting_service
from app.services.notification_service import Notifier
from app.utils.loan_calculations import money, parse_amount, ZERO
from app.utils.settings import overpayment_policy

logger = logging.getLogger(__name__)

# what happens to the part of a payment above the outstanding schedule
CREDIT_SAVINGS = "CREDIT_SAVINGS"
REJECT = "REJECT"
DISCARD = "DISCARD"
OVERPAYMENT_POLICIES = (CREDIT_SAVINGS, REJECT, DISCARD)

COLLECTIBLE_STATUSES = (RepaymentStatus.PENDING.value, RepaymentStatus.OVERDUE.value)


@dataclass
class InstallmentAllocation:
    repayment_id: Optional[int]
    installment_no: int
    applied_amount: Decimal
    paid_amount: Decimal
    status: str


@dataclass
class RepaymentResult:
    applied: bool
    member_id: int
    amount: Decimal
    loan_id: Optional[int] = None
    allocated: Decimal = ZERO
    surplus: Decimal = ZERO
    surplus_policy: Optional[str] = None
    remaining_amount: Optional[Decimal] = None
    loan_status: Optional[str] = None
    transaction_id: Optional[int] = None
    journal_entry_number: Optional[str] = None
    allocations: List[InstallmentAllocation] = field(default_factory=list)


def allocate_repayment(installments: Sequence[LoanRepayment], amount, paid_on: Optional[date] = None):
    """
    Apply `amount` to installments in the given order (oldest due first).

    Each installment takes min(remaining, due - paid); it turns PAID once fully
    covered and stays PENDING otherwise. Returns (allocations, leftover).
    """
    remaining = money(amount)
    allocations: List[InstallmentAllocation] = []

    for inst in installments:
        if remaining <= 0:
            break

        unpaid = money(money(inst.amount) - money(inst.paid_amount))
        if unpaid <= 0:
            continue

        applied = unpaid if remaining >= unpaid else remaining
        inst.paid_amount = money(money(inst.paid_amount) + applied)

        if money(inst.paid_amount) >= money(inst.amount):
            inst.status = RepaymentStatus.PAID.value
            inst.paid_on = paid_on or date.today()
        else:
            inst.status = RepaymentStatus.PENDING.value

        allocations.append(
            InstallmentAllocation(
                repayment_id=inst.repayment_id,
                installment_no=inst.installment_no,
                applied_amount=applied,
                paid_amount=money(inst.paid_amount),
                status=inst.status,
            )
        )
        remaining = money(remaining - applied)

    return allocations, remaining


def recompute_remaining_balance(loan: Loan) -> Decimal:
    """
    remaining = max(0, amount - Σ paid) over every installment of the loan.
    Reaching 0 closes the loan as REPAID. Safe to run any number of times.
    """
    total_paid = money(sum((money(r.paid_amount) for r in loan.repayments), ZERO))
    remaining = money(money(loan.amount) - total_paid)
    if remaining <= 0:
        remaining = ZERO
        loan.status = LoanStatus.REPAID.value
    loan.remaining_amount = remaining
    return remaining


def latest_disbursed_loan(db: Session, member_id: int) -> Optional[Loan]:
    return (
        db.query(Loan)
        .filter(Loan.member_id == member_id, Loan.status == LoanStatus.DISBURSED.value)
        .order_by(Loan.created_on.desc(), Loan.loan_id.desc())
        .first()
    )


def collectible_installments(db: Session, loan_id: int) -> List[LoanRepayment]:
    return (
        db.query(LoanRepayment)
        .filter(LoanRepayment.loan_id == loan_id, LoanRepayment.status.in_(COLLECTIBLE_STATUSES))
        .order_by(LoanRepayment.repayment_date.asc(), LoanRepayment.installment_no.asc())
        .all()
    )


def apply_repayment(
        db: Session,
        member_id: int,
        amount,
        payment_date: Optional[date] = None,
        source_type: str = "CASH",
        reference: Optional[str] = None,
        notifier: Optional[Notifier] = None,
) -> RepaymentResult:
    """
    Run one incoming payment through the member's DISBURSED loan.

    Everything happens on `db` without committing: installments, loan
    balance, the LOAN_REPAYMENT transaction and its journal entry succeed or
    fail together with the caller's unit of work.
    """
    amt = parse_amount(amount)
    if amt is None or amt <= 0:
        raise ValidationError(
            "Amount must be a number greater than 0",
            requirement="Repayment Amount",
            current=str(amount),
        )

    reference = (reference or "").strip()
    if not reference:
        raise ValidationError("Payment reference is required", requirement="Payment Reference")

    payment_date = payment_date or date.today()
    source_type = (source_type or "CASH").strip().upper()

    member = db.query(Member).filter(Member.member_id == member_id).first()
    if not member:
        raise NotFoundError("Member not found", requirement="Member", member_id=member_id)

    duplicate = (
        db.query(Transaction.transaction_id)
        .filter(
            Transaction.member_id == member_id,
            Transaction.txn_type == TransactionType.LOAN_REPAYMENT.value,
            Transaction.reference == reference,
        )
        .first()
    )
    if duplicate:
        raise ConflictError(
            "This payment reference was already applied",
            requirement="Unique Payment Reference",
            reference=reference,
            transaction_id=duplicate.transaction_id,
        )

    loan = latest_disbursed_loan(db, member_id)
    if not loan:
        logger.info("No disbursed loan for member %s, repayment %s ignored", member_id, reference)
        return RepaymentResult(applied=False, member_id=member_id, amount=amt)

    installments = collectible_installments(db, loan.loan_id)
    outstanding = money(sum((money(i.amount) - money(i.paid_amount) for i in installments), ZERO))

    policy = overpayment_policy(db)
    if policy not in OVERPAYMENT_POLICIES:
        logger.warning("Unknown OVERPAYMENT_POLICY %r, using %s", policy, CREDIT_SAVINGS)
        policy = CREDIT_SAVINGS

    if amt > outstanding and policy == REJECT:
        raise ValidationError(
            "Payment exceeds the outstanding loan balance",
            requirement="Outstanding Balance",
            outstanding=float(outstanding),
            current=float(amt),
        )

    allocations, leftover = allocate_repayment(installments, amt, payment_date)

    # the surplus leaves the loan when it is credited to savings
    repayment_amount = money(amt - leftover) if policy == CREDIT_SAVINGS else amt

    result = RepaymentResult(
        applied=True,
        member_id=member_id,
        amount=amt,
        loan_id=loan.loan_id,
        allocated=money(amt - leftover),
        surplus=leftover,
        surplus_policy=policy if leftover > 0 else None,
        allocations=allocations,
    )

    if repayment_amount > 0:
        txn = Transaction(
            member_id=member_id,
            txn_type=TransactionType.LOAN_REPAYMENT.value,
            amount=repayment_amount,
            transaction_date=payment_date,
            reference=reference,
            source_type=source_type,
        )
        db.add(txn)
        db.flush()

        interest = money(repayment_amount * money(loan.interest_rate) / Decimal("100"))
        principal = money(repayment_amount - interest)
        entry = accounting_service.record_loan_repayment(
            db,
            member_id=member_id,
            principal=principal,
            interest=interest,
            entry_date=payment_date,
            reference=reference,
            transaction_id=txn.transaction_id,
        )
        result.transaction_id = txn.transaction_id
        result.journal_entry_number = entry.entry_number

    if leftover > 0 and policy == CREDIT_SAVINGS:
        surplus_ref = f"{reference}/surplus"
        saving = Transaction(
            member_id=member_id,
            txn_type=TransactionType.SAVINGS.value,
            amount=leftover,
            transaction_date=payment_date,
            reference=surplus_ref,
            source_type=source_type,
        )
        db.add(saving)
        db.flush()
        accounting_service.record_savings_deposit(
            db, member_id, leftover, payment_date, surplus_ref, transaction_id=saving.transaction_id
        )
        logger.info("Repayment %s surplus %s credited to savings of member %s", reference, leftover, member_id)
    elif leftover > 0:
        logger.warning("Repayment %s surplus %s discarded (policy %s)", reference, leftover, policy)

    db.flush()
    db.expire(loan, ["repayments"])
    result.remaining_amount = recompute_remaining_balance(loan)
    result.loan_status = loan.status
    db.flush()

    logger.info(
        "Repayment %s for loan %s: allocated=%s remaining=%s status=%s",
        reference, loan.loan_id, result.allocated, result.remaining_amount, loan.status,
    )

    if notifier is not None:
        notifier.notify_member(
            member_id,
            "Loan Repayment Received",
            f"Your repayment of {amt} has been applied. Remaining balance: {result.remaining_amount}",
            "LOAN_REPAYMENT",
        )
        if loan.status == LoanStatus.REPAID.value:
            notifier.notify_member(
                member_id,
                "Loan Fully Repaid",
                f"Loan #{loan.loan_id} has been fully repaid",
                "LOAN_REPAID",
            )

    return result

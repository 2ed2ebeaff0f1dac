from decimal import Decimal

import pytest

from app.core.exceptions import SequenceViolation, ValidationError
from app.core.security import Principal
from app.models.user_model import UserRole
from app.models.withdrawal_model import WithdrawalStatus
from app.services import accounting_service as acc
from app.services import withdrawal_service
from app.services.member_service import willing_deposit_balance
from app.services.notification_service import Notifier
from conftest import deposit, make_member, make_user

ACCOUNTANT = Principal(id=11, role=UserRole.ACCOUNTANT)
SUPERVISOR = Principal(id=12, role=UserRole.SUPERVISOR)
MANAGER = Principal(id=13, role=UserRole.MANAGER)


@pytest.fixture
def saver(db):
    member = make_member(db)
    make_user(db, UserRole.MEMBER, member_id=member.member_id)
    deposit(db, member, 1000, txn_type="WILLING_DEPOSIT")
    return member


def approve_all(db, req):
    for p in (ACCOUNTANT, SUPERVISOR, MANAGER):
        withdrawal_service.approve_request(db, req.request_id, p, None, Notifier(db))


def test_balance_drops_only_at_disbursement(db, saver):
    req = withdrawal_service.submit_request(db, saver.member_id, "400", Notifier(db))
    approve_all(db, req)

    assert req.approval_status == WithdrawalStatus.APPROVED_BY_MANAGER.value
    assert willing_deposit_balance(db, saver.member_id) == Decimal("1000.00")

    notifier = Notifier(db)
    withdrawal_service.disburse_request(db, req.request_id, MANAGER, notifier)

    assert req.approval_status == WithdrawalStatus.DISBURSED.value
    assert willing_deposit_balance(db, saver.member_id) == Decimal("600.00")
    assert acc.get_account_balance(db, acc.MEMBER_SAVINGS)["natural_balance"] == Decimal("600.00")
    assert [p.title for p in notifier.outbox] == ["Withdrawal Disbursed"]


def test_open_requests_reserve_the_balance(db, saver):
    withdrawal_service.submit_request(db, saver.member_id, 700, Notifier(db))

    summary = withdrawal_service.balance_summary(db, saver.member_id)
    assert summary["reserved_amount"] == Decimal("700.00")
    assert summary["available_balance"] == Decimal("300.00")

    with pytest.raises(ValidationError) as exc:
        withdrawal_service.submit_request(db, saver.member_id, 400, Notifier(db))
    assert exc.value.requirement == "Willing Deposit Balance"


def test_approval_sequence_is_enforced(db, saver):
    req = withdrawal_service.submit_request(db, saver.member_id, 100, Notifier(db))

    with pytest.raises(SequenceViolation) as exc:
        withdrawal_service.approve_request(db, req.request_id, SUPERVISOR, None, Notifier(db))
    assert exc.value.details["required_role"] == "ACCOUNTANT"

    withdrawal_service.approve_request(db, req.request_id, ACCOUNTANT, None, Notifier(db))
    assert req.approval_status == WithdrawalStatus.APPROVED_BY_ACCOUNTANT.value
    assert withdrawal_service.pending_for_role(db, UserRole.SUPERVISOR) == [req]


def test_disbursement_needs_manager_approval(db, saver):
    req = withdrawal_service.submit_request(db, saver.member_id, 100, Notifier(db))
    withdrawal_service.approve_request(db, req.request_id, ACCOUNTANT, None, Notifier(db))

    with pytest.raises(SequenceViolation):
        withdrawal_service.disburse_request(db, req.request_id, MANAGER, Notifier(db))


def test_rejection_needs_remarks_and_open_request(db, saver):
    req = withdrawal_service.submit_request(db, saver.member_id, 100, Notifier(db))

    with pytest.raises(ValidationError) as exc:
        withdrawal_service.reject_request(db, req.request_id, ACCOUNTANT, "  ", Notifier(db))
    assert exc.value.requirement == "Rejection Remarks"

    withdrawal_service.reject_request(db, req.request_id, ACCOUNTANT, "Signature missing", Notifier(db))
    assert req.approval_status == WithdrawalStatus.REJECTED.value
    assert withdrawal_service.balance_summary(db, saver.member_id)["reserved_amount"] == Decimal("0.00")


def test_fully_approved_request_cannot_be_rejected(db, saver):
    req = withdrawal_service.submit_request(db, saver.member_id, 100, Notifier(db))
    approve_all(db, req)

    with pytest.raises(SequenceViolation):
        withdrawal_service.reject_request(db, req.request_id, MANAGER, "Changed my mind", Notifier(db))

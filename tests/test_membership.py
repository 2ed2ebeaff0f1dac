import pytest

from app.core.exceptions import ConflictError, SequenceViolation, ValidationError
from app.core.security import Principal
from app.models.member_model import Member
from app.models.user_model import UserRole
from app.services import membership_service
from app.services.notification_service import Notifier
from conftest import make_member, make_user

ACCOUNTANT = Principal(id=21, role=UserRole.ACCOUNTANT)
SUPERVISOR = Principal(id=22, role=UserRole.SUPERVISOR)
MANAGER = Principal(id=23, role=UserRole.MANAGER)

APPLICATION = {"full_name": "Sara Tesfaye", "et_number": 2002, "salary": "8500", "department": "Finance"}


def test_member_created_only_at_final_approval(db):
    make_member(db, et_number=1001)
    req = membership_service.submit_request(db, dict(APPLICATION), Notifier(db))

    for p in (ACCOUNTANT, SUPERVISOR):
        _, member = membership_service.approve_request(db, req.request_id, p, None, Notifier(db))
        assert member is None
        assert db.query(Member).filter(Member.et_number == 2002).count() == 0

    _, member = membership_service.approve_request(db, req.request_id, MANAGER, "Welcome", Notifier(db))

    assert member is not None
    assert member.member_number == 1002
    assert req.status == "APPROVED"
    assert req.member_id == member.member_id


def test_submit_notifies_every_accountant(db):
    a1 = make_user(db, UserRole.ACCOUNTANT)
    a2 = make_user(db, UserRole.ACCOUNTANT)
    notifier = Notifier(db)

    membership_service.submit_request(db, dict(APPLICATION), notifier)

    assert sorted(p.user_id for p in notifier.outbox) == sorted([a1.user_id, a2.user_id])


def test_duplicate_et_number_is_refused(db):
    make_member(db, et_number=2002)
    with pytest.raises(ConflictError):
        membership_service.submit_request(db, dict(APPLICATION), Notifier(db))


def test_pending_request_blocks_resubmission(db):
    membership_service.submit_request(db, dict(APPLICATION), Notifier(db))
    with pytest.raises(ConflictError):
        membership_service.submit_request(db, dict(APPLICATION), Notifier(db))


def test_missing_name_is_refused(db):
    with pytest.raises(ValidationError) as exc:
        membership_service.submit_request(db, {"et_number": 3}, Notifier(db))
    assert exc.value.requirement == "Full Name"


def test_rejection_is_final(db):
    req = membership_service.submit_request(db, dict(APPLICATION), Notifier(db))
    membership_service.reject_request(db, req.request_id, SUPERVISOR, "Not eligible")

    assert req.status == "REJECTED"
    with pytest.raises(SequenceViolation):
        membership_service.approve_request(db, req.request_id, ACCOUNTANT, None, Notifier(db))


def test_awaiting_me_lists_only_requests_at_my_stage(db):
    req = membership_service.submit_request(db, dict(APPLICATION), Notifier(db))

    assert membership_service.list_requests(db, ACCOUNTANT, awaiting_me=True) == [req]
    assert membership_service.list_requests(db, SUPERVISOR, awaiting_me=True) == []

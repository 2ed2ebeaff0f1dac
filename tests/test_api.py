from app.models.loan_model import Loan
from app.models.user_model import UserRole
from conftest import deposit, headers_for, make_disbursed_loan, make_member, make_products, make_user


def test_root(client):
    assert client.get("/").json()["currency"]


def test_missing_principal_is_403_with_requirement(client):
    res = client.get("/loans/pending")

    assert res.status_code == 403
    assert res.json()["requirement"] == "Authenticated Session"


def test_member_cannot_read_the_ledger(client, db):
    member = make_member(db)
    user = make_user(db, UserRole.MEMBER, member_id=member.member_id)
    db.commit()

    res = client.get("/accounting/trial-balance", headers=headers_for(user))
    assert res.status_code == 403
    assert res.json()["requirement"] == "Staff Access"


def test_member_applies_for_loan(client, db):
    member = make_member(db, et_number=1001, salary=10000)
    user = make_user(db, UserRole.MEMBER, member_id=member.member_id)
    make_user(db, UserRole.ACCOUNTANT)
    make_products(db)
    deposit(db, member, 70000)
    db.commit()

    res = client.post(
        "/loans/apply",
        json={"amount": 20000, "tenure_months": 36, "purpose": "Roof"},
        headers=headers_for(user, et_number=1001),
    )

    assert res.status_code == 201, res.text
    body = res.json()
    assert body["product_name"] == "Tier 62000"
    assert body["loan"]["status"] == "PENDING"
    assert body["monthly_payment"] > 0


def test_qualification_failure_names_requirement(client, db):
    member = make_member(db, et_number=1001)
    user = make_user(db, UserRole.MEMBER, member_id=member.member_id)
    make_products(db)
    deposit(db, member, 500)
    db.commit()

    res = client.post("/loans/apply", json={"amount": 1000, "tenure_months": 12}, headers=headers_for(user))

    assert res.status_code == 400
    body = res.json()
    assert body["requirement"] == "Minimum Total Contributions"
    assert body["required"] == 32000.0
    assert body["current"] == 500.0
    assert db.query(Loan).count() == 0


def test_out_of_order_approval_is_409(client, db):
    member = make_member(db)
    loan = Loan(member_id=member.member_id, amount=1000, remaining_amount=1000, interest_rate=9.5,
                tenure_months=12, status="PENDING", approval_order=0)
    db.add(loan)
    manager = make_user(db, UserRole.MANAGER)
    db.commit()

    res = client.post(f"/loans/{loan.loan_id}/approve", json={}, headers=headers_for(manager))

    assert res.status_code == 409
    assert res.json()["required_role"] == "ACCOUNTANT"


def test_repayment_endpoint(client, db):
    member = make_member(db)
    make_disbursed_loan(db, member, amount=5000, rate=10, tenure=3)
    accountant = make_user(db, UserRole.ACCOUNTANT)
    db.commit()
    h = headers_for(accountant)
    payload = {"member_id": member.member_id, "amount": "2000", "reference": "RP-1"}

    res = client.post("/loans/repayments", json=payload, headers=h)
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["applied"] is True
    assert body["remaining_amount"] == 3000.0
    assert [a["status"] for a in body["allocations"]] == ["PAID", "PENDING"]

    dup = client.post("/loans/repayments", json=payload, headers=h)
    assert dup.status_code == 409
    assert dup.json()["requirement"] == "Unique Payment Reference"

    bad = client.post("/loans/repayments", json={**payload, "amount": "abc", "reference": "RP-2"}, headers=h)
    assert bad.status_code == 400
    assert bad.json()["requirement"] == "Repayment Amount"

    tb = client.get("/accounting/trial-balance", headers=h)
    assert tb.status_code == 200
    assert tb.json()["is_balanced"] is True


def test_staff_records_savings_transaction(client, db):
    member = make_member(db)
    accountant = make_user(db, UserRole.ACCOUNTANT)
    db.commit()

    res = client.post(
        f"/members/{member.member_id}/transactions",
        json={"txn_type": "savings", "amount": 250, "reference": "DEP-1"},
        headers=headers_for(accountant),
    )
    assert res.status_code == 201, res.text
    assert res.json()["txn_type"] == "SAVINGS"

    balances = client.get(f"/members/{member.member_id}/balances", headers=headers_for(accountant))
    assert balances.json()["total_contributions"] == 250.0

    gl = client.get("/accounting/general-ledger/2010", headers=headers_for(accountant))
    assert gl.json()["closing_balance"] == -250.0


def test_withdrawal_submit_checks_balance(client, db):
    member = make_member(db, et_number=1001)
    user = make_user(db, UserRole.MEMBER, member_id=member.member_id)
    deposit(db, member, 300, txn_type="WILLING_DEPOSIT")
    db.commit()

    res = client.post("/withdrawals/submit", json={"amount": 500}, headers=headers_for(user, et_number=1001))

    assert res.status_code == 400
    assert res.json()["available_balance"] == 300.0


def test_public_membership_request(client, db):
    res = client.post("/membership/request", json={"full_name": "Sara Tesfaye", "et_number": 2002, "salary": 8000})

    assert res.status_code == 201, res.text
    assert res.json()["status"] == "PENDING"


def test_manager_sets_overpayment_policy(client, db):
    manager = make_user(db, UserRole.MANAGER)
    db.commit()
    h = headers_for(manager)

    res = client.post("/settings", json={"key": "overpayment_policy", "value": "reject"}, headers=h)
    assert res.status_code == 201, res.text
    assert res.json()["value"] == "REJECT"

    bad = client.patch("/settings", json={"key": "OVERPAYMENT_POLICY", "value": "KEEP"}, headers=h)
    assert bad.status_code == 422

    listed = client.get("/settings", headers=h).json()
    assert listed == [{"key": "OVERPAYMENT_POLICY", "value": "REJECT", "description": ""}]

import os
from datetime import date
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  registers every table
from app.models.loan_model import Loan, LoanStatus
from app.models.loan_product_model import LoanProduct
from app.models.member_model import Member
from app.models.system_settings_model import SystemSetting
from app.models.user_model import User, UserRole
from app.services.accounting_service import initialize_chart_of_accounts
from app.services.loan_service import generate_repayment_schedule
from app.services.member_service import record_transaction
from app.utils.database import Base, get_db
from main import app as fastapi_app


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    initialize_chart_of_accounts(session)
    session.commit()
    yield session
    session.close()


@pytest.fixture
def client(session_factory, db):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()


# ---------------------
# factories
# ---------------------
def make_member(db, et_number=1001, salary=10000, full_name="Abebe Kebede"):
    member = Member(et_number=et_number, member_number=et_number, full_name=full_name, salary=salary, is_active=True)
    db.add(member)
    db.flush()
    return member


def make_user(db, role: UserRole, member_id=None, full_name=None):
    user = User(full_name=full_name or f"{role.value.title()} User", role=role.value, member_id=member_id)
    db.add(user)
    db.flush()
    return user


def make_products(db, minimums=(32000, 62000, 132000)):
    tiers = [(1, 24), (25, 60), (61, 120)]
    products = []
    for i, minimum in enumerate(minimums):
        lo, hi = tiers[i % len(tiers)]
        p = LoanProduct(
            product_name=f"Tier {minimum}",
            interest_rate=Decimal("9.5"),
            min_duration_months=lo,
            max_duration_months=hi,
            min_total_contributions=minimum,
            required_savings_percentage=30,
            required_savings_during_loan=35,
            max_loan_based_on_salary_months=30,
            is_active=True,
        )
        db.add(p)
        products.append(p)
    db.flush()
    return products


def deposit(db, member, amount, txn_type="SAVINGS", reference=None):
    return record_transaction(
        db,
        member_id=member.member_id,
        txn_type=txn_type,
        amount=amount,
        transaction_date=date(2024, 1, 1),
        reference=reference,
    )


def make_disbursed_loan(db, member, amount=5000, rate=10, tenure=3, disbursed_on=date(2024, 1, 1)):
    loan = Loan(
        member_id=member.member_id,
        amount=Decimal(str(amount)),
        remaining_amount=Decimal(str(amount)),
        interest_rate=Decimal(str(rate)),
        tenure_months=tenure,
        status=LoanStatus.DISBURSED.value,
        approval_order=4,
        disbursed_on=disbursed_on,
    )
    db.add(loan)
    db.flush()
    generate_repayment_schedule(db, loan, disbursed_on)
    return loan


def set_setting(db, key, value):
    db.add(SystemSetting(key=key, value=str(value), description=""))
    db.flush()


def headers_for(user: User, et_number=None):
    h = {"X-User-Id": str(user.user_id), "X-User-Role": user.role}
    if et_number is not None:
        h["X-Et-Number"] = str(et_number)
    return h

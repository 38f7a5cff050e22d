# tests/conftest.py
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from investledger.core.config import AppConfig, Settings
from investledger.core.database import init_db
from investledger.models import InvestmentPackage, User
from investledger.services.notifications import NotificationDispatcher

WEBHOOK_SECRET = "whsec-test-only"


class RecordingSender:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, to_address, subject, body):
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.sent.append((to_address, subject, body))


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False},
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def config():
    return AppConfig(Settings(
        MIN_DEPOSIT_AMOUNT=Decimal("100"),
        MIN_WITHDRAWAL_AMOUNT=Decimal("50"),
        WITHDRAWAL_FEE_PERCENTAGE=Decimal("0.5"),
        REFERRAL_BONUS_PERCENTAGE=Decimal("5"),
        MIN_CRYPTO_CONFIRMATIONS=3,
        INVESTMENT_CANCEL_WINDOW_HOURS=24,
        TRANSACTION_CANCEL_WINDOW_HOURS=1,
        CRYPTO_WEBHOOK_SECRET=WEBHOOK_SECRET,
    ))


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(balance="0", referred_by=None, first_name="Ada"):
        counter["n"] += 1
        user = User(
            email=f"investor{counter['n']}@example.com",
            first_name=first_name,
            last_name="Lovelace",
            account_balance=Decimal(balance),
            referred_by=referred_by,
        )
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def user(make_user):
    return make_user(balance="1000")


@pytest.fixture
def package(db):
    package = InvestmentPackage(
        name="Growth 30",
        description="30 day growth plan",
        min_amount=Decimal("100"),
        max_amount=Decimal("1000"),
        return_rate=Decimal("10"),
        duration_days=30,
        risk_level="medium",
        is_active=True,
    )
    db.add(package)
    db.commit()
    return package


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def notifier(sender, session_factory):
    return NotificationDispatcher(sender, session_factory)


@pytest.fixture
def failing_sender():
    return RecordingSender(fail=True)

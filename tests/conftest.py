"""Shared fixtures: in-memory database, fake collaborators and a booking factory."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import date, datetime, time  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from venue_engine import models  # noqa: E402,F401
from venue_engine.database import Base  # noqa: E402
from venue_engine.enums import BookingType, LifecycleStatus, PaymentStatus  # noqa: E402
from venue_engine.exceptions import CollaboratorError  # noqa: E402
from venue_engine.models import Booking  # noqa: E402
from venue_engine.services.job_planner import JobPlanner  # noqa: E402

# 2026-03-01 15:00 UTC is 10:00 at the venue (UTC-5)
NOW = datetime(2026, 3, 1, 15, 0)


class FakePaymentLinks:
    def __init__(self):
        self.calls = []
        self.fail = False

    async def create_balance_payment_link(self, booking_id):
        self.calls.append(booking_id)
        if self.fail:
            raise CollaboratorError("payment service down", booking_id=booking_id)
        return {"payment_url": f"https://pay.example.com/balance/{booking_id}/{len(self.calls)}"}


class FakeCrm:
    def __init__(self):
        self.calls = []
        self.fail = False

    async def sync_booking_snapshot(self, booking_id):
        self.calls.append(booking_id)
        if self.fail:
            raise CollaboratorError("crm down", booking_id=booking_id)


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
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def payment_links():
    return FakePaymentLinks()


@pytest.fixture
def crm():
    return FakeCrm()


@pytest.fixture
def planner(db, payment_links, crm):
    return JobPlanner(db, payment_links=payment_links, crm=crm, now_fn=lambda: NOW)


@pytest.fixture
def make_booking(db):
    """Hourly, deposit-paid, pre_event_ready booking one month out unless overridden"""

    def _make(**overrides):
        data = {
            "full_name": "Ana Ruiz",
            "email": "ana@example.com",
            "booking_type": BookingType.HOURLY,
            "event_date": date(2026, 4, 1),
            "start_time": time(14, 0),
            "end_time": time(18, 0),
            "payment_status": PaymentStatus.DEPOSIT_PAID,
            "lifecycle_status": LifecycleStatus.PRE_EVENT_READY,
        }
        data.update(overrides)
        if data["booking_type"] == BookingType.DAILY and "start_time" not in overrides:
            data["start_time"] = time(0, 0, 0)
            data["end_time"] = time(23, 59, 59)
        booking = Booking(**data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make

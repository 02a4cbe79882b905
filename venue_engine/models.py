import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .enums import (
    BlockSource,
    BookingType,
    HostReportStatus,
    HostReportStep,
    JobStatus,
    JobType,
    LifecycleStatus,
    PaymentStatus,
    enum_values,
)


def generate_reservation_number():
    """Generate a short human-facing reservation number"""
    return f"OEV-{uuid.uuid4().hex[:8].upper()}"


def _enum(enum_cls, name: str):
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=40,
        values_callable=enum_values,
        validate_strings=True,
    )


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    reservation_number = Column(
        String(20), unique=True, nullable=False, index=True, default=generate_reservation_number
    )
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)

    booking_type = Column(_enum(BookingType, "booking_type"), nullable=False)
    event_date = Column(Date, nullable=False, index=True)
    # Daily bookings carry the full-day sentinel 00:00:00-23:59:59
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)

    payment_status = Column(
        _enum(PaymentStatus, "payment_status"), default=PaymentStatus.PENDING, nullable=False
    )
    lifecycle_status = Column(
        _enum(LifecycleStatus, "lifecycle_status"),
        default=LifecycleStatus.PENDING,
        nullable=False,
        index=True,
    )
    host_report_step = Column(_enum(HostReportStep, "host_report_step"), nullable=True)

    # Last balance link handed to the guest (written by the payment-link flow)
    balance_payment_url = Column(Text, nullable=True)
    # Internal bookings hold the venue through an availability block
    is_internal = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    scheduled_jobs = relationship("ScheduledJob", back_populates="booking")
    events = relationship("BookingEvent", back_populates="booking")
    availability_blocks = relationship("AvailabilityBlock", back_populates="booking")
    host_reports = relationship("BookingHostReport", back_populates="booking")


class AvailabilityBlock(Base):
    """Administrative hold on the venue that is not a paying booking"""

    __tablename__ = "availability_blocks"

    id = Column(Integer, primary_key=True, index=True)
    source = Column(_enum(BlockSource, "block_source"), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True, index=True)
    block_type = Column(_enum(BookingType, "block_type"), nullable=False)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=True)  # hourly blocks only
    end_time = Column(Time, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="availability_blocks")


class BlackoutDate(Base):
    __tablename__ = "blackout_dates"

    id = Column(Integer, primary_key=True, index=True)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class ScheduledJob(Base):
    """
    Deferred automation record, polled by the external job processor.

    Only status, attempts, last_error and timestamps change after insert;
    run_at and job_type are fixed for the life of the row.
    """

    __tablename__ = "scheduled_jobs"

    id = Column(Integer, primary_key=True, index=True)
    job_type = Column(_enum(JobType, "job_type"), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    run_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    status = Column(
        _enum(JobStatus, "job_status"), default=JobStatus.PENDING, nullable=False, index=True
    )
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="scheduled_jobs")

    __table_args__ = (
        # One pending row per (booking, job type); concurrent planners collide here
        Index(
            "uq_scheduled_jobs_pending_booking_type",
            "booking_id",
            "job_type",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_scheduled_jobs_status_run_at", "status", "run_at"),
    )


class BookingEvent(Base):
    """Append-only audit trail - rows are never updated or deleted"""

    __tablename__ = "booking_events"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    event_type = Column(String(100), nullable=False, index=True)
    channel = Column(String(50), default="system", nullable=False)
    event_metadata = Column("metadata", JSON, default=dict, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="events")


class BookingHostReport(Base):
    __tablename__ = "booking_host_reports"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    status = Column(
        _enum(HostReportStatus, "host_report_status"),
        default=HostReportStatus.DRAFT,
        nullable=False,
    )
    notes = Column(Text, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="host_reports")

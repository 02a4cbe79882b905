"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, Field

from ...enums import BookingType, HostReportStatus, HostReportStep, LifecycleStatus, PaymentStatus
from ..jobs.schemas import PlanResult


class BookingCreate(BaseModel):
    """Schema for creating a booking; daily bookings ignore the times"""

    booking_type: BookingType
    event_date: date
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    is_internal: bool = False
    notes: Optional[str] = None


class BookingResponse(BaseModel):
    id: int
    reservation_number: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    booking_type: BookingType
    event_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    payment_status: PaymentStatus
    lifecycle_status: LifecycleStatus
    host_report_step: Optional[HostReportStep] = None
    balance_payment_url: Optional[str] = None
    is_internal: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class LifecycleStatusUpdate(BaseModel):
    lifecycle_status: LifecycleStatus


class RescheduleRequest(BaseModel):
    event_date: date
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class HostReportSubmit(BaseModel):
    notes: Optional[str] = None


class HostReportResponse(BaseModel):
    id: int
    booking_id: int
    status: HostReportStatus
    notes: Optional[str] = None
    submitted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConflictResponse(BaseModel):
    """Returned with HTTP 409 when the requested window is taken"""

    available: bool = False
    reason: Optional[str] = None
    conflict_kind: Optional[str] = None
    conflict_id: Optional[int] = None


class BookingActionResult(BaseModel):
    """A booking after a state change plus what the planner did about it"""

    booking: BookingResponse
    plans: list[PlanResult] = Field(default_factory=list)
    jobs_cancelled: int = 0
    errors: dict[str, str] = Field(default_factory=dict)

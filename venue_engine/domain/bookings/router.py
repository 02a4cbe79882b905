"""Booking router - FastAPI endpoints for booking operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...database import get_db
from ...dependencies import get_job_planner
from ...services.job_planner import JobPlanner
from .schemas import (
    BookingActionResult,
    BookingCreate,
    BookingResponse,
    CancelRequest,
    ConflictResponse,
    HostReportResponse,
    HostReportSubmit,
    LifecycleStatusUpdate,
    PaymentStatusUpdate,
    RescheduleRequest,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])

CONFLICT_RESPONSES = {409: {"model": ConflictResponse, "description": "Requested window is taken"}}


def get_booking_service(
    db: Session = Depends(get_db), planner: JobPlanner = Depends(get_job_planner)
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, planner=planner)


def _conflict(decision) -> JSONResponse:
    return JSONResponse(status_code=409, content=ConflictResponse(**decision.as_dict()).model_dump())


@router.post("", response_model=BookingResponse, status_code=201, responses=CONFLICT_RESPONSES)
async def create_booking(
    data: BookingCreate,
    service: BookingService = Depends(get_booking_service),
):
    """Create a booking; a taken window answers 409 with the conflict"""
    result, decision = await service.create_booking(data)
    if result is None:
        return _conflict(decision)
    return result.booking


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
):
    return service.get_booking(booking_id)


@router.patch("/{booking_id}/payment-status", response_model=BookingActionResult)
async def update_payment_status(
    booking_id: int,
    data: PaymentStatusUpdate,
    service: BookingService = Depends(get_booking_service),
):
    """Payment webhook entry point - safe to retry"""
    return await service.update_payment_status(booking_id, data.payment_status)


@router.patch("/{booking_id}/lifecycle-status", response_model=BookingActionResult)
async def update_lifecycle_status(
    booking_id: int,
    data: LifecycleStatusUpdate,
    service: BookingService = Depends(get_booking_service),
):
    return await service.update_lifecycle_status(booking_id, data.lifecycle_status)


@router.post(
    "/{booking_id}/reschedule", response_model=BookingActionResult, responses=CONFLICT_RESPONSES
)
async def reschedule_booking(
    booking_id: int,
    data: RescheduleRequest,
    service: BookingService = Depends(get_booking_service),
):
    result, decision = await service.reschedule_booking(booking_id, data)
    if result is None:
        return _conflict(decision)
    return result


@router.post("/{booking_id}/cancel", response_model=BookingActionResult)
async def cancel_booking(
    booking_id: int,
    data: Optional[CancelRequest] = None,
    service: BookingService = Depends(get_booking_service),
):
    return await service.cancel_booking(booking_id, reason=data.reason if data else None)


@router.post("/{booking_id}/host-report", response_model=HostReportResponse)
async def submit_host_report(
    booking_id: int,
    data: HostReportSubmit,
    service: BookingService = Depends(get_booking_service),
):
    """Mark the host report submitted and cancel the remaining reminders"""
    return service.submit_host_report(booking_id, notes=data.notes)

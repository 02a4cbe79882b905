"""
API endpoints for scheduled-job automation.

Webhook handlers and admins call these to (re)plan a booking's job families;
every endpoint is safe to call repeatedly.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_job_planner
from ..domain.jobs.repository import JobRepository
from ..domain.jobs.schemas import (
    AutomationResult,
    ForceRescheduleRequest,
    JobSummary,
    PlanRequest,
    PlanResult,
)
from ..exceptions import BookingNotFoundError
from ..models import Booking
from ..services.job_planner import JobPlanner

router = APIRouter(prefix="/automation", tags=["automation"])


@router.post("/schedule-balance-payment", response_model=PlanResult)
async def schedule_balance_payment(
    data: PlanRequest, planner: JobPlanner = Depends(get_job_planner)
):
    """Short notice creates the first link now; long notice schedules three retries"""
    return await planner.plan_balance_payments(data.booking_id, force_reschedule=data.force_reschedule)


@router.post("/schedule-host-report-reminders", response_model=PlanResult)
async def schedule_host_report_reminders(
    data: PlanRequest, planner: JobPlanner = Depends(get_job_planner)
):
    return await planner.plan_host_report_reminders(
        data.booking_id, force_reschedule=data.force_reschedule
    )


@router.post("/schedule-guest-feedback", response_model=PlanResult)
async def schedule_guest_feedback(
    data: PlanRequest, planner: JobPlanner = Depends(get_job_planner)
):
    return await planner.plan_guest_feedback(data.booking_id, force_reschedule=data.force_reschedule)


@router.post("/trigger-booking-automation", response_model=AutomationResult)
async def trigger_booking_automation(
    data: PlanRequest, planner: JobPlanner = Depends(get_job_planner)
):
    """Run every applicable family for a booking (e.g. after it became pre_event_ready)"""
    return await planner.trigger_booking_automation(data.booking_id)


@router.post("/force-reschedule", response_model=PlanResult)
async def force_reschedule(
    data: ForceRescheduleRequest, planner: JobPlanner = Depends(get_job_planner)
):
    """Cancel the family's pending/failed jobs and plan it again from scratch"""
    return await planner.force_reschedule(data.booking_id, data.family)


@router.get("/jobs/{booking_id}", response_model=list[JobSummary])
async def get_booking_jobs(booking_id: int, db: Session = Depends(get_db)):
    """Every job row for a booking, cancelled history included"""
    if not db.query(Booking.id).filter(Booking.id == booking_id).first():
        raise BookingNotFoundError(booking_id)
    return JobRepository.get_jobs_for_booking(db, booking_id)

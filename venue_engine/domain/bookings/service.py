"""Booking service - Business logic for booking state changes"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...enums import (
    FAMILY_JOB_TYPES,
    BlockSource,
    HostReportStatus,
    JobFamily,
    JobStatus,
    LifecycleStatus,
    PaymentStatus,
)
from ...exceptions import BookingEngineError, BookingNotFoundError, BookingValidationError
from ...models import Booking, BookingHostReport
from ...services.audit import record_event
from ...services.availability import AvailabilityService, Window
from ...services.crm_sync import sync_quietly
from ...services.job_planner import RESCHEDULABLE_STATUSES, JobPlanner
from ..availability.repository import AvailabilityRepository
from ..availability.service import validate_window
from ..jobs.repository import JobRepository
from .repository import BookingRepository
from .schemas import BookingActionResult, BookingCreate, BookingResponse, RescheduleRequest

logger = logging.getLogger(__name__)

# Payment outcomes after which no balance link should go out
BALANCE_STOP_STATUSES = (PaymentStatus.REFUNDED, PaymentStatus.FAILED)

# Manual lifecycle transitions; post_event is normally reached through the sweep
VALID_LIFECYCLE_TRANSITIONS = {
    LifecycleStatus.PENDING: {LifecycleStatus.PRE_EVENT_READY, LifecycleStatus.CANCELLED},
    LifecycleStatus.PRE_EVENT_READY: {
        LifecycleStatus.PENDING,
        LifecycleStatus.IN_PROGRESS,
        LifecycleStatus.CANCELLED,
    },
    LifecycleStatus.IN_PROGRESS: {LifecycleStatus.POST_EVENT, LifecycleStatus.CANCELLED},
    LifecycleStatus.POST_EVENT: {LifecycleStatus.CLOSED},
    LifecycleStatus.CLOSED: set(),
    LifecycleStatus.CANCELLED: set(),
}


def validate_lifecycle_transition(current_status: LifecycleStatus, new_status: LifecycleStatus) -> bool:
    """Same status is a no-op and allowed"""
    if current_status == new_status:
        return True
    return new_status in VALID_LIFECYCLE_TRANSITIONS.get(current_status, set())


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session, planner: Optional[JobPlanner] = None):
        self.db = db
        self.repo = BookingRepository()
        self.blocks = AvailabilityRepository()
        self.availability = AvailabilityService(db)
        self.planner = planner or JobPlanner(db)

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.repo.get_booking_by_id(self.db, booking_id)
        if not booking:
            raise BookingNotFoundError(booking_id)
        return booking

    def _result(self, booking: Booking, **extra) -> BookingActionResult:
        self.db.refresh(booking)
        return BookingActionResult(booking=BookingResponse.model_validate(booking), **extra)

    async def create_booking(self, data: BookingCreate, now: Optional[datetime] = None):
        """
        Create a booking if its window is free.

        Returns (result, decision); result is None when the window is taken. A
        booking created already deposit-paid gets its balance jobs planned here.
        A planning failure is reported in the result and the booking is kept;
        the balance backfill sweep picks it up again.
        """
        now = now or datetime.utcnow()
        start, end = validate_window(data.booking_type, data.start_time, data.end_time)

        decision = self.availability.check(Window(data.booking_type, data.event_date, start, end))
        if not decision.available:
            logger.info(f"⚠️ Booking request for {data.event_date} rejected: {decision.reason}")
            return None, decision

        booking = self.repo.create_booking(
            self.db,
            full_name=data.full_name,
            email=data.email,
            booking_type=data.booking_type,
            event_date=data.event_date,
            start_time=start,
            end_time=end,
            payment_status=data.payment_status,
            lifecycle_status=LifecycleStatus.PENDING,
            is_internal=data.is_internal,
            created_at=now,
            updated_at=now,
        )

        if data.is_internal:
            # Internal bookings never pay, so a block is what holds the venue
            self.blocks.create_block(
                self.db,
                source=BlockSource.INTERNAL_ADMIN,
                booking_id=booking.id,
                block_type=data.booking_type,
                start_date=data.event_date,
                end_date=data.event_date,
                start_time=start,
                end_time=end,
                notes=data.notes,
            )

        logger.info(f"✅ Booking {booking.reservation_number} created for {booking.event_date}")
        record_event(
            self.db,
            booking.id,
            "booking_created",
            {
                "booking_type": booking.booking_type,
                "event_date": booking.event_date,
                "start_time": start,
                "end_time": end,
                "is_internal": booking.is_internal,
            },
        )
        plans = []
        errors = {}
        if booking.payment_status == PaymentStatus.DEPOSIT_PAID:
            try:
                plans.append(await self.planner.plan_balance_payments(booking.id, now=now))
            except BookingEngineError as e:
                logger.error(f"❌ Balance planning failed for new booking {booking.id}: {e.message}")
                errors[JobFamily.BALANCE.value] = e.message

        return self._result(booking, plans=plans, errors=errors), decision

    async def update_payment_status(
        self, booking_id: int, payment_status: PaymentStatus, now: Optional[datetime] = None
    ) -> BookingActionResult:
        """deposit_paid plans balance payments; fully_paid, refunded and failed cancel what is still pending"""
        now = now or datetime.utcnow()
        booking = self.get_booking(booking_id)
        previous = booking.payment_status

        if previous != payment_status:
            self.repo.update_booking(self.db, booking, payment_status=payment_status, updated_at=now)
            logger.info(
                f"💳 Booking {booking.id} payment: {previous.value} → {payment_status.value}"
            )
            record_event(
                self.db,
                booking.id,
                "payment_status_changed",
                {"from": previous, "to": payment_status},
            )

        plans = []
        if payment_status == PaymentStatus.DEPOSIT_PAID:
            plans.append(await self.planner.plan_balance_payments(booking.id, now=now))
        elif payment_status == PaymentStatus.FULLY_PAID:
            plans.append(
                self.planner.cancel_on_completion(booking.id, JobFamily.BALANCE, "balance_paid")
            )
        elif payment_status in BALANCE_STOP_STATUSES:
            plans.append(
                self.planner.cancel_on_completion(
                    booking.id, JobFamily.BALANCE, f"payment_{payment_status.value}"
                )
            )
        return self._result(booking, plans=plans)

    async def update_lifecycle_status(
        self, booking_id: int, lifecycle_status: LifecycleStatus, now: Optional[datetime] = None
    ) -> BookingActionResult:
        now = now or datetime.utcnow()
        booking = self.get_booking(booking_id)
        previous = booking.lifecycle_status

        if not validate_lifecycle_transition(previous, lifecycle_status):
            raise BookingValidationError(
                f"Invalid lifecycle transition: {previous.value} → {lifecycle_status.value}",
                booking_id=booking.id,
            )
        if lifecycle_status == LifecycleStatus.CANCELLED:
            return await self.cancel_booking(booking.id, reason="lifecycle_cancelled", now=now)

        if previous != lifecycle_status:
            self.repo.update_booking(self.db, booking, lifecycle_status=lifecycle_status, updated_at=now)
            logger.info(
                f"✅ Booking {booking.id} lifecycle: {previous.value} → {lifecycle_status.value}"
            )
            record_event(
                self.db,
                booking.id,
                "lifecycle_status_changed",
                {"from": previous, "to": lifecycle_status, "reason": "manual"},
            )
            await sync_quietly(self.planner.crm, booking.id)

        if lifecycle_status != LifecycleStatus.PRE_EVENT_READY:
            return self._result(booking)

        automation = await self.planner.trigger_booking_automation(booking.id, now=now)
        return self._result(booking, plans=automation.results, errors=automation.errors)

    def _live_jobs(self, booking: Booking, family: JobFamily):
        return JobRepository.find_jobs(
            self.db, booking.id, FAMILY_JOB_TYPES[family], RESCHEDULABLE_STATUSES
        )

    def _families_to_replan(self, booking: Booking) -> set:
        """Families whose preconditions still hold; the rest only lose their stale jobs"""
        families = {JobFamily.GUEST_FEEDBACK}
        report = self.repo.get_host_report(self.db, booking.id)
        if not (report and report.status == HostReportStatus.SUBMITTED):
            families.add(JobFamily.HOST_REPORT)
        if booking.lifecycle_status == LifecycleStatus.PRE_EVENT_READY:
            families.add(JobFamily.LIFECYCLE)
        if booking.payment_status == PaymentStatus.DEPOSIT_PAID:
            # A fully delivered link sequence is not restarted by a move
            delivered = JobRepository.find_jobs(
                self.db, booking.id, FAMILY_JOB_TYPES[JobFamily.BALANCE], (JobStatus.COMPLETED,)
            )
            if self._live_jobs(booking, JobFamily.BALANCE) or not delivered:
                families.add(JobFamily.BALANCE)
        return families

    async def reschedule_booking(
        self, booking_id: int, data: RescheduleRequest, now: Optional[datetime] = None
    ):
        """
        Move a booking to a new date/time window.

        The booking type never changes. Returns (result, decision); result is
        None when the new window is taken. Every family that still applies to
        the booking is force rescheduled against the new date, including one
        whose jobs were all dropped by catch-up on the old date.
        """
        now = now or datetime.utcnow()
        booking = self.get_booking(booking_id)
        if booking.lifecycle_status in (LifecycleStatus.CANCELLED, LifecycleStatus.CLOSED):
            raise BookingValidationError(
                f"Cannot reschedule a {booking.lifecycle_status.value} booking", booking_id=booking.id
            )

        start, end = validate_window(booking.booking_type, data.start_time, data.end_time)
        decision = self.availability.check(
            Window(booking.booking_type, data.event_date, start, end), exclude_booking_id=booking.id
        )
        if not decision.available:
            return None, decision

        previous = {
            "event_date": booking.event_date,
            "start_time": booking.start_time,
            "end_time": booking.end_time,
        }
        families = self._families_to_replan(booking)
        changes = {"event_date": data.event_date, "start_time": start, "end_time": end, "updated_at": now}
        if JobFamily.HOST_REPORT in families:
            # Catch-up sets the step again for the new date
            changes["host_report_step"] = None
        self.repo.update_booking(self.db, booking, **changes)
        for block in booking.availability_blocks:
            block.start_date = data.event_date
            block.end_date = data.event_date
            block.start_time = start
            block.end_time = end
        self.db.commit()

        logger.info(
            f"📅 Booking {booking.id} rescheduled: {previous['event_date']} → {data.event_date}"
        )
        record_event(
            self.db,
            booking.id,
            "booking_rescheduled",
            {
                "previous": previous,
                "new": {"event_date": data.event_date, "start_time": start, "end_time": end},
                "reason": data.reason,
            },
        )

        plans = []
        errors = {}
        for family in FAMILY_JOB_TYPES:
            try:
                if family in families:
                    plans.append(await self.planner.force_reschedule(booking.id, family, now=now))
                elif self._live_jobs(booking, family):
                    plans.append(
                        self.planner.cancel_on_completion(booking.id, family, "booking_rescheduled")
                    )
            except BookingEngineError as e:
                logger.error(f"❌ Reschedule of {family.value} jobs failed for booking {booking.id}: {e.message}")
                errors[family.value] = e.message

        return self._result(booking, plans=plans, errors=errors), decision

    async def cancel_booking(
        self, booking_id: int, reason: Optional[str] = None, now: Optional[datetime] = None
    ) -> BookingActionResult:
        """Cancel the booking and every live job; job rows stay as history"""
        now = now or datetime.utcnow()
        booking = self.get_booking(booking_id)
        if booking.lifecycle_status == LifecycleStatus.CANCELLED:
            logger.info(f"ℹ️ Booking {booking.id} already cancelled")
            return self._result(booking)

        previous = booking.lifecycle_status
        self.repo.update_booking(
            self.db, booking, lifecycle_status=LifecycleStatus.CANCELLED, updated_at=now
        )
        cancelled = self.planner.cancel_all_jobs(booking.id, reason or "booking_cancelled")
        blocks_released = self.blocks.delete_blocks_for_booking(self.db, booking.id)

        logger.info(
            f"🚫 Booking {booking.id} cancelled: {cancelled} job(s) cancelled, "
            f"{blocks_released} block(s) released"
        )
        record_event(
            self.db,
            booking.id,
            "booking_cancelled",
            {
                "previous_lifecycle_status": previous,
                "reason": reason,
                "jobs_cancelled": cancelled,
                "blocks_released": blocks_released,
            },
        )
        await sync_quietly(self.planner.crm, booking.id)
        return self._result(booking, jobs_cancelled=cancelled)

    def submit_host_report(
        self, booking_id: int, notes: Optional[str] = None, now: Optional[datetime] = None
    ) -> BookingHostReport:
        """Record the host report; remaining reminders become pointless and are cancelled"""
        now = now or datetime.utcnow()
        booking = self.get_booking(booking_id)

        report = self.repo.get_host_report(self.db, booking.id)
        if report and report.status == HostReportStatus.SUBMITTED:
            logger.info(f"ℹ️ Host report for booking {booking.id} already submitted")
            return report

        report = report or BookingHostReport(booking_id=booking.id)
        report.status = HostReportStatus.SUBMITTED
        report.submitted_at = now
        if notes is not None:
            report.notes = notes
        report = self.repo.save_host_report(self.db, report)

        record_event(self.db, booking.id, "host_report_submitted", {"report_id": report.id})
        self.planner.cancel_on_completion(booking.id, JobFamily.HOST_REPORT, "host_report_submitted")
        return report


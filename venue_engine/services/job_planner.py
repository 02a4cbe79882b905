"""
Idempotent job planner.

Turns a booking's lifecycle and payment state into scheduled job rows for
each automation family (balance payments, host report reminders, guest
feedback, lifecycle transition). Safe to call repeatedly for the same
booking: once a family has live jobs, a normal pass is a reported no-op.

Every time-relative decision takes `now` explicitly; the public methods only
fall back to the wall clock when the caller does not pass one.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..domain.jobs.repository import JobRepository
from ..domain.jobs.schemas import (
    OUTCOME_CANCELLED,
    OUTCOME_IMMEDIATE_ONLY,
    OUTCOME_SCHEDULED,
    OUTCOME_SKIPPED,
    AutomationResult,
    JobSummary,
    PlanResult,
)
from ..enums import (
    FAMILY_JOB_TYPES,
    HostReportStatus,
    JobFamily,
    JobStatus,
    LifecycleStatus,
    PaymentStatus,
)
from ..exceptions import BookingEngineError, BookingNotFoundError, BookingValidationError, JobStoreError
from ..models import Booking, BookingHostReport
from .audit import record_event
from .balance_policy import plan_balance_notice
from .catch_up import (
    Step,
    apply_catch_up,
    event_end,
    event_start,
    guest_feedback_steps,
    host_report_steps,
    lifecycle_steps,
)
from .crm_sync import CrmSyncClient, sync_quietly
from .payment_links import PaymentLinkClient

logger = logging.getLogger(__name__)

# A family with jobs in these statuses is already planned. Balance also counts
# completed jobs so a delivered link is never planned again.
BLOCKING_STATUSES = {
    JobFamily.BALANCE: (JobStatus.PENDING, JobStatus.COMPLETED),
    JobFamily.HOST_REPORT: (JobStatus.PENDING,),
    JobFamily.GUEST_FEEDBACK: (JobStatus.PENDING,),
    JobFamily.LIFECYCLE: (JobStatus.PENDING,),
}

RESCHEDULABLE_STATUSES = (JobStatus.PENDING, JobStatus.FAILED)

SCHEDULED_EVENT_TYPES = {
    JobFamily.BALANCE: "balance_payment_retries_scheduled",
    JobFamily.HOST_REPORT: "host_report_reminders_scheduled",
    JobFamily.GUEST_FEEDBACK: "guest_feedback_scheduled",
    JobFamily.LIFECYCLE: "lifecycle_transition_scheduled",
}


class JobPlanner:
    """Service layer for scheduled job planning"""

    def __init__(
        self,
        db: Session,
        payment_links: Optional[PaymentLinkClient] = None,
        crm: Optional[CrmSyncClient] = None,
        now_fn: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.repo = JobRepository()
        self.payment_links = payment_links or PaymentLinkClient()
        self.crm = crm or CrmSyncClient()
        self.now_fn = now_fn

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_booking(self, booking_id: int) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise BookingNotFoundError(booking_id)
        return booking

    def _existing_jobs(self, booking: Booking, family: JobFamily):
        return self.repo.find_jobs(
            self.db, booking.id, FAMILY_JOB_TYPES[family], BLOCKING_STATUSES[family]
        )

    def _cancel_family(self, booking: Booking, family: JobFamily, statuses, reason: str) -> int:
        cancelled = self.repo.cancel_jobs(
            self.db, booking.id, FAMILY_JOB_TYPES[family], statuses, reason
        )
        if cancelled:
            logger.info(
                f"🚫 Cancelled {len(cancelled)} {family.value} job(s) for booking {booking.id} ({reason})"
            )
            record_event(
                self.db,
                booking.id,
                "scheduled_jobs_cancelled",
                {
                    "family": family,
                    "reason": reason,
                    "job_ids": [job.id for job in cancelled],
                    "job_types": [job.job_type for job in cancelled],
                },
            )
        return len(cancelled)

    def _skip(self, booking: Booking, family: JobFamily, reason: str, **extra) -> PlanResult:
        logger.info(f"⏭️ Skipping {family.value} planning for booking {booking.id}: {reason}")
        return PlanResult(
            booking_id=booking.id, family=family, outcome=OUTCOME_SKIPPED, reason=reason, **extra
        )

    def _insert_steps(
        self,
        booking: Booking,
        family: JobFamily,
        steps: list[Step],
        result: PlanResult,
        audit_metadata: dict,
    ) -> PlanResult:
        """Insert future steps as one batch and record one audit event for it"""
        specs = [(step.job_type, step.fire_at) for step in steps]
        try:
            outcome = self.repo.insert_pending_jobs(self.db, booking.id, specs)
        except JobStoreError as e:
            if e.partial:
                # Family is now half-planned; only a force reschedule repairs it
                logger.error(
                    f"❌ PARTIAL {family.value} scheduling for booking {booking.id}: stored "
                    f"{[job.job_type.value for job in e.partial]} before failure - "
                    f"force reschedule required ({e.message})"
                )
                record_event(
                    self.db,
                    booking.id,
                    "job_scheduling_partial_failure",
                    {
                        "family": family,
                        "stored_job_ids": [job.id for job in e.partial],
                        "error": e.message,
                        "requires_manual_intervention": True,
                    },
                )
            else:
                logger.error(
                    f"❌ Failed to schedule {family.value} jobs for booking {booking.id}: {e.message}"
                )
            raise

        result.jobs_created = [JobSummary.model_validate(job) for job in outcome.created]
        result.jobs_skipped = outcome.duplicates

        if outcome.created:
            result.outcome = OUTCOME_SCHEDULED
            for job in outcome.created:
                logger.info(f"📅 Scheduled {job.job_type.value} for booking {booking.id} at {job.run_at.isoformat()}")
            record_event(
                self.db,
                booking.id,
                SCHEDULED_EVENT_TYPES[family],
                {
                    **audit_metadata,
                    "jobs_created": [
                        {"job_type": job.job_type, "run_at": job.run_at} for job in outcome.created
                    ],
                    "jobs_already_pending": outcome.duplicates,
                },
            )
        elif outcome.duplicates:
            result.reason = result.reason or "jobs_already_exist"
        return result

    async def _apply_immediate(
        self, booking: Booking, family: JobFamily, step: Step, result: PlanResult, now: datetime
    ) -> None:
        """Apply the catch-up step's state synchronously, then tell the CRM"""
        if step.state is None:
            return
        result.immediate_state = step.state.value

        if family == JobFamily.HOST_REPORT:
            previous = booking.host_report_step
            if previous == step.state:
                logger.info(f"host_report_step already '{step.state.value}' for booking {booking.id}")
                return
            booking.host_report_step = step.state
            event_type = "host_report_step_set_immediately"
        elif family == JobFamily.LIFECYCLE:
            previous = booking.lifecycle_status
            if previous == step.state:
                return
            booking.lifecycle_status = step.state
            event_type = "lifecycle_status_set_immediately"
        else:
            return

        booking.updated_at = now
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        result.immediate_state_changed = True
        logger.info(
            f"⏩ Booking {booking.id} {family.value} caught up: "
            f"{getattr(previous, 'value', previous)} → {step.state.value}"
        )
        record_event(
            self.db,
            booking.id,
            event_type,
            {
                "new_state": step.state,
                "previous_state": previous,
                "reason": "catch_up_logic",
                "step_fire_at": step.fire_at,
            },
        )
        result.crm_synced = await sync_quietly(self.crm, booking.id)

    async def _plan_steps(
        self,
        booking: Booking,
        family: JobFamily,
        steps: list[Step],
        now: datetime,
        force_reschedule: bool,
        audit_metadata: dict,
    ) -> PlanResult:
        result = PlanResult(booking_id=booking.id, family=family, outcome=OUTCOME_SKIPPED)

        if force_reschedule:
            result.jobs_cancelled = self._cancel_family(
                booking, family, RESCHEDULABLE_STATUSES, "force_reschedule"
            )
        else:
            existing = self._existing_jobs(booking, family)
            if existing:
                return self._skip(
                    booking,
                    family,
                    "jobs_already_exist",
                    jobs_skipped=[job.job_type for job in existing],
                )

        catch_up = apply_catch_up(steps, now)
        if catch_up.immediate is not None:
            await self._apply_immediate(booking, family, catch_up.immediate, result, now)

        if catch_up.future:
            self._insert_steps(booking, family, catch_up.future, result, audit_metadata)
        elif catch_up.immediate is not None:
            if catch_up.immediate.state is None:
                result.reason = "fire_time_passed"
            else:
                result.outcome = OUTCOME_IMMEDIATE_ONLY
                result.reason = "all_steps_elapsed"
        return result

    @staticmethod
    def _require_event_date(booking: Booking) -> None:
        if not booking.event_date:
            raise BookingValidationError(
                "Booking has no event_date", booking_id=booking.id, field="event_date"
            )

    # ------------------------------------------------------------------
    # Families
    # ------------------------------------------------------------------

    async def plan_balance_payments(
        self, booking_id: int, now: Optional[datetime] = None, force_reschedule: bool = False
    ) -> PlanResult:
        booking = self._get_booking(booking_id)
        return await self._plan_balance(booking, now or self.now_fn(), force_reschedule)

    async def _plan_balance(self, booking: Booking, now: datetime, force_reschedule: bool) -> PlanResult:
        family = JobFamily.BALANCE
        self._require_event_date(booking)

        if booking.payment_status == PaymentStatus.FULLY_PAID:
            return self._skip(booking, family, "already_fully_paid")
        if booking.payment_status != PaymentStatus.DEPOSIT_PAID:
            return self._skip(
                booking, family, f"payment_status is {booking.payment_status.value}, not deposit_paid"
            )
        if booking.lifecycle_status == LifecycleStatus.CANCELLED:
            return self._skip(booking, family, "booking_cancelled")

        notice = plan_balance_notice(booking.event_date, now)
        if notice.days_until_event < 0:
            return self._skip(
                booking, family, "event_date_passed", days_until_event=notice.days_until_event
            )

        result = PlanResult(
            booking_id=booking.id,
            family=family,
            outcome=OUTCOME_SKIPPED,
            notice=notice.notice,
            days_until_event=notice.days_until_event,
        )

        if force_reschedule:
            result.jobs_cancelled = self._cancel_family(
                booking, family, RESCHEDULABLE_STATUSES, "force_reschedule"
            )
        else:
            existing = self._existing_jobs(booking, family)
            if existing:
                logger.info(
                    f"⏭️ Balance jobs already exist for booking {booking.id}: "
                    f"{[job.job_type.value for job in existing]}"
                )
                result.reason = "balance_jobs_already_scheduled"
                result.jobs_skipped = [job.job_type for job in existing]
                return result

        logger.info(
            f"💰 Booking {booking.id}: {notice.days_until_event} day(s) until event - {notice.notice}"
        )

        if notice.create_link_now:
            # Fatal on failure: this link is the only guaranteed delivery channel
            link = await self.payment_links.create_balance_payment_link(booking.id)
            booking.balance_payment_url = link["payment_url"]
            booking.updated_at = now
            self.db.commit()
            result.link_created = True
            result.payment_url = link["payment_url"]
            record_event(
                self.db,
                booking.id,
                "balance_payment_link_created",
                {
                    "attempt": 1,
                    "type": notice.notice,
                    "days_until_event": notice.days_until_event,
                    "created_immediately": True,
                },
            )

        steps = [Step(job_type.value, job_type, run_at) for job_type, run_at in notice.jobs]
        catch_up = apply_catch_up(steps, now)
        if catch_up.future:
            self._insert_steps(
                booking,
                family,
                catch_up.future,
                result,
                {
                    "type": notice.notice,
                    "days_until_event": notice.days_until_event,
                    "max_attempts": notice.max_attempts,
                },
            )
        if result.outcome == OUTCOME_SKIPPED and result.link_created:
            result.outcome = OUTCOME_IMMEDIATE_ONLY
        return result

    async def plan_host_report_reminders(
        self, booking_id: int, now: Optional[datetime] = None, force_reschedule: bool = False
    ) -> PlanResult:
        booking = self._get_booking(booking_id)
        return await self._plan_host_report(booking, now or self.now_fn(), force_reschedule)

    async def _plan_host_report(self, booking: Booking, now: datetime, force_reschedule: bool) -> PlanResult:
        family = JobFamily.HOST_REPORT

        submitted = (
            self.db.query(BookingHostReport)
            .filter(
                BookingHostReport.booking_id == booking.id,
                BookingHostReport.status == HostReportStatus.SUBMITTED,
            )
            .first()
        )
        if submitted:
            return self._cancel_on_completion(booking, family, "host_report_already_completed")

        self._require_event_date(booking)
        if booking.lifecycle_status in (LifecycleStatus.CANCELLED, LifecycleStatus.CLOSED):
            return self._skip(booking, family, f"lifecycle_status is {booking.lifecycle_status.value}")

        steps = host_report_steps(booking)
        return await self._plan_steps(
            booking,
            family,
            steps,
            now,
            force_reschedule,
            {"event_start": event_start(booking), "booking_type": booking.booking_type},
        )

    async def plan_guest_feedback(
        self, booking_id: int, now: Optional[datetime] = None, force_reschedule: bool = False
    ) -> PlanResult:
        booking = self._get_booking(booking_id)
        return await self._plan_guest_feedback(booking, now or self.now_fn(), force_reschedule)

    async def _plan_guest_feedback(self, booking: Booking, now: datetime, force_reschedule: bool) -> PlanResult:
        family = JobFamily.GUEST_FEEDBACK
        self._require_event_date(booking)
        if booking.lifecycle_status == LifecycleStatus.CANCELLED:
            return self._skip(booking, family, "booking_cancelled")

        return await self._plan_steps(
            booking,
            family,
            guest_feedback_steps(booking),
            now,
            force_reschedule,
            {"event_end": event_end(booking), "booking_type": booking.booking_type},
        )

    async def plan_lifecycle_transition(
        self, booking_id: int, now: Optional[datetime] = None, force_reschedule: bool = False
    ) -> PlanResult:
        booking = self._get_booking(booking_id)
        return await self._plan_lifecycle(booking, now or self.now_fn(), force_reschedule)

    async def _plan_lifecycle(self, booking: Booking, now: datetime, force_reschedule: bool) -> PlanResult:
        family = JobFamily.LIFECYCLE
        self._require_event_date(booking)
        if booking.lifecycle_status != LifecycleStatus.PRE_EVENT_READY:
            return self._skip(
                booking, family, f"lifecycle_status is {booking.lifecycle_status.value}, not pre_event_ready"
            )

        return await self._plan_steps(
            booking,
            family,
            lifecycle_steps(booking),
            now,
            force_reschedule,
            {"from_lifecycle": LifecycleStatus.PRE_EVENT_READY, "to_lifecycle": LifecycleStatus.IN_PROGRESS},
        )

    # ------------------------------------------------------------------
    # Cross-family operations
    # ------------------------------------------------------------------

    async def plan(
        self,
        booking: Booking,
        now: datetime,
        families: Optional[list[JobFamily]] = None,
        force_reschedule: bool = False,
    ) -> list[PlanResult]:
        """Plan the given families (default: all) for an already-loaded booking"""
        planners = {
            JobFamily.HOST_REPORT: self._plan_host_report,
            JobFamily.BALANCE: self._plan_balance,
            JobFamily.LIFECYCLE: self._plan_lifecycle,
            JobFamily.GUEST_FEEDBACK: self._plan_guest_feedback,
        }
        results = []
        for family in families or list(planners):
            results.append(await planners[family](booking, now, force_reschedule))
        return results

    async def force_reschedule(
        self, booking_id: int, family: JobFamily, now: Optional[datetime] = None
    ) -> PlanResult:
        """Cancel the family's pending/failed jobs, then plan it again ignoring existing jobs"""
        booking = self._get_booking(booking_id)
        logger.info(f"🔄 Force reschedule of {family.value} jobs for booking {booking.id}")
        results = await self.plan(booking, now or self.now_fn(), [family], force_reschedule=True)
        return results[0]

    def cancel_on_completion(
        self, booking_id: int, family: JobFamily, reason: str = "goal_already_satisfied"
    ) -> PlanResult:
        booking = self._get_booking(booking_id)
        return self._cancel_on_completion(booking, family, reason)

    def _cancel_on_completion(self, booking: Booking, family: JobFamily, reason: str) -> PlanResult:
        cancelled = self._cancel_family(booking, family, (JobStatus.PENDING,), reason)
        return PlanResult(
            booking_id=booking.id,
            family=family,
            outcome=OUTCOME_CANCELLED,
            reason=reason,
            jobs_cancelled=cancelled,
        )

    def cancel_all_jobs(self, booking_id: int, reason: str) -> int:
        """Cancel every pending/failed job of every family (booking cancelled)"""
        booking = self._get_booking(booking_id)
        return sum(
            self._cancel_family(booking, family, RESCHEDULABLE_STATUSES, reason)
            for family in FAMILY_JOB_TYPES
        )

    async def trigger_booking_automation(
        self, booking_id: int, now: Optional[datetime] = None
    ) -> AutomationResult:
        """
        Entry point when a booking becomes pre_event_ready (or is re-triggered).

        Host report reminders always; balance and lifecycle only while the
        booking is pre_event_ready; guest feedback last. A failure in one family
        is reported and does not stop the others.
        """
        now = now or self.now_fn()
        booking = self._get_booking(booking_id)
        lifecycle_at_start = booking.lifecycle_status
        payment_at_start = booking.payment_status

        logger.info(
            f"🚀 Booking automation for {booking.reservation_number}: "
            f"lifecycle={lifecycle_at_start.value}, payment={payment_at_start.value}"
        )

        families = [JobFamily.HOST_REPORT]
        if lifecycle_at_start == LifecycleStatus.PRE_EVENT_READY:
            families += [JobFamily.BALANCE, JobFamily.LIFECYCLE]
        families.append(JobFamily.GUEST_FEEDBACK)

        automation = AutomationResult(booking_id=booking.id, reservation_number=booking.reservation_number)
        for family in families:
            try:
                automation.results.extend(await self.plan(booking, now, [family]))
            except BookingEngineError as e:
                logger.error(f"❌ {family.value} planning failed for booking {booking.id}: {e.message}")
                automation.errors[family.value] = e.message

        record_event(
            self.db,
            booking.id,
            "booking_automation_triggered",
            {
                "lifecycle_status": lifecycle_at_start,
                "payment_status": payment_at_start,
                "results": {r.family.value: {"outcome": r.outcome, "reason": r.reason} for r in automation.results},
                "errors": automation.errors,
            },
        )
        return automation

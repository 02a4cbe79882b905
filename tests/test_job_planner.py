import asyncio
from datetime import date, datetime, time, timedelta

import pytest
from conftest import NOW

from venue_engine.domain.jobs.repository import JobRepository
from venue_engine.domain.jobs.schemas import (
    OUTCOME_CANCELLED,
    OUTCOME_IMMEDIATE_ONLY,
    OUTCOME_SCHEDULED,
    OUTCOME_SKIPPED,
)
from venue_engine.enums import (
    BookingType,
    HostReportStatus,
    HostReportStep,
    JobFamily,
    JobStatus,
    JobType,
    LifecycleStatus,
    PaymentStatus,
)
from venue_engine.exceptions import CollaboratorError, JobStoreError
from venue_engine.models import BookingEvent, BookingHostReport, ScheduledJob


def run(coro):
    return asyncio.run(coro)


def stored_jobs(db, booking_id):
    return [
        (job.job_type, job.run_at, job.status)
        for job in JobRepository.get_jobs_for_booking(db, booking_id)
    ]


def pending(db, booking_id):
    return [
        job
        for job in JobRepository.get_jobs_for_booking(db, booking_id)
        if job.status == JobStatus.PENDING
    ]


def event_types(db, booking_id):
    return [
        e.event_type
        for e in db.query(BookingEvent).filter(BookingEvent.booking_id == booking_id).order_by(BookingEvent.id)
    ]


class TestBalancePlanning:
    def test_fifteen_days_out_creates_link_and_one_retry(self, db, planner, payment_links, make_booking):
        booking = make_booking(event_date=date(2026, 3, 16))

        result = run(planner.plan_balance_payments(booking.id, now=NOW))

        assert result.outcome == OUTCOME_SCHEDULED
        assert result.notice == "short_notice"
        assert result.days_until_event == 15
        assert result.link_created
        assert payment_links.calls == [booking.id]
        assert [(j.job_type, j.run_at) for j in result.jobs_created] == [
            (JobType.BALANCE_RETRY_2, NOW + timedelta(hours=48))
        ]
        db.refresh(booking)
        assert booking.balance_payment_url == result.payment_url
        assert "balance_payment_link_created" in event_types(db, booking.id)

    def test_sixteen_days_out_schedules_three_and_no_link(self, db, planner, payment_links, make_booking):
        booking = make_booking(event_date=date(2026, 3, 17))

        result = run(planner.plan_balance_payments(booking.id, now=NOW))

        assert result.notice == "long_notice"
        assert not result.link_created
        assert payment_links.calls == []
        assert [j.job_type for j in result.jobs_created] == [
            JobType.BALANCE_RETRY_1,
            JobType.BALANCE_RETRY_2,
            JobType.BALANCE_RETRY_3,
        ]
        assert event_types(db, booking.id) == ["balance_payment_retries_scheduled"]

    def test_second_pass_is_a_reported_no_op(self, db, planner, payment_links, make_booking):
        booking = make_booking(event_date=date(2026, 3, 10))
        run(planner.plan_balance_payments(booking.id, now=NOW))
        before = stored_jobs(db, booking.id)

        again = run(planner.plan_balance_payments(booking.id, now=NOW + timedelta(minutes=5)))

        assert again.outcome == OUTCOME_SKIPPED
        assert again.reason == "balance_jobs_already_scheduled"
        assert again.jobs_created == []
        assert stored_jobs(db, booking.id) == before
        assert payment_links.calls == [booking.id]

    def test_completed_retry_still_blocks_replanning(self, db, planner, payment_links, make_booking):
        booking = make_booking(event_date=date(2026, 3, 10))
        run(planner.plan_balance_payments(booking.id, now=NOW))
        (job,) = pending(db, booking.id)
        JobRepository.update_status(db, job, JobStatus.COMPLETED)

        again = run(planner.plan_balance_payments(booking.id, now=NOW + timedelta(days=3)))

        assert again.outcome == OUTCOME_SKIPPED
        assert payment_links.calls == [booking.id]

    def test_fully_paid_is_a_no_op(self, db, planner, make_booking):
        booking = make_booking(payment_status=PaymentStatus.FULLY_PAID)
        result = run(planner.plan_balance_payments(booking.id, now=NOW))
        assert result.outcome == OUTCOME_SKIPPED
        assert result.reason == "already_fully_paid"
        assert stored_jobs(db, booking.id) == []

    def test_unpaid_deposit_is_a_no_op(self, db, planner, make_booking):
        booking = make_booking(payment_status=PaymentStatus.PENDING)
        result = run(planner.plan_balance_payments(booking.id, now=NOW))
        assert result.outcome == OUTCOME_SKIPPED
        assert "deposit_paid" in result.reason

    def test_past_event_is_a_no_op(self, db, planner, payment_links, make_booking):
        booking = make_booking(event_date=date(2026, 2, 20))
        result = run(planner.plan_balance_payments(booking.id, now=NOW))
        assert result.reason == "event_date_passed"
        assert payment_links.calls == []

    def test_payment_link_failure_is_fatal(self, db, planner, payment_links, make_booking):
        payment_links.fail = True
        booking = make_booking(event_date=date(2026, 3, 10))

        with pytest.raises(CollaboratorError):
            run(planner.plan_balance_payments(booking.id, now=NOW))

        assert stored_jobs(db, booking.id) == []


class TestHostReportPlanning:
    def test_far_event_schedules_all_three(self, db, planner, crm, make_booking):
        booking = make_booking()
        result = run(planner.plan_host_report_reminders(booking.id, now=NOW))

        assert result.outcome == OUTCOME_SCHEDULED
        assert result.immediate_state is None
        assert [j.job_type for j in result.jobs_created] == [
            JobType.HOST_REPORT_PRE_START,
            JobType.HOST_REPORT_DURING,
            JobType.HOST_REPORT_POST,
        ]
        assert crm.calls == []

    def test_between_second_and_third_step(self, db, planner, crm, make_booking):
        # Starts 20:00 local today: reminders at -7d, -1d (elapsed) and -3h (ahead)
        booking = make_booking(event_date=date(2026, 3, 1), start_time=time(20, 0), end_time=time(23, 0))

        result = run(planner.plan_host_report_reminders(booking.id, now=NOW))

        assert [(j.job_type, j.run_at) for j in result.jobs_created] == [
            (JobType.HOST_REPORT_POST, datetime(2026, 3, 1, 22, 0))
        ]
        assert result.immediate_state == HostReportStep.DURING_EVENT.value
        assert result.immediate_state_changed
        db.refresh(booking)
        assert booking.host_report_step == HostReportStep.DURING_EVENT
        assert crm.calls == [booking.id]
        assert event_types(db, booking.id) == [
            "host_report_step_set_immediately",
            "host_report_reminders_scheduled",
        ]

    def test_every_step_elapsed(self, db, planner, crm, make_booking):
        # Starts 12:00 local today, so even the -3h reminder is behind us
        booking = make_booking(event_date=date(2026, 3, 1), start_time=time(12, 0), end_time=time(16, 0))

        result = run(planner.plan_host_report_reminders(booking.id, now=NOW))

        assert result.outcome == OUTCOME_IMMEDIATE_ONLY
        assert result.jobs_created == []
        assert result.immediate_state == HostReportStep.POST_EVENT.value
        assert stored_jobs(db, booking.id) == []
        db.refresh(booking)
        assert booking.host_report_step == HostReportStep.POST_EVENT

    def test_never_schedules_a_due_job(self, db, planner, make_booking):
        for start in (time(10, 30), time(12, 0), time(18, 0), time(21, 0)):
            booking = make_booking(event_date=date(2026, 3, 1), start_time=start, end_time=time(23, 0))
            result = run(planner.plan_host_report_reminders(booking.id, now=NOW))
            assert all(job.run_at > NOW for job in result.jobs_created)

    def test_idempotent(self, db, planner, crm, make_booking):
        booking = make_booking(event_date=date(2026, 3, 1), start_time=time(20, 0), end_time=time(23, 0))
        run(planner.plan_host_report_reminders(booking.id, now=NOW))
        before = stored_jobs(db, booking.id)

        again = run(planner.plan_host_report_reminders(booking.id, now=NOW))

        assert again.outcome == OUTCOME_SKIPPED
        assert again.reason == "jobs_already_exist"
        assert stored_jobs(db, booking.id) == before
        assert crm.calls == [booking.id]

    def test_crm_failure_after_immediate_change_is_logged_only(self, db, planner, crm, make_booking):
        crm.fail = True
        booking = make_booking(event_date=date(2026, 3, 1), start_time=time(20, 0), end_time=time(23, 0))

        result = run(planner.plan_host_report_reminders(booking.id, now=NOW))

        assert result.crm_synced is False
        assert len(result.jobs_created) == 1
        db.refresh(booking)
        assert booking.host_report_step == HostReportStep.DURING_EVENT

    def test_submitted_report_cancels_instead_of_planning(self, db, planner, make_booking):
        booking = make_booking()
        run(planner.plan_host_report_reminders(booking.id, now=NOW))
        db.add(BookingHostReport(booking_id=booking.id, status=HostReportStatus.SUBMITTED, submitted_at=NOW))
        db.commit()

        result = run(planner.plan_host_report_reminders(booking.id, now=NOW))

        assert result.outcome == OUTCOME_CANCELLED
        assert result.jobs_cancelled == 3
        assert pending(db, booking.id) == []

    def test_cancelled_booking_is_skipped(self, db, planner, make_booking):
        booking = make_booking(lifecycle_status=LifecycleStatus.CANCELLED)
        result = run(planner.plan_host_report_reminders(booking.id, now=NOW))
        assert result.outcome == OUTCOME_SKIPPED


class TestGuestFeedbackPlanning:
    def test_hourly(self, db, planner, make_booking):
        booking = make_booking()
        result = run(planner.plan_guest_feedback(booking.id, now=NOW))
        assert [(j.job_type, j.run_at) for j in result.jobs_created] == [
            (JobType.GUEST_FEEDBACK_POST_EVENT, datetime(2026, 4, 1, 23, 30))
        ]

    def test_daily(self, db, planner, make_booking):
        booking = make_booking(booking_type=BookingType.DAILY)
        result = run(planner.plan_guest_feedback(booking.id, now=NOW))
        assert result.jobs_created[0].run_at == datetime(2026, 4, 2, 15, 30)

    def test_missed_feedback_is_not_sent_late(self, db, planner, make_booking):
        booking = make_booking(event_date=date(2026, 2, 20))
        result = run(planner.plan_guest_feedback(booking.id, now=NOW))
        assert result.outcome == OUTCOME_SKIPPED
        assert result.reason == "fire_time_passed"
        assert result.immediate_state is None
        assert stored_jobs(db, booking.id) == []


class TestLifecyclePlanning:
    def test_schedules_in_progress_at_start(self, db, planner, make_booking):
        booking = make_booking()
        result = run(planner.plan_lifecycle_transition(booking.id, now=NOW))
        assert [(j.job_type, j.run_at) for j in result.jobs_created] == [
            (JobType.SET_LIFECYCLE_IN_PROGRESS, datetime(2026, 4, 1, 19, 0))
        ]

    def test_daily_fires_at_six_local(self, db, planner, make_booking):
        booking = make_booking(booking_type=BookingType.DAILY)
        result = run(planner.plan_lifecycle_transition(booking.id, now=NOW))
        assert result.jobs_created[0].run_at == datetime(2026, 4, 1, 11, 0)

    def test_started_event_moves_to_in_progress_now(self, db, planner, crm, make_booking):
        booking = make_booking(event_date=date(2026, 3, 1), start_time=time(9, 0), end_time=time(13, 0))

        result = run(planner.plan_lifecycle_transition(booking.id, now=NOW))

        assert result.outcome == OUTCOME_IMMEDIATE_ONLY
        db.refresh(booking)
        assert booking.lifecycle_status == LifecycleStatus.IN_PROGRESS
        assert crm.calls == [booking.id]

    def test_requires_pre_event_ready(self, db, planner, make_booking):
        booking = make_booking(lifecycle_status=LifecycleStatus.PENDING)
        result = run(planner.plan_lifecycle_transition(booking.id, now=NOW))
        assert result.outcome == OUTCOME_SKIPPED


class TestForceReschedule:
    def test_cancels_then_replans(self, db, planner, make_booking):
        booking = make_booking()
        run(planner.plan_host_report_reminders(booking.id, now=NOW))
        first = pending(db, booking.id)
        JobRepository.update_status(db, first[0], JobStatus.FAILED, last_error="smtp")

        result = run(planner.force_reschedule(booking.id, JobFamily.HOST_REPORT, now=NOW))

        assert result.jobs_cancelled == 3
        assert len(result.jobs_created) == 3
        statuses = [job.status for job in JobRepository.get_jobs_for_booking(db, booking.id)]
        assert statuses.count(JobStatus.CANCELLED) == 3
        assert statuses.count(JobStatus.PENDING) == 3

    def test_never_two_pending_of_a_type(self, db, planner, make_booking):
        booking = make_booking(event_date=date(2026, 3, 10))
        for family in (JobFamily.HOST_REPORT, JobFamily.BALANCE, JobFamily.GUEST_FEEDBACK):
            run(planner.force_reschedule(booking.id, family, now=NOW))
            run(planner.force_reschedule(booking.id, family, now=NOW))

        types = [job.job_type for job in pending(db, booking.id)]
        assert len(types) == len(set(types))

    def test_picks_up_new_event_date(self, db, planner, make_booking):
        booking = make_booking()
        run(planner.plan_guest_feedback(booking.id, now=NOW))
        booking.event_date = date(2026, 4, 8)
        db.commit()

        result = run(planner.force_reschedule(booking.id, JobFamily.GUEST_FEEDBACK, now=NOW))

        assert result.jobs_created[0].run_at == datetime(2026, 4, 8, 23, 30)


class TestCancelOnCompletion:
    def test_cancels_pending_without_replanning(self, db, planner, make_booking):
        booking = make_booking()
        run(planner.plan_host_report_reminders(booking.id, now=NOW))

        result = planner.cancel_on_completion(booking.id, JobFamily.HOST_REPORT, "host_report_submitted")

        assert result.outcome == OUTCOME_CANCELLED
        assert result.jobs_cancelled == 3
        assert pending(db, booking.id) == []
        assert "scheduled_jobs_cancelled" in event_types(db, booking.id)


class TestStoreFailures:
    def test_partial_insert_is_surfaced_and_audited(self, db, planner, make_booking, monkeypatch):
        booking = make_booking()
        stored = ScheduledJob(
            job_type=JobType.HOST_REPORT_PRE_START,
            booking_id=booking.id,
            run_at=datetime(2026, 3, 25, 19, 0),
            status=JobStatus.PENDING,
        )
        db.add(stored)
        db.commit()

        def failing_insert(db_, booking_id, specs):
            raise JobStoreError("disk full", partial=[stored], booking_id=booking_id)

        monkeypatch.setattr(planner.repo, "insert_pending_jobs", failing_insert)

        with pytest.raises(JobStoreError):
            run(planner.force_reschedule(booking.id, JobFamily.HOST_REPORT, now=NOW))

        assert "job_scheduling_partial_failure" in event_types(db, booking.id)


class TestTriggerBookingAutomation:
    def test_pre_event_ready_runs_every_family(self, db, planner, make_booking):
        booking = make_booking()

        result = run(planner.trigger_booking_automation(booking.id, now=NOW))

        assert [r.family for r in result.results] == [
            JobFamily.HOST_REPORT,
            JobFamily.BALANCE,
            JobFamily.LIFECYCLE,
            JobFamily.GUEST_FEEDBACK,
        ]
        assert result.success
        assert len(pending(db, booking.id)) == 3 + 3 + 1 + 1
        assert event_types(db, booking.id)[-1] == "booking_automation_triggered"

    def test_pending_booking_gets_reminders_only(self, db, planner, make_booking):
        booking = make_booking(lifecycle_status=LifecycleStatus.PENDING)
        result = run(planner.trigger_booking_automation(booking.id, now=NOW))
        assert [r.family for r in result.results] == [JobFamily.HOST_REPORT, JobFamily.GUEST_FEEDBACK]

    def test_one_family_failing_does_not_stop_the_rest(self, db, planner, payment_links, make_booking):
        payment_links.fail = True
        booking = make_booking(event_date=date(2026, 3, 10))

        result = run(planner.trigger_booking_automation(booking.id, now=NOW))

        assert "balance" in result.errors
        assert not result.success
        assert JobFamily.GUEST_FEEDBACK in [r.family for r in result.results]

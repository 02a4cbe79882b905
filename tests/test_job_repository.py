from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from venue_engine.domain.jobs.repository import JobRepository, validate_job_transition
from venue_engine.enums import JobStatus, JobType
from venue_engine.exceptions import BookingValidationError
from venue_engine.models import ScheduledJob

RUN_AT = datetime(2026, 3, 10, 14, 0)
SPECS = [
    (JobType.HOST_REPORT_PRE_START, RUN_AT),
    (JobType.HOST_REPORT_DURING, RUN_AT + timedelta(days=6)),
    (JobType.HOST_REPORT_POST, RUN_AT + timedelta(days=7)),
]


class TestTransitions:
    def test_allowed(self):
        assert validate_job_transition(JobStatus.PENDING, JobStatus.COMPLETED)
        assert validate_job_transition(JobStatus.FAILED, JobStatus.PENDING)
        assert validate_job_transition(JobStatus.PENDING, JobStatus.PENDING)

    def test_terminal_states(self):
        assert not validate_job_transition(JobStatus.COMPLETED, JobStatus.PENDING)
        assert not validate_job_transition(JobStatus.CANCELLED, JobStatus.PENDING)

    def test_update_status_rejects_invalid(self, db, make_booking):
        booking = make_booking()
        (job,) = JobRepository.insert_pending_jobs(db, booking.id, SPECS[:1]).created
        JobRepository.update_status(db, job, JobStatus.COMPLETED)
        with pytest.raises(BookingValidationError) as exc:
            JobRepository.update_status(db, job, JobStatus.PENDING)
        assert exc.value.status_code == 400
        assert exc.value.details["job_id"] == job.id
        db.refresh(job)
        assert job.status == JobStatus.COMPLETED

    def test_update_status_counts_attempts(self, db, make_booking):
        booking = make_booking()
        (job,) = JobRepository.insert_pending_jobs(db, booking.id, SPECS[:1]).created
        JobRepository.update_status(db, job, JobStatus.FAILED, last_error="smtp timeout", increment_attempts=True)
        assert job.attempts == 1
        assert job.last_error == "smtp timeout"
        assert job.run_at == RUN_AT


class TestInsertPendingJobs:
    def test_batch_insert(self, db, make_booking):
        booking = make_booking()
        outcome = JobRepository.insert_pending_jobs(db, booking.id, SPECS)
        assert [job.job_type for job in outcome.created] == [s[0] for s in SPECS]
        assert outcome.duplicates == []
        assert all(job.status == JobStatus.PENDING and job.attempts == 0 for job in outcome.created)

    def test_store_rejects_second_pending_row(self, db, make_booking):
        booking = make_booking()
        JobRepository.insert_pending_jobs(db, booking.id, SPECS[:1])
        db.add(ScheduledJob(job_type=SPECS[0][0], booking_id=booking.id, run_at=RUN_AT, status=JobStatus.PENDING))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_cancelled_rows_do_not_collide(self, db, make_booking):
        booking = make_booking()
        JobRepository.insert_pending_jobs(db, booking.id, SPECS)
        JobRepository.cancel_jobs(db, booking.id, [s[0] for s in SPECS], [JobStatus.PENDING], "test")
        outcome = JobRepository.insert_pending_jobs(db, booking.id, SPECS)
        assert len(outcome.created) == 3

    def test_concurrent_writer_conflict_is_benign(self, db, make_booking):
        booking = make_booking()
        # Another planner already stored one of the three
        JobRepository.insert_pending_jobs(db, booking.id, SPECS[1:2])

        outcome = JobRepository.insert_pending_jobs(db, booking.id, SPECS)

        assert sorted(job.job_type.value for job in outcome.created) == [
            JobType.HOST_REPORT_POST.value,
            JobType.HOST_REPORT_PRE_START.value,
        ]
        assert outcome.duplicates == [JobType.HOST_REPORT_DURING]
        pending = JobRepository.find_jobs(db, booking.id, [s[0] for s in SPECS], [JobStatus.PENDING])
        assert len(pending) == 3

    def test_full_duplicate_creates_nothing(self, db, make_booking):
        booking = make_booking()
        JobRepository.insert_pending_jobs(db, booking.id, SPECS)
        outcome = JobRepository.insert_pending_jobs(db, booking.id, SPECS)
        assert outcome.created == []
        assert len(outcome.duplicates) == 3


class TestQueries:
    def test_cancel_keeps_history(self, db, make_booking):
        booking = make_booking()
        JobRepository.insert_pending_jobs(db, booking.id, SPECS)
        cancelled = JobRepository.cancel_jobs(
            db, booking.id, [JobType.HOST_REPORT_POST], [JobStatus.PENDING], "host_report_submitted"
        )
        assert len(cancelled) == 1
        assert cancelled[0].last_error == "host_report_submitted"
        assert len(JobRepository.get_jobs_for_booking(db, booking.id)) == 3

    def test_due_jobs(self, db, make_booking):
        booking = make_booking()
        JobRepository.insert_pending_jobs(db, booking.id, SPECS)
        due = JobRepository.due_jobs(db, RUN_AT + timedelta(days=6))
        assert [job.job_type for job in due] == [JobType.HOST_REPORT_PRE_START, JobType.HOST_REPORT_DURING]

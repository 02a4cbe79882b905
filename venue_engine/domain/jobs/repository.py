"""Scheduled job repository - the store boundary shared with the job processor"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...enums import JobStatus, JobType
from ...exceptions import BookingValidationError, JobStoreError
from ...models import ScheduledJob

logger = logging.getLogger(__name__)

# Manual/automatic transitions the store accepts; completed and cancelled are terminal
VALID_JOB_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED},
    JobStatus.FAILED: {JobStatus.PENDING, JobStatus.COMPLETED, JobStatus.CANCELLED},
    JobStatus.COMPLETED: set(),
    JobStatus.CANCELLED: set(),
}


def validate_job_transition(current_status: JobStatus, new_status: JobStatus) -> bool:
    """Same status is a no-op and allowed"""
    if current_status == new_status:
        return True
    return new_status in VALID_JOB_TRANSITIONS.get(current_status, set())


@dataclass
class InsertOutcome:
    created: list[ScheduledJob] = field(default_factory=list)
    # Job types another writer already holds as pending
    duplicates: list[JobType] = field(default_factory=list)


class JobRepository:
    """Repository for scheduled job database operations"""

    @staticmethod
    def find_jobs(
        db: Session,
        booking_id: int,
        job_types: Iterable[JobType],
        statuses: Optional[Iterable[JobStatus]] = None,
    ) -> list[ScheduledJob]:
        query = db.query(ScheduledJob).filter(
            ScheduledJob.booking_id == booking_id,
            ScheduledJob.job_type.in_(list(job_types)),
        )
        if statuses is not None:
            query = query.filter(ScheduledJob.status.in_(list(statuses)))
        return query.order_by(ScheduledJob.run_at.asc(), ScheduledJob.id.asc()).all()

    @staticmethod
    def get_jobs_for_booking(db: Session, booking_id: int) -> list[ScheduledJob]:
        return (
            db.query(ScheduledJob)
            .filter(ScheduledJob.booking_id == booking_id)
            .order_by(ScheduledJob.run_at.asc(), ScheduledJob.id.asc())
            .all()
        )

    @staticmethod
    def due_jobs(db: Session, now: datetime, limit: int = 50, max_attempts: int = 3) -> list[ScheduledJob]:
        """What the external processor polls: pending and run_at <= now, oldest first"""
        return (
            db.query(ScheduledJob)
            .filter(
                ScheduledJob.status == JobStatus.PENDING,
                ScheduledJob.run_at <= now,
                ScheduledJob.attempts < max_attempts,
            )
            .order_by(ScheduledJob.run_at.asc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def _pending_types(db: Session, booking_id: int, job_types: Iterable[JobType]) -> set[JobType]:
        rows = JobRepository.find_jobs(db, booking_id, job_types, [JobStatus.PENDING])
        return {row.job_type for row in rows}

    @staticmethod
    def insert_pending_jobs(
        db: Session, booking_id: int, specs: list[tuple[JobType, datetime]]
    ) -> InsertOutcome:
        """
        Insert one batch of pending jobs.

        A concurrent planner can pass its existence check at the same moment we
        do; the partial unique index then rejects our batch. That conflict is
        benign: re-read what is pending and insert only what is still missing.
        """
        outcome = InsertOutcome()
        if not specs:
            return outcome

        def _build(batch):
            return [
                ScheduledJob(
                    job_type=job_type,
                    booking_id=booking_id,
                    run_at=run_at,
                    status=JobStatus.PENDING,
                    attempts=0,
                )
                for job_type, run_at in batch
            ]

        jobs = _build(specs)
        try:
            db.add_all(jobs)
            db.commit()
            outcome.created = jobs
            return outcome
        except IntegrityError:
            db.rollback()
            logger.warning(
                f"⚠️ Pending job conflict for booking {booking_id} - another planner got there first"
            )
        except SQLAlchemyError as e:
            db.rollback()
            raise JobStoreError(
                f"Failed to insert scheduled jobs: {e}", booking_id=booking_id
            ) from e

        pending = JobRepository._pending_types(db, booking_id, [job_type for job_type, _ in specs])
        remaining = [(job_type, run_at) for job_type, run_at in specs if job_type not in pending]
        outcome.duplicates = [job_type for job_type, _ in specs if job_type in pending]

        if not remaining:
            return outcome

        # Insert one at a time so a second collision loses a single row, not the batch
        for job_type, run_at in remaining:
            job = _build([(job_type, run_at)])[0]
            try:
                db.add(job)
                db.commit()
                outcome.created.append(job)
            except IntegrityError:
                db.rollback()
                outcome.duplicates.append(job_type)
            except SQLAlchemyError as e:
                db.rollback()
                raise JobStoreError(
                    f"Failed to insert {job_type.value}: {e}",
                    partial=outcome.created,
                    booking_id=booking_id,
                ) from e
        return outcome

    @staticmethod
    def cancel_jobs(
        db: Session,
        booking_id: int,
        job_types: Iterable[JobType],
        statuses: Iterable[JobStatus],
        reason: str,
    ) -> list[ScheduledJob]:
        """Mark matching jobs cancelled; history stays in the table"""
        jobs = JobRepository.find_jobs(db, booking_id, job_types, statuses)
        if not jobs:
            return []
        for job in jobs:
            job.status = JobStatus.CANCELLED
            job.last_error = reason
            job.updated_at = datetime.utcnow()
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise JobStoreError(f"Failed to cancel jobs: {e}", booking_id=booking_id) from e
        return jobs

    @staticmethod
    def update_status(
        db: Session,
        job: ScheduledJob,
        new_status: JobStatus,
        last_error: Optional[str] = None,
        increment_attempts: bool = False,
    ) -> ScheduledJob:
        """Processor-side transition (completed/failed); run_at and job_type never change"""
        if not validate_job_transition(job.status, new_status):
            raise BookingValidationError(
                f"Invalid job transition: {job.status.value} -> {new_status.value}",
                booking_id=job.booking_id,
                job_id=job.id,
            )
        job.status = new_status
        if last_error is not None:
            job.last_error = last_error
        if increment_attempts:
            job.attempts = (job.attempts or 0) + 1
        job.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(job)
        return job

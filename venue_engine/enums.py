"""
Closed vocabularies for bookings and scheduled jobs.

Stored as their string values so the external job processor and the CRM see
the same strings the database holds.
"""

from enum import Enum


class BookingType(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    DEPOSIT_PAID = "deposit_paid"
    FULLY_PAID = "fully_paid"
    INVOICED = "invoiced"
    FAILED = "failed"
    REFUNDED = "refunded"


class LifecycleStatus(str, Enum):
    PENDING = "pending"
    PRE_EVENT_READY = "pre_event_ready"
    IN_PROGRESS = "in_progress"
    POST_EVENT = "post_event"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class HostReportStep(str, Enum):
    PRE_START = "pre_start"
    DURING_EVENT = "during_event"
    POST_EVENT = "post_event"


class HostReportStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"


class BlockSource(str, Enum):
    INTERNAL_ADMIN = "internal_admin"
    BLACKOUT = "blackout"
    SYSTEM = "system"


class JobStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobType(str, Enum):
    BALANCE_RETRY_1 = "balance_retry_1"
    BALANCE_RETRY_2 = "balance_retry_2"
    BALANCE_RETRY_3 = "balance_retry_3"
    HOST_REPORT_PRE_START = "host_report_pre_start"
    HOST_REPORT_DURING = "host_report_during"
    HOST_REPORT_POST = "host_report_post"
    GUEST_FEEDBACK_POST_EVENT = "guest_feedback_post_event"
    SET_LIFECYCLE_IN_PROGRESS = "set_lifecycle_in_progress"


class JobFamily(str, Enum):
    BALANCE = "balance"
    HOST_REPORT = "host_report"
    GUEST_FEEDBACK = "guest_feedback"
    LIFECYCLE = "lifecycle"


FAMILY_JOB_TYPES = {
    JobFamily.BALANCE: (
        JobType.BALANCE_RETRY_1,
        JobType.BALANCE_RETRY_2,
        JobType.BALANCE_RETRY_3,
    ),
    JobFamily.HOST_REPORT: (
        JobType.HOST_REPORT_PRE_START,
        JobType.HOST_REPORT_DURING,
        JobType.HOST_REPORT_POST,
    ),
    JobFamily.GUEST_FEEDBACK: (JobType.GUEST_FEEDBACK_POST_EVENT,),
    JobFamily.LIFECYCLE: (JobType.SET_LIFECYCLE_IN_PROGRESS,),
}


def family_of(job_type: JobType) -> JobFamily:
    for family, job_types in FAMILY_JOB_TYPES.items():
        if job_type in job_types:
            return family
    raise ValueError(f"Unknown job type: {job_type}")


def enum_values(enum_cls) -> list[str]:
    """values_callable for SQLAlchemy Enum columns (store .value, not .name)"""
    return [member.value for member in enum_cls]

"""Scheduled job schemas - planner results and job views"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ...enums import JobFamily, JobStatus, JobType

OUTCOME_SCHEDULED = "scheduled"
OUTCOME_SKIPPED = "skipped"
OUTCOME_CANCELLED = "cancelled"
OUTCOME_IMMEDIATE_ONLY = "immediate_only"


class JobSummary(BaseModel):
    id: Optional[int] = None
    job_type: JobType
    run_at: datetime
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None

    class Config:
        from_attributes = True


class PlanResult(BaseModel):
    """What one planning pass did for one automation family"""

    booking_id: int
    family: JobFamily
    outcome: str
    reason: Optional[str] = None
    jobs_created: list[JobSummary] = Field(default_factory=list)
    jobs_skipped: list[JobType] = Field(default_factory=list)  # held by a concurrent planner
    jobs_cancelled: int = 0
    immediate_state: Optional[str] = None
    immediate_state_changed: bool = False
    crm_synced: Optional[bool] = None
    # Balance family only
    notice: Optional[str] = None
    days_until_event: Optional[int] = None
    link_created: bool = False
    payment_url: Optional[str] = None


class PlanRequest(BaseModel):
    booking_id: int
    force_reschedule: bool = False


class ForceRescheduleRequest(BaseModel):
    booking_id: int
    family: JobFamily


class AutomationResult(BaseModel):
    booking_id: int
    reservation_number: Optional[str] = None
    results: list[PlanResult] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors

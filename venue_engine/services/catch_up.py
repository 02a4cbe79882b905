"""
Catch-up policy for multi-step job sequences.

When planning runs after some steps' fire times have passed, only the most
recent overdue step is applied (synchronously, by the caller); earlier overdue
steps are superseded and get no job. Steps still in the future are scheduled
as usual. This keeps a short-notice booking from firing two or three reminders
back-to-back.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from ..config import (
    DAILY_DEFAULT_DURATION_HOURS,
    DAILY_EVENT_START,
    DAILY_LIFECYCLE_START,
    GUEST_FEEDBACK_DELAY_MINUTES,
    HOURLY_DEFAULT_DURATION_HOURS,
)
from ..enums import BookingType, HostReportStep, JobType, LifecycleStatus
from .intervals import parse_time, to_instant

# Host report reminder offsets from event start
HOST_REPORT_PRE_START_OFFSET = timedelta(days=7)
HOST_REPORT_DURING_OFFSET = timedelta(days=1)
HOST_REPORT_POST_OFFSET = timedelta(hours=3)


@dataclass(frozen=True)
class Step:
    name: str
    job_type: JobType
    fire_at: datetime
    # Applied to the booking when this step is the immediate one; None means no state
    state: Optional[Any] = None


@dataclass
class CatchUpResult:
    immediate: Optional[Step] = None
    future: list[Step] = field(default_factory=list)
    superseded: list[Step] = field(default_factory=list)

    @property
    def all_elapsed(self) -> bool:
        return self.immediate is not None and not self.future


def apply_catch_up(steps: list[Step], now: datetime) -> CatchUpResult:
    """
    Split an ordered step sequence around `now`.

    The last step with fire_at <= now becomes the immediate step; every step
    with fire_at > now is returned as future work. Nothing returned in
    `future` is due at `now`.
    """
    ordered = sorted(steps, key=lambda s: s.fire_at)
    result = CatchUpResult()

    for index in range(len(ordered) - 1, -1, -1):
        if ordered[index].fire_at <= now:
            result.immediate = ordered[index]
            result.superseded = ordered[:index]
            result.future = ordered[index + 1 :]
            return result

    result.future = ordered
    return result


def event_start(booking) -> datetime:
    """Event start instant; daily bookings and hourly ones without a time use 10:00 local"""
    if booking.booking_type == BookingType.HOURLY and booking.start_time is not None:
        return to_instant(booking.event_date, booking.start_time)
    return to_instant(booking.event_date, parse_time(DAILY_EVENT_START))


def event_end(booking) -> datetime:
    start = event_start(booking)
    if booking.booking_type == BookingType.DAILY:
        return start + timedelta(hours=DAILY_DEFAULT_DURATION_HOURS)
    if booking.end_time is not None:
        return to_instant(booking.event_date, booking.end_time)
    return start + timedelta(hours=HOURLY_DEFAULT_DURATION_HOURS)


def host_report_steps(booking) -> list[Step]:
    start = event_start(booking)
    return [
        Step(
            "pre_start",
            JobType.HOST_REPORT_PRE_START,
            start - HOST_REPORT_PRE_START_OFFSET,
            HostReportStep.PRE_START,
        ),
        Step(
            "during_event",
            JobType.HOST_REPORT_DURING,
            start - HOST_REPORT_DURING_OFFSET,
            HostReportStep.DURING_EVENT,
        ),
        Step(
            "post_event",
            JobType.HOST_REPORT_POST,
            start - HOST_REPORT_POST_OFFSET,
            HostReportStep.POST_EVENT,
        ),
    ]


def lifecycle_steps(booking) -> list[Step]:
    if booking.booking_type == BookingType.HOURLY and booking.start_time is not None:
        fire_at = to_instant(booking.event_date, booking.start_time)
    else:
        fire_at = to_instant(booking.event_date, parse_time(DAILY_LIFECYCLE_START))
    return [
        Step(
            "in_progress",
            JobType.SET_LIFECYCLE_IN_PROGRESS,
            fire_at,
            LifecycleStatus.IN_PROGRESS,
        )
    ]


def guest_feedback_steps(booking) -> list[Step]:
    # A missed feedback email is not sent late, so the step carries no state
    fire_at = event_end(booking) + timedelta(minutes=GUEST_FEEDBACK_DELAY_MINUTES)
    return [Step("guest_feedback", JobType.GUEST_FEEDBACK_POST_EVENT, fire_at)]

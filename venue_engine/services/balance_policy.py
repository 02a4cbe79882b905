"""
Balance payment notice policy.

Short notice (event within SHORT_NOTICE_DAYS): the first link is created
right away and one retry follows 48h later - two links at most.
Long notice: three scheduled links, the first SHORT_NOTICE_DAYS before the
event at 09:00 venue time, then every 48h - three links at most.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ..config import (
    BALANCE_RETRY_INTERVAL_HOURS,
    LONG_NOTICE_FIRST_RETRY_TIME,
    SHORT_NOTICE_DAYS,
)
from ..enums import JobType
from .intervals import local_today, parse_time, to_instant

SHORT_NOTICE = "short_notice"
LONG_NOTICE = "long_notice"

SHORT_NOTICE_MAX_LINKS = 2
LONG_NOTICE_MAX_LINKS = 3


@dataclass
class BalanceNoticePlan:
    notice: str
    days_until_event: int
    create_link_now: bool
    max_attempts: int
    jobs: list[tuple[JobType, datetime]] = field(default_factory=list)


def days_until_event(event_date: date, now: datetime) -> int:
    """Whole calendar days from the venue's today to the event date"""
    return (event_date - local_today(now)).days


def plan_balance_notice(event_date: date, now: datetime) -> BalanceNoticePlan:
    days = days_until_event(event_date, now)
    retry_interval = timedelta(hours=BALANCE_RETRY_INTERVAL_HOURS)

    if days <= SHORT_NOTICE_DAYS:
        return BalanceNoticePlan(
            notice=SHORT_NOTICE,
            days_until_event=days,
            create_link_now=True,
            max_attempts=SHORT_NOTICE_MAX_LINKS,
            # Attempt #1 is the synchronous link, so the one retry is attempt #2
            jobs=[(JobType.BALANCE_RETRY_2, now + retry_interval)],
        )

    first_retry = to_instant(event_date, parse_time(LONG_NOTICE_FIRST_RETRY_TIME)) - timedelta(
        days=SHORT_NOTICE_DAYS
    )
    second_retry = first_retry + retry_interval
    third_retry = second_retry + retry_interval
    return BalanceNoticePlan(
        notice=LONG_NOTICE,
        days_until_event=days,
        create_link_now=False,
        max_attempts=LONG_NOTICE_MAX_LINKS,
        jobs=[
            (JobType.BALANCE_RETRY_1, first_retry),
            (JobType.BALANCE_RETRY_2, second_retry),
            (JobType.BALANCE_RETRY_3, third_retry),
        ],
    )

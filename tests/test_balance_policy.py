from datetime import date, datetime, timedelta

from venue_engine.enums import JobType
from venue_engine.services.balance_policy import (
    LONG_NOTICE,
    SHORT_NOTICE,
    days_until_event,
    plan_balance_notice,
)

NOW = datetime(2026, 3, 1, 15, 0)


def test_days_until_event_counts_venue_days():
    assert days_until_event(date(2026, 3, 16), NOW) == 15
    # 02:00 UTC on the 2nd is still the 1st at the venue
    assert days_until_event(date(2026, 3, 16), datetime(2026, 3, 2, 2, 0)) == 15


class TestShortNotice:
    def test_fifteen_days_is_short_notice(self):
        plan = plan_balance_notice(date(2026, 3, 16), NOW)
        assert plan.notice == SHORT_NOTICE
        assert plan.create_link_now
        assert plan.max_attempts == 2
        assert plan.jobs == [(JobType.BALANCE_RETRY_2, NOW + timedelta(hours=48))]

    def test_event_today_is_short_notice(self):
        plan = plan_balance_notice(date(2026, 3, 1), NOW)
        assert plan.days_until_event == 0
        assert plan.create_link_now


class TestLongNotice:
    def test_sixteen_days_schedules_three_links(self):
        plan = plan_balance_notice(date(2026, 3, 17), NOW)
        assert plan.notice == LONG_NOTICE
        assert not plan.create_link_now
        assert plan.max_attempts == 3
        # Event day 09:00 local minus 15 days, then every 48h
        assert plan.jobs == [
            (JobType.BALANCE_RETRY_1, datetime(2026, 3, 2, 14, 0)),
            (JobType.BALANCE_RETRY_2, datetime(2026, 3, 4, 14, 0)),
            (JobType.BALANCE_RETRY_3, datetime(2026, 3, 6, 14, 0)),
        ]

    def test_all_long_notice_jobs_are_in_the_future(self):
        plan = plan_balance_notice(date(2026, 3, 17), NOW)
        assert all(run_at > NOW for _, run_at in plan.jobs)

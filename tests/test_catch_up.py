from datetime import date, datetime, time
from types import SimpleNamespace

from venue_engine.enums import BookingType, HostReportStep, JobType
from venue_engine.services.catch_up import (
    Step,
    apply_catch_up,
    event_end,
    event_start,
    guest_feedback_steps,
    host_report_steps,
    lifecycle_steps,
)

T1 = datetime(2026, 3, 1, 10, 0)
T2 = datetime(2026, 3, 2, 10, 0)
T3 = datetime(2026, 3, 3, 10, 0)
STEPS = [
    Step("first", JobType.HOST_REPORT_PRE_START, T1, HostReportStep.PRE_START),
    Step("second", JobType.HOST_REPORT_DURING, T2, HostReportStep.DURING_EVENT),
    Step("third", JobType.HOST_REPORT_POST, T3, HostReportStep.POST_EVENT),
]


class TestApplyCatchUp:
    def test_nothing_elapsed_schedules_everything(self):
        result = apply_catch_up(STEPS, datetime(2026, 2, 1))
        assert result.immediate is None
        assert [s.name for s in result.future] == ["first", "second", "third"]

    def test_between_second_and_third(self):
        result = apply_catch_up(STEPS, datetime(2026, 3, 2, 12, 0))
        assert result.immediate.name == "second"
        assert [s.name for s in result.superseded] == ["first"]
        assert [s.name for s in result.future] == ["third"]

    def test_all_elapsed_leaves_no_future(self):
        result = apply_catch_up(STEPS, datetime(2026, 3, 4))
        assert result.immediate.name == "third"
        assert result.future == []
        assert result.all_elapsed

    def test_fire_time_equal_to_now_is_elapsed(self):
        result = apply_catch_up(STEPS, T2)
        assert result.immediate.name == "second"
        assert all(step.fire_at > T2 for step in result.future)

    def test_unordered_input(self):
        result = apply_catch_up(list(reversed(STEPS)), datetime(2026, 3, 1, 12, 0))
        assert result.immediate.name == "first"
        assert [s.name for s in result.future] == ["second", "third"]


def _booking(kind, start=None, end=None):
    return SimpleNamespace(booking_type=kind, event_date=date(2026, 4, 1), start_time=start, end_time=end)


class TestEventAnchors:
    def test_hourly_uses_its_own_times(self):
        booking = _booking(BookingType.HOURLY, time(14), time(18))
        assert event_start(booking) == datetime(2026, 4, 1, 19, 0)
        assert event_end(booking) == datetime(2026, 4, 1, 23, 0)

    def test_hourly_without_end_defaults_to_four_hours(self):
        booking = _booking(BookingType.HOURLY, time(14))
        assert event_end(booking) == datetime(2026, 4, 1, 23, 0)

    def test_daily_starts_at_ten_local_and_lasts_a_day(self):
        booking = _booking(BookingType.DAILY, time(0), time(23, 59, 59))
        assert event_start(booking) == datetime(2026, 4, 1, 15, 0)
        assert event_end(booking) == datetime(2026, 4, 2, 15, 0)


class TestStepSequences:
    def test_host_report_offsets(self):
        steps = host_report_steps(_booking(BookingType.HOURLY, time(14), time(18)))
        assert [(s.job_type, s.fire_at) for s in steps] == [
            (JobType.HOST_REPORT_PRE_START, datetime(2026, 3, 25, 19, 0)),
            (JobType.HOST_REPORT_DURING, datetime(2026, 3, 31, 19, 0)),
            (JobType.HOST_REPORT_POST, datetime(2026, 4, 1, 16, 0)),
        ]

    def test_lifecycle_daily_fires_at_six_local(self):
        (step,) = lifecycle_steps(_booking(BookingType.DAILY, time(0), time(23, 59, 59)))
        assert step.fire_at == datetime(2026, 4, 1, 11, 0)

    def test_guest_feedback_half_hour_after_end(self):
        (step,) = guest_feedback_steps(_booking(BookingType.HOURLY, time(14), time(18)))
        assert step.fire_at == datetime(2026, 4, 1, 23, 30)
        assert step.state is None

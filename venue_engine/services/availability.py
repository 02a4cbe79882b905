"""
Availability resolver - decides whether a proposed booking window is free.

Daily bookings need the whole venue for the whole day, so they conflict with
anything on that date. Hourly bookings lose to any daily booking or daily
block on the date and otherwise conflict only on a real time overlap.
"""

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from ..enums import BookingType, LifecycleStatus, PaymentStatus
from ..models import AvailabilityBlock, BlackoutDate, Booking
from .audit import record_event
from .intervals import date_within_span, overlaps, to_instant

logger = logging.getLogger(__name__)

# Bookings that hold the venue; unpaid requests do not
OCCUPYING_PAYMENT_STATUSES = (
    PaymentStatus.DEPOSIT_PAID,
    PaymentStatus.FULLY_PAID,
    PaymentStatus.INVOICED,
)


@dataclass(frozen=True)
class Window:
    booking_type: BookingType
    date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None


@dataclass(frozen=True)
class Decision:
    available: bool
    reason: Optional[str] = None
    conflict_kind: Optional[str] = None  # "blackout" | "booking" | "block"
    conflict_id: Optional[int] = None

    @classmethod
    def ok(cls) -> "Decision":
        return cls(available=True)

    @classmethod
    def blocked(cls, reason: str, conflict: Any = None, kind: Optional[str] = None) -> "Decision":
        return cls(
            available=False,
            reason=reason,
            conflict_kind=kind,
            conflict_id=getattr(conflict, "id", None),
        )

    def as_dict(self) -> dict:
        return {
            "available": self.available,
            "reason": self.reason,
            "conflict_kind": self.conflict_kind,
            "conflict_id": self.conflict_id,
        }


def _booking_type(value) -> BookingType:
    return value if isinstance(value, BookingType) else BookingType(value)


def _times_overlap(day: date, proposed: Window, start: Optional[time], end: Optional[time]) -> bool:
    if start is None or end is None:
        return False
    return overlaps(
        to_instant(day, proposed.start_time),
        to_instant(day, proposed.end_time),
        to_instant(day, start),
        to_instant(day, end),
    )


def resolve(
    proposed: Window,
    existing_bookings: Iterable[Any],
    blocks: Iterable[Any],
    blackouts: Iterable[Any],
) -> Decision:
    """
    Check a proposed window against bookings, availability blocks and blackouts.

    Never raises on odd input; hourly callers must supply both times. Entries
    are duck-typed so ORM rows and plain objects both work.
    """
    day = proposed.date
    existing_bookings = list(existing_bookings)
    blocks = list(blocks)

    for blackout in blackouts:
        if date_within_span(day, blackout.start_date, blackout.end_date):
            return Decision.blocked("blackout", blackout, kind="blackout")

    same_day_bookings = [b for b in existing_bookings if b.event_date == day]
    covering_blocks = [b for b in blocks if date_within_span(day, b.start_date, b.end_date)]

    if _booking_type(proposed.booking_type) == BookingType.DAILY:
        if same_day_bookings:
            return Decision.blocked("booking", same_day_bookings[0], kind="booking")
        if covering_blocks:
            return Decision.blocked("block", covering_blocks[0], kind="block")
        return Decision.ok()

    # Hourly: whole-day holds win regardless of creation order
    for booking in same_day_bookings:
        if _booking_type(booking.booking_type) == BookingType.DAILY:
            return Decision.blocked("daily_booking", booking, kind="booking")
    for block in covering_blocks:
        if _booking_type(block.block_type) == BookingType.DAILY:
            return Decision.blocked("daily_block", block, kind="block")

    if proposed.start_time is None or proposed.end_time is None:
        return Decision.ok()

    for booking in same_day_bookings:
        if _times_overlap(day, proposed, booking.start_time, booking.end_time):
            return Decision.blocked("hourly_booking_overlap", booking, kind="booking")
    for block in covering_blocks:
        if _times_overlap(day, proposed, block.start_time, block.end_time):
            return Decision.blocked("hourly_block_overlap", block, kind="block")

    return Decision.ok()


class AvailabilityService:
    """Loads the relevant rows for a date and runs the resolver"""

    def __init__(self, db: Session):
        self.db = db

    def occupying_bookings(self, day: date, exclude_booking_id: Optional[int] = None) -> list[Booking]:
        query = self.db.query(Booking).filter(
            Booking.event_date == day,
            Booking.payment_status.in_(OCCUPYING_PAYMENT_STATUSES),
            Booking.lifecycle_status != LifecycleStatus.CANCELLED,
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.all()

    def blocks_covering(self, day: date, exclude_booking_id: Optional[int] = None) -> list[AvailabilityBlock]:
        query = self.db.query(AvailabilityBlock).filter(
            AvailabilityBlock.start_date <= day, AvailabilityBlock.end_date >= day
        )
        if exclude_booking_id is not None:
            # A booking never conflicts with its own hold
            query = query.filter(
                (AvailabilityBlock.booking_id.is_(None))
                | (AvailabilityBlock.booking_id != exclude_booking_id)
            )
        return query.all()

    def blackouts_covering(self, day: date) -> list[BlackoutDate]:
        return (
            self.db.query(BlackoutDate)
            .filter(BlackoutDate.start_date <= day, BlackoutDate.end_date >= day)
            .all()
        )

    def check(self, window: Window, exclude_booking_id: Optional[int] = None) -> Decision:
        decision = resolve(
            window,
            self.occupying_bookings(window.date, exclude_booking_id),
            self.blocks_covering(window.date, exclude_booking_id),
            self.blackouts_covering(window.date),
        )
        if decision.available:
            logger.debug(f"✅ {window.booking_type} window on {window.date} is available")
        else:
            logger.info(
                f"⚠️ {window.booking_type} window on {window.date} blocked: {decision.reason} "
                f"({decision.conflict_kind} {decision.conflict_id})"
            )
            if exclude_booking_id is not None:
                record_event(
                    self.db,
                    exclude_booking_id,
                    "conflict_detected",
                    {
                        "requested_date": window.date.isoformat(),
                        "booking_type": _booking_type(window.booking_type).value,
                        **decision.as_dict(),
                    },
                )
        return decision

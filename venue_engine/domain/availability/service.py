"""Availability service - admin holds on the venue and availability checks"""

import logging
from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from ...enums import BookingType
from ...exceptions import BookingValidationError, NotFoundError
from ...models import AvailabilityBlock, BlackoutDate
from ...services.availability import AvailabilityService, Decision, Window
from ...services.intervals import DAILY_SENTINEL_END, DAILY_SENTINEL_START, parse_time
from .repository import AvailabilityRepository
from .schemas import BlackoutCreate, BlockCreate

logger = logging.getLogger(__name__)


def calculate_end_date(start_date: date, duration: Optional[str]) -> date:
    """Last covered day (inclusive) for an admin block of the given duration"""
    if duration == "1_week":
        return start_date + timedelta(days=6)
    if duration == "1_month":
        return start_date + relativedelta(months=1) - timedelta(days=1)
    if duration == "2_months":
        return start_date + relativedelta(months=2) - timedelta(days=1)
    return start_date


def validate_window(booking_type: BookingType, start_time, end_time):
    """
    Normalise a window's times.

    Daily windows always carry the full-day sentinel; hourly windows need both
    times and start < end. Returns the (start, end) pair to store.
    """
    if booking_type == BookingType.DAILY:
        return DAILY_SENTINEL_START, DAILY_SENTINEL_END

    start = parse_time(start_time, "start_time")
    end = parse_time(end_time, "end_time")
    if start is None or end is None:
        raise BookingValidationError("Hourly bookings require start_time and end_time")
    if start >= end:
        raise BookingValidationError(
            "start_time must be before end_time",
            start_time=start.isoformat(),
            end_time=end.isoformat(),
        )
    return start, end


class AvailabilityAdminService:
    """Service layer for availability checks and admin-managed holds"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AvailabilityRepository()
        self.resolver = AvailabilityService(db)

    def check(
        self,
        booking_type: BookingType,
        day: date,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        exclude_booking_id: Optional[int] = None,
    ) -> Decision:
        start, end = validate_window(booking_type, start_time, end_time)
        return self.resolver.check(Window(booking_type, day, start, end), exclude_booking_id)

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def list_blocks(self, date_from: Optional[date] = None, date_to: Optional[date] = None):
        return self.repo.list_blocks(self.db, date_from, date_to)

    def create_block(self, data: BlockCreate) -> AvailabilityBlock:
        if data.duration:
            end_date = calculate_end_date(data.start_date, data.duration)
        else:
            end_date = data.end_date or data.start_date
        if end_date < data.start_date:
            raise BookingValidationError(
                "end_date must not be before start_date",
                start_date=data.start_date.isoformat(),
                end_date=end_date.isoformat(),
            )

        start, end = validate_window(data.block_type, data.start_time, data.end_time)
        block = self.repo.create_block(
            self.db,
            source=data.source,
            booking_id=data.booking_id,
            block_type=data.block_type,
            start_date=data.start_date,
            end_date=end_date,
            start_time=start,
            end_time=end,
            notes=data.notes,
        )
        logger.info(
            f"✅ Created {data.block_type.value} block {block.id}: "
            f"{block.start_date} → {block.end_date} ({data.source.value})"
        )
        return block

    def delete_block(self, block_id: int) -> dict:
        block = self.repo.get_block(self.db, block_id)
        if not block:
            raise NotFoundError(f"Availability block not found: {block_id}", block_id=block_id)
        self.repo.delete_block(self.db, block)
        logger.info(f"🗑️ Deleted availability block {block_id}")
        return {"message": "Availability block deleted"}

    # ------------------------------------------------------------------
    # Blackouts
    # ------------------------------------------------------------------

    def list_blackouts(self, date_from: Optional[date] = None, date_to: Optional[date] = None):
        return self.repo.list_blackouts(self.db, date_from, date_to)

    def create_blackout(self, data: BlackoutCreate) -> BlackoutDate:
        end_date = data.end_date or data.start_date
        if end_date < data.start_date:
            raise BookingValidationError("end_date must not be before start_date")
        blackout = self.repo.create_blackout(
            self.db, start_date=data.start_date, end_date=end_date, reason=data.reason
        )
        logger.info(f"✅ Blackout {blackout.id} created: {blackout.start_date} → {blackout.end_date}")
        return blackout

    def delete_blackout(self, blackout_id: int) -> dict:
        blackout = self.repo.get_blackout(self.db, blackout_id)
        if not blackout:
            raise NotFoundError(f"Blackout date not found: {blackout_id}", blackout_id=blackout_id)
        self.repo.delete_blackout(self.db, blackout)
        return {"message": "Blackout date deleted"}

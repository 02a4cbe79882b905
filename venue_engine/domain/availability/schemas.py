"""Availability domain schemas - blocks, blackouts and check results"""

from datetime import date, datetime, time
from typing import Literal, Optional

from pydantic import BaseModel

from ...enums import BlockSource, BookingType

BlockDuration = Literal["1_day", "1_week", "1_month", "2_months"]


class BlockCreate(BaseModel):
    """Either end_date or duration; duration wins when both are given"""

    block_type: BookingType
    start_date: date
    end_date: Optional[date] = None
    duration: Optional[BlockDuration] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    source: BlockSource = BlockSource.INTERNAL_ADMIN
    booking_id: Optional[int] = None
    notes: Optional[str] = None


class BlockResponse(BaseModel):
    id: int
    source: BlockSource
    booking_id: Optional[int] = None
    block_type: BookingType
    start_date: date
    end_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BlackoutCreate(BaseModel):
    start_date: date
    end_date: Optional[date] = None
    reason: Optional[str] = None


class BlackoutResponse(BaseModel):
    id: int
    start_date: date
    end_date: date
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AvailabilityCheckResponse(BaseModel):
    date: date
    booking_type: BookingType
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    available: bool
    reason: Optional[str] = None
    conflict_kind: Optional[str] = None
    conflict_id: Optional[int] = None

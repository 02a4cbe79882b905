"""Availability router - FastAPI endpoints for checks, blocks and blackout dates"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...enums import BookingType
from .schemas import (
    AvailabilityCheckResponse,
    BlackoutCreate,
    BlackoutResponse,
    BlockCreate,
    BlockResponse,
)
from .service import AvailabilityAdminService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["Availability"])


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityAdminService:
    """Dependency injection for AvailabilityAdminService"""
    return AvailabilityAdminService(db)


@router.get("/check", response_model=AvailabilityCheckResponse)
async def check_availability(
    booking_type: BookingType,
    event_date: date = Query(..., alias="date"),
    start_time: Optional[str] = Query(None),
    end_time: Optional[str] = Query(None),
    exclude_booking_id: Optional[int] = Query(None),
    service: AvailabilityAdminService = Depends(get_availability_service),
):
    """Check whether a window is free; a conflict is a normal negative answer"""
    decision = service.check(booking_type, event_date, start_time, end_time, exclude_booking_id)
    return AvailabilityCheckResponse(
        date=event_date,
        booking_type=booking_type,
        start_time=start_time,
        end_time=end_time,
        **decision.as_dict(),
    )


# ============================================================================
# BLOCKS
# ============================================================================


@router.get("/blocks", response_model=list[BlockResponse])
async def list_blocks(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    service: AvailabilityAdminService = Depends(get_availability_service),
):
    return service.list_blocks(date_from, date_to)


@router.post("/blocks", response_model=BlockResponse, status_code=201)
async def create_block(
    data: BlockCreate,
    service: AvailabilityAdminService = Depends(get_availability_service),
):
    """Create an admin hold; end date may come from a duration (1_day … 2_months)"""
    return service.create_block(data)


@router.delete("/blocks/{block_id}")
async def delete_block(
    block_id: int,
    service: AvailabilityAdminService = Depends(get_availability_service),
):
    return service.delete_block(block_id)


# ============================================================================
# BLACKOUT DATES
# ============================================================================


@router.get("/blackouts", response_model=list[BlackoutResponse])
async def list_blackouts(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    service: AvailabilityAdminService = Depends(get_availability_service),
):
    return service.list_blackouts(date_from, date_to)


@router.post("/blackouts", response_model=BlackoutResponse, status_code=201)
async def create_blackout(
    data: BlackoutCreate,
    service: AvailabilityAdminService = Depends(get_availability_service),
):
    return service.create_blackout(data)


@router.delete("/blackouts/{blackout_id}")
async def delete_blackout(
    blackout_id: int,
    service: AvailabilityAdminService = Depends(get_availability_service),
):
    return service.delete_blackout(blackout_id)

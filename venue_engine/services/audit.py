"""
Booking audit trail writer.

Append-only: rows are inserted here and nowhere is there an update or delete
path for them. Callers commit their own state changes before recording, so a
failed audit write never undoes the decision it describes.
"""

import logging
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import BookingEvent

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def record_event(
    db: Session,
    booking_id: int,
    event_type: str,
    metadata: Optional[dict] = None,
    channel: str = "system",
) -> Optional[BookingEvent]:
    """Append one BookingEvent; returns None if the write failed"""
    event = BookingEvent(
        booking_id=booking_id,
        event_type=event_type,
        channel=channel,
        event_metadata=_jsonable(metadata or {}),
    )
    try:
        db.add(event)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to record {event_type} event for booking {booking_id}: {e}")
        return None

    logger.debug(f"📝 Booking {booking_id} event: {event_type}")
    return event

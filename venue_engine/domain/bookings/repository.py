"""Booking repository - Database operations for bookings and host reports"""

from typing import Optional

from sqlalchemy.orm import Session

from ...enums import HostReportStatus
from ...models import Booking, BookingHostReport


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_booking_by_id(db: Session, booking_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def create_booking(db: Session, **booking_data) -> Booking:
        booking = Booking(**booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def update_booking(db: Session, booking: Booking, **updates) -> Booking:
        """Update a booking; None values are written too (times can be cleared)"""
        for key, value in updates.items():
            if hasattr(booking, key):
                setattr(booking, key, value)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(booking)
        return booking

    @staticmethod
    def get_host_report(db: Session, booking_id: int) -> Optional[BookingHostReport]:
        return (
            db.query(BookingHostReport)
            .filter(BookingHostReport.booking_id == booking_id)
            .order_by(BookingHostReport.id.desc())
            .first()
        )

    @staticmethod
    def save_host_report(db: Session, report: BookingHostReport) -> BookingHostReport:
        db.add(report)
        db.commit()
        db.refresh(report)
        return report

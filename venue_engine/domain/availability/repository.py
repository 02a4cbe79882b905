"""Availability repository - Database operations for blocks and blackout dates"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import AvailabilityBlock, BlackoutDate


class AvailabilityRepository:
    """Repository for availability block and blackout database operations"""

    @staticmethod
    def list_blocks(
        db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None
    ) -> list[AvailabilityBlock]:
        """Blocks whose span touches [date_from, date_to]"""
        query = db.query(AvailabilityBlock)
        if date_from:
            query = query.filter(AvailabilityBlock.end_date >= date_from)
        if date_to:
            query = query.filter(AvailabilityBlock.start_date <= date_to)
        return query.order_by(AvailabilityBlock.start_date.asc()).all()

    @staticmethod
    def get_block(db: Session, block_id: int) -> Optional[AvailabilityBlock]:
        return db.query(AvailabilityBlock).filter(AvailabilityBlock.id == block_id).first()

    @staticmethod
    def create_block(db: Session, **block_data) -> AvailabilityBlock:
        block = AvailabilityBlock(**block_data)
        db.add(block)
        db.commit()
        db.refresh(block)
        return block

    @staticmethod
    def delete_block(db: Session, block: AvailabilityBlock) -> None:
        db.delete(block)
        db.commit()

    @staticmethod
    def delete_blocks_for_booking(db: Session, booking_id: int) -> int:
        deleted = (
            db.query(AvailabilityBlock)
            .filter(AvailabilityBlock.booking_id == booking_id)
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted

    @staticmethod
    def list_blackouts(
        db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None
    ) -> list[BlackoutDate]:
        query = db.query(BlackoutDate)
        if date_from:
            query = query.filter(BlackoutDate.end_date >= date_from)
        if date_to:
            query = query.filter(BlackoutDate.start_date <= date_to)
        return query.order_by(BlackoutDate.start_date.asc()).all()

    @staticmethod
    def get_blackout(db: Session, blackout_id: int) -> Optional[BlackoutDate]:
        return db.query(BlackoutDate).filter(BlackoutDate.id == blackout_id).first()

    @staticmethod
    def create_blackout(db: Session, **blackout_data) -> BlackoutDate:
        blackout = BlackoutDate(**blackout_data)
        db.add(blackout)
        db.commit()
        db.refresh(blackout)
        return blackout

    @staticmethod
    def delete_blackout(db: Session, blackout: BlackoutDate) -> None:
        db.delete(blackout)
        db.commit()

"""Domain errors raised by the booking engine and mapped to HTTP in main.py"""

from typing import Optional


class BookingEngineError(Exception):
    """Base class for engine errors"""

    status_code = 500

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class BookingValidationError(BookingEngineError):
    """Rejected before planning - nothing has been written"""

    status_code = 400


class NotFoundError(BookingEngineError):
    status_code = 404


class BookingNotFoundError(NotFoundError):
    def __init__(self, booking_id: int):
        super().__init__(f"Booking not found: {booking_id}", booking_id=booking_id)
        self.booking_id = booking_id


class JobStoreError(BookingEngineError):
    """
    Job insert did not confirm.

    `partial` lists the jobs that were stored before the failure; a non-empty
    list means the family needs a manual force reschedule.
    """

    status_code = 500

    def __init__(self, message: str, partial: Optional[list] = None, **details):
        super().__init__(message, **details)
        self.partial = partial or []


class CollaboratorError(BookingEngineError):
    """Payment-link or CRM call failed"""

    status_code = 502

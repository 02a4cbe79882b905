"""Booking domain - creation, payment and lifecycle changes, reschedule and cancellation"""

from .router import router

__all__ = ["router"]

"""Availability domain - venue checks, admin blocks and blackout dates"""

from .router import router

__all__ = ["router"]

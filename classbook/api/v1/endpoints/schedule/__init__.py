"""
Schedule Module - API Endpoints

This module organizes the class scheduling and booking endpoints:
- Class sessions (/classes): create from a recurrence rule, list, detail,
  update, deactivate and roster
- Bookings (/bookings, /members/{member_id}/bookings): book, cancel and
  a member's booking history
"""

from fastapi import APIRouter

from classbook.api.v1.endpoints.schedule import (
    classes,
    bookings
)

router = APIRouter()

router.include_router(classes.router, tags=["classes"])
router.include_router(bookings.router, tags=["bookings"])

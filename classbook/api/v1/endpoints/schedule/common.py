"""
Common imports and dependencies for the schedule module.

This module centralizes shared imports and dependencies used across
all schedule-related endpoints, including the caller identity, database
access, the scheduling service and schemas.
"""

from typing import Any, List, Optional
from datetime import datetime
from fastapi import APIRouter, Depends, Query, Path, Body, status
from sqlalchemy.ext.asyncio import AsyncSession

from classbook.core.config import get_settings
from classbook.core.deps import get_current_principal, get_scheduling_service
from classbook.core.principal import Principal
from classbook.db.session import get_async_db
from classbook.models.schedule import BookingStatus
from classbook.services.class_scheduling import ClassSchedulingService
from classbook.schemas.schedule import (
    ClassCreate, ClassUpdate, ClassListFilters,
    ClassOccurrence, PaginatedClassOccurrences,
    BookClassRequest, ClassBooking, MemberClassBooking
)

settings = get_settings()

from .schedule import (
    ClassCreate,
    ClassUpdate,
    ClassListFilters,
    ClassOccurrence,
    PaginatedClassOccurrences,
    BookClassRequest,
    ClassBooking,
    MemberClassBooking,
)
from .user import UserCreate, UserUpdate

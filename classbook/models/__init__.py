from classbook.models.user import User, UserRole
from classbook.models.schedule import (
    DayOfWeek,
    BookingStatus,
    ClassTemplate,
    ClassOccurrence,
    ClassBooking
)

import pytest

from classbook.core.exceptions import AlreadyCancelledError, DuplicateBookingError, NotFoundError
from classbook.models.schedule import BookingStatus, ClassBooking
from classbook.services.booking_state import (
    BookingState,
    book_transition,
    cancel_transition,
    state_of
)


class TestStateOf:

    def test_missing_row_is_none(self):
        assert state_of(None) == BookingState.NONE

    def test_status_maps_to_state(self):
        assert state_of(ClassBooking(status=BookingStatus.CONFIRMED)) == BookingState.CONFIRMED
        assert state_of(ClassBooking(status=BookingStatus.CANCELLED)) == BookingState.CANCELLED


class TestBookTransition:

    def test_none_to_confirmed(self):
        assert book_transition(BookingState.NONE, member_id=1, occurrence_id=2) == BookingState.CONFIRMED

    def test_cancelled_to_confirmed(self):
        assert book_transition(BookingState.CANCELLED, member_id=1, occurrence_id=2) == BookingState.CONFIRMED

    def test_confirmed_twice_is_duplicate(self):
        with pytest.raises(DuplicateBookingError) as exc_info:
            book_transition(BookingState.CONFIRMED, member_id=1, occurrence_id=2)
        assert exc_info.value.member_id == 1
        assert exc_info.value.occurrence_id == 2
        assert exc_info.value.status_code == 409


class TestCancelTransition:

    def test_confirmed_to_cancelled(self):
        assert cancel_transition(BookingState.CONFIRMED, booking_id=5) == BookingState.CANCELLED

    def test_cancel_without_booking_is_not_found(self):
        with pytest.raises(NotFoundError):
            cancel_transition(BookingState.NONE, booking_id=5)

    def test_cancel_twice_is_already_cancelled(self):
        with pytest.raises(AlreadyCancelledError) as exc_info:
            cancel_transition(BookingState.CANCELLED, booking_id=5)
        assert exc_info.value.booking_id == 5
        assert exc_info.value.status_code == 400

"""
Máquina de estados de una reserva por par (miembro, sesión).

    NONE ──book──> CONFIRMED ──cancel──> CANCELLED ──book──> CONFIRMED

NONE significa que no existe fila. Reservar de nuevo tras cancelar reutiliza
la misma fila. Las transiciones no válidas lanzan el error de dominio
correspondiente; el aforo se comprueba aparte en cada paso a CONFIRMED.
"""
import enum
from typing import Optional

from classbook.core.exceptions import AlreadyCancelledError, DuplicateBookingError, NotFoundError
from classbook.models.schedule import BookingStatus, ClassBooking


class BookingState(str, enum.Enum):
    NONE = "NONE"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


def state_of(booking: Optional[ClassBooking]) -> BookingState:
    if booking is None:
        return BookingState.NONE
    if booking.status == BookingStatus.CONFIRMED:
        return BookingState.CONFIRMED
    return BookingState.CANCELLED


def book_transition(current: BookingState, *, member_id: int, occurrence_id: int) -> BookingState:
    """Reservar: NONE o CANCELLED pasan a CONFIRMED; reservar dos veces es un error."""
    if current == BookingState.CONFIRMED:
        raise DuplicateBookingError(member_id, occurrence_id)
    return BookingState.CONFIRMED


def cancel_transition(current: BookingState, *, booking_id: int) -> BookingState:
    """Cancelar: solo desde CONFIRMED."""
    if current == BookingState.NONE:
        raise NotFoundError(f"Reserva {booking_id} no encontrada")
    if current == BookingState.CANCELLED:
        raise AlreadyCancelledError(booking_id)
    return BookingState.CANCELLED

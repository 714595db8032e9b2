"""
Control de aforo de las sesiones.

`remaining_seats` / `has_capacity` son lecturas informativas (respuestas,
comprobación previa). La decisión que cuenta es `admit`, que reserva la plaza
con un UPDATE condicional dentro de la misma transacción que escribe la
reserva: si otra petición llenó la sesión entre la lectura y la escritura, el
UPDATE no afecta a ninguna fila y la reserva se rechaza.
"""
from typing import Dict, List
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from classbook.core.exceptions import CapacityExceededError, InactiveOccurrenceError
from classbook.models.schedule import ClassOccurrence
from classbook.repositories.async_schedule import (
    AsyncClassBookingRepository,
    AsyncClassOccurrenceRepository,
    async_class_booking_repository,
    async_class_occurrence_repository
)

logger = logging.getLogger(__name__)


class CapacityAdmissionController:

    def __init__(
        self,
        occurrence_repository: AsyncClassOccurrenceRepository = async_class_occurrence_repository,
        booking_repository: AsyncClassBookingRepository = async_class_booking_repository
    ):
        self.occurrences = occurrence_repository
        self.bookings = booking_repository

    async def remaining_seats(self, db: AsyncSession, occurrence: ClassOccurrence) -> int:
        """Capacidad de la plantilla menos reservas CONFIRMED (nunca negativo)."""
        confirmed = await self.bookings.count_confirmed(db, occurrence_id=occurrence.id)
        return max(occurrence.template.capacity - confirmed, 0)

    async def remaining_seats_many(
        self,
        db: AsyncSession,
        occurrences: List[ClassOccurrence]
    ) -> Dict[int, int]:
        counts = await self.bookings.confirmed_counts(
            db, occurrence_ids=[occurrence.id for occurrence in occurrences]
        )
        return {
            occurrence.id: max(occurrence.template.capacity - counts.get(occurrence.id, 0), 0)
            for occurrence in occurrences
        }

    async def has_capacity(self, db: AsyncSession, occurrence: ClassOccurrence) -> bool:
        return await self.remaining_seats(db, occurrence) > 0

    async def admit(self, db: AsyncSession, occurrence: ClassOccurrence) -> None:
        """
        Reservar una plaza de forma atómica.

        Raises:
            CapacityExceededError: La sesión se llenó
            InactiveOccurrenceError: La sesión se desactivó entre la lectura y la escritura
        """
        reserved = await self.occurrences.reserve_seat(db, occurrence_id=occurrence.id)
        if reserved:
            return

        await db.refresh(occurrence)
        if not occurrence.is_active:
            raise InactiveOccurrenceError(f"La sesión {occurrence.id} no está activa")
        logger.info(f"Reserva rechazada: sesión {occurrence.id} completa")
        raise CapacityExceededError(occurrence.id)

    async def release(self, db: AsyncSession, occurrence_id: int) -> None:
        await self.occurrences.release_seat(db, occurrence_id=occurrence_id)

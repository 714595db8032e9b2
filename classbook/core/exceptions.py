"""
Errores de dominio del motor de horarios y reservas.

Los servicios lanzan estas excepciones; la capa HTTP las traduce a respuestas
con el `status_code` de cada clase (ver `classbook.main`).
"""
from datetime import datetime
from typing import Any, Optional


class ScheduleError(Exception):
    """Raíz de todos los errores de dominio."""

    status_code: int = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(ScheduleError):
    """Entrada rechazada antes de persistir nada."""

    status_code = 400


class InvalidRecurrenceError(ValidationError):
    """Regla de recurrencia mal formada o frecuencia no soportada."""


class InactiveOccurrenceError(ValidationError):
    """La sesión existe pero está desactivada."""


class NotFoundError(ScheduleError):
    status_code = 404


class ForbiddenError(ScheduleError):
    status_code = 403


class EntitlementError(ForbiddenError):
    """El colaborador de membresías no autoriza la reserva."""


class ScheduleConflictError(ScheduleError):
    """Doble asignación de un entrenador; se aborta el lote completo."""

    status_code = 409

    def __init__(
        self,
        trainer_id: int,
        start_time: datetime,
        end_time: datetime,
        conflicting_occurrence_id: Optional[Any] = None,
    ):
        self.trainer_id = trainer_id
        self.start_time = start_time
        self.end_time = end_time
        self.conflicting_occurrence_id = conflicting_occurrence_id
        detail = (
            f"El entrenador {trainer_id} tiene un conflicto de horario entre "
            f"{start_time.isoformat()} y {end_time.isoformat()}"
        )
        if conflicting_occurrence_id is not None:
            detail += f" (sesión {conflicting_occurrence_id})"
        super().__init__(detail)


class CapacityExceededError(ScheduleError):
    status_code = 409

    def __init__(self, occurrence_id: int):
        self.occurrence_id = occurrence_id
        super().__init__(f"La sesión {occurrence_id} está completa")


class DuplicateBookingError(ScheduleError):
    status_code = 409

    def __init__(self, member_id: int, occurrence_id: int):
        self.member_id = member_id
        self.occurrence_id = occurrence_id
        super().__init__(
            f"El miembro {member_id} ya tiene una reserva confirmada en la sesión {occurrence_id}"
        )


class AlreadyCancelledError(ScheduleError):
    status_code = 400

    def __init__(self, booking_id: int):
        self.booking_id = booking_id
        super().__init__(f"La reserva {booking_id} ya está cancelada")

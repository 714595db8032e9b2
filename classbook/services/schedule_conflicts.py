"""
Detección de dobles asignaciones de un entrenador.

Dos sesiones entran en conflicto si son del mismo entrenador, ambas están
activas y sus intervalos semiabiertos se solapan. Siempre se consulta la base
de datos, nunca la caché.
"""
from typing import List, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from classbook.core.exceptions import ScheduleConflictError
from classbook.models.schedule import ClassOccurrence
from classbook.repositories.async_schedule import (
    AsyncClassOccurrenceRepository,
    async_class_occurrence_repository
)
from classbook.utils.intervals import Interval, find_overlapping_pair

logger = logging.getLogger(__name__)


class ScheduleConflictDetector:

    def __init__(
        self,
        occurrence_repository: AsyncClassOccurrenceRepository = async_class_occurrence_repository
    ):
        self.occurrences = occurrence_repository

    async def find_conflict(
        self,
        db: AsyncSession,
        trainer_id: int,
        candidate: Interval,
        exclude_occurrence_id: Optional[int] = None
    ) -> Optional[ClassOccurrence]:
        return await self.occurrences.find_overlapping(
            db,
            trainer_id=trainer_id,
            start_time=candidate.start,
            end_time=candidate.end,
            exclude_occurrence_id=exclude_occurrence_id
        )

    async def has_conflict(
        self,
        db: AsyncSession,
        trainer_id: int,
        candidate: Interval,
        exclude_occurrence_id: Optional[int] = None
    ) -> bool:
        return await self.find_conflict(db, trainer_id, candidate, exclude_occurrence_id) is not None

    async def ensure_no_conflicts(
        self,
        db: AsyncSession,
        trainer_id: int,
        candidates: List[Interval],
        exclude_occurrence_id: Optional[int] = None
    ) -> None:
        """
        Validar un lote completo antes de escribir nada.

        Comprueba primero los candidatos entre sí y después cada uno contra
        las sesiones activas guardadas del entrenador.

        Raises:
            ScheduleConflictError: Con el primer intervalo en conflicto
        """
        pair = find_overlapping_pair(candidates)
        if pair is not None:
            _, clashing = pair
            logger.info(f"Conflicto interno en el lote del entrenador {trainer_id}: {clashing}")
            raise ScheduleConflictError(trainer_id, clashing.start, clashing.end)

        for candidate in candidates:
            existing = await self.find_conflict(db, trainer_id, candidate, exclude_occurrence_id)
            if existing is not None:
                logger.info(
                    f"Conflicto del entrenador {trainer_id}: {candidate} se solapa con la sesión {existing.id}"
                )
                raise ScheduleConflictError(
                    trainer_id, candidate.start, candidate.end, conflicting_occurrence_id=existing.id
                )

"""
Repositorios async del módulo de horarios y reservas.

- AsyncClassTemplateRepository - Definiciones de clases
- AsyncClassOccurrenceRepository - Sesiones concretas (conflictos, listados, plazas)
- AsyncClassBookingRepository - Reservas de miembros en sesiones
"""
from typing import List, Optional, Dict, Tuple, Iterable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select, update

from classbook.repositories.async_base import AsyncBaseRepository
from classbook.models.schedule import (
    ClassTemplate,
    ClassOccurrence,
    ClassBooking,
    BookingStatus
)
from classbook.schemas.schedule import (
    ClassTemplateCreate,
    ClassTemplateUpdate,
    ClassOccurrenceCreate,
    ClassOccurrenceUpdate,
    ClassBookingCreate,
    ClassBookingUpdate,
    ClassListFilters
)


class AsyncClassTemplateRepository(
    AsyncBaseRepository[ClassTemplate, ClassTemplateCreate, ClassTemplateUpdate]
):
    """Repositorio async para definiciones de clases (solo CRUD heredado)."""


class AsyncClassOccurrenceRepository(
    AsyncBaseRepository[ClassOccurrence, ClassOccurrenceCreate, ClassOccurrenceUpdate]
):
    """
    Repositorio async para sesiones de clases.

    Métodos específicos:
    - create_many() - Inserta el lote de sesiones de una expansión
    - find_overlapping() - Sesión activa del entrenador que se solapa con un intervalo
    - list_filtered() - Listado paginado de sesiones activas con total
    - reserve_seat() / release_seat() - Escritura condicional del contador de plazas
    """

    async def create_many(
        self,
        db: AsyncSession,
        *,
        objs_in: Iterable[ClassOccurrenceCreate]
    ) -> List[ClassOccurrence]:
        """
        Insertar varias sesiones en un único flush.

        Returns:
            Las sesiones creadas, en orden cronológico y con valores de servidor cargados
        """
        db_objs = [ClassOccurrence(**obj_in.model_dump()) for obj_in in objs_in]
        db.add_all(db_objs)
        await db.flush()

        ids = [obj.id for obj in db_objs]
        stmt = (
            select(ClassOccurrence)
            .where(ClassOccurrence.id.in_(ids))
            .order_by(ClassOccurrence.start_time, ClassOccurrence.id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def find_overlapping(
        self,
        db: AsyncSession,
        *,
        trainer_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_occurrence_id: Optional[int] = None
    ) -> Optional[ClassOccurrence]:
        """
        Primera sesión activa del entrenador que se solapa con [start_time, end_time).

        Los extremos que se tocan no se consideran solapamiento.
        """
        stmt = select(ClassOccurrence).where(
            ClassOccurrence.trainer_id == trainer_id,
            ClassOccurrence.is_active.is_(True),
            ClassOccurrence.start_time < end_time,
            ClassOccurrence.end_time > start_time
        )
        if exclude_occurrence_id is not None:
            stmt = stmt.where(ClassOccurrence.id != exclude_occurrence_id)

        stmt = stmt.order_by(ClassOccurrence.start_time).limit(1)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_filtered(
        self,
        db: AsyncSession,
        *,
        filters: ClassListFilters,
        skip: int = 0,
        limit: int = 10
    ) -> Tuple[List[ClassOccurrence], int]:
        """
        Sesiones activas que cumplen los filtros, ordenadas por inicio.

        Args:
            filters: Rango de fechas (sobre start_time, inclusivo), entrenador y
                categoría (coincidencia parcial sin distinguir mayúsculas)

        Returns:
            Tupla (sesiones de la página, total sin paginar)
        """
        conditions = [ClassOccurrence.is_active.is_(True)]
        if filters.start_date is not None:
            conditions.append(ClassOccurrence.start_time >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(ClassOccurrence.start_time <= filters.end_date)
        if filters.trainer_id is not None:
            conditions.append(ClassOccurrence.trainer_id == filters.trainer_id)
        if filters.category:
            conditions.append(
                ClassOccurrence.template_id.in_(
                    select(ClassTemplate.id).where(
                        ClassTemplate.category.icontains(filters.category, autoescape=True)
                    )
                )
            )

        total_stmt = select(func.count(ClassOccurrence.id)).where(*conditions)
        total = (await db.execute(total_stmt)).scalar_one()

        stmt = (
            select(ClassOccurrence)
            .where(*conditions)
            .order_by(ClassOccurrence.start_time, ClassOccurrence.id)
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all()), total

    async def reserve_seat(self, db: AsyncSession, *, occurrence_id: int) -> bool:
        """
        Ocupar una plaza solo si la sesión sigue activa y con capacidad.

        El UPDATE condicional es atómico en la base de datos: bloquea la fila de
        la sesión y vuelve a comparar contra la capacidad de la plantilla, así
        dos reservas concurrentes no pueden superar el aforo.

        Returns:
            True si se reservó la plaza, False si la sesión está llena o inactiva
        """
        capacity = (
            select(ClassTemplate.capacity)
            .where(ClassTemplate.id == ClassOccurrence.template_id)
            .scalar_subquery()
        )
        stmt = (
            update(ClassOccurrence)
            .where(
                ClassOccurrence.id == occurrence_id,
                ClassOccurrence.is_active.is_(True),
                ClassOccurrence.confirmed_count < capacity
            )
            .values(confirmed_count=ClassOccurrence.confirmed_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    async def release_seat(self, db: AsyncSession, *, occurrence_id: int) -> None:
        """Liberar una plaza al cancelar una reserva confirmada."""
        stmt = (
            update(ClassOccurrence)
            .where(
                ClassOccurrence.id == occurrence_id,
                ClassOccurrence.confirmed_count > 0
            )
            .values(confirmed_count=ClassOccurrence.confirmed_count - 1)
            .execution_options(synchronize_session=False)
        )
        await db.execute(stmt)


class AsyncClassBookingRepository(
    AsyncBaseRepository[ClassBooking, ClassBookingCreate, ClassBookingUpdate]
):
    """
    Repositorio async para reservas.

    Métodos específicos:
    - get_by_member_and_occurrence() - Fila única por (miembro, sesión)
    - count_confirmed() / confirmed_counts() - Reservas CONFIRMED por sesión
    - get_by_member() - Historial de un miembro
    - get_by_occurrence() - Lista de asistentes de una sesión
    """

    async def get_by_member_and_occurrence(
        self,
        db: AsyncSession,
        *,
        member_id: int,
        occurrence_id: int,
        for_update: bool = False
    ) -> Optional[ClassBooking]:
        stmt = select(ClassBooking).where(
            ClassBooking.member_id == member_id,
            ClassBooking.occurrence_id == occurrence_id
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def count_confirmed(self, db: AsyncSession, *, occurrence_id: int) -> int:
        stmt = select(func.count(ClassBooking.id)).where(
            ClassBooking.occurrence_id == occurrence_id,
            ClassBooking.status == BookingStatus.CONFIRMED
        )
        return (await db.execute(stmt)).scalar_one()

    async def confirmed_counts(
        self,
        db: AsyncSession,
        *,
        occurrence_ids: List[int]
    ) -> Dict[int, int]:
        """Reservas CONFIRMED agrupadas por sesión; las sesiones sin reservas no aparecen."""
        if not occurrence_ids:
            return {}
        stmt = (
            select(ClassBooking.occurrence_id, func.count(ClassBooking.id))
            .where(
                ClassBooking.occurrence_id.in_(occurrence_ids),
                ClassBooking.status == BookingStatus.CONFIRMED
            )
            .group_by(ClassBooking.occurrence_id)
        )
        result = await db.execute(stmt)
        return {occurrence_id: count for occurrence_id, count in result.all()}

    async def get_by_member(
        self,
        db: AsyncSession,
        *,
        member_id: int,
        skip: int = 0,
        limit: int = 100
    ) -> List[ClassBooking]:
        stmt = (
            select(ClassBooking)
            .where(ClassBooking.member_id == member_id)
            .order_by(ClassBooking.booked_at.desc(), ClassBooking.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def get_by_occurrence(
        self,
        db: AsyncSession,
        *,
        occurrence_id: int,
        status: Optional[BookingStatus] = None
    ) -> List[ClassBooking]:
        stmt = select(ClassBooking).where(ClassBooking.occurrence_id == occurrence_id)
        if status is not None:
            stmt = stmt.where(ClassBooking.status == status)
        stmt = stmt.order_by(ClassBooking.booked_at, ClassBooking.id)
        result = await db.execute(stmt)
        return list(result.scalars().all())


# Instancias de los repositorios
async_class_template_repository = AsyncClassTemplateRepository(ClassTemplate)
async_class_occurrence_repository = AsyncClassOccurrenceRepository(ClassOccurrence)
async_class_booking_repository = AsyncClassBookingRepository(ClassBooking)

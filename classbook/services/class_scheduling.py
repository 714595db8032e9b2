"""
Servicio de horarios y reservas de clases.

Compone la expansión de recurrencias, la detección de conflictos, el control
de aforo y la máquina de estados de reservas en las operaciones públicas:

- create_class / update_class / deactivate_class
- list_classes / get_class (lectura a través de la caché)
- book_class / cancel_booking
- list_member_bookings / list_occurrence_bookings

Cada operación que modifica datos se ejecuta en una única `transaction_scope`.
Los avisos a administradores y la invalidación de caché ocurren después del
commit y sus fallos solo se registran.
"""
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, List, Optional
import logging
import math

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classbook.core.config import get_settings
from classbook.core.exceptions import (
    CapacityExceededError,
    DuplicateBookingError,
    EntitlementError,
    ForbiddenError,
    InactiveOccurrenceError,
    InvalidRecurrenceError,
    NotFoundError,
    ValidationError
)
from classbook.core.principal import Principal
from classbook.core.timezone_utils import ensure_utc, normalize_to_utc, to_wall_clock
from classbook.db.unit_of_work import transaction_scope
from classbook.models.schedule import BookingStatus, ClassBooking as ClassBookingModel
from classbook.models.schedule import ClassOccurrence as ClassOccurrenceModel
from classbook.models.user import UserRole
from classbook.repositories.async_schedule import (
    async_class_booking_repository,
    async_class_occurrence_repository,
    async_class_template_repository
)
from classbook.repositories.async_user import async_user_repository
from classbook.schemas.schedule import (
    ClassBooking,
    ClassBookingCreate,
    ClassCreate,
    ClassListFilters,
    ClassOccurrence,
    ClassOccurrenceCreate,
    ClassTemplateCreate,
    ClassUpdate,
    MemberClassBooking,
    PaginatedClassOccurrences
)
from classbook.services.admission import CapacityAdmissionController
from classbook.services.booking_state import book_transition, cancel_transition, state_of
from classbook.services.entitlements import AllowAllEntitlements, EntitlementChecker
from classbook.services.notifications import AdminNotifier, LoggingNotifier
from classbook.services.recurrence import RecurrenceDescriptor, expand_occurrences, parse_recurrence_rule
from classbook.services.schedule_cache import (
    NullScheduleCache,
    ScheduleCache,
    occurrence_detail_key,
    occurrence_list_key,
    read_through
)
from classbook.services.schedule_conflicts import ScheduleConflictDetector
from classbook.utils.intervals import Interval

logger = logging.getLogger("class_scheduling_service")


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(value) if value is not None else None


def occurrence_to_schema(occurrence: ClassOccurrenceModel, available_slots: int) -> ClassOccurrence:
    """Sesión + datos de su plantilla, con las fechas en UTC."""
    template = occurrence.template
    return ClassOccurrence(
        id=occurrence.id,
        template_id=occurrence.template_id,
        name=template.name,
        description=template.description,
        category=template.category,
        duration=template.duration,
        capacity=template.capacity,
        trainer_id=occurrence.trainer_id,
        start_time=ensure_utc(occurrence.start_time),
        end_time=ensure_utc(occurrence.end_time),
        weekdays=list(occurrence.weekdays or []),
        is_active=occurrence.is_active,
        available_slots=available_slots,
        created_at=_utc(occurrence.created_at),
        updated_at=_utc(occurrence.updated_at)
    )


def booking_to_schema(booking: ClassBookingModel) -> ClassBooking:
    return ClassBooking(
        id=booking.id,
        member_id=booking.member_id,
        occurrence_id=booking.occurrence_id,
        status=booking.status,
        booked_at=ensure_utc(booking.booked_at),
        cancelled_at=_utc(booking.cancelled_at),
        updated_at=_utc(booking.updated_at)
    )


class ClassSchedulingService:

    def __init__(
        self,
        cache: Optional[ScheduleCache] = None,
        notifier: Optional[AdminNotifier] = None,
        entitlements: Optional[EntitlementChecker] = None,
        timezone_name: Optional[str] = None,
        cache_ttl: Optional[int] = None,
        conflict_detector: Optional[ScheduleConflictDetector] = None,
        admission: Optional[CapacityAdmissionController] = None
    ):
        settings = get_settings()
        self.cache = cache or NullScheduleCache()
        self.notifier = notifier or LoggingNotifier()
        self.entitlements = entitlements or AllowAllEntitlements()
        self.timezone_name = timezone_name or settings.SCHEDULE_TIMEZONE
        self.cache_ttl = cache_ttl or settings.SCHEDULE_CACHE_TTL_SECONDS
        self.max_page_size = settings.MAX_PAGE_SIZE
        self.conflicts = conflict_detector or ScheduleConflictDetector()
        self.admission = admission or CapacityAdmissionController()

    # --- Efectos secundarios de mejor esfuerzo ---

    async def _invalidate_caches(self, occurrence_ids: Iterable[int] = ()) -> None:
        try:
            for occurrence_id in occurrence_ids:
                await self.cache.invalidate_occurrence(occurrence_id)
            deleted = await self.cache.invalidate_listings()
            logger.debug(f"Invalidadas {deleted} entradas de listados de sesiones")
        except Exception as e:
            logger.error(f"Error invalidando caché de horarios: {e}", exc_info=True)

    async def _notify_admins(self, title: str, message: str, action_url: Optional[str] = None) -> None:
        try:
            await self.notifier.notify_admins(title, message, action_url)
        except Exception as e:
            logger.error(f"Error enviando aviso a administradores '{title}': {e}", exc_info=True)

    # --- Recurrencia en hora local ---

    def _local_weekday(self, utc_start: datetime) -> int:
        return to_wall_clock(utc_start, self.timezone_name).weekday()

    def expand_schedule(
        self,
        schedule_start: datetime,
        duration: int,
        descriptor: Optional[RecurrenceDescriptor],
        max_occurrences: Optional[int] = None
    ) -> List[Interval]:
        """
        Expandir la recurrencia sobre la hora de pared de la zona del horario.

        Un `schedule_start` naive se interpreta en esa zona. Los intervalos
        resultantes se devuelven en UTC; la duración se suma en UTC para que
        una sesión que cruza un cambio de hora dure lo mismo.
        """
        seed_utc = normalize_to_utc(schedule_start, self.timezone_name)
        local_seed = to_wall_clock(seed_utc, self.timezone_name)
        if descriptor is not None and descriptor.until is not None and descriptor.until.tzinfo is not None:
            descriptor = replace(descriptor, until=to_wall_clock(descriptor.until, self.timezone_name))

        try:
            local_intervals = expand_occurrences(local_seed, duration, descriptor, max_occurrences)
            return [
                Interval.from_duration(normalize_to_utc(interval.start, self.timezone_name), duration)
                for interval in local_intervals
            ]
        except OverflowError:
            raise InvalidRecurrenceError(
                f"El horario desde {schedule_start.isoformat()} se sale del rango de fechas admitido"
            )

    # --- Clases ---

    async def create_class(
        self,
        db: AsyncSession,
        class_in: ClassCreate,
        principal: Principal
    ) -> List[ClassOccurrence]:
        """
        Crear la plantilla y todas sus sesiones en una sola transacción.

        Raises:
            ForbiddenError: Miembros, o entrenadores creando clases de otro entrenador
            InvalidRecurrenceError: Regla mal formada o frecuencia no soportada
            NotFoundError: El entrenador no existe o no está activo
            ScheduleConflictError: Alguna sesión se solapa; no se crea nada
        """
        if principal.is_member:
            raise ForbiddenError("Los miembros no pueden crear clases")
        if principal.is_trainer and class_in.trainer_id != principal.id:
            raise ForbiddenError("Un entrenador solo puede crear clases propias")

        descriptor = parse_recurrence_rule(class_in.recurrence_rule) if class_in.recurrence_rule else None
        intervals = self.expand_schedule(
            class_in.schedule_start, class_in.duration, descriptor, class_in.occurrence_count_cap
        )
        async with transaction_scope(db):
            # Bloquea al entrenador: sus cambios de horario se serializan
            trainer = await async_user_repository.get_active_with_role(
                db, user_id=class_in.trainer_id, role=UserRole.TRAINER, for_update=True
            )
            if not trainer:
                raise NotFoundError(f"Entrenador {class_in.trainer_id} no encontrado")

            await self.conflicts.ensure_no_conflicts(db, class_in.trainer_id, intervals)

            template = await async_class_template_repository.create(
                db,
                obj_in=ClassTemplateCreate(
                    name=class_in.name,
                    description=class_in.description,
                    category=class_in.category,
                    duration=class_in.duration,
                    capacity=class_in.capacity,
                    created_by=principal.id
                )
            )
            occurrences = await async_class_occurrence_repository.create_many(
                db,
                objs_in=[
                    ClassOccurrenceCreate(
                        template_id=template.id,
                        trainer_id=class_in.trainer_id,
                        start_time=interval.start,
                        end_time=interval.end,
                        weekdays=[self._local_weekday(interval.start)],
                        created_by=principal.id
                    )
                    for interval in intervals
                ]
            )

        logger.info(
            f"Clase '{template.name}' (plantilla {template.id}) creada con {len(occurrences)} "
            f"sesiones para el entrenador {class_in.trainer_id}"
        )
        await self._notify_admins(
            "Nueva clase programada",
            f"{template.name}: {len(occurrences)} sesiones desde {intervals[0].start.isoformat()}",
            f"/classes/{occurrences[0].id}"
        )
        await self._invalidate_caches()

        return [occurrence_to_schema(occurrence, template.capacity) for occurrence in occurrences]

    async def update_class(
        self,
        db: AsyncSession,
        occurrence_id: int,
        class_in: ClassUpdate,
        principal: Principal
    ) -> ClassOccurrence:
        """
        Editar una sesión y su plantilla.

        El intervalo candidato se calcula combinando valores nuevos y actuales y
        se valida contra las demás sesiones activas del entrenador (excluida
        la propia sesión).

        Un cambio de `duration` modifica la plantilla compartida pero solo
        recalcula el fin de esta sesión; las sesiones hermanas conservan su
        intervalo guardado hasta que se editen.
        """
        if principal.is_member:
            raise ForbiddenError("Los miembros no pueden editar clases")

        async with transaction_scope(db):
            occurrence = await async_class_occurrence_repository.get(db, occurrence_id, for_update=True)
            if not occurrence:
                raise NotFoundError(f"Clase {occurrence_id} no encontrada")
            if principal.is_trainer and occurrence.trainer_id != principal.id:
                raise ForbiddenError("Un entrenador solo puede editar sus propias clases")

            new_trainer_id = occurrence.trainer_id
            if class_in.trainer_id is not None and class_in.trainer_id != occurrence.trainer_id:
                if principal.is_trainer:
                    raise ForbiddenError("Un entrenador no puede reasignar su clase a otro entrenador")
                trainer = await async_user_repository.get_active_with_role(
                    db, user_id=class_in.trainer_id, role=UserRole.TRAINER, for_update=True
                )
                if not trainer:
                    raise NotFoundError(f"Entrenador {class_in.trainer_id} no encontrado")
                new_trainer_id = class_in.trainer_id
            elif class_in.touches_schedule:
                await async_user_repository.get(db, occurrence.trainer_id, for_update=True)

            occurrence_changes = {}
            if class_in.touches_schedule:
                new_start = (
                    normalize_to_utc(class_in.schedule_start, self.timezone_name)
                    if class_in.schedule_start is not None
                    else ensure_utc(occurrence.start_time)
                )
                new_duration = class_in.duration or occurrence.template.duration
                candidate = Interval.from_duration(new_start, new_duration)

                if occurrence.is_active:
                    await self.conflicts.ensure_no_conflicts(
                        db, new_trainer_id, [candidate], exclude_occurrence_id=occurrence.id
                    )

                occurrence_changes = {
                    "trainer_id": new_trainer_id,
                    "start_time": candidate.start,
                    "end_time": candidate.end
                }
                if class_in.schedule_start is not None:
                    occurrence_changes["weekdays"] = [self._local_weekday(candidate.start)]

            template_changes = class_in.template_fields()
            if template_changes:
                await async_class_template_repository.update(
                    db, db_obj=occurrence.template, obj_in=template_changes
                )
            if occurrence_changes:
                occurrence = await async_class_occurrence_repository.update(
                    db, db_obj=occurrence, obj_in=occurrence_changes
                )

            available = await self.admission.remaining_seats(db, occurrence)

        logger.info(f"Clase {occurrence_id} actualizada por el usuario {principal.id}")
        await self._invalidate_caches([occurrence_id])
        return occurrence_to_schema(occurrence, available)

    async def deactivate_class(
        self,
        db: AsyncSession,
        occurrence_id: int,
        principal: Principal
    ) -> ClassOccurrence:
        """
        Desactivar una sesión.

        Solo administradores. Deja de contar para conflictos y listados; las
        reservas existentes se conservan tal cual.
        """
        if not principal.is_staff:
            raise ForbiddenError("Solo un administrador puede desactivar clases")

        async with transaction_scope(db):
            occurrence = await async_class_occurrence_repository.get(db, occurrence_id, for_update=True)
            if not occurrence:
                raise NotFoundError(f"Clase {occurrence_id} no encontrada")
            if occurrence.is_active:
                occurrence = await async_class_occurrence_repository.update(
                    db, db_obj=occurrence, obj_in={"is_active": False}
                )
            available = await self.admission.remaining_seats(db, occurrence)

        logger.info(f"Clase {occurrence_id} desactivada por el usuario {principal.id}")
        await self._invalidate_caches([occurrence_id])
        return occurrence_to_schema(occurrence, available)

    async def list_classes(
        self,
        db: AsyncSession,
        filters: ClassListFilters,
        page: int = 1,
        page_size: int = 10
    ) -> PaginatedClassOccurrences:
        """Sesiones activas filtradas y paginadas (lectura a través de la caché)."""
        if page < 1 or page_size < 1:
            raise ValidationError("page y page_size deben ser mayores que cero")
        page_size = min(page_size, self.max_page_size)

        filters = filters.model_copy(update={
            "start_date": normalize_to_utc(filters.start_date, self.timezone_name),
            "end_date": normalize_to_utc(filters.end_date, self.timezone_name),
        })
        if filters.start_date and filters.end_date and filters.end_date < filters.start_date:
            raise ValidationError("end_date debe ser posterior a start_date")

        async def db_fetch() -> PaginatedClassOccurrences:
            occurrences, total = await async_class_occurrence_repository.list_filtered(
                db, filters=filters, skip=(page - 1) * page_size, limit=page_size
            )
            available = await self.admission.remaining_seats_many(db, occurrences)
            return PaginatedClassOccurrences(
                items=[occurrence_to_schema(o, available[o.id]) for o in occurrences],
                page=page,
                page_size=page_size,
                total=total,
                total_pages=math.ceil(total / page_size) if total else 0
            )

        cache_key = occurrence_list_key(filters.model_dump(mode="json"), page, page_size)
        return await read_through(self.cache, cache_key, db_fetch, PaginatedClassOccurrences, self.cache_ttl)

    async def get_class(self, db: AsyncSession, occurrence_id: int) -> ClassOccurrence:
        async def db_fetch() -> Optional[ClassOccurrence]:
            occurrence = await async_class_occurrence_repository.get(db, occurrence_id)
            if not occurrence:
                return None
            available = await self.admission.remaining_seats(db, occurrence)
            return occurrence_to_schema(occurrence, available)

        result = await read_through(
            self.cache, occurrence_detail_key(occurrence_id), db_fetch, ClassOccurrence, self.cache_ttl
        )
        if result is None:
            raise NotFoundError(f"Clase {occurrence_id} no encontrada")
        return result

    # --- Reservas ---

    async def book_class(
        self,
        db: AsyncSession,
        member_id: int,
        occurrence_id: int,
        principal: Principal
    ) -> ClassBooking:
        """
        Reservar plaza para un miembro.

        La comprobación de aforo se repite de forma atómica al escribir: la
        lectura previa solo evita trabajo inútil cuando la clase ya está llena.

        Raises:
            ForbiddenError: Un no-staff reservando para otra persona
            NotFoundError: Miembro o sesión inexistentes
            InactiveOccurrenceError: La sesión está desactivada
            EntitlementError: La membresía no permite reservar
            DuplicateBookingError: Ya hay una reserva confirmada
            CapacityExceededError: Sin plazas
        """
        if not principal.is_staff and principal.id != member_id:
            raise ForbiddenError("Solo puedes reservar clases para ti mismo")

        async with transaction_scope(db):
            member = await async_user_repository.get_active_with_role(
                db, user_id=member_id, role=UserRole.MEMBER
            )
            if not member:
                raise NotFoundError(f"Miembro {member_id} no encontrado")

            occurrence = await async_class_occurrence_repository.get(db, occurrence_id)
            if not occurrence:
                raise NotFoundError(f"Clase {occurrence_id} no encontrada")
            if not occurrence.is_active:
                raise InactiveOccurrenceError(f"La clase {occurrence_id} no está activa")

            if not await self.entitlements.is_entitled(member_id, occurrence_id):
                raise EntitlementError(
                    f"La membresía del miembro {member_id} no permite reservar la clase {occurrence_id}"
                )

            existing = await async_class_booking_repository.get_by_member_and_occurrence(
                db, member_id=member_id, occurrence_id=occurrence_id, for_update=True
            )
            book_transition(state_of(existing), member_id=member_id, occurrence_id=occurrence_id)

            if not await self.admission.has_capacity(db, occurrence):
                raise CapacityExceededError(occurrence_id)
            await self.admission.admit(db, occurrence)

            now = datetime.now(timezone.utc)
            if existing:
                booking = await async_class_booking_repository.update(
                    db,
                    db_obj=existing,
                    obj_in={"status": BookingStatus.CONFIRMED, "booked_at": now, "cancelled_at": None}
                )
            else:
                try:
                    booking = await async_class_booking_repository.create(
                        db,
                        obj_in=ClassBookingCreate(
                            member_id=member_id,
                            occurrence_id=occurrence_id,
                            status=BookingStatus.CONFIRMED,
                            booked_at=now
                        )
                    )
                except IntegrityError as e:
                    # Otra petición insertó la misma pareja (miembro, sesión)
                    raise DuplicateBookingError(member_id, occurrence_id) from e

        logger.info(f"Reserva {booking.id} confirmada: miembro {member_id}, clase {occurrence_id}")
        await self._notify_admins(
            "Nueva reserva de clase",
            f"{member.full_name} reservó {occurrence.template.name} ({ensure_utc(occurrence.start_time).isoformat()})",
            f"/classes/{occurrence_id}"
        )
        await self._invalidate_caches([occurrence_id])
        return booking_to_schema(booking)

    async def cancel_booking(
        self,
        db: AsyncSession,
        booking_id: int,
        principal: Principal
    ) -> ClassBooking:
        """
        Cancelar una reserva confirmada y liberar su plaza.

        Orden de comprobación: existencia, estado, propiedad. Una reserva ya
        cancelada responde AlreadyCancelledError sea quien sea el llamante.
        """
        async with transaction_scope(db):
            booking = await async_class_booking_repository.get(db, booking_id, for_update=True)
            if booking is None:
                raise NotFoundError(f"Reserva {booking_id} no encontrada")
            cancel_transition(state_of(booking), booking_id=booking_id)
            if not principal.is_staff and booking.member_id != principal.id:
                raise ForbiddenError("Solo puedes cancelar tus propias reservas")

            booking = await async_class_booking_repository.update(
                db,
                db_obj=booking,
                obj_in={"status": BookingStatus.CANCELLED, "cancelled_at": datetime.now(timezone.utc)}
            )
            await self.admission.release(db, booking.occurrence_id)

        logger.info(f"Reserva {booking_id} cancelada por el usuario {principal.id}")
        await self._invalidate_caches([booking.occurrence_id])
        return booking_to_schema(booking)

    async def list_member_bookings(
        self,
        db: AsyncSession,
        member_id: int,
        principal: Principal,
        skip: int = 0,
        limit: int = 100
    ) -> List[MemberClassBooking]:
        """Historial de reservas de un miembro, más recientes primero."""
        if not principal.is_staff and principal.id != member_id:
            raise ForbiddenError("Solo puedes consultar tus propias reservas")

        bookings = await async_class_booking_repository.get_by_member(
            db, member_id=member_id, skip=skip, limit=limit
        )
        return [
            MemberClassBooking(
                **booking_to_schema(booking).model_dump(),
                class_name=booking.occurrence.template.name,
                trainer_id=booking.occurrence.trainer_id,
                start_time=ensure_utc(booking.occurrence.start_time),
                end_time=ensure_utc(booking.occurrence.end_time),
                occurrence_active=booking.occurrence.is_active
            )
            for booking in bookings
        ]

    async def list_occurrence_bookings(
        self,
        db: AsyncSession,
        occurrence_id: int,
        principal: Principal,
        status: Optional[BookingStatus] = None
    ) -> List[ClassBooking]:
        """Asistentes de una sesión, visibles para staff y el entrenador de la clase."""
        occurrence = await async_class_occurrence_repository.get(db, occurrence_id)
        if not occurrence:
            raise NotFoundError(f"Clase {occurrence_id} no encontrada")
        if not principal.is_staff and not (principal.is_trainer and occurrence.trainer_id == principal.id):
            raise ForbiddenError("No tienes permisos para ver las reservas de esta clase")

        bookings = await async_class_booking_repository.get_by_occurrence(
            db, occurrence_id=occurrence_id, status=status
        )
        return [booking_to_schema(booking) for booking in bookings]

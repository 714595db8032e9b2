"""
Expansión de reglas de recurrencia en sesiones concretas.

Gramática soportada (subconjunto de RRULE), pares KEY=VALUE separados por ';':

    FREQ=WEEKLY;BYDAY=MO,WE,FR;BYHOUR=6;BYMINUTE=0;COUNT=6
    FREQ=WEEKLY;BYDAY=TU;UNTIL=20240331
    FREQ=WEEKLY;UNTIL=20240331T235959Z

Solo se admite FREQ=WEEKLY. La expansión recorre los días desde la fecha
semilla y genera una sesión por cada día cuyo día de la semana coincide.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
import logging
import re

from classbook.core.exceptions import InvalidRecurrenceError, ValidationError
from classbook.models.schedule import DayOfWeek
from classbook.utils.intervals import Interval

logger = logging.getLogger(__name__)

SUPPORTED_FREQUENCY = "WEEKLY"
DEFAULT_MAX_OCCURRENCES = 24
# Tope absoluto de sesiones por regla (COUNT y límite explícito)
MAX_OCCURRENCES = 366
DEFAULT_RECURRENCE_WINDOW = timedelta(days=84)

WEEKDAY_CODES: Dict[str, DayOfWeek] = {
    "MO": DayOfWeek.MONDAY,
    "TU": DayOfWeek.TUESDAY,
    "WE": DayOfWeek.WEDNESDAY,
    "TH": DayOfWeek.THURSDAY,
    "FR": DayOfWeek.FRIDAY,
    "SA": DayOfWeek.SATURDAY,
    "SU": DayOfWeek.SUNDAY,
}

_UNTIL_DATE = re.compile(r"^\d{8}$")
_UNTIL_DATETIME_UTC = re.compile(r"^\d{8}T\d{6}Z$")


@dataclass(frozen=True)
class RecurrenceDescriptor:
    """Regla de recurrencia ya interpretada; se consume una vez al crear la clase."""
    frequency: str
    weekdays: Tuple[DayOfWeek, ...] = ()
    hour: Optional[int] = None
    minute: Optional[int] = None
    count: Optional[int] = None
    until: Optional[datetime] = None


def _parse_int(key: str, value: str, low: int, high: Optional[int] = None) -> int:
    try:
        number = int(value)
    except ValueError:
        raise InvalidRecurrenceError(f"{key} debe ser un entero, recibido '{value}'")
    if number < low or (high is not None and number > high):
        rango = f"entre {low} y {high}" if high is not None else f">= {low}"
        raise InvalidRecurrenceError(f"{key} debe estar {rango}, recibido {number}")
    return number


def _parse_until(value: str) -> datetime:
    # YYYYMMDDTHHMMSSZ es un instante UTC; YYYYMMDD es medianoche en hora de pared
    try:
        if _UNTIL_DATETIME_UTC.match(value):
            return datetime.strptime(value, "%Y%m%dT%H%M%SZ").replace(tzinfo=timezone.utc)
        if _UNTIL_DATE.match(value):
            return datetime.strptime(value, "%Y%m%d")
    except ValueError:
        pass
    raise InvalidRecurrenceError(
        f"UNTIL debe tener formato YYYYMMDD o YYYYMMDDTHHMMSSZ, recibido '{value}'"
    )


def _parse_weekdays(value: str) -> Tuple[DayOfWeek, ...]:
    days = []
    for code in (part.strip().upper() for part in value.split(",")):
        if not code:
            continue
        if code not in WEEKDAY_CODES:
            raise InvalidRecurrenceError(f"Código de día desconocido en BYDAY: '{code}'")
        day = WEEKDAY_CODES[code]
        if day not in days:
            days.append(day)
    return tuple(days)


def parse_recurrence_rule(rule: str) -> RecurrenceDescriptor:
    """
    Interpreta una regla tipo RRULE.

    Raises:
        InvalidRecurrenceError: Si falta FREQ o algún valor está mal formado.
    """
    parts: Dict[str, str] = {}
    for segment in (rule or "").split(";"):
        segment = segment.strip()
        if not segment:
            continue
        if "=" not in segment:
            raise InvalidRecurrenceError(f"Segmento de recurrencia mal formado: '{segment}'")
        key, value = segment.split("=", 1)
        parts[key.strip().upper()] = value.strip()

    frequency = parts.get("FREQ", "").upper()
    if not frequency:
        raise InvalidRecurrenceError("La regla de recurrencia requiere FREQ")

    ignored = set(parts) - {"FREQ", "BYDAY", "BYHOUR", "BYMINUTE", "COUNT", "UNTIL"}
    if ignored:
        logger.debug(f"Claves de recurrencia ignoradas: {sorted(ignored)}")

    return RecurrenceDescriptor(
        frequency=frequency,
        weekdays=_parse_weekdays(parts["BYDAY"]) if parts.get("BYDAY") else (),
        hour=_parse_int("BYHOUR", parts["BYHOUR"], 0, 23) if parts.get("BYHOUR") else None,
        minute=_parse_int("BYMINUTE", parts["BYMINUTE"], 0, 59) if parts.get("BYMINUTE") else None,
        count=_parse_int("COUNT", parts["COUNT"], 1, MAX_OCCURRENCES) if parts.get("COUNT") else None,
        until=_parse_until(parts["UNTIL"]) if parts.get("UNTIL") else None,
    )


def _align_to_seed(value: datetime, seed: datetime) -> datetime:
    """Hace comparable `value` con `seed` (ambos naive o ambos aware)."""
    if seed.tzinfo is None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    if seed.tzinfo is not None and value.tzinfo is None:
        return value.replace(tzinfo=seed.tzinfo)
    return value


def effective_cap(descriptor: Optional[RecurrenceDescriptor], max_occurrences: Optional[int] = None) -> int:
    """Límite de sesiones: el del llamante, si no COUNT, si no 24."""
    if max_occurrences is not None:
        return max_occurrences
    if descriptor is not None and descriptor.count is not None:
        return descriptor.count
    return DEFAULT_MAX_OCCURRENCES


def expand_occurrences(
    seed_start: datetime,
    duration_minutes: int,
    descriptor: Optional[RecurrenceDescriptor] = None,
    max_occurrences: Optional[int] = None,
) -> List[Interval]:
    """
    Convierte una hora semilla y una regla en una secuencia ordenada de intervalos.

    Args:
        seed_start: Inicio de la primera sesión (naive u aware; se respeta tal cual)
        duration_minutes: Duración de cada sesión en minutos
        descriptor: Regla de recurrencia; sin regla se devuelve una única sesión
        max_occurrences: Límite explícito del llamante (prioritario sobre COUNT)

    Returns:
        Lista de Interval(start, end) en orden cronológico, nunca vacía

    Raises:
        InvalidRecurrenceError: Si la frecuencia no es WEEKLY
        ValidationError: Si la duración o el límite no son positivos
    """
    if duration_minutes <= 0:
        raise ValidationError("La duración debe ser mayor que cero")
    if max_occurrences is not None and not 0 < max_occurrences <= MAX_OCCURRENCES:
        raise ValidationError(f"El número máximo de sesiones debe estar entre 1 y {MAX_OCCURRENCES}")

    single = [Interval.from_duration(seed_start, duration_minutes)]
    if descriptor is None:
        return single

    if descriptor.frequency != SUPPORTED_FREQUENCY:
        raise InvalidRecurrenceError(
            f"Solo se admite recurrencia {SUPPORTED_FREQUENCY}, recibido '{descriptor.frequency}'"
        )

    weekdays = {int(day) for day in descriptor.weekdays} or {seed_start.weekday()}
    hour = descriptor.hour if descriptor.hour is not None else seed_start.hour
    minute = descriptor.minute if descriptor.minute is not None else seed_start.minute
    cap = effective_cap(descriptor, max_occurrences)

    occurrences: List[Interval] = []
    try:
        until = (
            _align_to_seed(descriptor.until, seed_start)
            if descriptor.until is not None
            else seed_start + DEFAULT_RECURRENCE_WINDOW
        )
        cursor = seed_start.replace(hour=0, minute=0, second=0, microsecond=0)
        while cursor <= until and len(occurrences) < cap:
            if cursor.weekday() in weekdays:
                start = cursor.replace(hour=hour, minute=minute)
                if seed_start <= start <= until:
                    occurrences.append(Interval.from_duration(start, duration_minutes))
            cursor += timedelta(days=1)
    except OverflowError:
        raise InvalidRecurrenceError(
            f"La regla {descriptor} se sale del rango de fechas admitido desde {seed_start.isoformat()}"
        )

    if not occurrences:
        # Entradas contradictorias (p. ej. UNTIL anterior a la semilla)
        logger.info(
            f"La regla {descriptor} no produjo sesiones desde {seed_start.isoformat()}; "
            "se usa la sesión única"
        )
        return single

    return occurrences

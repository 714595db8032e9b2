"""
Utilidades para el manejo de zonas horarias del motor de horarios.

Las sesiones se almacenan en UTC; la recurrencia se calcula sobre la hora de
pared de la zona configurada (SCHEDULE_TIMEZONE).
"""
from datetime import datetime, timezone
import pytz


def convert_naive_to_local_timezone(naive_dt: datetime, tz_name: str) -> datetime:
    """
    Interpreta un datetime naive como hora local de `tz_name` y lo devuelve aware.

    Args:
        naive_dt: Datetime naive que representa la hora local
        tz_name: Zona horaria (ej: 'America/Mexico_City')

    Returns:
        Datetime aware en la zona horaria indicada
    """
    if naive_dt.tzinfo is not None:
        raise ValueError("El datetime debe ser naive (sin timezone)")

    tz = pytz.timezone(tz_name)
    return tz.localize(naive_dt)


def normalize_to_utc(dt: datetime, tz_name: str) -> datetime:
    """
    Normaliza un datetime a UTC manejando entradas naive o aware.

    - Si `dt` es naive, se interpreta en `tz_name` y se convierte a UTC.
    - Si `dt` es aware, se convierte directamente a UTC preservando la hora exacta.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return convert_naive_to_local_timezone(dt, tz_name).astimezone(timezone.utc)
    return dt.astimezone(timezone.utc)


def convert_utc_to_local(utc_dt: datetime, tz_name: str) -> datetime:
    """
    Convierte un datetime UTC a hora local de `tz_name` (aware).

    Si es naive, se asume que es UTC.
    """
    if utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=timezone.utc)
    tz = pytz.timezone(tz_name)
    return utc_dt.astimezone(tz)


def to_wall_clock(dt: datetime, tz_name: str) -> datetime:
    """Hora de pared naive en `tz_name` para un instante (naive = UTC)."""
    return convert_utc_to_local(dt, tz_name).replace(tzinfo=None)


def ensure_utc(dt: datetime) -> datetime:
    """Datetime aware en UTC; los valores naive leídos de la BD se tratan como UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

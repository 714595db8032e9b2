"""
Services module for ClassBook

Lógica de negocio del motor de horarios: recurrencia, conflictos, aforo,
estados de reserva, caché y el servicio que los orquesta.
"""

# Inicializador del paquete services
from classbook.services.class_scheduling import ClassSchedulingService
from classbook.services.schedule_cache import (
    ScheduleCache,
    RedisScheduleCache,
    InMemoryScheduleCache,
    NullScheduleCache,
    build_schedule_cache
)

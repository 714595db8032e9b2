# Inicializador del paquete repositories
from classbook.repositories.async_schedule import (
    async_class_template_repository,
    async_class_occurrence_repository,
    async_class_booking_repository
)
from classbook.repositories.async_user import async_user_repository

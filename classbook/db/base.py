# Importar todos los modelos para que create_all los detecte
from classbook.db.base_class import Base  # noqa
from classbook.models.user import User  # noqa
from classbook.models.schedule import (
    ClassTemplate,
    ClassOccurrence,
    ClassBooking
)  # noqa

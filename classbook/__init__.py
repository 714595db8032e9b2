"""Motor de horarios recurrentes y reservas de clases."""

__version__ = "0.1.0"

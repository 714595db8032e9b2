from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text, Enum, CheckConstraint, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
import sqlalchemy as sa

from classbook.db.base_class import Base


class DayOfWeek(int, enum.Enum):
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class BookingStatus(str, enum.Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class ClassTemplate(Base):
    """Definición de la clase: se crea una vez, se edita, nunca se elimina"""
    __tablename__ = "class_template"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False, index=True)
    duration = Column(Integer, nullable=False)  # Duración en minutos
    capacity = Column(Integer, nullable=False)

    # Campos de auditoría
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    created_by = Column(Integer, ForeignKey("user.id"), nullable=True)

    __table_args__ = (
        CheckConstraint('duration > 0', name='check_template_duration_positive'),
        CheckConstraint('capacity > 0', name='check_template_capacity_positive'),
    )


class ClassOccurrence(Base):
    """Instancia concreta de una clase en el tiempo, con un entrenador asignado"""
    __tablename__ = "class_occurrence"

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("class_template.id"), nullable=False, index=True)
    trainer_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)  # UTC
    end_time = Column(DateTime(timezone=True), nullable=False)  # UTC
    # Días de la semana (0=Lunes ... 6=Domingo) en la zona del horario
    weekdays = Column(JSON, nullable=False, default=list)
    # Reservas CONFIRMED; se mantiene en la misma transacción que cada reserva
    confirmed_count = Column(Integer, nullable=False, default=0, server_default="0")
    is_active = Column(Boolean, nullable=False, default=True)

    # Relaciones
    template = relationship("ClassTemplate", lazy="selectin")

    # Campos de auditoría
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    created_by = Column(Integer, ForeignKey("user.id"), nullable=True)

    __table_args__ = (
        CheckConstraint('end_time > start_time', name='check_occurrence_end_after_start'),
        CheckConstraint('confirmed_count >= 0', name='check_occurrence_confirmed_non_negative'),
        sa.Index('ix_class_occurrence_trainer_active_start', 'trainer_id', 'is_active', 'start_time'),
    )


class ClassBooking(Base):
    """Reserva de un miembro en una sesión; la cancelación es un cambio de estado"""
    __tablename__ = "class_booking"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    occurrence_id = Column(Integer, ForeignKey("class_occurrence.id"), nullable=False, index=True)
    status = Column(Enum(BookingStatus), nullable=False, default=BookingStatus.CONFIRMED)
    booked_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Relaciones
    occurrence = relationship("ClassOccurrence", lazy="selectin")

    # Campos de auditoría
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        sa.UniqueConstraint('member_id', 'occurrence_id', name='uq_class_booking_member_occurrence'),
    )

from typing import Optional, List
from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime

from classbook.models.schedule import BookingStatus


# ClassTemplate schemas
class ClassTemplateBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=100)
    duration: int = Field(..., gt=0, description="Duración en minutos")
    capacity: int = Field(..., gt=0, description="Plazas por sesión")


class ClassTemplateCreate(ClassTemplateBase):
    created_by: Optional[int] = None


class ClassTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    duration: Optional[int] = Field(None, gt=0)
    capacity: Optional[int] = Field(None, gt=0)


# ClassOccurrence schemas
class ClassOccurrenceCreate(BaseModel):
    template_id: int
    trainer_id: int
    start_time: datetime
    end_time: datetime
    weekdays: List[int] = []
    created_by: Optional[int] = None

    @model_validator(mode='after')
    def check_end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError('end_time debe ser posterior a start_time')
        return self


class ClassOccurrenceUpdate(BaseModel):
    trainer_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    weekdays: Optional[List[int]] = None
    is_active: Optional[bool] = None


# Entrada de la API / servicio
class ClassCreate(ClassTemplateBase):
    trainer_id: int
    schedule_start: datetime = Field(..., description="Inicio de la primera sesión")
    recurrence_rule: Optional[str] = Field(
        None,
        description="Regla tipo RRULE, ej: FREQ=WEEKLY;BYDAY=MO,WE,FR;COUNT=6"
    )
    occurrence_count_cap: Optional[int] = Field(
        None, ge=1, le=366, description="Límite explícito de sesiones a generar"
    )

    @field_validator('recurrence_rule', mode='before')
    def blank_rule_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    duration: Optional[int] = Field(None, gt=0)
    capacity: Optional[int] = Field(None, gt=0)
    trainer_id: Optional[int] = None
    schedule_start: Optional[datetime] = None

    def template_fields(self) -> dict:
        return self.model_dump(
            exclude_unset=True,
            include={"name", "description", "category", "duration", "capacity"}
        )

    @property
    def touches_schedule(self) -> bool:
        return bool(self.model_fields_set & {"schedule_start", "duration", "trainer_id"})


class ClassListFilters(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    trainer_id: Optional[int] = None
    category: Optional[str] = None


class ClassOccurrence(BaseModel):
    """Sesión con los datos de su plantilla y plazas disponibles"""
    id: int
    template_id: int
    name: str
    description: Optional[str] = None
    category: str
    duration: int
    capacity: int
    trainer_id: int
    start_time: datetime
    end_time: datetime
    weekdays: List[int] = []
    is_active: bool
    available_slots: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PaginatedClassOccurrences(BaseModel):
    items: List[ClassOccurrence]
    page: int
    page_size: int
    total: int
    total_pages: int


# ClassBooking schemas
class ClassBookingCreate(BaseModel):
    member_id: int
    occurrence_id: int
    status: BookingStatus = BookingStatus.CONFIRMED
    booked_at: Optional[datetime] = None


class ClassBookingUpdate(BaseModel):
    status: Optional[BookingStatus] = None
    booked_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class BookClassRequest(BaseModel):
    member_id: int
    occurrence_id: int


class ClassBooking(BaseModel):
    id: int
    member_id: int
    occurrence_id: int
    status: BookingStatus
    booked_at: datetime
    cancelled_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MemberClassBooking(ClassBooking):
    """Reserva con el resumen de la sesión, para el historial del miembro"""
    class_name: str
    trainer_id: int
    start_time: datetime
    end_time: datetime
    occurrence_active: bool

# app/routes/appointments/schemas.py

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date, time, datetime
from app.models.all_models import AppointmentStatus


def wall_clock_minute(value: Optional[time]) -> Optional[time]:
    """Slots are compared by exact time, so only naive HH:MM values are accepted."""
    if value is None:
        return value
    if value.tzinfo is not None:
        raise ValueError("Time must not carry a timezone offset")
    if value.second or value.microsecond:
        raise ValueError("Time must be in HH:MM format")
    return value

class AppointmentCreate(BaseModel):
    appointment_date: date
    appointment_time: time
    service_id: Optional[int] = None
    dentist_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("appointment_time")
    @classmethod
    def check_time(cls, value):
        return wall_clock_minute(value)

class AppointmentReschedule(BaseModel):
    appointment_date: date
    appointment_time: time

    @field_validator("appointment_time")
    @classmethod
    def check_time(cls, value):
        return wall_clock_minute(value)

class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    dentist_id: Optional[int] = None
    service_id: Optional[int] = None
    appointment_date: date
    appointment_time: time
    duration: int
    status: AppointmentStatus
    notes: Optional[str] = None
    reschedule_count: int = 0
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class AppointmentCompleteResponse(BaseModel):
    message: str
    appointment: AppointmentResponse

class AppointmentCancelResponse(BaseModel):
    message: str
    appointment_id: int
    status: AppointmentStatus

class BusinessHours(BaseModel):
    start: str
    end: str

class DaySlotsResponse(BaseModel):
    date: date
    weekday: str
    available: bool
    slots: List[str] = []
    business_hours: Optional[BusinessHours] = None
    duration: int
    message: Optional[str] = None

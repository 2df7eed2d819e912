# app/routes/recurring/schemas.py

from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import date, time, datetime
from app.models.all_models import RecurrencePattern, RecurrenceStatus

WEEKDAY_PATTERNS = (RecurrencePattern.WEEKLY, RecurrencePattern.BIWEEKLY)

class RecurringAppointmentCreate(BaseModel):
    patient_id: int
    service_id: Optional[int] = None
    dentist_id: Optional[int] = None
    recurrence_pattern: RecurrencePattern
    recurrence_interval: int = Field(1, ge=1)
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    start_date: date
    end_date: Optional[date] = None
    time_slot: time = time(9, 0)
    duration: int = Field(30, ge=5, le=480)
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_pattern_fields(self):
        if self.day_of_week is not None and self.recurrence_pattern not in WEEKDAY_PATTERNS:
            raise ValueError("day_of_week only applies to weekly or biweekly patterns")
        if self.day_of_month is not None and self.recurrence_pattern != RecurrencePattern.MONTHLY:
            raise ValueError("day_of_month only applies to the monthly pattern")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self

class RecurringAppointmentUpdate(BaseModel):
    status: Optional[RecurrenceStatus] = None
    end_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=1000)

class RecurringAppointmentResponse(BaseModel):
    id: int
    patient_id: int
    service_id: Optional[int] = None
    dentist_id: Optional[int] = None
    recurrence_pattern: RecurrencePattern
    recurrence_interval: int
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    start_date: date
    end_date: Optional[date] = None
    time_slot: time
    duration: int
    notes: Optional[str] = None
    status: RecurrenceStatus
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# app/routes/reminders/schemas.py

from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, time, datetime
from app.models.all_models import AppointmentStatus, ReminderChannel

class DueReminder(BaseModel):
    appointment_id: int
    patient_id: int
    dentist_id: Optional[int] = None
    appointment_date: date
    appointment_time: time
    status: AppointmentStatus

class ReminderDispatchCreate(BaseModel):
    appointment_id: int
    channel: ReminderChannel = ReminderChannel.EMAIL
    hours_before: int = Field(24, ge=1, le=168)
    dispatch_date: Optional[date] = None

class ReminderDispatchResponse(BaseModel):
    id: int
    appointment_id: int
    channel: ReminderChannel
    reminder_window: int
    dispatch_date: date
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

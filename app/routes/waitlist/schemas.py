# app/routes/waitlist/schemas.py

from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import date, time, datetime
from app.models.all_models import WaitlistStatus
from app.routes.appointments.schemas import wall_clock_minute

class WaitlistCreate(BaseModel):
    preferred_date: date
    preferred_time: Optional[time] = None
    service_id: Optional[int] = None
    dentist_id: Optional[int] = None
    auto_book: bool = False

    @field_validator("preferred_time")
    @classmethod
    def check_time(cls, value):
        return wall_clock_minute(value)

class WaitlistResponse(BaseModel):
    id: int
    patient_id: int
    preferred_date: date
    preferred_time: Optional[time] = None
    service_id: Optional[int] = None
    dentist_id: Optional[int] = None
    auto_book: bool
    status: WaitlistStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

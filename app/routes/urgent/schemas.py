# app/routes/urgent/schemas.py

from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, time, datetime
from app.models.all_models import UrgentRequestStatus

class UrgentRequestCreate(BaseModel):
    urgency_reason: str = Field(..., min_length=1, max_length=1000)
    symptoms: Optional[str] = Field(None, max_length=2000)
    preferred_date: Optional[date] = None
    preferred_time: Optional[time] = None
    service_id: Optional[int] = None

class UrgentRequestResponse(BaseModel):
    id: int
    patient_id: int
    urgency_reason: str
    symptoms: Optional[str] = None
    preferred_date: Optional[date] = None
    preferred_time: Optional[time] = None
    service_id: Optional[int] = None
    priority_score: int
    status: UrgentRequestStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

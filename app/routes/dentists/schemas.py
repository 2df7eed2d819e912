# app/routes/dentists/schemas.py

from pydantic import BaseModel
from typing import Dict, List, Optional
import datetime
from app.models.all_models import AppointmentStatus

class SlotInfo(BaseModel):
    time: str
    duration: int

class BookedSlotInfo(SlotInfo):
    status: AppointmentStatus

class DentistAvailabilityResponse(BaseModel):
    dentist_id: int
    date: Optional[datetime.date] = None
    availability_schedule: Dict[str, Optional[Dict[str, str]]]
    uses_default_schedule: bool
    available_slots: List[SlotInfo] = []
    booked_slots: List[BookedSlotInfo] = []
    total_available_slots: int = 0
    total_booked_slots: int = 0

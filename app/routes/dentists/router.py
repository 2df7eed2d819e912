from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from app.database import get_db
from app.routes.dentists.schemas import DentistAvailabilityResponse
from app.services.availability import get_dentist_availability
from app.services.errors import ClinicError
from app.utils.errors import server_error

router = APIRouter(prefix="/dentists", tags=["dentists"])

@router.get("/{dentist_id}/availability", response_model=DentistAvailabilityResponse)
async def dentist_availability(
    dentist_id: int,
    date: Optional[date] = Query(None, description="Day to list booked and free slots for"),
    db: Session = Depends(get_db)
):
    try:
        return get_dentist_availability(db, dentist_id, day=date)
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        raise server_error("Error retrieving dentist availability", e)

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from app.database import get_db
from app.models.all_models import User, UserRole, AppointmentStatus
from app.routes.appointments.schemas import (
    AppointmentCreate, AppointmentReschedule, AppointmentResponse,
    AppointmentCompleteResponse, AppointmentCancelResponse, DaySlotsResponse
)
from app.services import availability, booking
from app.services.errors import ClinicError
from app.services.notifications import Notifier, appointment_payload, get_notifier, notify_safely
from app.utils.auth import get_current_user, require_patient, require_roles, require_staff
from app.utils.errors import server_error

router = APIRouter(prefix="/appointments", tags=["appointments"])

require_completer = require_roles([UserRole.DENTIST, UserRole.STAFF, UserRole.ADMIN])

def _notify(background_tasks: BackgroundTasks, notifier: Notifier, appointment, event: str):
    background_tasks.add_task(
        notify_safely, notifier, appointment.patient_id, event, appointment_payload(appointment)
    )

# ================================
# SLOTS (public)
# ================================

@router.get("/slots", response_model=DaySlotsResponse)
async def get_available_slots(
    date: date = Query(..., description="Day to compute slots for (YYYY-MM-DD)"),
    dentist_id: Optional[int] = Query(None),
    service_id: Optional[int] = Query(None),
    db: Session = Depends(get_db)
):
    try:
        day = availability.get_day_slots(db, date, dentist_id=dentist_id, service_id=service_id)
        return DaySlotsResponse(
            date=day.date,
            weekday=day.weekday,
            available=day.available,
            slots=day.slots,
            business_hours=day.business_hours.as_dict() if day.business_hours else None,
            duration=day.duration,
            message=day.message,
        )
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        raise server_error("Error retrieving available slots", e)

# ================================
# PATIENT APPOINTMENTS
# ================================

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: AppointmentCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_patient),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    try:
        appointment = booking.create_appointment(
            db,
            current_user,
            appointment_date=appointment_data.appointment_date,
            appointment_time=appointment_data.appointment_time,
            service_id=appointment_data.service_id,
            dentist_id=appointment_data.dentist_id,
            notes=appointment_data.notes,
        )
        _notify(background_tasks, notifier, appointment, "appointment.created")
        return appointment
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        db.rollback()
        raise server_error("Error creating appointment", e)

@router.get("", response_model=List[AppointmentResponse])
async def list_my_appointments(
    status: Optional[AppointmentStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return booking.list_appointments(db, current_user, status=status, skip=skip, limit=limit)
    except Exception as e:
        raise server_error("Error retrieving appointments", e)

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return booking.get_owned_appointment(db, appointment_id, current_user.id)
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        raise server_error("Error retrieving appointment", e)

@router.put("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: int,
    reschedule_data: AppointmentReschedule,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    try:
        appointment = booking.reschedule_appointment(
            db,
            current_user,
            appointment_id,
            appointment_date=reschedule_data.appointment_date,
            appointment_time=reschedule_data.appointment_time,
        )
        _notify(background_tasks, notifier, appointment, "appointment.rescheduled")
        return appointment
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        db.rollback()
        raise server_error("Error rescheduling appointment", e)

@router.delete("/{appointment_id}", response_model=AppointmentCancelResponse)
async def cancel_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    reason: Optional[str] = Query(None, max_length=500),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    try:
        appointment = booking.cancel_appointment(db, current_user, appointment_id, reason=reason)
        _notify(background_tasks, notifier, appointment, "appointment.cancelled")
        return AppointmentCancelResponse(
            message="Appointment cancelled successfully",
            appointment_id=appointment.id,
            status=appointment.status,
        )
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        db.rollback()
        raise server_error("Error cancelling appointment", e)

# ================================
# STAFF / PROVIDER TRANSITIONS
# ================================

@router.put("/{appointment_id}/confirm", response_model=AppointmentResponse)
async def confirm_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    try:
        appointment = booking.confirm_appointment(db, appointment_id)
        _notify(background_tasks, notifier, appointment, "appointment.confirmed")
        return appointment
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        db.rollback()
        raise server_error("Error confirming appointment", e)

@router.put("/{appointment_id}/complete", response_model=AppointmentCompleteResponse)
async def complete_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_completer),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    try:
        appointment, changed = booking.complete_appointment(db, current_user, appointment_id)
        if not changed:
            return AppointmentCompleteResponse(
                message="Appointment already completed",
                appointment=AppointmentResponse.model_validate(appointment)
            )

        _notify(background_tasks, notifier, appointment, "appointment.completed")
        return AppointmentCompleteResponse(
            message="Appointment marked as completed",
            appointment=AppointmentResponse.model_validate(appointment)
        )
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        db.rollback()
        raise server_error("Error completing appointment", e)

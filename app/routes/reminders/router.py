from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List

from app.database import get_db
from app.models.all_models import Appointment, User, ReminderChannel
from app.routes.reminders.schemas import DueReminder, ReminderDispatchCreate, ReminderDispatchResponse
from app.services import notifications
from app.services.errors import ClinicError, NotFoundError
from app.utils.auth import require_staff
from app.utils.errors import server_error

router = APIRouter(prefix="/reminders", tags=["reminders"])

@router.get("/due", response_model=List[DueReminder])
async def get_due_reminders(
    hours_before: int = Query(24, ge=1, le=168),
    channel: ReminderChannel = Query(ReminderChannel.EMAIL),
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Appointments the reminder job still has to notify for this channel and window today."""
    try:
        return [
            DueReminder(
                appointment_id=appt.id,
                patient_id=appt.patient_id,
                dentist_id=appt.dentist_id,
                appointment_date=appt.appointment_date,
                appointment_time=appt.appointment_time,
                status=appt.status,
            )
            for appt in notifications.due_reminders(db, hours_before=hours_before, channel=channel)
        ]
    except Exception as e:
        raise server_error("Error retrieving due reminders", e)

@router.post("/dispatches", response_model=ReminderDispatchResponse, status_code=status.HTTP_201_CREATED)
async def record_dispatch(
    dispatch_data: ReminderDispatchCreate,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    try:
        exists = db.query(Appointment.id).filter(Appointment.id == dispatch_data.appointment_id).first()
        if not exists:
            raise NotFoundError("Appointment not found")

        return notifications.record_reminder_dispatch(
            db,
            appointment_id=dispatch_data.appointment_id,
            channel=dispatch_data.channel,
            hours_before=dispatch_data.hours_before,
            dispatch_date=dispatch_data.dispatch_date,
        )
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        db.rollback()
        raise server_error("Error recording reminder dispatch", e)

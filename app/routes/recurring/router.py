from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.database import get_db
from app.models.all_models import User, RecurrenceStatus
from app.routes.recurring.schemas import (
    RecurringAppointmentCreate, RecurringAppointmentUpdate, RecurringAppointmentResponse
)
from app.services import booking
from app.services.errors import ClinicError
from app.services.notifications import Notifier, get_notifier, notify_safely
from app.utils.auth import get_current_user, require_staff
from app.utils.errors import server_error

router = APIRouter(prefix="/recurring-appointments", tags=["recurring-appointments"])

@router.post("", response_model=RecurringAppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_recurring_appointment(
    rule_data: RecurringAppointmentCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    try:
        rule = booking.create_recurrence_rule(db, current_user, **rule_data.model_dump())
        background_tasks.add_task(
            notify_safely, notifier, rule.patient_id, "recurring_appointment.created", {"rule_id": rule.id}
        )
        return rule
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        db.rollback()
        raise server_error("Error creating recurring appointment", e)

@router.get("", response_model=List[RecurringAppointmentResponse])
async def get_recurring_appointments(
    status: Optional[RecurrenceStatus] = Query(RecurrenceStatus.ACTIVE),
    patient_id: Optional[int] = Query(None, description="Staff only: restrict to one patient"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return booking.list_recurrence_rules(db, current_user, status=status, patient_id=patient_id)
    except Exception as e:
        raise server_error("Error retrieving recurring appointments", e)

@router.put("/{rule_id}", response_model=RecurringAppointmentResponse)
async def update_recurring_appointment(
    rule_id: int,
    rule_update: RecurringAppointmentUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    try:
        rule = booking.update_recurrence_rule(db, rule_id, rule_update.model_dump(exclude_unset=True))
        background_tasks.add_task(
            notify_safely, notifier, rule.patient_id, "recurring_appointment.updated",
            {"rule_id": rule.id, "status": rule.status.value}
        )
        return rule
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        db.rollback()
        raise server_error("Error updating recurring appointment", e)

@router.delete("/{rule_id}")
async def delete_recurring_appointment(
    rule_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    try:
        patient_id = booking.delete_recurrence_rule(db, rule_id)
        background_tasks.add_task(
            notify_safely, notifier, patient_id, "recurring_appointment.deleted", {"rule_id": rule_id}
        )
        return {"message": "Recurring appointment deleted successfully", "rule_id": rule_id}
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        db.rollback()
        raise server_error("Error deleting recurring appointment", e)

"""
Notification hooks and reminder bookkeeping.

Delivery (email, SMS, push) belongs to an external collaborator. This module
only decides *what* to tell it and guarantees that a failing notifier never
breaks the operation that triggered it.
"""
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.all_models import (
    Appointment, AppointmentStatus, ReminderChannel, ReminderDispatch, clinic_now
)

logger = logging.getLogger(__name__)

REMINDABLE_STATUSES = (
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.RESCHEDULED,
)


class Notifier:
    """Default notifier: records the event in the log. A real transport replaces ``app.state.notifier``."""

    def send(self, user_id: int, event: str, payload: dict) -> None:
        logger.info("Notification queued: %s for user %s %s", event, user_id, payload)


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def notify_safely(notifier: Notifier, user_id: int, event: str, payload: dict) -> None:
    """Run from BackgroundTasks after the response; failures are logged, never raised."""
    try:
        notifier.send(user_id, event, payload)
    except Exception:
        logger.exception("Notification %s for user %s failed", event, user_id)


def appointment_payload(appointment: Appointment) -> dict:
    return {
        "appointment_id": appointment.id,
        "date": appointment.appointment_date.isoformat(),
        "time": appointment.appointment_time.strftime("%H:%M"),
        "status": appointment.status.value,
    }


# ================================
# REMINDER SUPPORT
# ================================

def due_reminders(
    db: Session,
    hours_before: int = 24,
    channel: ReminderChannel = ReminderChannel.EMAIL,
    now: Optional[datetime] = None,
) -> List[Appointment]:
    """
    Appointments starting within the next ``hours_before`` hours that have not
    had a reminder on ``channel`` for this window today.
    """
    now = (now or clinic_now()).replace(tzinfo=None)
    horizon = now + timedelta(hours=hours_before)

    already_sent = select(ReminderDispatch.appointment_id).where(
        ReminderDispatch.channel == channel,
        ReminderDispatch.reminder_window == hours_before,
        ReminderDispatch.dispatch_date == now.date(),
    )
    candidates = db.query(Appointment).filter(
        Appointment.status.in_(REMINDABLE_STATUSES),
        Appointment.appointment_date >= now.date(),
        Appointment.appointment_date <= horizon.date(),
        Appointment.id.notin_(already_sent),
    ).order_by(Appointment.appointment_date, Appointment.appointment_time).all()

    return [
        appt for appt in candidates
        if now <= datetime.combine(appt.appointment_date, appt.appointment_time) <= horizon
    ]


def record_reminder_dispatch(
    db: Session,
    appointment_id: int,
    channel: ReminderChannel,
    hours_before: int,
    dispatch_date: Optional[date] = None,
) -> ReminderDispatch:
    """Idempotent: a second record for the same appointment, channel, window and day returns the first."""
    dispatch_date = dispatch_date or clinic_now().date()
    lookup = db.query(ReminderDispatch).filter(
        ReminderDispatch.appointment_id == appointment_id,
        ReminderDispatch.channel == channel,
        ReminderDispatch.reminder_window == hours_before,
        ReminderDispatch.dispatch_date == dispatch_date,
    )
    existing = lookup.first()
    if existing:
        return existing

    dispatch = ReminderDispatch(
        appointment_id=appointment_id,
        channel=channel,
        reminder_window=hours_before,
        dispatch_date=dispatch_date,
    )
    db.add(dispatch)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return lookup.one()
    db.refresh(dispatch)
    logger.info("Reminder dispatch recorded: appointment %s via %s", appointment_id, channel.value)
    return dispatch

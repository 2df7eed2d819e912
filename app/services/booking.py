"""
Conflict Guard: booking invariants and the appointment state machine.

Every guard is checked twice: once by a query before the write, and once by the
partial unique indexes on ``appointments`` and ``waitlist`` when the write is
committed. The second check is what keeps two concurrent requests from both
winning the same slot; its IntegrityError is translated into the same conflict
error the first check would have raised.
"""
import logging
from datetime import date, datetime, time
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.all_models import (
    Appointment, AppointmentStatus, RecurrenceRule, RecurrenceStatus, Service, User, UserRole,
    WaitlistEntry, WaitlistStatus, STAFF_ROLES, clinic_now
)
from app.services.availability import SchedulingPolicy, get_dentist_or_404
from app.services.errors import (
    DuplicateBookingError, DuplicateWaitlistError, ForbiddenError,
    InvalidTransitionError, NotFoundError, SlotConflictError, ValidationError
)

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)

TRANSITIONS = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.CONFIRMED, AppointmentStatus.RESCHEDULED,
        AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.RESCHEDULED, AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.RESCHEDULED: {
        AppointmentStatus.CONFIRMED, AppointmentStatus.RESCHEDULED,
        AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}

# index name -> error raised when a concurrent writer trips it
_CONSTRAINT_ERRORS = {
    "uq_appointments_active_slot": SlotConflictError,
    "uq_appointments_patient_service_day": DuplicateBookingError,
    "uq_waitlist_active_entry": DuplicateWaitlistError,
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in TRANSITIONS[current]


def is_staff(user: User) -> bool:
    return user.role in STAFF_ROLES


def _commit(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        message = str(exc.orig)
        for constraint, error_cls in _CONSTRAINT_ERRORS.items():
            if constraint in message:
                raise error_cls() from exc
        raise


def _reject_past(appointment_date: date, appointment_time: Optional[time], now: Optional[datetime] = None) -> None:
    now = (now or clinic_now()).replace(tzinfo=None)
    if appointment_time is None:
        if appointment_date < now.date():
            raise ValidationError("Preferred date cannot be in the past")
        return
    if datetime.combine(appointment_date, appointment_time) < now:
        raise ValidationError("Cannot schedule appointments in the past")


# ================================
# GUARDS
# ================================

def slot_is_taken(
    db: Session,
    appointment_date: date,
    appointment_time: time,
    dentist_id: Optional[int] = None,
    exclude_id: Optional[int] = None,
) -> bool:
    """Same-slot membership: is (date, time[, dentist]) held by a non-cancelled appointment?"""
    query = db.query(Appointment.id).filter(
        Appointment.appointment_date == appointment_date,
        Appointment.appointment_time == appointment_time,
        Appointment.status != AppointmentStatus.CANCELLED,
    )
    if dentist_id is not None:
        query = query.filter(Appointment.dentist_id == dentist_id)
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.first() is not None


def has_same_day_service(
    db: Session,
    patient_id: int,
    service_id: Optional[int],
    appointment_date: date,
    exclude_id: Optional[int] = None,
) -> bool:
    if service_id is None:
        return False
    query = db.query(Appointment.id).filter(
        Appointment.patient_id == patient_id,
        Appointment.service_id == service_id,
        Appointment.appointment_date == appointment_date,
        Appointment.status != AppointmentStatus.CANCELLED,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.first() is not None


# ================================
# APPOINTMENTS
# ================================

def get_owned_appointment(db: Session, appointment_id: int, patient_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.patient_id == patient_id
    ).first()
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


def create_appointment(
    db: Session,
    patient: User,
    appointment_date: date,
    appointment_time: time,
    service_id: Optional[int] = None,
    dentist_id: Optional[int] = None,
    notes: Optional[str] = None,
    policy: Optional[SchedulingPolicy] = None,
    now: Optional[datetime] = None,
) -> Appointment:
    policy = policy or SchedulingPolicy.from_settings()
    _reject_past(appointment_date, appointment_time, now)

    if dentist_id is not None:
        get_dentist_or_404(db, dentist_id)

    duration = policy.default_duration
    if service_id is not None:
        service = db.query(Service).filter(Service.id == service_id).first()
        if not service:
            raise NotFoundError("Service not found")
        duration = service.duration or policy.default_duration

    if has_same_day_service(db, patient.id, service_id, appointment_date):
        raise DuplicateBookingError()
    if slot_is_taken(db, appointment_date, appointment_time, dentist_id):
        raise SlotConflictError()

    appointment = Appointment(
        patient_id=patient.id,
        dentist_id=dentist_id,
        service_id=service_id,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        duration=duration,
        status=AppointmentStatus.SCHEDULED,
        notes=notes,
    )
    db.add(appointment)
    _commit(db)
    db.refresh(appointment)

    logger.info("Appointment created: id=%s patient=%s", appointment.id, patient.id)
    return appointment


def list_appointments(
    db: Session,
    patient: User,
    status: Optional[AppointmentStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[Appointment]:
    query = db.query(Appointment).filter(Appointment.patient_id == patient.id)
    if status:
        query = query.filter(Appointment.status == status)
    return query.order_by(
        Appointment.appointment_date.desc(),
        Appointment.appointment_time.desc()
    ).offset(skip).limit(limit).all()


def reschedule_appointment(
    db: Session,
    patient: User,
    appointment_id: int,
    appointment_date: date,
    appointment_time: time,
    now: Optional[datetime] = None,
) -> Appointment:
    appointment = get_owned_appointment(db, appointment_id, patient.id)

    if not can_transition(appointment.status, AppointmentStatus.RESCHEDULED):
        raise InvalidTransitionError(f"Cannot reschedule a {appointment.status.value} appointment")
    _reject_past(appointment_date, appointment_time, now)

    if has_same_day_service(db, patient.id, appointment.service_id, appointment_date, exclude_id=appointment.id):
        raise DuplicateBookingError()
    if slot_is_taken(db, appointment_date, appointment_time, appointment.dentist_id, exclude_id=appointment.id):
        raise SlotConflictError()

    appointment.appointment_date = appointment_date
    appointment.appointment_time = appointment_time
    appointment.status = AppointmentStatus.RESCHEDULED
    appointment.reschedule_count = (appointment.reschedule_count or 0) + 1
    _commit(db)
    db.refresh(appointment)

    logger.info("Appointment rescheduled: id=%s patient=%s", appointment.id, patient.id)
    return appointment


def cancel_appointment(
    db: Session,
    user: User,
    appointment_id: int,
    reason: Optional[str] = None,
) -> Appointment:
    """Soft cancel. Owners cancel their own appointments; staff may cancel any."""
    query = db.query(Appointment).filter(Appointment.id == appointment_id)
    if not is_staff(user):
        query = query.filter(Appointment.patient_id == user.id)
    appointment = query.first()
    if not appointment:
        raise NotFoundError("Appointment not found")

    if appointment.status == AppointmentStatus.CANCELLED:
        raise InvalidTransitionError("Appointment is already cancelled")
    if not can_transition(appointment.status, AppointmentStatus.CANCELLED):
        raise InvalidTransitionError(f"Cannot cancel a {appointment.status.value} appointment")

    line = f"Cancellation reason: {reason or 'not specified'}"
    appointment.notes = f"{appointment.notes}\n{line}" if appointment.notes else line
    appointment.status = AppointmentStatus.CANCELLED
    appointment.cancelled_at = clinic_now()
    db.commit()
    db.refresh(appointment)

    logger.info("Appointment cancelled: id=%s by user=%s", appointment.id, user.id)
    return appointment


def confirm_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise NotFoundError("Appointment not found")
    if appointment.status == AppointmentStatus.CONFIRMED:
        return appointment
    if not can_transition(appointment.status, AppointmentStatus.CONFIRMED):
        raise InvalidTransitionError(f"Cannot confirm a {appointment.status.value} appointment")

    appointment.status = AppointmentStatus.CONFIRMED
    db.commit()
    db.refresh(appointment)
    logger.info("Appointment confirmed: id=%s", appointment.id)
    return appointment


def complete_appointment(db: Session, user: User, appointment_id: int) -> Tuple[Appointment, bool]:
    """
    Mark an appointment completed.

    Returns the appointment and whether this call changed it; completing an
    already completed appointment is a successful no-op.
    """
    if not is_staff(user) and user.role != UserRole.DENTIST:
        raise ForbiddenError("Insufficient permissions to complete appointment")

    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise NotFoundError("Appointment not found")

    if appointment.status == AppointmentStatus.CANCELLED:
        raise InvalidTransitionError("Cancelled appointments cannot be completed")
    if appointment.status == AppointmentStatus.COMPLETED:
        return appointment, False

    if user.role == UserRole.DENTIST and appointment.dentist is not None:
        if appointment.dentist.user_id != user.id:
            raise ForbiddenError("You can only complete appointments assigned to you")

    appointment.status = AppointmentStatus.COMPLETED
    appointment.completed_at = clinic_now()
    db.commit()
    db.refresh(appointment)

    logger.info("Appointment completed: id=%s by user=%s role=%s", appointment.id, user.id, user.role.value)
    return appointment, True


# ================================
# WAITLIST
# ================================

def create_waitlist_entry(
    db: Session,
    patient: User,
    preferred_date: date,
    preferred_time: Optional[time] = None,
    service_id: Optional[int] = None,
    dentist_id: Optional[int] = None,
    auto_book: bool = False,
    now: Optional[datetime] = None,
) -> WaitlistEntry:
    _reject_past(preferred_date, None, now)

    query = db.query(WaitlistEntry.id).filter(
        WaitlistEntry.patient_id == patient.id,
        WaitlistEntry.preferred_date == preferred_date,
        WaitlistEntry.status == WaitlistStatus.ACTIVE,
    )
    if service_id is None:
        query = query.filter(WaitlistEntry.service_id.is_(None))
    else:
        query = query.filter(WaitlistEntry.service_id == service_id)
    if query.first() is not None:
        raise DuplicateWaitlistError()

    entry = WaitlistEntry(
        patient_id=patient.id,
        preferred_date=preferred_date,
        preferred_time=preferred_time,
        service_id=service_id,
        dentist_id=dentist_id,
        auto_book=auto_book,
        status=WaitlistStatus.ACTIVE,
    )
    db.add(entry)
    _commit(db)
    db.refresh(entry)

    logger.info("Waitlist entry created: id=%s patient=%s", entry.id, patient.id)
    return entry


def list_waitlist(db: Session, patient: User, status: WaitlistStatus = WaitlistStatus.ACTIVE) -> List[WaitlistEntry]:
    return db.query(WaitlistEntry).filter(
        WaitlistEntry.patient_id == patient.id,
        WaitlistEntry.status == status
    ).order_by(WaitlistEntry.preferred_date.asc(), WaitlistEntry.created_at.asc()).all()


def remove_waitlist_entry(db: Session, patient: User, entry_id: int) -> WaitlistEntry:
    entry = db.query(WaitlistEntry).filter(
        WaitlistEntry.id == entry_id,
        WaitlistEntry.patient_id == patient.id
    ).first()
    if not entry:
        raise NotFoundError("Waitlist entry not found")

    entry.status = WaitlistStatus.CANCELLED
    db.commit()
    logger.info("Waitlist entry cancelled: id=%s patient=%s", entry.id, patient.id)
    return entry


# ================================
# RECURRENCE RULES (data contract only, never expanded into appointments)
# ================================

def get_recurrence_rule(db: Session, rule_id: int) -> RecurrenceRule:
    rule = db.query(RecurrenceRule).filter(RecurrenceRule.id == rule_id).first()
    if not rule:
        raise NotFoundError("Recurring appointment not found")
    return rule


def create_recurrence_rule(db: Session, staff_user: User, **fields) -> RecurrenceRule:
    patient = db.query(User).filter(
        User.id == fields["patient_id"],
        User.role == UserRole.PATIENT
    ).first()
    if not patient:
        raise NotFoundError("Patient not found")
    if fields.get("dentist_id") is not None:
        get_dentist_or_404(db, fields["dentist_id"])

    rule = RecurrenceRule(**fields, status=RecurrenceStatus.ACTIVE, created_by=staff_user.id)
    db.add(rule)
    db.commit()
    db.refresh(rule)

    logger.info("Recurring appointment created: id=%s patient=%s by=%s", rule.id, patient.id, staff_user.id)
    return rule


def list_recurrence_rules(
    db: Session,
    user: User,
    status: Optional[RecurrenceStatus] = RecurrenceStatus.ACTIVE,
    patient_id: Optional[int] = None,
) -> List[RecurrenceRule]:
    query = db.query(RecurrenceRule)
    if not is_staff(user):
        query = query.filter(RecurrenceRule.patient_id == user.id)
    elif patient_id is not None:
        query = query.filter(RecurrenceRule.patient_id == patient_id)
    if status:
        query = query.filter(RecurrenceRule.status == status)
    return query.order_by(RecurrenceRule.start_date.asc()).all()


def update_recurrence_rule(db: Session, rule_id: int, changes: dict) -> RecurrenceRule:
    changes = {field: value for field, value in changes.items() if value is not None or field == "notes"}
    if not changes:
        raise ValidationError("No fields to update")

    rule = get_recurrence_rule(db, rule_id)
    end_date = changes.get("end_date")
    if end_date is not None and end_date < rule.start_date:
        raise ValidationError("end_date cannot be before start_date")

    for field, value in changes.items():
        setattr(rule, field, value)
    db.commit()
    db.refresh(rule)

    logger.info("Recurring appointment updated: id=%s fields=%s", rule.id, sorted(changes))
    return rule


def delete_recurrence_rule(db: Session, rule_id: int) -> int:
    """Hard delete, unlike appointments which are only ever soft-cancelled."""
    rule = get_recurrence_rule(db, rule_id)
    patient_id = rule.patient_id
    db.delete(rule)
    db.commit()
    logger.info("Recurring appointment deleted: id=%s", rule_id)
    return patient_id

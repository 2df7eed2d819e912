"""
Availability Calculator.

Turns a day's open hours plus the bookings already held that day into the list
of free slot start times. The pure helpers at the top carry the algorithm; the
functions at the bottom load the inputs from the database.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, time
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.models.all_models import Appointment, AppointmentStatus, Dentist, Service
from app.services.errors import NotFoundError

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class OpenHours:
    start: time
    end: time

    @classmethod
    def from_dict(cls, raw: Optional[dict]) -> Optional["OpenHours"]:
        if not raw or not raw.get("start") or not raw.get("end"):
            return None
        return cls(start=parse_hhmm(raw["start"]), end=parse_hhmm(raw["end"]))

    def as_dict(self) -> Dict[str, str]:
        return {"start": format_hhmm(self.start), "end": format_hhmm(self.end)}


@dataclass(frozen=True)
class Booking:
    start: time
    duration: int
    status: AppointmentStatus = AppointmentStatus.SCHEDULED


@dataclass(frozen=True)
class SchedulingPolicy:
    """Slot granularity and fallback duration, declared once."""

    slot_minutes: int = 30
    default_duration: int = 30

    @classmethod
    def from_settings(cls) -> "SchedulingPolicy":
        return cls(slot_minutes=settings.SLOT_MINUTES, default_duration=settings.DEFAULT_DURATION_MINUTES)


@dataclass
class DaySlots:
    date: date
    weekday: str
    slots: List[str] = field(default_factory=list)
    business_hours: Optional[OpenHours] = None
    duration: int = 30

    @property
    def closed(self) -> bool:
        return self.business_hours is None

    @property
    def available(self) -> bool:
        return bool(self.slots)

    @property
    def message(self) -> Optional[str]:
        if self.closed:
            return f"No business hours for {self.weekday}"
        if not self.slots:
            return f"No free slots left on {self.date.isoformat()}"
        return None


def parse_hhmm(value: str) -> time:
    hour, minute = value.split(":")[:2]
    return time(int(hour), int(minute))


def format_hhmm(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def hours_for_day(day: date, schedule: Optional[dict], default_schedule: Optional[dict] = None) -> Optional[OpenHours]:
    """Open hours for ``day``: the provider's schedule when it has one, else the clinic default."""
    effective = schedule if schedule else (default_schedule if default_schedule is not None else settings.BUSINESS_HOURS)
    return OpenHours.from_dict(effective.get(weekday_name(day)))


def candidate_starts(hours: OpenHours, slot_minutes: int) -> List[int]:
    # a candidate is valid while it starts before closing; the visit may run past it
    return list(range(to_minutes(hours.start), to_minutes(hours.end), slot_minutes))


def booked_minutes(bookings: Iterable[Booking], candidates: List[int], default_duration: int) -> set:
    """Candidates whose start lies within [booking.start, booking.start + duration)."""
    taken = set()
    for booking in bookings:
        if booking.status == AppointmentStatus.CANCELLED:
            continue
        begin = to_minutes(booking.start)
        end = begin + (booking.duration or default_duration)
        taken.update(minute for minute in candidates if begin <= minute < end)
    return taken


def free_slots(hours: Optional[OpenHours], bookings: Iterable[Booking], policy: SchedulingPolicy) -> List[str]:
    if hours is None:
        return []
    candidates = candidate_starts(hours, policy.slot_minutes)
    taken = booked_minutes(bookings, candidates, policy.default_duration)
    return [f"{minute // 60:02d}:{minute % 60:02d}" for minute in candidates if minute not in taken]


# ================================
# DATABASE-BACKED LOOKUPS
# ================================

def get_dentist_or_404(db: Session, dentist_id: int) -> Dentist:
    dentist = db.query(Dentist).filter(Dentist.id == dentist_id).first()
    if not dentist:
        raise NotFoundError("Dentist not found")
    return dentist


def resolve_duration(db: Session, service_id: Optional[int], policy: SchedulingPolicy) -> int:
    if service_id is None:
        return policy.default_duration
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service or not service.duration:
        return policy.default_duration
    return service.duration


def bookings_for_day(db: Session, day: date, dentist_id: Optional[int] = None) -> List[Appointment]:
    query = db.query(Appointment).filter(
        Appointment.appointment_date == day,
        Appointment.status != AppointmentStatus.CANCELLED,
    )
    if dentist_id is not None:
        query = query.filter(Appointment.dentist_id == dentist_id)
    return query.order_by(Appointment.appointment_time).all()


def get_day_slots(
    db: Session,
    day: date,
    dentist_id: Optional[int] = None,
    service_id: Optional[int] = None,
    policy: Optional[SchedulingPolicy] = None,
) -> DaySlots:
    policy = policy or SchedulingPolicy.from_settings()
    schedule = get_dentist_or_404(db, dentist_id).availability_schedule if dentist_id is not None else None

    result = DaySlots(
        date=day,
        weekday=weekday_name(day),
        business_hours=hours_for_day(day, schedule),
        duration=resolve_duration(db, service_id, policy),
    )
    if result.closed:
        return result

    bookings = [
        Booking(start=appt.appointment_time, duration=appt.duration, status=appt.status)
        for appt in bookings_for_day(db, day, dentist_id)
    ]
    result.slots = free_slots(result.business_hours, bookings, policy)
    logger.debug("Computed %d free slots for %s (dentist=%s)", len(result.slots), day, dentist_id)
    return result


def get_dentist_availability(
    db: Session,
    dentist_id: int,
    day: Optional[date] = None,
    policy: Optional[SchedulingPolicy] = None,
) -> dict:
    policy = policy or SchedulingPolicy.from_settings()
    dentist = get_dentist_or_404(db, dentist_id)
    schedule = dentist.availability_schedule or settings.BUSINESS_HOURS

    available_slots: List[dict] = []
    booked_slots: List[dict] = []
    if day is not None:
        appointments = bookings_for_day(db, day, dentist.id)
        booked_slots = [
            {"time": format_hhmm(appt.appointment_time), "duration": appt.duration, "status": appt.status}
            for appt in appointments
        ]
        hours = hours_for_day(day, dentist.availability_schedule)
        bookings = [Booking(appt.appointment_time, appt.duration, appt.status) for appt in appointments]
        available_slots = [
            {"time": slot, "duration": policy.slot_minutes} for slot in free_slots(hours, bookings, policy)
        ]

    return {
        "dentist_id": dentist.id,
        "date": day,
        "availability_schedule": schedule,
        "uses_default_schedule": not dentist.availability_schedule,
        "available_slots": available_slots,
        "booked_slots": booked_slots,
        "total_available_slots": len(available_slots),
        "total_booked_slots": len(booked_slots),
    }

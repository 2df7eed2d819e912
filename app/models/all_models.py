# app/models/all_models.py
from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, Text, Integer, JSON, Enum, Date, Time,
    Index, UniqueConstraint, func, text
)
from sqlalchemy.orm import declarative_base, relationship
import enum
from datetime import datetime
import pytz

from app.config import settings

Base = declarative_base()

# Timezone setup
CLINIC_TZ = pytz.timezone(settings.TIMEZONE)

def clinic_now():
    return datetime.now(CLINIC_TZ)

def _values(enum_cls):
    # persist the lowercase values, the partial indexes below compare against them
    return [member.value for member in enum_cls]

# Enums
class UserRole(str, enum.Enum):
    PATIENT = "patient"
    DENTIST = "dentist"
    STAFF = "staff"
    ADMIN = "admin"

STAFF_ROLES = (UserRole.STAFF, UserRole.ADMIN)

class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    RESCHEDULED = "rescheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class WaitlistStatus(str, enum.Enum):
    ACTIVE = "active"
    NOTIFIED = "notified"
    CONVERTED = "converted"
    CANCELLED = "cancelled"

class UrgentRequestStatus(str, enum.Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"

class RecurrencePattern(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"

class RecurrenceStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"

class TriageTier(str, enum.Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    URGENT = "urgent"

class ReminderChannel(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"

# ================================
# IDENTITY (owned by the auth collaborator)
# ================================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    phone = Column(String(20))
    role = Column(Enum(UserRole, name="user_role", values_callable=_values), nullable=False, default=UserRole.PATIENT)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=clinic_now, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    appointments = relationship("Appointment", back_populates="patient")
    dentist_profile = relationship("Dentist", back_populates="user", uselist=False)

# ================================
# PROVIDERS & SERVICES
# ================================

class Dentist(Base):
    __tablename__ = "dentists"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True)
    name = Column(String(200), nullable=False)
    specialization = Column(String(100))
    availability_schedule = Column(JSON)  # {"monday": {"start": "09:00", "end": "17:00"}, "sunday": null, ...}
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=clinic_now, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    user = relationship("User", back_populates="dentist_profile")
    appointments = relationship("Appointment", back_populates="dentist")

class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    duration = Column(Integer, default=30)  # minutes
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=clinic_now, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    appointments = relationship("Appointment", back_populates="service")

# ================================
# APPOINTMENT & BOOKING SYSTEM
# ================================

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    dentist_id = Column(Integer, ForeignKey("dentists.id"))
    service_id = Column(Integer, ForeignKey("services.id"))
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(Time, nullable=False)
    duration = Column(Integer, nullable=False, default=30)
    status = Column(
        Enum(AppointmentStatus, name="appointment_status", values_callable=_values),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    notes = Column(Text)
    reschedule_count = Column(Integer, nullable=False, default=0)
    cancelled_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=clinic_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime(timezone=True), default=clinic_now, onupdate=clinic_now, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    patient = relationship("User", back_populates="appointments")
    dentist = relationship("Dentist", back_populates="appointments")
    service = relationship("Service", back_populates="appointments")
    reminder_dispatches = relationship("ReminderDispatch", back_populates="appointment", cascade="all, delete-orphan")

    __table_args__ = (
        # one live booking per slot and provider; rows without a provider share the 0 bucket
        Index(
            "uq_appointments_active_slot",
            appointment_date,
            appointment_time,
            func.coalesce(dentist_id, 0),
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
        Index(
            "uq_appointments_patient_service_day",
            patient_id,
            appointment_date,
            func.coalesce(service_id, 0),
            unique=True,
            postgresql_where=text("status != 'cancelled' AND service_id IS NOT NULL"),
            sqlite_where=text("status != 'cancelled' AND service_id IS NOT NULL"),
        ),
    )

class WaitlistEntry(Base):
    __tablename__ = "waitlist"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    preferred_date = Column(Date, nullable=False)
    preferred_time = Column(Time)
    service_id = Column(Integer, ForeignKey("services.id"))
    dentist_id = Column(Integer, ForeignKey("dentists.id"))
    auto_book = Column(Boolean, nullable=False, default=False)
    status = Column(
        Enum(WaitlistStatus, name="waitlist_status", values_callable=_values),
        nullable=False,
        default=WaitlistStatus.ACTIVE,
    )
    notified_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=clinic_now, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    service = relationship("Service")

    __table_args__ = (
        Index(
            "uq_waitlist_active_entry",
            patient_id,
            preferred_date,
            func.coalesce(service_id, 0),
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

class UrgentRequest(Base):
    __tablename__ = "urgent_appointments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    preferred_date = Column(Date)
    preferred_time = Column(Time)
    service_id = Column(Integer, ForeignKey("services.id"))
    urgency_reason = Column(Text, nullable=False)
    symptoms = Column(Text)
    priority_score = Column(Integer, nullable=False)
    status = Column(
        Enum(UrgentRequestStatus, name="urgent_request_status", values_callable=_values),
        nullable=False,
        default=UrgentRequestStatus.PENDING,
    )
    created_at = Column(DateTime(timezone=True), default=clinic_now, server_default=text("CURRENT_TIMESTAMP"))

class RecurrenceRule(Base):
    __tablename__ = "recurring_appointments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"))
    dentist_id = Column(Integer, ForeignKey("dentists.id"))
    recurrence_pattern = Column(Enum(RecurrencePattern, name="recurrence_pattern", values_callable=_values), nullable=False)
    recurrence_interval = Column(Integer, nullable=False, default=1)
    day_of_week = Column(Integer)   # 0-6, weekly/biweekly
    day_of_month = Column(Integer)  # 1-31, monthly
    start_date = Column(Date, nullable=False)
    end_date = Column(Date)
    time_slot = Column(Time, nullable=False)
    duration = Column(Integer, nullable=False, default=30)
    notes = Column(Text)
    status = Column(
        Enum(RecurrenceStatus, name="recurrence_status", values_callable=_values),
        nullable=False,
        default=RecurrenceStatus.ACTIVE,
    )
    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime(timezone=True), default=clinic_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime(timezone=True), default=clinic_now, onupdate=clinic_now, server_default=text("CURRENT_TIMESTAMP"))

# ================================
# TRIAGE
# ================================

class SymptomAssessment(Base):
    __tablename__ = "symptom_assessments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"))
    session_id = Column(String(64), nullable=False, index=True)
    symptoms = Column(JSON, nullable=False)
    urgency_score = Column(Integer, nullable=False)
    red_flag = Column(Boolean, nullable=False, default=False)
    recommendations = Column(Text, nullable=False)
    triage_result = Column(Enum(TriageTier, name="triage_tier", values_callable=_values), nullable=False)
    created_at = Column(DateTime(timezone=True), default=clinic_now, server_default=text("CURRENT_TIMESTAMP"))

# ================================
# REMINDERS
# ================================

class ReminderDispatch(Base):
    __tablename__ = "reminder_dispatches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False)
    channel = Column(Enum(ReminderChannel, name="reminder_channel", values_callable=_values), nullable=False)
    reminder_window = Column(Integer, nullable=False)  # hours before the appointment
    dispatch_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=clinic_now, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    appointment = relationship("Appointment", back_populates="reminder_dispatches")

    __table_args__ = (
        UniqueConstraint("appointment_id", "channel", "reminder_window", "dispatch_date", name="uq_reminder_dispatch"),
    )

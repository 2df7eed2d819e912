from datetime import date, datetime, time, timedelta

from app.models.all_models import Appointment, AppointmentStatus, ReminderChannel, clinic_now
from app.services.notifications import due_reminders, record_reminder_dispatch
from conftest import auth_headers

NOW = datetime(2030, 1, 7, 9, 0)


def add_appointment(session, patient, when: datetime, status=AppointmentStatus.SCHEDULED) -> Appointment:
    appointment = Appointment(
        patient_id=patient.id,
        appointment_date=when.date(),
        appointment_time=when.time(),
        duration=30,
        status=status,
    )
    session.add(appointment)
    session.commit()
    return appointment


def test_due_reminders_window(db_session, patient, other_patient):
    soon = add_appointment(db_session, patient, NOW + timedelta(hours=23))
    add_appointment(db_session, other_patient, NOW + timedelta(hours=25))
    add_appointment(db_session, patient, NOW + timedelta(hours=2), status=AppointmentStatus.CANCELLED)
    add_appointment(db_session, other_patient, NOW - timedelta(hours=1))

    due = due_reminders(db_session, hours_before=24, now=NOW)

    assert [appt.id for appt in due] == [soon.id]


def test_dispatch_is_recorded_once_per_day(db_session, patient):
    appointment = add_appointment(db_session, patient, NOW + timedelta(hours=3))

    first = record_reminder_dispatch(db_session, appointment.id, ReminderChannel.EMAIL, 24, dispatch_date=NOW.date())
    second = record_reminder_dispatch(db_session, appointment.id, ReminderChannel.EMAIL, 24, dispatch_date=NOW.date())

    assert first.id == second.id
    assert due_reminders(db_session, hours_before=24, channel=ReminderChannel.EMAIL, now=NOW) == []
    # other channels and windows are tracked separately
    assert len(due_reminders(db_session, hours_before=24, channel=ReminderChannel.SMS, now=NOW)) == 1
    assert len(due_reminders(db_session, hours_before=4, channel=ReminderChannel.EMAIL, now=NOW)) == 1


def test_next_day_dispatch_is_a_new_record(db_session, patient):
    appointment = add_appointment(db_session, patient, NOW + timedelta(hours=30))

    today = record_reminder_dispatch(db_session, appointment.id, ReminderChannel.SMS, 48, dispatch_date=date(2030, 1, 7))
    tomorrow = record_reminder_dispatch(db_session, appointment.id, ReminderChannel.SMS, 48, dispatch_date=date(2030, 1, 8))

    assert today.id != tomorrow.id


# ================================
# API
# ================================

def test_staff_reads_due_reminders_and_records_dispatch(client, db_session, patient, staff):
    start = (clinic_now().replace(tzinfo=None) + timedelta(hours=2)).replace(second=0, microsecond=0)
    appointment = add_appointment(db_session, patient, start)
    headers = auth_headers(staff)

    due = client.get("/api/v1/reminders/due", headers=headers).json()
    assert [item["appointment_id"] for item in due] == [appointment.id]
    assert due[0]["patient_id"] == patient.id

    created = client.post(
        "/api/v1/reminders/dispatches",
        json={"appointment_id": appointment.id, "channel": "email", "hours_before": 24},
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["reminder_window"] == 24

    again = client.post(
        "/api/v1/reminders/dispatches",
        json={"appointment_id": appointment.id, "channel": "email", "hours_before": 24},
        headers=headers,
    )
    assert again.json()["id"] == created.json()["id"]
    assert client.get("/api/v1/reminders/due", headers=headers).json() == []


def test_dispatch_for_unknown_appointment(client, staff):
    response = client.post("/api/v1/reminders/dispatches", json={"appointment_id": 999}, headers=auth_headers(staff))
    assert response.status_code == 404


def test_reminders_are_staff_only(client, patient):
    assert client.get("/api/v1/reminders/due", headers=auth_headers(patient)).status_code == 403

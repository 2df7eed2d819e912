from datetime import date, time, timedelta

import pytest
from fastapi.testclient import TestClient

from app.models.all_models import Appointment, AppointmentStatus, WaitlistEntry, WaitlistStatus
from app.services import booking
from app.services.errors import DuplicateBookingError, DuplicateWaitlistError, SlotConflictError
from app.utils.auth import create_access_token
from conftest import auth_headers, make_dentist, next_weekday
from main import create_app

URL = "/api/v1/appointments"


def book(client, user, day, at="10:00", **extra):
    payload = {"appointment_date": day.isoformat(), "appointment_time": at, **extra}
    return client.post(URL, json=payload, headers=auth_headers(user))


# ================================
# CREATE
# ================================

def test_create_appointment(client, patient, dentist, service, monday):
    response = book(client, patient, monday, dentist_id=dentist.id, service_id=service.id, notes="First visit")

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "scheduled"
    assert body["duration"] == 45
    assert body["patient_id"] == patient.id
    assert body["appointment_time"] == "10:00:00"
    assert body["reschedule_count"] == 0


def test_create_without_service_uses_default_duration(client, patient, monday):
    response = book(client, patient, monday)
    assert response.json()["duration"] == 30


def test_same_slot_twice_conflicts(client, patient, other_patient, dentist, monday):
    assert book(client, patient, monday, dentist_id=dentist.id).status_code == 201

    response = book(client, other_patient, monday, dentist_id=dentist.id)

    assert response.status_code == 409
    assert response.json()["detail"] == "This time slot is already booked"


def test_same_slot_with_different_dentists(client, patient, other_patient, dentist, other_dentist, monday):
    assert book(client, patient, monday, dentist_id=dentist.id).status_code == 201
    assert book(client, other_patient, monday, dentist_id=other_dentist.id).status_code == 201


def test_duplicate_service_same_day_conflicts(client, patient, service, monday):
    assert book(client, patient, monday, at="09:00", service_id=service.id).status_code == 201

    response = book(client, patient, monday, at="14:00", service_id=service.id)

    assert response.status_code == 409
    assert response.json()["detail"] == "You already have an appointment for this service on this date"


def test_cancelled_appointment_frees_slot_and_service(client, patient, service, monday):
    first = book(client, patient, monday, service_id=service.id).json()
    client.delete(f"{URL}/{first['id']}", headers=auth_headers(patient))

    assert book(client, patient, monday, service_id=service.id).status_code == 201


def test_past_appointment_is_rejected(client, patient):
    response = book(client, patient, date.today() - timedelta(days=1))
    assert response.status_code == 422


def test_unknown_service_is_rejected(client, patient, monday):
    response = book(client, patient, monday, service_id=999)
    assert response.status_code == 404


def test_invalid_time_is_rejected(client, patient, monday):
    response = book(client, patient, monday, at="25:99")
    assert response.status_code == 422


@pytest.mark.parametrize("at", ["10:00:01", "10:00:00.5", "10:00+02:00", "10:00Z"])
def test_time_must_be_a_naive_whole_minute(client, patient, monday, at):
    response = book(client, patient, monday, at=at)
    assert response.status_code == 422


def test_seconds_cannot_sneak_into_a_booked_slot(client, db_session, patient, other_patient, dentist, monday):
    assert book(client, patient, monday, at="09:00", dentist_id=dentist.id).status_code == 201

    response = book(client, other_patient, monday, at="09:00:01", dentist_id=dentist.id)

    assert response.status_code == 422
    assert db_session.query(Appointment).filter_by(dentist_id=dentist.id).count() == 1


def test_only_patients_book(client, staff, monday):
    assert book(client, staff, monday).status_code == 403


def test_booking_requires_a_token(client, monday):
    response = client.post(URL, json={"appointment_date": monday.isoformat(), "appointment_time": "10:00"})

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_expired_token_is_rejected(client, patient):
    token = create_access_token({"sub": str(patient.id)}, expires_delta=timedelta(minutes=-5))

    response = client.get(URL, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Token has expired"


def test_garbage_token_is_rejected(client):
    response = client.get(URL, headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


# ================================
# READ
# ================================

def test_list_and_get_own_appointments(client, patient, other_patient, monday):
    mine = book(client, patient, monday).json()
    book(client, other_patient, monday, at="11:00")

    listed = client.get(URL, headers=auth_headers(patient)).json()
    assert [item["id"] for item in listed] == [mine["id"]]

    assert client.get(f"{URL}/{mine['id']}", headers=auth_headers(patient)).status_code == 200
    assert client.get(f"{URL}/{mine['id']}", headers=auth_headers(other_patient)).status_code == 404


def test_list_filters_by_status(client, patient, monday):
    kept = book(client, patient, monday, at="09:00").json()
    dropped = book(client, patient, monday, at="11:00").json()
    client.delete(f"{URL}/{dropped['id']}", headers=auth_headers(patient))

    listed = client.get(URL, params={"status": "scheduled"}, headers=auth_headers(patient)).json()
    assert [item["id"] for item in listed] == [kept["id"]]


# ================================
# RESCHEDULE
# ================================

def test_reschedule(client, patient, dentist, monday):
    created = book(client, patient, monday, dentist_id=dentist.id).json()
    new_day = monday + timedelta(days=1)

    response = client.put(
        f"{URL}/{created['id']}/reschedule",
        json={"appointment_date": new_day.isoformat(), "appointment_time": "11:30"},
        headers=auth_headers(patient),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "rescheduled"
    assert body["appointment_date"] == new_day.isoformat()
    assert body["appointment_time"] == "11:30:00"
    assert body["reschedule_count"] == 1


def test_reschedule_into_own_slot_is_allowed(client, patient, monday):
    created = book(client, patient, monday).json()

    response = client.put(
        f"{URL}/{created['id']}/reschedule",
        json={"appointment_date": monday.isoformat(), "appointment_time": "10:00"},
        headers=auth_headers(patient),
    )
    assert response.status_code == 200


def test_reschedule_into_taken_slot_conflicts(client, patient, other_patient, dentist, monday):
    book(client, other_patient, monday, at="15:00", dentist_id=dentist.id)
    created = book(client, patient, monday, dentist_id=dentist.id).json()

    response = client.put(
        f"{URL}/{created['id']}/reschedule",
        json={"appointment_date": monday.isoformat(), "appointment_time": "15:00"},
        headers=auth_headers(patient),
    )
    assert response.status_code == 409


def test_reschedule_rejects_seconds_and_offsets(client, patient, monday):
    created = book(client, patient, monday).json()

    for at in ("11:30:15", "11:30+01:00"):
        response = client.put(
            f"{URL}/{created['id']}/reschedule",
            json={"appointment_date": monday.isoformat(), "appointment_time": at},
            headers=auth_headers(patient),
        )
        assert response.status_code == 422


def test_reschedule_onto_a_day_with_the_same_service(client, patient, service, monday):
    book(client, patient, monday, at="09:00", service_id=service.id)
    later = book(client, patient, monday + timedelta(days=1), at="09:00", service_id=service.id).json()

    response = client.put(
        f"{URL}/{later['id']}/reschedule",
        json={"appointment_date": monday.isoformat(), "appointment_time": "14:00"},
        headers=auth_headers(patient),
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "You already have an appointment for this service on this date"


def test_reschedule_someone_elses_appointment(client, patient, other_patient, monday):
    created = book(client, patient, monday).json()

    response = client.put(
        f"{URL}/{created['id']}/reschedule",
        json={"appointment_date": monday.isoformat(), "appointment_time": "12:00"},
        headers=auth_headers(other_patient),
    )
    assert response.status_code == 404


def test_reschedule_cancelled_appointment(client, patient, monday):
    created = book(client, patient, monday).json()
    client.delete(f"{URL}/{created['id']}", headers=auth_headers(patient))

    response = client.put(
        f"{URL}/{created['id']}/reschedule",
        json={"appointment_date": monday.isoformat(), "appointment_time": "12:00"},
        headers=auth_headers(patient),
    )
    assert response.status_code == 409


# ================================
# CANCEL
# ================================

def test_cancel_appends_reason(client, db_session, patient, monday):
    created = book(client, patient, monday, notes="Bring x-rays").json()

    response = client.delete(f"{URL}/{created['id']}", params={"reason": "travelling"}, headers=auth_headers(patient))

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    stored = db_session.get(Appointment, created["id"], populate_existing=True)
    assert stored.status == AppointmentStatus.CANCELLED
    assert stored.notes == "Bring x-rays\nCancellation reason: travelling"
    assert stored.cancelled_at is not None


def test_cancel_without_reason(client, db_session, patient, monday):
    created = book(client, patient, monday).json()
    client.delete(f"{URL}/{created['id']}", headers=auth_headers(patient))

    stored = db_session.get(Appointment, created["id"], populate_existing=True)
    assert stored.notes == "Cancellation reason: not specified"


def test_cancel_is_irreversible(client, patient, staff, monday):
    created = book(client, patient, monday).json()
    client.delete(f"{URL}/{created['id']}", headers=auth_headers(patient))

    assert client.delete(f"{URL}/{created['id']}", headers=auth_headers(patient)).status_code == 409
    assert client.put(f"{URL}/{created['id']}/confirm", headers=auth_headers(staff)).status_code == 409


def test_cancel_someone_elses_appointment(client, patient, other_patient, monday):
    created = book(client, patient, monday).json()
    assert client.delete(f"{URL}/{created['id']}", headers=auth_headers(other_patient)).status_code == 404


def test_staff_can_cancel_any_appointment(client, patient, staff, monday):
    created = book(client, patient, monday).json()
    assert client.delete(f"{URL}/{created['id']}", headers=auth_headers(staff)).status_code == 200


# ================================
# CONFIRM / COMPLETE
# ================================

def test_staff_confirms(client, patient, staff, monday):
    created = book(client, patient, monday).json()

    response = client.put(f"{URL}/{created['id']}/confirm", headers=auth_headers(staff))

    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"
    assert client.put(f"{URL}/{created['id']}/confirm", headers=auth_headers(patient)).status_code == 403


def test_complete_then_complete_again_is_a_no_op(client, patient, staff, monday):
    created = book(client, patient, monday).json()

    first = client.put(f"{URL}/{created['id']}/complete", headers=auth_headers(staff))
    second = client.put(f"{URL}/{created['id']}/complete", headers=auth_headers(staff))

    assert first.status_code == 200
    assert first.json()["message"] == "Appointment marked as completed"
    assert first.json()["appointment"]["status"] == "completed"
    assert second.status_code == 200
    assert second.json()["message"] == "Appointment already completed"


def test_complete_cancelled_fails(client, patient, staff, monday):
    created = book(client, patient, monday).json()
    client.delete(f"{URL}/{created['id']}", headers=auth_headers(patient))

    response = client.put(f"{URL}/{created['id']}/complete", headers=auth_headers(staff))
    assert response.status_code == 409


def test_completed_cannot_be_cancelled(client, patient, staff, monday):
    created = book(client, patient, monday).json()
    client.put(f"{URL}/{created['id']}/complete", headers=auth_headers(staff))

    assert client.delete(f"{URL}/{created['id']}", headers=auth_headers(patient)).status_code == 409


def test_patient_cannot_complete(client, patient, monday):
    created = book(client, patient, monday).json()
    assert client.put(f"{URL}/{created['id']}/complete", headers=auth_headers(patient)).status_code == 403


def test_assigned_dentist_completes(client, db_session, patient, dentist, other_dentist, monday):
    created = book(client, patient, monday, dentist_id=dentist.id).json()

    assert client.put(f"{URL}/{created['id']}/complete", headers=auth_headers(other_dentist.user)).status_code == 403
    assert client.put(f"{URL}/{created['id']}/complete", headers=auth_headers(dentist.user)).status_code == 200


def test_complete_unknown_appointment(client, staff):
    assert client.put(f"{URL}/999/complete", headers=auth_headers(staff)).status_code == 404


# ================================
# STORE-LEVEL GUARDS
# ================================

def test_slot_index_rejects_a_concurrent_winner(db_session, patient, other_patient, dentist, monday):
    booking.create_appointment(db_session, patient, monday, time(10, 0), dentist_id=dentist.id)

    # a second writer that skipped the pre-check
    db_session.add(Appointment(
        patient_id=other_patient.id, dentist_id=dentist.id,
        appointment_date=monday, appointment_time=time(10, 0), duration=30,
        status=AppointmentStatus.SCHEDULED,
    ))
    with pytest.raises(SlotConflictError):
        booking._commit(db_session)


def test_service_index_rejects_a_concurrent_duplicate(db_session, patient, service, monday):
    booking.create_appointment(db_session, patient, monday, time(9, 0), service_id=service.id)

    db_session.add(Appointment(
        patient_id=patient.id, service_id=service.id,
        appointment_date=monday, appointment_time=time(13, 0), duration=45,
        status=AppointmentStatus.SCHEDULED,
    ))
    with pytest.raises(DuplicateBookingError):
        booking._commit(db_session)


def test_waitlist_index_rejects_a_concurrent_duplicate(db_session, patient, service, monday):
    booking.create_waitlist_entry(db_session, patient, monday, service_id=service.id)

    db_session.add(WaitlistEntry(
        patient_id=patient.id, service_id=service.id,
        preferred_date=monday, status=WaitlistStatus.ACTIVE,
    ))
    with pytest.raises(DuplicateWaitlistError):
        booking._commit(db_session)


def test_cancelled_rows_do_not_hold_the_slot_index(db_session, patient, other_patient, dentist, monday):
    first = booking.create_appointment(db_session, patient, monday, time(10, 0), dentist_id=dentist.id)
    booking.cancel_appointment(db_session, patient, first.id)

    second = booking.create_appointment(db_session, other_patient, monday, time(10, 0), dentist_id=dentist.id)
    assert second.status == AppointmentStatus.SCHEDULED


# ================================
# NOTIFICATIONS
# ================================

class RecordingNotifier:
    def __init__(self):
        self.events = []

    def send(self, user_id, event, payload):
        self.events.append((user_id, event, payload["appointment_id"]))


class BrokenNotifier:
    def send(self, user_id, event, payload):
        raise RuntimeError("SMTP relay unreachable")


def test_state_changes_notify_the_patient(database, patient, monday):
    notifier = RecordingNotifier()
    with TestClient(create_app(database=database, notifier=notifier)) as client:
        created = book(client, patient, monday).json()
        client.delete(f"{URL}/{created['id']}", headers=auth_headers(patient))

    assert notifier.events == [
        (patient.id, "appointment.created", created["id"]),
        (patient.id, "appointment.cancelled", created["id"]),
    ]


def test_notifier_failure_does_not_fail_the_booking(database, db_session, patient, monday):
    with TestClient(create_app(database=database, notifier=BrokenNotifier())) as client:
        response = book(client, patient, monday)

    assert response.status_code == 201
    assert db_session.get(Appointment, response.json()["id"]) is not None


def test_dentist_can_complete_unassigned_appointment(client, db_session, patient):
    dentist = make_dentist(db_session, "floating@example.com")
    created = book(client, patient, next_weekday(1)).json()

    assert client.put(f"{URL}/{created['id']}/complete", headers=auth_headers(dentist.user)).status_code == 200

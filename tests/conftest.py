from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from app.database import Database
from app.models.all_models import Dentist, Service, User, UserRole
from app.utils.auth import create_access_token
from main import create_app

MONDAY, FRIDAY, SATURDAY = 0, 4, 5


def next_weekday(weekday: int, weeks_ahead: int = 1) -> date:
    """A date on ``weekday`` at least a week from today, so it is never in the past."""
    today = date.today()
    return today + timedelta(days=(weekday - today.weekday()) % 7 + 7 * weeks_ahead)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


def make_user(session, email: str, role: UserRole = UserRole.PATIENT) -> User:
    user = User(email=email, first_name=email.split("@")[0].title(), last_name="Test", role=role, is_active=True)
    session.add(user)
    session.commit()
    return user


def make_dentist(session, email: str, schedule=None) -> Dentist:
    user = make_user(session, email, UserRole.DENTIST)
    dentist = Dentist(user_id=user.id, name=f"Dr. {user.first_name}", availability_schedule=schedule)
    session.add(dentist)
    session.commit()
    return dentist


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def client(database):
    with TestClient(create_app(database=database)) as test_client:
        yield test_client


@pytest.fixture
def patient(db_session):
    return make_user(db_session, "patient@example.com")


@pytest.fixture
def other_patient(db_session):
    return make_user(db_session, "other@example.com")


@pytest.fixture
def staff(db_session):
    return make_user(db_session, "staff@example.com", UserRole.STAFF)


@pytest.fixture
def dentist(db_session):
    return make_dentist(db_session, "dentist@example.com")


@pytest.fixture
def other_dentist(db_session):
    return make_dentist(db_session, "dentist2@example.com")


@pytest.fixture
def service(db_session):
    service = Service(name="Teeth Cleaning", duration=45)
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture
def monday():
    return next_weekday(MONDAY)

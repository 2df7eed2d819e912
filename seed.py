import argparse

from app.config import settings
from app.database import Database
from app.models.all_models import Dentist, Service, User, UserRole
from app.utils.auth import create_access_token

DEFAULT_SERVICES = [
    ("Dental Checkup", "Routine examination", 30),
    ("Teeth Cleaning", "Scaling and polishing", 45),
    ("Filling", "Cavity restoration", 60),
    ("Tooth Extraction", "Simple extraction", 60),
    ("Root Canal", "Endodontic treatment", 90),
]

def seed_services(session):
    """Insert the default services that are not there yet; returns how many were added."""
    existing = {name for (name,) in session.query(Service.name).all()}
    added = 0
    for name, description, duration in DEFAULT_SERVICES:
        if name in existing:
            continue
        session.add(Service(name=name, description=description, duration=duration, is_active=True))
        added += 1
    session.commit()
    return added

def create_user(session, email, first_name, last_name, role, phone=None, specialization=None):
    """Create a user; a dentist also gets a provider record using the clinic's default hours."""
    existing_user = session.query(User).filter_by(email=email).first()
    if existing_user:
        raise ValueError(f"User with email {email} already exists")

    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        role=role,
        is_active=True,
    )
    session.add(user)
    session.flush()

    if role == UserRole.DENTIST:
        session.add(Dentist(
            user_id=user.id,
            name=f"Dr. {first_name} {last_name}",
            specialization=specialization,
            availability_schedule=None,
            is_active=True,
        ))

    session.commit()
    return user

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the clinic database")
    parser.add_argument("--database-url", default=settings.DATABASE_URL, help="Database to seed")
    parser.add_argument("--services", action="store_true", help="Insert the default services")
    parser.add_argument("--email", help="Create a user with this email")
    parser.add_argument("--first-name", default="", help="First name")
    parser.add_argument("--last-name", default="", help="Last name")
    parser.add_argument("--phone", help="Phone number")
    parser.add_argument("--role", default="patient", choices=[role.value for role in UserRole], help="Role")
    parser.add_argument("--specialization", help="Dentist specialization")
    parser.add_argument("--token", action="store_true", help="Print an access token for the new user")

    args = parser.parse_args()

    database = Database(args.database_url)
    database.create_all()
    session = database.session()

    try:
        if args.services:
            print(f"Services added: {seed_services(session)}")

        if args.email:
            user = create_user(
                session,
                email=args.email,
                first_name=args.first_name,
                last_name=args.last_name,
                role=UserRole(args.role),
                phone=args.phone,
                specialization=args.specialization,
            )
            print(f"User created successfully: {user.email} (id={user.id}, role={user.role.value})")
            if args.token:
                print(create_access_token({"sub": str(user.id)}))
    except Exception as e:
        session.rollback()
        print(f"Error seeding database: {str(e)}")
    finally:
        session.close()
        database.dispose()

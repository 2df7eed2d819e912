from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from app.config import settings
from app.database import Database
from app.routes.appointments.router import router as appointments_router
from app.routes.dentists.router import router as dentists_router
from app.routes.recurring.router import router as recurring_router
from app.routes.reminders.router import router as reminders_router
from app.routes.symptoms.router import router as symptoms_router
from app.routes.urgent.router import router as urgent_router
from app.routes.waitlist.router import router as waitlist_router
from app.services.errors import ClinicError
from app.services.notifications import Notifier
from app.utils.errors import clinic_error_handler
from app.utils.logging_setup import configure_logging

logger = logging.getLogger("app.main")


def create_app(database: Optional[Database] = None, notifier: Optional[Notifier] = None) -> FastAPI:
    """
    Build the API. ``database`` and ``notifier`` default to the configured
    ones; tests pass their own.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        # a database handed in by the caller is also closed by the caller
        owned = database is None
        db = database or Database(settings.DATABASE_URL)
        db.create_all()
        app.state.database = db
        app.state.notifier = notifier or Notifier()
        logger.info("Clinic API started")
        yield
        if owned:
            db.dispose()

    app = FastAPI(title="Clinic Scheduling API", version="1.0.0", lifespan=lifespan)

    @app.get("/", include_in_schema=False)
    def read_root():
        return RedirectResponse(url="/docs")

    api_v1_router = APIRouter(prefix="/api/v1")
    api_v1_router.include_router(appointments_router)
    api_v1_router.include_router(dentists_router)
    api_v1_router.include_router(waitlist_router)
    api_v1_router.include_router(urgent_router)
    api_v1_router.include_router(symptoms_router)
    api_v1_router.include_router(recurring_router)
    api_v1_router.include_router(reminders_router)

    app.include_router(api_v1_router)
    app.add_exception_handler(ClinicError, clinic_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()

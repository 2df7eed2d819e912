# app/database.py
import logging
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.models.all_models import Base

logger = logging.getLogger(__name__)


class Database:
    """
    Owns the engine and session factory for one application instance.

    Built in the FastAPI lifespan handler and kept on ``app.state.database``;
    request handlers never touch it directly, they receive a Session from
    ``get_db``.
    """

    def __init__(self, url: Optional[str] = None, echo: bool = False) -> None:
        self.url = url or settings.DATABASE_URL
        self.engine: Engine = create_engine(self.url, echo=echo, future=True, **self._engine_options(self.url))
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    @staticmethod
    def _engine_options(url: str) -> dict:
        if not url.startswith("sqlite"):
            return {"pool_pre_ping": True}
        options = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # every connection must see the same in-memory database
            options["poolclass"] = StaticPool
        return options

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database schema ready")

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database connections closed")


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a request-scoped session from the application's Database."""
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy import Engine

from src.hospital_api.config import settings
from src.hospital_api.infra.db.models import Base
from src.hospital_api.infra.db.repositories import AppointmentRepository, HospitalRepository, UserRepository
from src.hospital_api.infra.db.session import create_db_engine, create_sqlalchemy_session_factory
from src.hospital_api.infra.db.sql_appointments import SqlAppointmentRepository
from src.hospital_api.infra.db.sql_hospitals import SqlHospitalRepository
from src.hospital_api.infra.db.sql_users import SqlUserRepository

logger = logging.getLogger(__name__)


@dataclass
class Repositories:
    """Repositories sharing the single engine created at startup."""

    engine: Engine
    hospitals: HospitalRepository
    users: UserRepository
    appointments: AppointmentRepository


def init_database(database_url: Optional[str] = None) -> Repositories:
    """Connect to the database, create missing tables and build repositories.

    Called once from the application startup hook; the returned object is
    stored on ``app.state`` and shared read-only by every request.
    """

    db_url = database_url or settings.database_url
    if not db_url:
        raise RuntimeError("DATABASE_URL is not configured")

    engine = create_db_engine(db_url)

    # Create tables if they do not exist. In a real deployment this should be
    # handled by migrations.
    Base.metadata.create_all(engine)
    logger.info("Database ready (%s)", engine.url.render_as_string(hide_password=True))

    session_factory = create_sqlalchemy_session_factory(engine)
    return Repositories(
        engine=engine,
        hospitals=SqlHospitalRepository(session_factory),
        users=SqlUserRepository(session_factory),
        appointments=SqlAppointmentRepository(session_factory),
    )


def get_repositories(request: Request) -> Repositories:
    """FastAPI dependency returning the repositories built at startup."""

    repositories = getattr(request.app.state, "repositories", None)
    if repositories is None:
        raise RuntimeError("Database has not been initialized")
    return repositories

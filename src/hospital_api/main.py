import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.hospital_api.api.v1.routes_appointments import hospital_appointments_router as hospital_appointments_router_v1
from src.hospital_api.api.v1.routes_appointments import router as appointments_router_v1
from src.hospital_api.api.v1.routes_auth import router as auth_router_v1
from src.hospital_api.api.v1.routes_hospitals import router as hospitals_router_v1
from src.hospital_api.api.v1.routes_system import router as system_router_v1
from src.hospital_api.config import settings
from src.hospital_api.errors import register_exception_handlers
from src.hospital_api.infra.db.bootstrap import init_database

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Hospital Appointment API",
    description="Manage hospitals, vaccination centers and appointment bookings.",
    version="1.0.0",
)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@app.on_event("startup")
async def on_startup() -> None:
    """Application startup hook.

    Validates required configuration and opens the single database engine
    shared by every request. A missing DATABASE_URL or JWT_SECRET aborts
    startup.
    """

    configure_logging()
    settings.validate()
    app.state.repositories = init_database(settings.database_url)
    logger.info("Server running in %s mode", settings.app_env)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    repositories = getattr(app.state, "repositories", None)
    if repositories is not None:
        repositories.engine.dispose()


# CORS configuration – permissive by default for development. Tighten via
# CORS_ALLOW_ORIGINS in production deployments.
allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    """Basic liveness probe for the API root."""
    return {"status": "ok"}


# Versioned API routers
app.include_router(system_router_v1, prefix="/api/v1")
app.include_router(auth_router_v1, prefix="/api/v1")
app.include_router(hospitals_router_v1, prefix="/api/v1")
app.include_router(hospital_appointments_router_v1, prefix="/api/v1")
app.include_router(appointments_router_v1, prefix="/api/v1")


def run() -> None:
    """Console entry point: serve the API with uvicorn on HOST:PORT."""

    configure_logging()
    settings.validate()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()

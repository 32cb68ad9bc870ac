from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional


class ConfigError(RuntimeError):
    """Raised at startup when required configuration is missing."""


@dataclass
class Settings:
    """Centralized application settings.

    This keeps environment-variable handling in one place so other modules can
    depend on strongly-typed attributes instead of calling os.getenv
    directly.
    """

    # Deployment environment name ("development", "production", ...).
    app_env: str = os.getenv("APP_ENV", "development")

    # Address and port for the uvicorn runner.
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "5000"))

    # SQLAlchemy connection string, e.g. "postgresql+psycopg://..." or
    # "sqlite:///./hospitals.db". Required.
    database_url: Optional[str] = os.getenv("DATABASE_URL")

    # Token signing configuration. JWT_SECRET is required.
    jwt_secret: Optional[str] = os.getenv("JWT_SECRET")
    jwt_expire_days: int = int(os.getenv("JWT_EXPIRE_DAYS", "30"))
    jwt_cookie_expire_days: int = int(os.getenv("JWT_COOKIE_EXPIRE_DAYS", "30"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS configuration: comma-separated origins (e.g. "https://app.example.com,https://admin.example.com").
    # Default is "*" (allow all) which is acceptable for local development but
    # should be tightened in production.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    def missing_required(self) -> List[str]:
        missing = []
        if not self.database_url:
            missing.append("DATABASE_URL")
        if not self.jwt_secret:
            missing.append("JWT_SECRET")
        return missing

    def validate(self) -> None:
        """Fail fast when a required environment variable is absent."""

        missing = self.missing_required()
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")


settings = Settings()

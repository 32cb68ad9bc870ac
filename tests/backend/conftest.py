import os

# Required configuration must be present before the application is imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest

from src.hospital_api.domain.models.user import User
from src.hospital_api.infra.db.bootstrap import init_database
from src.hospital_api.main import app
from src.hospital_api.security import create_access_token


@pytest.fixture(autouse=True)
def repositories():
    """Give every test a fresh in-memory database wired into the app."""

    repos = init_database("sqlite://")
    app.state.repositories = repos
    yield repos
    app.state.repositories = None
    repos.engine.dispose()


@pytest.fixture
def admin_user(repositories) -> User:
    return repositories.users.create(
        {"name": "Admin", "email": "admin@example.com", "password": "admin123", "role": "admin"}
    )


@pytest.fixture
def regular_user(repositories) -> User:
    return repositories.users.create(
        {"name": "Alice", "email": "alice@example.com", "password": "secret123", "role": "user"}
    )


@pytest.fixture
def other_user(repositories) -> User:
    return repositories.users.create(
        {"name": "Bob", "email": "bob@example.com", "password": "secret123", "role": "user"}
    )


def _bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def admin_headers(admin_user) -> dict:
    return _bearer(admin_user)


@pytest.fixture
def user_headers(regular_user) -> dict:
    return _bearer(regular_user)


@pytest.fixture
def other_headers(other_user) -> dict:
    return _bearer(other_user)


@pytest.fixture
def hospital_payload() -> dict:
    return {
        "ordinal": 121,
        "name": "Happy Hospital",
        "address": "121 Sukhumvit Rd",
        "district": "Bang Na",
        "province": "Bangkok",
        "postalcode": "10110",
        "tel": "02-2187000",
        "region": "Bangkok",
    }


@pytest.fixture
def hospital(repositories, hospital_payload):
    return repositories.hospitals.create(hospital_payload)

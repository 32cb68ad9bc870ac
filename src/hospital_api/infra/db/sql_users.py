from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from src.hospital_api.domain.models.user import User, UserFields
from src.hospital_api.errors import DuplicateKey, NotFound
from src.hospital_api.infra.db.models import AppointmentORM, UserORM
from src.hospital_api.infra.db.repositories import EntityId, UserRepository
from src.hospital_api.infra.db.session import SessionFactory
from src.hospital_api.infra.db.sql_common import fetch_page, parse_id, validate_fields
from src.hospital_api.services.query import ListQuery, Page

USER_QUERY_FIELDS = {
    "name": str,
    "email": str,
    "role": str,
    "created_at": datetime,
}


class SqlUserRepository(UserRepository):
    """SQL-backed UserRepository.

    Passwords are stored only as salted hashes and are never part of the
    returned ``User`` objects.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def create(self, fields: Mapping[str, Any]) -> User:
        data = validate_fields(UserFields, dict(fields))
        session = self._session_factory()
        try:
            self._ensure_unique_email(session, data.email)
            orm = UserORM(
                id=uuid4(),
                name=data.name,
                email=data.email,
                password_hash=generate_password_hash(data.password),
                role=data.role.value,
                created_at=datetime.now(timezone.utc),
            )
            session.add(orm)
            self._commit(session)
            return orm.to_domain()
        finally:
            session.close()

    def find_many(self, query: ListQuery) -> Page[User]:
        session = self._session_factory()
        try:
            rows, total = fetch_page(session, select(UserORM), UserORM, query)
            return Page(items=[row.to_domain() for row in rows], total=total, page=query.page, limit=query.limit)
        finally:
            session.close()

    def find_by_id(self, user_id: EntityId) -> User:
        session = self._session_factory()
        try:
            return self._get(session, user_id).to_domain()
        finally:
            session.close()

    def find_by_email(self, email: str) -> Optional[User]:
        session = self._session_factory()
        try:
            orm = session.scalar(select(UserORM).where(UserORM.email == email.strip().lower()))
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def verify_credentials(self, email: str, password: str) -> Optional[User]:
        session = self._session_factory()
        try:
            orm = session.scalar(select(UserORM).where(UserORM.email == email.strip().lower()))
            if orm is None or not check_password_hash(orm.password_hash, password):
                return None
            return orm.to_domain()
        finally:
            session.close()

    def update_by_id(self, user_id: EntityId, fields: Mapping[str, Any]) -> User:
        session = self._session_factory()
        try:
            orm = self._get(session, user_id)
            # Re-validate with a placeholder password unless a new one is given.
            merged = {"name": orm.name, "email": orm.email, "role": orm.role, "password": "unchanged", **fields}
            data = validate_fields(UserFields, merged)
            if data.email != orm.email:
                self._ensure_unique_email(session, data.email)
            orm.name = data.name
            orm.email = data.email
            orm.role = data.role.value
            if "password" in fields:
                orm.password_hash = generate_password_hash(data.password)
            self._commit(session)
            return orm.to_domain()
        finally:
            session.close()

    def delete_by_id(self, user_id: EntityId) -> None:
        session = self._session_factory()
        try:
            orm = self._get(session, user_id)
            session.execute(delete(AppointmentORM).where(AppointmentORM.user_id == orm.id))
            session.delete(orm)
            session.commit()
        finally:
            session.close()

    # Internal helpers

    def _get(self, session, user_id: EntityId) -> UserORM:
        parsed = parse_id(user_id)
        orm = session.get(UserORM, parsed) if parsed is not None else None
        if orm is None:
            raise NotFound(f"No user with the id of {user_id}")
        return orm

    def _ensure_unique_email(self, session, email: str) -> None:
        if session.scalar(select(UserORM.id).where(UserORM.email == email)) is not None:
            raise DuplicateKey("Email already registered")

    def _commit(self, session) -> None:
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise DuplicateKey("Email already registered") from None

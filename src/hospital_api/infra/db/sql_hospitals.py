from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Mapping
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from src.hospital_api.domain.models.hospital import Hospital, HospitalFields, VaccineCenter
from src.hospital_api.errors import DuplicateKey, NotFound
from src.hospital_api.infra.db.models import AppointmentORM, HospitalORM
from src.hospital_api.infra.db.repositories import EntityId, HospitalRepository
from src.hospital_api.infra.db.session import SessionFactory
from src.hospital_api.infra.db.sql_common import fetch_page, parse_id, validate_fields
from src.hospital_api.services.query import ListQuery, Page

logger = logging.getLogger(__name__)

# Filterable fields and the type query-string values are coerced to.
HOSPITAL_QUERY_FIELDS = {
    "name": str,
    "address": str,
    "district": str,
    "province": str,
    "region": str,
    "postalcode": str,
    "tel": str,
    "ordinal": int,
    "created_at": datetime,
}


def _not_found(hospital_id: EntityId) -> NotFound:
    return NotFound(f"No hospital with the id of {hospital_id}")


class SqlHospitalRepository(HospitalRepository):
    """SQL-backed HospitalRepository."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def create(self, fields: Mapping[str, Any]) -> Hospital:
        data = validate_fields(HospitalFields, dict(fields))
        session = self._session_factory()
        try:
            self._ensure_unique_name(session, data.name)
            orm = HospitalORM(id=uuid4(), created_at=datetime.now(timezone.utc), **data.model_dump())
            session.add(orm)
            self._commit(session, data.name)
            return orm.to_domain()
        finally:
            session.close()

    def find_many(self, query: ListQuery) -> Page[Hospital]:
        session = self._session_factory()
        try:
            rows, total = fetch_page(session, select(HospitalORM), HospitalORM, query)
            return Page(items=[row.to_domain() for row in rows], total=total, page=query.page, limit=query.limit)
        finally:
            session.close()

    def find_by_id(self, hospital_id: EntityId) -> Hospital:
        session = self._session_factory()
        try:
            return self._get(session, hospital_id).to_domain()
        finally:
            session.close()

    def update_by_id(self, hospital_id: EntityId, fields: Mapping[str, Any]) -> Hospital:
        session = self._session_factory()
        try:
            orm = self._get(session, hospital_id)
            current = orm.to_domain().model_dump(include=set(HospitalFields.model_fields))
            data = validate_fields(HospitalFields, {**current, **fields})
            if data.name != orm.name:
                self._ensure_unique_name(session, data.name)
            for key, value in data.model_dump().items():
                setattr(orm, key, value)
            self._commit(session, data.name)
            return orm.to_domain()
        finally:
            session.close()

    def delete_by_id(self, hospital_id: EntityId) -> None:
        """Delete a hospital together with every appointment booked there."""

        session = self._session_factory()
        try:
            orm = self._get(session, hospital_id)
            result = session.execute(delete(AppointmentORM).where(AppointmentORM.hospital_id == orm.id))
            logger.info("Cascade-deleting %s appointment(s) for hospital %s", result.rowcount, orm.id)
            session.delete(orm)
            session.commit()
        finally:
            session.close()

    def list_vaccine_centers(self) -> List[VaccineCenter]:
        session = self._session_factory()
        try:
            stmt = select(HospitalORM).where(HospitalORM.tel.is_not(None)).order_by(HospitalORM.name.asc())
            return [orm.to_vaccine_center() for orm in session.scalars(stmt)]
        finally:
            session.close()

    # Internal helpers

    def _get(self, session, hospital_id: EntityId) -> HospitalORM:
        parsed = parse_id(hospital_id)
        orm = session.get(HospitalORM, parsed) if parsed is not None else None
        if orm is None:
            raise _not_found(hospital_id)
        return orm

    def _ensure_unique_name(self, session, name: str) -> None:
        if session.scalar(select(HospitalORM.id).where(HospitalORM.name == name)) is not None:
            raise DuplicateKey(f"Hospital name {name!r} already exists")

    def _commit(self, session, name: str) -> None:
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise DuplicateKey(f"Hospital name {name!r} already exists") from None

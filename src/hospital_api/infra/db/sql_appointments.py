from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from uuid import UUID, uuid4

from sqlalchemy import func, select

from src.hospital_api.domain.models.appointment import Appointment, AppointmentFields
from src.hospital_api.errors import NotFound, ValidationError
from src.hospital_api.infra.db.models import AppointmentORM, HospitalORM, UserORM, as_utc
from src.hospital_api.infra.db.repositories import AppointmentRepository, EntityId
from src.hospital_api.infra.db.session import SessionFactory
from src.hospital_api.infra.db.sql_common import fetch_page, parse_id, validate_fields
from src.hospital_api.services.query import ListQuery, Page

APPOINTMENT_QUERY_FIELDS = {
    "appt_date": datetime,
    "created_at": datetime,
}

# Serialized on every appointment; projectable but not filterable.
APPOINTMENT_SELECT_ONLY_FIELDS = ("user_id", "hospital_id", "hospital")

# Maximum number of upcoming appointments a single user may hold.
MAX_ACTIVE_APPOINTMENTS = 1


class SqlAppointmentRepository(AppointmentRepository):
    """SQL-backed AppointmentRepository.

    Referential checks (user and hospital must exist) and the single active
    appointment rule are enforced here at write time.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def create(self, fields: Mapping[str, Any]) -> Appointment:
        data = validate_fields(AppointmentFields, dict(fields))
        appt_date = as_utc(data.appt_date)
        session = self._session_factory()
        try:
            self._ensure_references(session, user_id=data.user_id, hospital_id=data.hospital_id)
            if appt_date >= datetime.now(timezone.utc):
                self._ensure_can_hold_another(session, data.user_id)
            orm = AppointmentORM(
                id=uuid4(),
                appt_date=appt_date,
                user_id=data.user_id,
                hospital_id=data.hospital_id,
                created_at=datetime.now(timezone.utc),
            )
            session.add(orm)
            session.commit()
            return self._get(session, orm.id).to_domain()
        finally:
            session.close()

    def find_many(
        self,
        query: ListQuery,
        *,
        hospital_id: Optional[EntityId] = None,
        user_id: Optional[EntityId] = None,
    ) -> Page[Appointment]:
        stmt = select(AppointmentORM)
        if hospital_id is not None:
            stmt = stmt.where(AppointmentORM.hospital_id == parse_id(hospital_id))
        if user_id is not None:
            stmt = stmt.where(AppointmentORM.user_id == parse_id(user_id))

        session = self._session_factory()
        try:
            rows, total = fetch_page(session, stmt, AppointmentORM, query)
            return Page(items=[row.to_domain() for row in rows], total=total, page=query.page, limit=query.limit)
        finally:
            session.close()

    def find_by_id(self, appointment_id: EntityId) -> Appointment:
        session = self._session_factory()
        try:
            return self._get(session, appointment_id).to_domain()
        finally:
            session.close()

    def update_by_id(self, appointment_id: EntityId, fields: Mapping[str, Any]) -> Appointment:
        session = self._session_factory()
        try:
            orm = self._get(session, appointment_id)
            current = {"appt_date": orm.appt_date, "user_id": orm.user_id, "hospital_id": orm.hospital_id}
            data = validate_fields(AppointmentFields, {**current, **fields})
            appt_date = as_utc(data.appt_date)

            self._ensure_references(session, user_id=data.user_id, hospital_id=data.hospital_id)
            if appt_date >= datetime.now(timezone.utc):
                self._ensure_can_hold_another(session, data.user_id, exclude_id=orm.id)

            orm.appt_date = appt_date
            orm.user_id = data.user_id
            orm.hospital_id = data.hospital_id
            session.commit()
            return self._get(session, orm.id).to_domain()
        finally:
            session.close()

    def delete_by_id(self, appointment_id: EntityId) -> None:
        session = self._session_factory()
        try:
            session.delete(self._get(session, appointment_id))
            session.commit()
        finally:
            session.close()

    def count_active_for_user(self, user_id: EntityId, *, now: Optional[datetime] = None) -> int:
        parsed = parse_id(user_id)
        if parsed is None:
            return 0
        session = self._session_factory()
        try:
            return self._count_active(session, parsed, now=now)
        finally:
            session.close()

    # Internal helpers

    def _get(self, session, appointment_id: EntityId) -> AppointmentORM:
        parsed = parse_id(appointment_id)
        orm = session.get(AppointmentORM, parsed, populate_existing=True) if parsed is not None else None
        if orm is None:
            raise NotFound(f"No appointment with the id of {appointment_id}")
        return orm

    def _ensure_references(self, session, *, user_id: UUID, hospital_id: UUID) -> None:
        if session.get(HospitalORM, hospital_id) is None:
            raise NotFound(f"No hospital with the id of {hospital_id}")
        if session.get(UserORM, user_id) is None:
            raise NotFound(f"No user with the id of {user_id}")

    def _count_active(
        self,
        session,
        user_id: UUID,
        *,
        now: Optional[datetime] = None,
        exclude_id: Optional[UUID] = None,
    ) -> int:
        stmt = select(func.count(AppointmentORM.id)).where(
            AppointmentORM.user_id == user_id,
            AppointmentORM.appt_date >= (now or datetime.now(timezone.utc)),
        )
        if exclude_id is not None:
            stmt = stmt.where(AppointmentORM.id != exclude_id)
        return session.scalar(stmt) or 0

    def _ensure_can_hold_another(self, session, user_id: UUID, *, exclude_id: Optional[UUID] = None) -> None:
        if self._count_active(session, user_id, exclude_id=exclude_id) >= MAX_ACTIVE_APPOINTMENTS:
            raise ValidationError.for_field(
                "user_id",
                f"The user with ID {user_id} already has an active appointment",
            )

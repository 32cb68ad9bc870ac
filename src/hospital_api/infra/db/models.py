from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from src.hospital_api.domain.models.appointment import Appointment, HospitalSummary
from src.hospital_api.domain.models.hospital import Hospital, VaccineCenter
from src.hospital_api.domain.models.user import User, UserRole


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    pass


class HospitalORM(Base):
    __tablename__ = "hospitals"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    address: Mapped[str] = mapped_column(String, nullable=False)
    district: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    province: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    postalcode: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    tel: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    ordinal: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    appointments: Mapped[List["AppointmentORM"]] = relationship(back_populates="hospital")

    def to_domain(self) -> Hospital:
        return Hospital(
            id=self.id,
            name=self.name,
            address=self.address,
            district=self.district,
            province=self.province,
            region=self.region,
            postalcode=self.postalcode,
            tel=self.tel,
            ordinal=self.ordinal,
            created_at=as_utc(self.created_at),
        )

    def to_vaccine_center(self) -> VaccineCenter:
        return VaccineCenter(id=self.id, name=self.name, tel=self.tel or "", province=self.province)

    def to_summary(self) -> HospitalSummary:
        return HospitalSummary(id=self.id, name=self.name, province=self.province, tel=self.tel)


class UserORM(Base):
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_domain(self) -> User:
        return User(
            id=self.id,
            name=self.name,
            email=self.email,
            role=UserRole(self.role),
            created_at=as_utc(self.created_at),
        )


class AppointmentORM(Base):
    __tablename__ = "appointments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    appt_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    hospital_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("hospitals.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    hospital: Mapped[HospitalORM] = relationship(back_populates="appointments", lazy="joined")

    def to_domain(self) -> Appointment:
        return Appointment(
            id=self.id,
            appt_date=as_utc(self.appt_date),
            user_id=self.user_id,
            hospital_id=self.hospital_id,
            created_at=as_utc(self.created_at),
            hospital=self.hospital.to_summary() if self.hospital is not None else None,
        )

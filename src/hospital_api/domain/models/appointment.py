from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class AppointmentFields(BaseModel):
    appt_date: datetime
    user_id: UUID
    hospital_id: UUID


class HospitalSummary(BaseModel):
    id: UUID
    name: str
    province: Optional[str] = None
    tel: Optional[str] = None


class Appointment(AppointmentFields):
    """A booking made by one user at one hospital."""

    id: UUID
    created_at: datetime
    hospital: Optional[HospitalSummary] = None

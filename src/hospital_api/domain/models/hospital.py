from __future__ import annotations

import re
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

POSTAL_CODE_RE = re.compile(r"^\d{5}$")
# Digits with an optional leading "+" and "-" or space separators.
PHONE_RE = re.compile(r"^\+?\d[\d\- ]*\d$")


class HospitalFields(BaseModel):
    """Validated, writable Hospital fields.

    Repositories build this before inserting so format and length rules live
    next to the data rather than in route handlers.
    """

    name: str = Field(max_length=50)
    address: str
    district: Optional[str] = None
    province: Optional[str] = None
    region: Optional[str] = None
    postalcode: Optional[str] = None
    tel: Optional[str] = None
    ordinal: Optional[int] = Field(default=None, ge=0)

    @field_validator("name", "address")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("postalcode")
    @classmethod
    def _postal_code(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not POSTAL_CODE_RE.match(value):
            raise ValueError("postal code must be exactly 5 digits")
        return value

    @field_validator("tel")
    @classmethod
    def _phone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        digits = re.sub(r"\D", "", value)
        if not PHONE_RE.match(value) or not 7 <= len(digits) <= 15:
            raise ValueError("please add a valid telephone number")
        return value


class Hospital(HospitalFields):
    id: UUID
    created_at: datetime


class VaccineCenter(BaseModel):
    """Read-only projection of a hospital that offers a contact number."""

    id: UUID
    name: str
    tel: str
    province: Optional[str] = None

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Mapping, Optional, Union
from uuid import UUID

from src.hospital_api.domain.models.appointment import Appointment
from src.hospital_api.domain.models.hospital import Hospital, VaccineCenter
from src.hospital_api.domain.models.user import User
from src.hospital_api.services.query import ListQuery, Page

EntityId = Union[str, UUID]


class HospitalRepository(ABC):
    @abstractmethod
    def create(self, fields: Mapping[str, Any]) -> Hospital:
        raise NotImplementedError

    @abstractmethod
    def find_many(self, query: ListQuery) -> Page[Hospital]:
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, hospital_id: EntityId) -> Hospital:
        raise NotImplementedError

    @abstractmethod
    def update_by_id(self, hospital_id: EntityId, fields: Mapping[str, Any]) -> Hospital:
        raise NotImplementedError

    @abstractmethod
    def delete_by_id(self, hospital_id: EntityId) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_vaccine_centers(self) -> List[VaccineCenter]:
        raise NotImplementedError


class UserRepository(ABC):
    @abstractmethod
    def create(self, fields: Mapping[str, Any]) -> User:
        raise NotImplementedError

    @abstractmethod
    def find_many(self, query: ListQuery) -> Page[User]:
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, user_id: EntityId) -> User:
        raise NotImplementedError

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    @abstractmethod
    def verify_credentials(self, email: str, password: str) -> Optional[User]:
        raise NotImplementedError

    @abstractmethod
    def update_by_id(self, user_id: EntityId, fields: Mapping[str, Any]) -> User:
        raise NotImplementedError

    @abstractmethod
    def delete_by_id(self, user_id: EntityId) -> None:
        raise NotImplementedError


class AppointmentRepository(ABC):
    @abstractmethod
    def create(self, fields: Mapping[str, Any]) -> Appointment:
        raise NotImplementedError

    @abstractmethod
    def find_many(
        self,
        query: ListQuery,
        *,
        hospital_id: Optional[EntityId] = None,
        user_id: Optional[EntityId] = None,
    ) -> Page[Appointment]:
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, appointment_id: EntityId) -> Appointment:
        raise NotImplementedError

    @abstractmethod
    def update_by_id(self, appointment_id: EntityId, fields: Mapping[str, Any]) -> Appointment:
        raise NotImplementedError

    @abstractmethod
    def delete_by_id(self, appointment_id: EntityId) -> None:
        raise NotImplementedError

    @abstractmethod
    def count_active_for_user(self, user_id: EntityId, *, now: Optional[datetime] = None) -> int:
        raise NotImplementedError

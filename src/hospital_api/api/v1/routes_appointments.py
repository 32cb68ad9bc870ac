from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel

from src.hospital_api.api.v1.envelopes import EmptyDataResponse, PageRef
from src.hospital_api.domain.models.appointment import Appointment
from src.hospital_api.domain.models.user import User
from src.hospital_api.errors import Forbidden
from src.hospital_api.infra.db.bootstrap import Repositories, get_repositories
from src.hospital_api.infra.db.sql_appointments import APPOINTMENT_QUERY_FIELDS, APPOINTMENT_SELECT_ONLY_FIELDS
from src.hospital_api.security import ensure_owner_or_admin, protect
from src.hospital_api.services.audit.service import audit_service
from src.hospital_api.services.query import parse_list_query, project

router = APIRouter(prefix="/appointments", tags=["appointments"])

# Appointment routes nested under a hospital, e.g. /hospitals/{id}/appointments.
hospital_appointments_router = APIRouter(prefix="/hospitals/{hospital_id}/appointments", tags=["appointments"])

_NOT_FOUND = {404: {"description": "The appointment was not found"}}
_OWNER_ONLY = {403: {"description": "Caller neither owns the appointment nor is an admin"}}


class AppointmentCreateRequest(BaseModel):
    appt_date: Optional[datetime] = None
    # Only admins may book on behalf of another user.
    user_id: Optional[UUID] = None


class AppointmentUpdateRequest(BaseModel):
    appt_date: Optional[datetime] = None
    hospital_id: Optional[UUID] = None
    user_id: Optional[UUID] = None


class AppointmentListResponse(BaseModel):
    success: bool = True
    count: int
    pagination: Dict[str, PageRef]
    data: List[Dict[str, Any]]


class AppointmentResponse(BaseModel):
    success: bool = True
    data: Appointment


def _list_appointments(
    request: Request,
    repositories: Repositories,
    current_user: User,
    hospital_id: Optional[Any] = None,
) -> AppointmentListResponse:
    query = parse_list_query(
        request.query_params.multi_items(),
        fields=APPOINTMENT_QUERY_FIELDS,
        ignore=("hospital_id",),
        extra_select=APPOINTMENT_SELECT_ONLY_FIELDS,
    )
    page = repositories.appointments.find_many(
        query,
        hospital_id=hospital_id,
        user_id=None if current_user.is_admin else current_user.id,
    )
    return AppointmentListResponse(
        count=len(page.items),
        pagination=page.pagination(),
        data=[project(a.model_dump(mode="json"), query.select) for a in page.items],
    )


def _guard_user_change(current_user: User, user_id: Optional[UUID]) -> None:
    if user_id is not None and user_id != current_user.id and not current_user.is_admin:
        raise Forbidden("Only admins may manage appointments for other users")


@router.get("", response_model=AppointmentListResponse, summary="List appointments")
def list_appointments(
    request: Request,
    hospital_id: Optional[UUID] = Query(None, description="Restrict to one hospital"),
    current_user: User = Depends(protect),
    repositories: Repositories = Depends(get_repositories),
) -> AppointmentListResponse:
    """Admins see every appointment; other users see only their own."""

    return _list_appointments(request, repositories, current_user, hospital_id)


@hospital_appointments_router.get(
    "",
    response_model=AppointmentListResponse,
    summary="List appointments at a hospital",
    responses={404: {"description": "The hospital was not found"}},
)
def list_hospital_appointments(
    hospital_id: str,
    request: Request,
    current_user: User = Depends(protect),
    repositories: Repositories = Depends(get_repositories),
) -> AppointmentListResponse:
    hospital = repositories.hospitals.find_by_id(hospital_id)
    return _list_appointments(request, repositories, current_user, hospital.id)


@hospital_appointments_router.post(
    "",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment at a hospital",
    responses={400: {"description": "Invalid date or the user already has an active appointment"}},
)
def create_appointment(
    hospital_id: str,
    payload: AppointmentCreateRequest,
    current_user: User = Depends(protect),
    repositories: Repositories = Depends(get_repositories),
) -> AppointmentResponse:
    _guard_user_change(current_user, payload.user_id)
    hospital = repositories.hospitals.find_by_id(hospital_id)

    appointment = repositories.appointments.create(
        {
            "appt_date": payload.appt_date,
            "user_id": payload.user_id or current_user.id,
            "hospital_id": hospital.id,
        }
    )
    audit_service.log_event(
        action="create_appointment",
        resource_type="appointment",
        resource_id=str(appointment.id),
        user=current_user,
        extra={"hospital_id": str(hospital.id)},
    )
    return AppointmentResponse(data=appointment)


@router.get("/{appointment_id}", response_model=AppointmentResponse, responses={**_NOT_FOUND, **_OWNER_ONLY})
def get_appointment(
    appointment_id: str,
    current_user: User = Depends(protect),
    repositories: Repositories = Depends(get_repositories),
) -> AppointmentResponse:
    appointment = repositories.appointments.find_by_id(appointment_id)
    ensure_owner_or_admin(current_user, appointment.user_id, resource="appointment")
    return AppointmentResponse(data=appointment)


@router.put("/{appointment_id}", response_model=AppointmentResponse, responses={**_NOT_FOUND, **_OWNER_ONLY})
def update_appointment(
    appointment_id: str,
    payload: AppointmentUpdateRequest,
    current_user: User = Depends(protect),
    repositories: Repositories = Depends(get_repositories),
) -> AppointmentResponse:
    appointment = repositories.appointments.find_by_id(appointment_id)
    ensure_owner_or_admin(current_user, appointment.user_id, resource="appointment")
    _guard_user_change(current_user, payload.user_id)

    updated = repositories.appointments.update_by_id(appointment.id, payload.model_dump(exclude_none=True))
    audit_service.log_event(
        action="update_appointment",
        resource_type="appointment",
        resource_id=str(updated.id),
        user=current_user,
        extra={"fields": sorted(payload.model_fields_set)},
    )
    return AppointmentResponse(data=updated)


@router.delete("/{appointment_id}", response_model=EmptyDataResponse, responses={**_NOT_FOUND, **_OWNER_ONLY})
def delete_appointment(
    appointment_id: str,
    current_user: User = Depends(protect),
    repositories: Repositories = Depends(get_repositories),
) -> EmptyDataResponse:
    appointment = repositories.appointments.find_by_id(appointment_id)
    ensure_owner_or_admin(current_user, appointment.user_id, resource="appointment")

    repositories.appointments.delete_by_id(appointment.id)
    audit_service.log_event(
        action="delete_appointment",
        resource_type="appointment",
        resource_id=str(appointment.id),
        user=current_user,
    )
    return EmptyDataResponse(data={})

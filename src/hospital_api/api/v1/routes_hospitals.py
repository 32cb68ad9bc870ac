from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ConfigDict

from src.hospital_api.api.v1.envelopes import EmptyDataResponse, PageRef
from src.hospital_api.domain.models.hospital import Hospital, VaccineCenter
from src.hospital_api.domain.models.user import User, UserRole
from src.hospital_api.infra.db.bootstrap import Repositories, get_repositories
from src.hospital_api.infra.db.sql_hospitals import HOSPITAL_QUERY_FIELDS
from src.hospital_api.security import authorize
from src.hospital_api.services.audit.service import audit_service
from src.hospital_api.services.query import parse_list_query, project

router = APIRouter(prefix="/hospitals", tags=["hospitals"])

_NOT_FOUND = {404: {"description": "The hospital was not found"}}
_ADMIN_ONLY = {
    401: {"description": "Missing, invalid or expired token"},
    403: {"description": "Caller is not an admin"},
}


class HospitalWriteRequest(BaseModel):
    """Writable hospital fields; format rules are checked by the repository."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "ordinal": 121,
                "name": "Happy Hospital",
                "address": "121 Sukhumvit Rd",
                "district": "Bang Na",
                "province": "Bangkok",
                "postalcode": "10110",
                "tel": "02-2187000",
                "region": "Bangkok",
            }
        }
    )

    name: Optional[str] = None
    address: Optional[str] = None
    district: Optional[str] = None
    province: Optional[str] = None
    region: Optional[str] = None
    postalcode: Optional[str] = None
    tel: Optional[str] = None
    ordinal: Optional[int] = None


class HospitalListResponse(BaseModel):
    success: bool = True
    count: int
    pagination: Dict[str, PageRef]
    data: List[Dict[str, Any]]


class HospitalResponse(BaseModel):
    success: bool = True
    data: Hospital


class VaccineCenterListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[VaccineCenter]


@router.get("", response_model=HospitalListResponse, summary="Returns the list of all the hospitals")
def list_hospitals(
    request: Request,
    repositories: Repositories = Depends(get_repositories),
) -> HospitalListResponse:
    """List hospitals.

    Query parameters: ``select=name,tel``; ``sort=-name,province``;
    ``page`` and ``limit``; equality filters such as ``province=Bangkok``; and
    comparison filters ``field[gt|gte|lt|lte|in]=value``.
    """

    query = parse_list_query(request.query_params.multi_items(), fields=HOSPITAL_QUERY_FIELDS)
    page = repositories.hospitals.find_many(query)
    return HospitalListResponse(
        count=len(page.items),
        pagination=page.pagination(),
        data=[project(h.model_dump(mode="json"), query.select) for h in page.items],
    )


@router.get("/vacCenters", response_model=VaccineCenterListResponse, summary="Returns the vaccination centers")
def list_vaccine_centers(repositories: Repositories = Depends(get_repositories)) -> VaccineCenterListResponse:
    centers = repositories.hospitals.list_vaccine_centers()
    return VaccineCenterListResponse(count=len(centers), data=centers)


@router.get("/{hospital_id}", response_model=HospitalResponse, summary="Get the hospital by id", responses=_NOT_FOUND)
def get_hospital(hospital_id: str, repositories: Repositories = Depends(get_repositories)) -> HospitalResponse:
    return HospitalResponse(data=repositories.hospitals.find_by_id(hospital_id))


@router.post(
    "",
    response_model=HospitalResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new hospital",
    responses=_ADMIN_ONLY,
)
def create_hospital(
    payload: HospitalWriteRequest,
    current_user: User = Depends(authorize(UserRole.ADMIN)),
    repositories: Repositories = Depends(get_repositories),
) -> HospitalResponse:
    hospital = repositories.hospitals.create(payload.model_dump(exclude_unset=True))
    audit_service.log_event(
        action="create_hospital",
        resource_type="hospital",
        resource_id=str(hospital.id),
        user=current_user,
    )
    return HospitalResponse(data=hospital)


@router.put(
    "/{hospital_id}",
    response_model=HospitalResponse,
    summary="Update the hospital by the id",
    responses={**_NOT_FOUND, **_ADMIN_ONLY},
)
def update_hospital(
    hospital_id: str,
    payload: HospitalWriteRequest,
    current_user: User = Depends(authorize(UserRole.ADMIN)),
    repositories: Repositories = Depends(get_repositories),
) -> HospitalResponse:
    hospital = repositories.hospitals.update_by_id(hospital_id, payload.model_dump(exclude_unset=True))
    audit_service.log_event(
        action="update_hospital",
        resource_type="hospital",
        resource_id=str(hospital.id),
        user=current_user,
        extra={"fields": sorted(payload.model_fields_set)},
    )
    return HospitalResponse(data=hospital)


@router.delete(
    "/{hospital_id}",
    response_model=EmptyDataResponse,
    summary="Remove the hospital by id",
    responses={**_NOT_FOUND, **_ADMIN_ONLY},
)
def delete_hospital(
    hospital_id: str,
    current_user: User = Depends(authorize(UserRole.ADMIN)),
    repositories: Repositories = Depends(get_repositories),
) -> EmptyDataResponse:
    """Delete a hospital and every appointment booked there."""

    repositories.hospitals.delete_by_id(hospital_id)
    audit_service.log_event(
        action="delete_hospital",
        resource_type="hospital",
        resource_id=hospital_id,
        user=current_user,
    )
    return EmptyDataResponse(data={})

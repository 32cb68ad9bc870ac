from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from src.hospital_api.api.v1.envelopes import EmptyDataResponse
from src.hospital_api.config import settings
from src.hospital_api.domain.models.user import User
from src.hospital_api.errors import Unauthorized, ValidationError
from src.hospital_api.infra.db.bootstrap import Repositories, get_repositories
from src.hospital_api.security import TOKEN_COOKIE_NAME, create_access_token, protect
from src.hospital_api.services.audit.service import audit_service

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class TokenResponse(BaseModel):
    success: bool = True
    token: str


class UserResponse(BaseModel):
    success: bool = True
    data: User


def _token_response(user: User, response: Response) -> TokenResponse:
    """Issue a token and mirror it into an http-only cookie."""

    token = create_access_token(user)
    response.set_cookie(
        TOKEN_COOKIE_NAME,
        token,
        max_age=settings.jwt_cookie_expire_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return TokenResponse(token=token)


@router.post("/register", response_model=TokenResponse, summary="Register a new user")
def register(
    payload: RegisterRequest,
    response: Response,
    repositories: Repositories = Depends(get_repositories),
) -> TokenResponse:
    user = repositories.users.create(payload.model_dump(exclude_none=True))
    audit_service.log_event(action="register", resource_type="user", resource_id=str(user.id), user=user)
    return _token_response(user, response)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Log in with email and password",
    responses={401: {"description": "Invalid credentials"}},
)
def login(
    payload: LoginRequest,
    response: Response,
    repositories: Repositories = Depends(get_repositories),
) -> TokenResponse:
    missing = [name for name in ("email", "password") if not getattr(payload, name)]
    if missing:
        raise ValidationError(
            [{"field": name, "message": "Field required"} for name in missing],
            message="Please provide an email and password",
        )

    user = repositories.users.verify_credentials(payload.email, payload.password)
    if user is None:
        audit_service.log_event(
            action="login_failed",
            resource_type="user",
            extra={"email_domain": payload.email.rpartition("@")[2]},
        )
        raise Unauthorized("Invalid credentials")

    audit_service.log_event(action="login", resource_type="user", resource_id=str(user.id), user=user)
    return _token_response(user, response)


@router.get("/me", response_model=UserResponse, summary="Get the logged-in user")
def me(current_user: User = Depends(protect)) -> UserResponse:
    return UserResponse(data=current_user)


@router.get("/logout", response_model=EmptyDataResponse, summary="Log out and clear the token cookie")
def logout(response: Response) -> EmptyDataResponse:
    response.delete_cookie(TOKEN_COOKIE_NAME, httponly=True, secure=settings.is_production, samesite="lax")
    return EmptyDataResponse(data={})

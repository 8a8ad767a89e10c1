"""Authentication and user administration endpoints."""

from fastapi import APIRouter, Depends, Response, status

from roomlink.api.deps import get_app_settings, get_auth_service, get_current_principal, require_permission
from roomlink.api.responses import ok
from roomlink.config.settings import Settings
from roomlink.core.permissions import Permission, Principal
from roomlink.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    StaffCreateRequest,
    TokenResponse,
    UserResponse,
    UserStatusUpdate,
)
from roomlink.schemas.common import SuccessResponse
from roomlink.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _token_response(user, token: str, settings: Settings) -> TokenResponse:
    return TokenResponse(
        access_token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(user),
    )


def _set_auth_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production(),
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/register", response_model=SuccessResponse[TokenResponse], status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
):
    user, token = service.register(payload)
    _set_auth_cookie(response, token, settings)
    return ok(_token_response(user, token, settings), "Registration successful")


@router.post("/login", response_model=SuccessResponse[TokenResponse])
def login(
    payload: LoginRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
):
    user, token = service.login(payload.email, payload.password)
    _set_auth_cookie(response, token, settings)
    return ok(_token_response(user, token, settings), "Login successful")


@router.get("/me", response_model=SuccessResponse[UserResponse])
def me(
    principal: Principal = Depends(get_current_principal),
    service: AuthService = Depends(get_auth_service),
):
    return ok(UserResponse.model_validate(service.get_user(principal.user_id)))


@router.post("/staff", response_model=SuccessResponse[UserResponse], status_code=status.HTTP_201_CREATED)
def create_staff(
    payload: StaffCreateRequest,
    principal: Principal = Depends(require_permission(Permission.USER_MANAGE)),
    service: AuthService = Depends(get_auth_service),
):
    user = service.create_staff(principal, payload)
    return ok(UserResponse.model_validate(user), "Staff account created")


@router.patch("/users/{user_id}/status", response_model=SuccessResponse[UserResponse])
def update_user_status(
    user_id: str,
    payload: UserStatusUpdate,
    principal: Principal = Depends(require_permission(Permission.USER_MANAGE)),
    service: AuthService = Depends(get_auth_service),
):
    user = service.update_user_status(principal, user_id, payload.account_status)
    return ok(UserResponse.model_validate(user), f"User status set to {user.account_status.value}")

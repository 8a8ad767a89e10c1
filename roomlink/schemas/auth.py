"""Authentication and user schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from roomlink.models.enums import StaffType, UserAccountStatus, UserRole
from roomlink.schemas.common import BaseCreateSchema, BaseResponseSchema, BaseSchema

PUBLIC_SIGNUP_ROLES = (UserRole.USER, UserRole.HOST)


class RegisterRequest(BaseCreateSchema):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    phone: Optional[str] = Field(None, max_length=20)
    role: UserRole = UserRole.USER

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("role")
    @classmethod
    def public_roles_only(cls, v: UserRole) -> UserRole:
        if v not in PUBLIC_SIGNUP_ROLES:
            raise ValueError("Only 'user' or 'host' accounts can self-register")
        return v


class StaffCreateRequest(BaseCreateSchema):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    phone: Optional[str] = Field(None, max_length=20)
    role: UserRole = UserRole.STAFF
    staff_type: Optional[StaffType] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @model_validator(mode="after")
    def staff_type_for_staff(self) -> "StaffCreateRequest":
        if self.role not in (UserRole.STAFF, UserRole.ADMIN):
            raise ValueError("Role must be 'staff' or 'admin'")
        if self.role == UserRole.STAFF and self.staff_type is None:
            raise ValueError("staff_type is required for staff accounts")
        return self


class LoginRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserStatusUpdate(BaseSchema):
    account_status: UserAccountStatus


class UserResponse(BaseResponseSchema):
    name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    staff_type: Optional[StaffType] = None
    account_status: UserAccountStatus
    last_login: Optional[datetime] = None


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

from app.domains.users.models import UserRole
from app.shared.utils.response import CamelModel
from app.shared.utils.validation import check_length, check_name


class RegisterRequest(CamelModel):
    name: str
    email: EmailStr
    password: str
    role: UserRole

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return check_name(v)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return check_length(v.lower(), 3, 100, "Email is too long")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_length(v, 8, 128, "Password must be between 8 and 128 characters")

    @field_validator("role", mode="before")
    @classmethod
    def validate_role(cls, v):
        if v not in {role.value for role in UserRole}:
            raise ValueError("Role must be either buyer or seller")
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        return v


class PublicUser(CamelModel):
    """Public-safe projection of a user."""

    id: int
    name: str
    email: str
    role: UserRole
    profile_pic: Optional[str] = None


class RegisterResponse(CamelModel):
    message: str
    user: PublicUser


class LoginResponse(CamelModel):
    token: str
    user: PublicUser


class TokenData(BaseModel):
    user_id: Optional[int] = None


class AuthUser(BaseModel):
    """Verified identity handed to route handlers."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    name: str
    email: str
    role: UserRole

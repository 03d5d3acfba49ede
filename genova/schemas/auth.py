"""Pydantic schemas for Genova auth endpoints (camelCase on the wire)."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserRole(str, Enum):
    STUDENT = "STUDENT"
    TUTOR = "TUTOR"
    ADMIN = "ADMIN"


class User(BaseModel):
    """Authenticated user as returned by /auth/login and /auth/me. Unknown fields are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    email: str
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    role: UserRole
    avatar_url: str | None = Field(default=None, alias="avatarUrl")

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("role", mode="before")
    @classmethod
    def _role_upper(cls, v: Any) -> Any:
        # Older API builds send lowercase roles
        return v.upper() if isinstance(v, str) else v


class TokenPair(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken", min_length=1)
    refresh_token: str | None = Field(default=None, alias="refreshToken")


class RefreshResponse(BaseModel):
    """Body of POST /auth/refresh: {"data": {"accessToken": ..., "refreshToken"?: ...}}."""

    data: TokenPair


class LoginData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken", min_length=1)
    refresh_token: str = Field(alias="refreshToken", min_length=1)
    user: User


class LoginResponse(BaseModel):
    data: LoginData


class MeData(BaseModel):
    user: User


class MeResponse(BaseModel):
    """Body of GET /auth/me: {"data": {"user": {...}}}."""

    data: MeData


class RegisterData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    role: Literal["student", "tutor"]
    education_level: str | None = Field(default=None, alias="educationLevel")
    preferred_subjects: list[str] | None = Field(default=None, alias="preferredSubjects")

    @field_validator("role", mode="before")
    @classmethod
    def _role_lower(cls, v: Any) -> Any:
        # Registration takes lowercase roles; User.role comes back uppercase
        return v.lower() if isinstance(v, str) else v

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

"""
Auth feature: Pydantic schemas for request/response models.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, ValidationInfo, field_validator

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6


def _strip(value):
    return value.strip() if isinstance(value, str) else value


# ── Requests ─────────────────────────────────────────────
class RegisterRequest(BaseModel):
    first_name: str = Field(min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    last_name: str = Field(min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)
    confirm_password: str

    strip_names = field_validator("first_name", "last_name", mode="before")(_strip)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        password = info.data.get("password")
        if password is not None and value != password:
            raise ValueError("Passwords do not match")
        return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class UpdateProfileRequest(BaseModel):
    first_name: str | None = Field(default=None, min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    last_name: str | None = Field(default=None, min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    email: EmailStr | None = None

    strip_names = field_validator("first_name", "last_name", mode="before")(_strip)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str | None) -> str | None:
        return value.lower() if value else value


# ── Responses ────────────────────────────────────────────
class UserResponse(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

"""
auth/schemas.py -- Pydantic v2 request models for the authentication workflow.

These models are the structural validation step of every workflow: types,
lengths, enumerations. Field aliases follow the camelCase wire format the
signup and login forms post (confirmPassword, graduationYear, ...). Policy
checks that depend on order or on the database (password strength, category
fields, uniqueness) are in auth/validation.py and auth/workflow.py.

Messages raised from validators are user-facing; format_validation_errors()
turns pydantic's error list into the {field, message} details of the
VALIDATION_ERROR envelope.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# bcrypt only looks at the first 72 bytes of a password.
PASSWORD_MAX_BYTES = 72


def _blank_to_none(value: Any) -> Any:
    # HTML forms post "" for untouched optional inputs.
    if isinstance(value, str) and not value.strip():
        return None
    return value


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/auth/signup."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(max_length=255)
    email: EmailStr
    password: str
    confirm_password: str = Field(alias="confirmPassword")
    mobile: str = Field(max_length=20)
    alternate_mobile: Optional[str] = Field(default=None, alias="alternateMobile", max_length=20)
    gender: Literal["male", "female", "other"]
    category: Literal["college", "alumni"]

    # College-specific fields
    course: Optional[str] = Field(default=None, max_length=255)
    graduation_year: Optional[int] = Field(default=None, alias="graduationYear", ge=1900, le=2100)
    id_card_photo_url: Optional[str] = Field(default=None, alias="idCardPhotoUrl", max_length=2048)
    id_card_photo_key: Optional[str] = Field(default=None, alias="idCardPhotoKey", max_length=512)

    # Alumni-specific fields
    profession: Optional[str] = Field(default=None, max_length=255)
    passed_out_year: Optional[int] = Field(default=None, alias="passedOutYear", ge=1900, le=2100)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("name")
    @classmethod
    def name_length(cls, value: str) -> str:
        if len(value) < 2:
            raise ValueError("Name must be at least 2 characters long")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_length(cls, value: str) -> str:
        if len(value) < 8:
            raise ValueError("Password must be at least 8 characters long")
        if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
            raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes long")
        return value

    @field_validator("mobile")
    @classmethod
    def mobile_digits(cls, value: str) -> str:
        if sum(ch.isdigit() for ch in value) < 10:
            raise ValueError("Mobile number must be at least 10 digits")
        return value

    @field_validator(
        "alternate_mobile",
        "course",
        "graduation_year",
        "id_card_photo_url",
        "id_card_photo_key",
        "profession",
        "passed_out_year",
        mode="before",
    )
    @classmethod
    def optional_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_required(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        return value


class VerifyEmailRequest(BaseModel):
    """Request body for POST /api/v1/auth/verify-email.

    token is optional at the schema level; the workflow rejects a missing or
    empty token with its own VALIDATION_ERROR message.
    """

    token: Optional[str] = None


def format_validation_errors(errors: list[dict]) -> list[dict]:
    """Convert pydantic error dicts into [{field, message}] envelope details.

    The leading "body" segment FastAPI adds to request locations is dropped.
    Messages raised by our own validators are unwrapped from pydantic's
    "Value error, ..." prefix.
    """
    details: list[dict] = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        message = err.get("msg", "Invalid value")
        ctx_error = (err.get("ctx") or {}).get("error")
        if err.get("type") == "value_error" and ctx_error is not None:
            message = str(ctx_error)
        details.append({"field": ".".join(loc), "message": message})
    return details

"""
API response models for the campus identity REST endpoints.

Every endpoint answers with the same envelope:
    success:   true | false
    message:   human-readable summary (success responses)
    data:      payload (success responses)
    error:     {code, message, details[{field, message}]} (error responses)
    timestamp: ISO 8601 UTC

These Pydantic v2 models define the HTTP transport contract. They are
separate from the dataclasses in auth/models.py, which own the
domain representation. The from_* factory methods map between the two.
Request models live in auth/schemas.py because the workflow validates them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from auth.models import AlumniUser, CollegeUser, User, UserWithProfile


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class FieldError(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    details: list[FieldError] = Field(default_factory=list)


class ErrorEnvelope(BaseModel):
    """Top-level envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    error: ErrorDetail
    timestamp: str = Field(default_factory=utc_timestamp)


class Envelope(BaseModel):
    """Top-level envelope returned on 2xx responses."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=utc_timestamp)


def success_response(message: str, data: Optional[dict] = None, status_code: int = 200) -> JSONResponse:
    body = Envelope(message=message, data=data or {})
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def error_response(
    code: str,
    message: str,
    status_code: int,
    details: Optional[list[dict]] = None,
) -> JSONResponse:
    body = ErrorEnvelope(
        error=ErrorDetail(code=code, message=message, details=[FieldError(**d) for d in details or []])
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# User payloads
# ---------------------------------------------------------------------------


class PublicUser(BaseModel):
    """The fields of a user that may leave the server. Never the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    category: str
    status: str

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
        return cls(id=user.id, name=user.name, email=user.email, category=user.category, status=user.status)


class LoginUser(PublicUser):
    email_verified: bool

    @classmethod
    def from_user(cls, user: User) -> "LoginUser":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            category=user.category,
            status=user.status,
            email_verified=user.email_verified,
        )


class CollegeInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    course: str
    year_of_graduation: int
    id_card_photo_url: Optional[str]
    verification_status: str


class AlumniInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    profession: str
    year_passed_out: int
    verification_status: str


class ProfileUser(BaseModel):
    """GET /api/v1/users/profile payload.

    Exactly one of college_info / alumni_info is emitted, chosen by category.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    mobile_number: str
    alternate_mobile_number: Optional[str]
    gender: str
    category: str
    email_verified: bool
    mobile_verified: bool
    status: str
    created_at: str
    college_info: Optional[CollegeInfo] = None
    alumni_info: Optional[AlumniInfo] = None

    @classmethod
    def from_profile(cls, view: UserWithProfile) -> "ProfileUser":
        """Build the payload from the CollegeUser / AlumniUser tagged union."""
        user = view.user
        college_info = None
        alumni_info = None
        if isinstance(view, CollegeUser) and view.college_info is not None:
            c = view.college_info
            college_info = CollegeInfo(
                course=c.course,
                year_of_graduation=c.year_of_graduation,
                id_card_photo_url=c.id_card_photo_url,
                verification_status=c.verification_status,
            )
        elif isinstance(view, AlumniUser) and view.alumni_info is not None:
            a = view.alumni_info
            alumni_info = AlumniInfo(
                profession=a.profession,
                year_passed_out=a.year_passed_out,
                verification_status=a.verification_status,
            )
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            mobile_number=user.mobile_number,
            alternate_mobile_number=user.alternate_mobile_number,
            gender=user.gender,
            category=user.category,
            email_verified=user.email_verified,
            mobile_verified=user.mobile_verified,
            status=user.status,
            created_at=user.created_at or "",
            college_info=college_info,
            alumni_info=alumni_info,
        )

    def to_payload(self) -> dict:
        """Dump without the profile key that does not apply to this category."""
        exclude = {"alumni_info"} if self.category == "college" else {"college_info"}
        return self.model_dump(mode="json", exclude=exclude)


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]

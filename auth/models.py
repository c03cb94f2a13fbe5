"""
auth/models.py -- Domain dataclasses for identity and authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store and the workflow do the work.

CollegeUser / AlumniUser form a tagged union over the category discriminator.
Each variant carries only its own profile fields, so response shaping never
has to guess which profile columns are populated.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

CATEGORY_COLLEGE = "college"
CATEGORY_ALUMNI = "alumni"

# Statuses that may log in. Anything else (e.g. "suspended") is rejected.
LOGIN_ALLOWED_STATUSES = frozenset({"active", "pending"})


@dataclass
class User:
    """An identity record created at signup.

    password_hash is always set before the record is written -- the store has
    no code path that inserts a user without one.

    status starts as "pending" and is changed only by administrative actions.
    """

    name: str
    email: str
    password_hash: str
    mobile_number: str
    gender: str  # "male" | "female" | "other"
    category: str  # "college" | "alumni"
    id: int | None = None
    alternate_mobile_number: str | None = None
    email_verified: bool = False
    mobile_verified: bool = False
    status: str = "pending"
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class CollegeProfile:
    """Profile row for category=college. user_id is filled in by the store."""

    course: str
    year_of_graduation: int
    user_id: int | None = None
    id_card_photo_url: str | None = None
    id_card_photo_key: str | None = None
    verification_status: str = "pending"


@dataclass
class AlumniProfile:
    """Profile row for category=alumni. user_id is filled in by the store."""

    profession: str
    year_passed_out: int
    user_id: int | None = None
    verification_status: str = "pending"


Profile = Union[CollegeProfile, AlumniProfile]


@dataclass
class EmailVerificationToken:
    """Single-use opaque secret proving ownership of a user's email address."""

    token: str
    expires_at: str  # ISO 8601 UTC
    user_id: int | None = None
    id: int | None = None
    used: bool = False
    created_at: str | None = None


@dataclass
class LoginAttempt:
    """One row of the append-only login audit log."""

    email: str
    ip_address: str
    user_agent: str
    success: bool
    id: int | None = None
    attempted_at: str | None = None


# ---------------------------------------------------------------------------
# Profile view -- tagged union resolved by category
# ---------------------------------------------------------------------------


@dataclass
class CollegeUser:
    user: User
    college_info: CollegeProfile | None
    category: Literal["college"] = "college"


@dataclass
class AlumniUser:
    user: User
    alumni_info: AlumniProfile | None
    category: Literal["alumni"] = "alumni"


UserWithProfile = Union[CollegeUser, AlumniUser]

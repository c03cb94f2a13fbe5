"""
auth/validation.py -- Password, email and category policy checks for signup.

Structural validation (types, lengths, enums) lives on the pydantic request
models in auth/schemas.py. The policies here run inside the signup workflow, in
the order the workflow defines, and report every violation rather than just
the first one.

Each function returns plain data (bool, list of messages, list of field
errors). The workflow decides how to turn a failure into ValidationFailed.
"""

from __future__ import annotations

import re
from typing import Optional

from auth.models import CATEGORY_ALUMNI, CATEGORY_COLLEGE

PASSWORD_MIN_LENGTH = 8

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_LETTER_RE = re.compile(r"[a-zA-Z]")
_DIGIT_RE = re.compile(r"[0-9]")
_SPECIAL_RE = re.compile(r"[^a-zA-Z0-9]")


def validate_password_strength(password: str) -> list[str]:
    """Return one message per unmet password requirement. Empty list = strong enough."""
    errors: list[str] = []
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if not _LETTER_RE.search(password):
        errors.append("Password must contain at least one letter")
    if not _DIGIT_RE.search(password):
        errors.append("Password must contain at least one number")
    if not _SPECIAL_RE.search(password):
        errors.append("Password must contain at least one special character")
    return errors


def validate_email_format(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def passwords_match(password: str, confirm_password: str) -> bool:
    """Literal comparison -- no normalization of either side."""
    return password == confirm_password


def category_field_errors(
    category: str,
    *,
    course: Optional[str] = None,
    graduation_year: Optional[int] = None,
    profession: Optional[str] = None,
    passed_out_year: Optional[int] = None,
) -> list[dict]:
    """Return {field, message} errors for missing category-specific fields.

    Field names are the wire names the client sent (camelCase), so the form
    can attach each message to the right input.
    """
    errors: list[dict] = []
    if category == CATEGORY_COLLEGE:
        if not course:
            errors.append({"field": "course", "message": "Course is required"})
        if graduation_year is None:
            errors.append({"field": "graduationYear", "message": "Graduation year is required"})
    elif category == CATEGORY_ALUMNI:
        if not profession:
            errors.append({"field": "profession", "message": "Profession is required"})
        if passed_out_year is None:
            errors.append({"field": "passedOutYear", "message": "Year passed out is required"})
    return errors

"""
Tests for auth/store.py -- UserStore against a file-backed SQLite database.

Covers:
  - create_account writes user, category profile and token in one transaction
  - duplicate email raises IntegrityError and writes nothing
  - get_with_profile resolves the college / alumni tagged union
  - consume_verification_token is single-use and honours expiry
  - failed-attempt counting respects the time window and success flag
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import (
    AlumniProfile,
    AlumniUser,
    CollegeProfile,
    CollegeUser,
    EmailVerificationToken,
    LoginAttempt,
    User,
)
from auth.store import to_iso
from conftest import unique_email


def _user(email: str, category: str = "college") -> User:
    return User(
        name="Priya Sharma",
        email=email,
        password_hash="$2b$04$notarealhashnotarealhashnotarealhashnotarealhashnot",
        mobile_number="9876543210",
        gender="female",
        category=category,
    )


def _token(value: str = "a" * 64, hours: int = 24) -> EmailVerificationToken:
    return EmailVerificationToken(
        token=value,
        expires_at=to_iso(datetime.now(timezone.utc) + timedelta(hours=hours)),
    )


def _attempt(email: str, success: bool, when: datetime | None = None) -> LoginAttempt:
    return LoginAttempt(
        email=email,
        ip_address="203.0.113.7",
        user_agent="pytest",
        success=success,
        attempted_at=to_iso(when) if when is not None else None,
    )


# ---------------------------------------------------------------------------
# Account creation
# ---------------------------------------------------------------------------


async def test_create_college_account(store):
    email = unique_email()
    created = await store.create_account(
        _user(email),
        CollegeProfile(course="BSc Physics", year_of_graduation=2026, id_card_photo_url="https://cdn/x.png"),
        _token(),
    )
    assert created.id is not None
    assert created.status == "pending"
    assert created.email_verified is False
    assert created.created_at == created.updated_at

    view = await store.get_with_profile(created.id)
    assert isinstance(view, CollegeUser)
    assert view.category == "college"
    assert view.college_info.course == "BSc Physics"
    assert view.college_info.year_of_graduation == 2026
    assert view.college_info.id_card_photo_url == "https://cdn/x.png"
    assert view.college_info.verification_status == "pending"


async def test_create_alumni_account(store):
    created = await store.create_account(
        _user(unique_email(), category="alumni"),
        AlumniProfile(profession="Architect", year_passed_out=2010),
        _token(),
    )
    view = await store.get_with_profile(created.id)
    assert isinstance(view, AlumniUser)
    assert view.alumni_info.profession == "Architect"
    assert view.alumni_info.year_passed_out == 2010


async def test_token_is_stored_unused(store):
    created = await store.create_account(
        _user(unique_email()), CollegeProfile(course="BA", year_of_graduation=2025), _token("b" * 64)
    )
    stored = await store.get_verification_token("b" * 64)
    assert stored.user_id == created.id
    assert stored.used is False


async def test_duplicate_email_writes_nothing(store):
    email = unique_email()
    await store.create_account(_user(email), CollegeProfile(course="BA", year_of_graduation=2025), _token("c" * 64))

    with pytest.raises(IntegrityError):
        await store.create_account(
            _user(email, category="alumni"),
            AlumniProfile(profession="Chef", year_passed_out=2001),
            _token("d" * 64),
        )

    assert await store.get_verification_token("d" * 64) is None
    existing = await store.get_by_email(email)
    assert existing.category == "college"


async def test_email_lookup_is_case_sensitive(store):
    email = unique_email()
    await store.create_account(_user(email), CollegeProfile(course="BA", year_of_graduation=2025), _token())
    assert await store.get_by_email(email) is not None
    assert await store.get_by_email(email.upper()) is None


async def test_unknown_user(store):
    assert await store.get_by_id(999) is None
    assert await store.get_with_profile(999) is None


async def test_update_user_status(store):
    created = await store.create_account(
        _user(unique_email()), CollegeProfile(course="BA", year_of_graduation=2025), _token()
    )
    assert await store.update_user(created.id, status="suspended") is True
    assert (await store.get_by_id(created.id)).status == "suspended"
    assert await store.update_user(999, status="active") is False


# ---------------------------------------------------------------------------
# Verification tokens
# ---------------------------------------------------------------------------


async def test_consume_token_once(store):
    email = unique_email()
    created = await store.create_account(
        _user(email), CollegeProfile(course="BA", year_of_graduation=2025), _token("e" * 64)
    )

    assert await store.consume_verification_token("e" * 64) == email
    assert (await store.get_by_id(created.id)).email_verified is True
    assert (await store.get_verification_token("e" * 64)).used is True

    assert await store.consume_verification_token("e" * 64) is None


async def test_expired_token_is_not_consumed(store):
    created = await store.create_account(
        _user(unique_email()), CollegeProfile(course="BA", year_of_graduation=2025), _token("f" * 64, hours=-1)
    )
    assert await store.consume_verification_token("f" * 64) is None
    assert (await store.get_by_id(created.id)).email_verified is False
    assert (await store.get_verification_token("f" * 64)).used is False


async def test_consume_checks_expiry_against_given_time(store):
    await store.create_account(
        _user(unique_email()), CollegeProfile(course="BA", year_of_graduation=2025), _token("0" * 64, hours=1)
    )
    later = datetime.now(timezone.utc) + timedelta(hours=2)
    assert await store.consume_verification_token("0" * 64, now=later) is None


async def test_unknown_token(store):
    assert await store.consume_verification_token("9" * 64) is None


# ---------------------------------------------------------------------------
# Login attempts
# ---------------------------------------------------------------------------


async def test_failed_attempt_window(store):
    email = unique_email()
    now = datetime.now(timezone.utc)
    await store.log_login_attempt(_attempt(email, False, now - timedelta(minutes=30)))
    await store.log_login_attempt(_attempt(email, False, now - timedelta(minutes=5)))
    await store.log_login_attempt(_attempt(email, False))
    await store.log_login_attempt(_attempt(email, True))
    await store.log_login_attempt(_attempt(unique_email(), False))

    since = now - timedelta(minutes=15)
    assert await store.count_failed_attempts_since(email, since) == 2


async def test_list_login_attempts_oldest_first(store):
    email = unique_email()
    now = datetime.now(timezone.utc)
    await store.log_login_attempt(_attempt(email, True, now))
    await store.log_login_attempt(_attempt(email, False, now - timedelta(minutes=1)))

    attempts = await store.list_login_attempts(email)
    assert [a.success for a in attempts] == [False, True]
    assert attempts[0].ip_address == "203.0.113.7"
    assert attempts[0].user_agent == "pytest"


async def test_ping(store):
    assert await store.ping() is True

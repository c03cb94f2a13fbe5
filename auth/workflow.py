"""
auth/workflow.py -- Signup, login, email verification and profile retrieval.

Every operation takes the UserStore explicitly (no module-level DB handle)
and runs its checks in a fixed order, short-circuiting on the first failure
by raising one of the auth.errors exceptions. The API layer renders those
into the response envelope; nothing here knows about HTTP.

Signup order:
  schema (SignupRequest) -> passwords match -> password strength -> email
  format -> email not registered -> category fields -> hash -> atomic create
  of user + profile + verification token -> deliver token -> public fields.

Login order:
  schema (LoginRequest) -> failed-attempt window -> user exists -> password ->
  email verified -> status allowed -> issue tokens. Every rejection after the
  schema check is recorded as a failed attempt, including the rate-limit
  rejection itself.

Information hiding:
  Unknown email and wrong password produce the same INVALID_CREDENTIALS
  error, and bcrypt runs in both cases [C1]. Every verification-token failure
  produces the same INVALID_TOKEN error.

bcrypt calls run in the threadpool so a hash never stalls the event loop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from auth.errors import (
    AccountSuspendedError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidVerificationTokenError,
    RateLimitExceededError,
    UserExistsError,
    UserNotFoundError,
    ValidationFailed,
)
from auth.models import (
    CATEGORY_COLLEGE,
    LOGIN_ALLOWED_STATUSES,
    AlumniProfile,
    CollegeProfile,
    EmailVerificationToken,
    LoginAttempt,
    Profile,
    User,
    UserWithProfile,
)
from auth.notifier import VerificationNotifier
from auth.schemas import LoginRequest, SignupRequest
from auth.store import UserStore, to_iso
from auth.tokens import (
    DUMMY_HASH,
    create_access_token,
    create_refresh_token,
    generate_email_verification_token,
    hash_password,
    verify_password,
)
from auth.validation import (
    category_field_errors,
    passwords_match,
    validate_email_format,
    validate_password_strength,
)
from core.config import get_settings

logger = logging.getLogger("campusid.auth.workflow")

_settings = get_settings()


@dataclass
class LoginResult:
    """Credentials issued by a successful login.

    access_token goes in the response body; refresh_token only ever leaves
    the server as an HttpOnly cookie.
    """

    user: User
    access_token: str
    refresh_token: str


# ---------------------------------------------------------------------------
# Signup
# ---------------------------------------------------------------------------


def _build_profile(req: SignupRequest) -> Profile:
    if req.category == CATEGORY_COLLEGE:
        return CollegeProfile(
            course=req.course,
            year_of_graduation=req.graduation_year,
            id_card_photo_url=req.id_card_photo_url,
            id_card_photo_key=req.id_card_photo_key,
        )
    return AlumniProfile(profession=req.profession, year_passed_out=req.passed_out_year)


async def signup(store: UserStore, notifier: VerificationNotifier, req: SignupRequest) -> User:
    """Register a new user with its category profile and a pending verification token.

    Returns the stored User; callers expose only its public fields.
    """
    if not passwords_match(req.password, req.confirm_password):
        raise ValidationFailed(
            "Passwords do not match",
            [{"field": "confirmPassword", "message": "Passwords do not match"}],
        )

    strength_errors = validate_password_strength(req.password)
    if strength_errors:
        raise ValidationFailed(
            "Password does not meet requirements",
            [{"field": "password", "message": msg} for msg in strength_errors],
        )

    if not validate_email_format(req.email):
        raise ValidationFailed("Invalid email format", [{"field": "email", "message": "Invalid email format"}])

    if await store.get_by_email(req.email) is not None:
        raise UserExistsError()

    missing = category_field_errors(
        req.category,
        course=req.course,
        graduation_year=req.graduation_year,
        profession=req.profession,
        passed_out_year=req.passed_out_year,
    )
    if missing:
        if req.category == CATEGORY_COLLEGE:
            message = "Course and graduation year are required for college students"
        else:
            message = "Profession and year passed out are required for alumni"
        raise ValidationFailed(message, missing)

    user = User(
        name=req.name,
        email=req.email,
        password_hash=await run_in_threadpool(hash_password, req.password),
        mobile_number=req.mobile,
        alternate_mobile_number=req.alternate_mobile,
        gender=req.gender,
        category=req.category,
    )
    expires_at = datetime.now(timezone.utc) + timedelta(hours=_settings.verification_token_expire_hours)
    verification = EmailVerificationToken(token=generate_email_verification_token(), expires_at=to_iso(expires_at))

    try:
        created = await store.create_account(user, _build_profile(req), verification)
    except IntegrityError as exc:
        # A concurrent signup won the race between the pre-check and the insert.
        raise UserExistsError() from exc

    logger.info("User %d registered (category=%s)", created.id, created.category)

    try:
        await notifier.send_verification(created.email, created.name, verification.token)
    except Exception:
        # Account is already committed; delivery failure is not a signup failure.
        logger.exception("Verification delivery failed for user %d", created.id)

    return created


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def login(store: UserStore, req: LoginRequest, *, ip_address: str, user_agent: str) -> LoginResult:
    """Authenticate an email/password pair and issue access + refresh tokens."""

    async def record(success: bool) -> None:
        await store.log_login_attempt(
            LoginAttempt(email=req.email, ip_address=ip_address, user_agent=user_agent, success=success)
        )

    window = _settings.login_attempt_window_minutes
    since = datetime.now(timezone.utc) - timedelta(minutes=window)
    recent_failures = await store.count_failed_attempts_since(req.email, since)
    if recent_failures >= _settings.login_max_failed_attempts:
        # Counted as a failure too, so continued hammering keeps the window full.
        await record(False)
        logger.warning("Login rate limit hit for %s from %s", req.email, ip_address)
        raise RateLimitExceededError(f"Too many failed login attempts. Please try again in {window} minutes.")

    user = await store.get_by_email(req.email)
    if user is None:
        await run_in_threadpool(verify_password, req.password, DUMMY_HASH)
        await record(False)
        raise InvalidCredentialsError()

    if not await run_in_threadpool(verify_password, req.password, user.password_hash):
        await record(False)
        raise InvalidCredentialsError()

    if not user.email_verified:
        await record(False)
        raise EmailNotVerifiedError()

    if user.status not in LOGIN_ALLOWED_STATUSES:
        await record(False)
        raise AccountSuspendedError()

    access_token = create_access_token(user.id, user.email)
    refresh_token = create_refresh_token(user.id)
    await record(True)
    logger.info("User %d logged in from %s", user.id, ip_address)
    return LoginResult(user=user, access_token=access_token, refresh_token=refresh_token)


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------


async def verify_email(store: UserStore, token: str | None) -> str:
    """Consume a verification token and return the email it verified."""
    if not token:
        raise ValidationFailed("Verification token is required")

    email = await store.consume_verification_token(token)
    if email is None:
        raise InvalidVerificationTokenError()

    logger.info("Email verified for %s", email)
    return email


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


async def get_profile(store: UserStore, user_id: int) -> UserWithProfile:
    """Return the user with its category profile, or raise UserNotFoundError."""
    profile = await store.get_with_profile(user_id)
    if profile is None:
        raise UserNotFoundError()
    return profile

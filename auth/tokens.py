"""
auth/tokens.py -- JWT, password hashing, and verification token utilities.

Security design decisions:
  JWT: python-jose with HS256. Two token kinds, each with its own signing key:
       access tokens (SECRET_KEY, 15 minutes) carry user_id + email;
       refresh tokens (REFRESH_SECRET_KEY, 7 days) carry user_id only.
       Both embed a "type" claim so a token of one kind is rejected where the
       other is expected, even if it was somehow signed with the right key.
       Verification returns an explicit result variant instead of raising:
       TokenValid | TokenExpired | TokenMalformed | TokenWrongType.

  Passwords: bcrypt with a fixed cost factor (BCRYPT_ROUNDS, default 12).
       The _DUMMY_HASH constant enables timing equalization in the login
       workflow so response time does not reveal whether an email exists [C1].

  Verification tokens: secrets.token_hex(32) gives 256 bits of entropy --
       unguessable and unique with overwhelming probability.

  Refresh cookie: HttpOnly, SameSite=strict, Secure outside DEBUG mode.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Generic, TypeVar, Union

import bcrypt
from fastapi import Response
from jose import ExpiredSignatureError, JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("campusid.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton [M6]
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"
REFRESH_COOKIE_NAME = "refresh_token"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The request model
    caps password length well below that threshold.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A malformed stored hash counts
    as a mismatch rather than an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load. The login workflow verifies against it when
# the email is unknown so both failure paths pay the same bcrypt cost.
DUMMY_HASH: str = hash_password("campusid_timing_dummy")


# ---------------------------------------------------------------------------
# Verification results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccessClaims:
    user_id: int
    email: str


@dataclass(frozen=True)
class RefreshClaims:
    user_id: int


ClaimsT = TypeVar("ClaimsT")


@dataclass(frozen=True)
class TokenValid(Generic[ClaimsT]):
    claims: ClaimsT


@dataclass(frozen=True)
class TokenExpired:
    pass


@dataclass(frozen=True)
class TokenMalformed:
    pass


@dataclass(frozen=True)
class TokenWrongType:
    pass


TokenResult = Union[TokenValid, TokenExpired, TokenMalformed, TokenWrongType]


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def _encode(payload: dict, key: str, lifetime: timedelta) -> str:
    payload = dict(payload, exp=datetime.now(timezone.utc) + lifetime)
    return jwt.encode(payload, key, algorithm=_ALGORITHM)


def _decode(token: str, key: str, expected_type: str) -> dict | TokenExpired | TokenMalformed | TokenWrongType:
    try:
        payload = jwt.decode(token, key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError:
        return TokenExpired()
    except JWTError:
        return TokenMalformed()
    if payload.get("type") != expected_type:
        return TokenWrongType()
    if not isinstance(payload.get("user_id"), int):
        return TokenMalformed()
    return payload


def create_access_token(user_id: int, email: str) -> str:
    """Encode a signed access JWT. Lifetime: ACCESS_TOKEN_EXPIRE_MINUTES."""
    return _encode(
        {"user_id": user_id, "email": email, "type": ACCESS_TOKEN_TYPE},
        _settings.secret_key,
        timedelta(minutes=_settings.access_token_expire_minutes),
    )


def create_refresh_token(user_id: int) -> str:
    """Encode a signed refresh JWT. Lifetime: REFRESH_TOKEN_EXPIRE_DAYS."""
    return _encode(
        {"user_id": user_id, "type": REFRESH_TOKEN_TYPE},
        _settings.refresh_secret_key,
        timedelta(days=_settings.refresh_token_expire_days),
    )


def verify_access_token(token: str) -> TokenResult:
    """Check signature, expiry and token type of an access JWT."""
    result = _decode(token, _settings.secret_key, ACCESS_TOKEN_TYPE)
    if not isinstance(result, dict):
        return result
    if not isinstance(result.get("email"), str):
        return TokenMalformed()
    return TokenValid(AccessClaims(user_id=result["user_id"], email=result["email"]))


def verify_refresh_token(token: str) -> TokenResult:
    """Check signature, expiry and token type of a refresh JWT."""
    result = _decode(token, _settings.refresh_secret_key, REFRESH_TOKEN_TYPE)
    if not isinstance(result, dict):
        return result
    return TokenValid(RefreshClaims(user_id=result["user_id"]))


# ---------------------------------------------------------------------------
# Email verification tokens
# ---------------------------------------------------------------------------


def generate_email_verification_token() -> str:
    """Return 32 random bytes as 64 hex characters (256 bits of entropy)."""
    return secrets.token_hex(32)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_refresh_cookie(response: Response, token: str) -> None:
    """Write the refresh JWT as a protected cookie on the response.

    httponly=True: page scripts cannot read the cookie.
    samesite="strict": never sent on cross-site requests.
    secure: HTTPS only outside DEBUG mode (or when SECURE_COOKIES=true).
    max_age: matches the refresh token lifetime.
    """
    response.set_cookie(
        REFRESH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="strict",
        secure=_settings.cookies_secure,
        max_age=_settings.refresh_token_expire_days * 24 * 60 * 60,
        path="/",
    )


def clear_refresh_cookie(response: Response) -> None:
    """Expire the refresh cookie. Attributes must match set_refresh_cookie or browsers keep it."""
    response.delete_cookie(
        REFRESH_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="strict",
        secure=_settings.cookies_secure,
    )

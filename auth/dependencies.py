"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Access tokens arrive as an Authorization: Bearer <token> header. The refresh
token lives in an HttpOnly cookie and is never accepted here.

get_access_claims() raises the domain errors directly; the exception handler
in api/main.py renders them:
  no / non-Bearer header        -> UNAUTHORIZED (401)
  expired, malformed, wrong type -> INVALID_TOKEN (401)

get_user_store() / get_notifier() hand the process-wide instances created in
the lifespan to route handlers, which pass them into the workflow.

Layer rule: may import from fastapi because this module is part of the
FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import InvalidAccessTokenError, MissingAccessTokenError
from auth.notifier import VerificationNotifier
from auth.store import UserStore
from auth.tokens import AccessClaims, TokenValid, verify_access_token


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def get_notifier(request: Request) -> VerificationNotifier:
    return request.app.state.notifier


def get_access_claims(request: Request) -> AccessClaims:
    """Require a valid access token in the Authorization header.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(claims: AccessClaims = Depends(get_access_claims)): ...
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise MissingAccessTokenError()

    result = verify_access_token(auth_header[7:])
    if not isinstance(result, TokenValid):
        raise InvalidAccessTokenError()
    return result.claims


def client_ip(request: Request) -> str:
    """Best-effort source address: first X-Forwarded-For hop, then the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first[:45]  # ip_address column width
    return request.client.host if request.client else "unknown"


def user_agent(request: Request) -> str:
    return request.headers.get("User-Agent") or "unknown"

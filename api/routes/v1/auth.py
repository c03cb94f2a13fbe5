"""
api/routes/v1/auth.py -- Signup, login, email verification and logout endpoints.

Routes:
  POST /api/v1/auth/signup        -- register a college student or alumnus; 201
  POST /api/v1/auth/login         -- password login; access token in body, refresh token cookie
  POST /api/v1/auth/verify-email  -- consume an email verification token
  POST /api/v1/auth/logout        -- clear the refresh token cookie

Handlers only translate HTTP to workflow calls and workflow results to the
response envelope. Failures are raised by the workflow as auth.errors
exceptions and rendered by the exception handler in api/main.py.

Security:
  [H2] POST /login is rate-limited per IP by slowapi (LOGIN_RATE_LIMIT) on top
       of the per-email failed-attempt window enforced by the workflow.
  [M5] Cache-Control: no-store on login responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginUser, PublicUser, success_response
from auth import workflow
from auth.dependencies import client_ip, get_notifier, get_user_store, user_agent
from auth.notifier import VerificationNotifier
from auth.schemas import LoginRequest, SignupRequest, VerifyEmailRequest
from auth.store import UserStore
from auth.tokens import clear_refresh_cookie, set_refresh_cookie
from core.config import get_settings

_settings = get_settings()

# Auth policy: every route in this module is public.
router = APIRouter()


@router.post("/auth/signup", status_code=201)
async def signup(
    body: SignupRequest,
    store: UserStore = Depends(get_user_store),
    notifier: VerificationNotifier = Depends(get_notifier),
) -> JSONResponse:
    """Create the account, its category profile and a verification token.

    The response carries only public user fields. The verification token is
    delivered out of band by the configured notifier.
    """
    user = await workflow.signup(store, notifier, body)
    return success_response(
        "Account created successfully. Please check your email for verification.",
        {"user": PublicUser.from_user(user).model_dump()},
        status_code=201,
    )


@router.post("/auth/login")
@limiter.limit(_settings.login_rate_limit)  # [H2] must sit BELOW @router.post
async def login(
    request: Request,
    body: LoginRequest,
    store: UserStore = Depends(get_user_store),
) -> JSONResponse:
    """Authenticate with email and password.

    The access token is returned in the body for use as a Bearer credential.
    The refresh token is set as an HttpOnly, SameSite=strict cookie and never
    appears in the body.
    """
    result = await workflow.login(store, body, ip_address=client_ip(request), user_agent=user_agent(request))
    resp = success_response(
        "Login successful",
        {"user": LoginUser.from_user(result.user).model_dump(), "accessToken": result.access_token},
    )
    set_refresh_cookie(resp, result.refresh_token)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/verify-email")
async def verify_email(
    body: VerifyEmailRequest,
    store: UserStore = Depends(get_user_store),
) -> JSONResponse:
    """Mark the token owner's email as verified. A token works exactly once."""
    email = await workflow.verify_email(store, body.token)
    return success_response("Email verified successfully", {"email": email})


@router.post("/auth/logout")
async def logout() -> JSONResponse:
    """Clear the refresh token cookie."""
    resp = success_response("Logged out")
    clear_refresh_cookie(resp)
    return resp

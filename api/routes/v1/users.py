"""
api/routes/v1/users.py -- Profile endpoint for the authenticated user.

Routes:
  GET /api/v1/users/profile -- user record plus college_info or alumni_info

Auth policy: requires a Bearer access token (get_access_claims). A refresh
token is rejected here even if its signature is valid.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.models import ProfileUser, success_response
from auth import workflow
from auth.dependencies import get_access_claims, get_user_store
from auth.store import UserStore
from auth.tokens import AccessClaims

router = APIRouter()


@router.get("/users/profile")
async def profile(
    claims: AccessClaims = Depends(get_access_claims),
    store: UserStore = Depends(get_user_store),
) -> JSONResponse:
    view = await workflow.get_profile(store, claims.user_id)
    return success_response(
        "Profile retrieved successfully",
        {"user": ProfileUser.from_profile(view).to_payload()},
    )

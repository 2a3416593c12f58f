"""
api/routes/v1/profile.py -- Self-service profile endpoints.

Routes:
  GET /api/v1/profile  -- the caller's account (requires auth)
  PUT /api/v1/profile  -- update name, email, and/or password (requires auth)

Update rules:
  name      -- no password confirmation required.
  email     -- must not belong to another account, and current_password must
               be supplied and correct.
  password  -- current_password must be supplied and correct, and the new
               password must meet the registration strength rule.
  A request that changes nothing returns 200 "No changes made".

The session token is not reissued: it carries only the subject id and role,
neither of which a profile update can change.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError

from api.models import ProfileResponse, ProfileUpdate, UserResponse, check_password_strength
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password, verify_password

logger = logging.getLogger("inkwell.api.profile")

router = APIRouter()


def _bad_request(code: str, message: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": code, "message": message})


def _require_current_password(user: User, current_password: str | None, purpose: str) -> None:
    if not current_password:
        raise _bad_request("current_password_required", f"Current password is required to change {purpose}.")
    if not verify_password(current_password, user.hashed_password):
        raise _bad_request("current_password_incorrect", "Current password is incorrect.")


@router.get("/profile", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(current_user)


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
) -> ProfileResponse:
    user_store: UserStore = request.app.state.user_store
    updates: dict = {}

    if body.name is not None and body.name != current_user.name:
        updates["name"] = body.name

    if body.email is not None and body.email != current_user.email:
        if user_store.email_taken(body.email, exclude_user_id=current_user.id):
            raise _bad_request("email_taken", "Email is already taken.")
        _require_current_password(current_user, body.current_password, "email")
        updates["email"] = body.email

    if body.new_password:
        _require_current_password(current_user, body.current_password, "password")
        try:
            check_password_strength(body.new_password)
        except ValueError as exc:
            raise _bad_request("weak_password", str(exc)) from exc
        updates["hashed_password"] = hash_password(body.new_password)

    if not updates:
        return ProfileResponse(message="No changes made", user=UserResponse.from_user(current_user))

    try:
        user_store.update_user(current_user.id, **updates)
    except IntegrityError as exc:
        # Another account claimed the email between the pre-check and the write.
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "Email is already taken."},
        ) from exc
    logger.info("User %d updated profile fields %s", current_user.id, sorted(updates))
    updated = user_store.get_by_id(current_user.id)
    return ProfileResponse(message="Profile updated successfully", user=UserResponse.from_user(updated))

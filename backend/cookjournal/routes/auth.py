"""
Cook Journal Backend — Auth Route Handlers
============================================

What:  /api/auth/* — register, login, logout, me, profile, password, account.
How:   Thin handlers: validate via schemas, delegate to AuthService, then set
       or clear the HTTP-only session cookie.

Cookie:
    name      settings.session_cookie_name ("sid")
    httponly  always
    samesite  settings.session_cookie_samesite
    secure    settings.session_cookie_secure (enable behind HTTPS)
    max-age   settings.session_ttl_seconds
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from cookjournal.config import settings
from cookjournal.database import get_db_session
from cookjournal.deps import get_current_user, get_current_user_optional, session_token
from cookjournal.exceptions import ValidationError
from cookjournal.models import User
from cookjournal.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    UserEnvelope,
    UserResponse,
)
from cookjournal.schemas.common import ErrorResponse
from cookjournal.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def set_session_cookie(response: Response, sid: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=sid,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        path="/",
    )


@router.post(
    "/register",
    response_model=UserEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Missing or malformed field", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Create an account and start a session",
)
async def register(
    payload: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> UserEnvelope:
    user, sid = await auth_service.register(db, payload)
    set_session_cookie(response, sid)
    return UserEnvelope(user=user)


@router.post(
    "/login",
    response_model=UserEnvelope,
    responses={
        400: {"description": "Missing field", "model": ErrorResponse},
        401: {"description": "Invalid email or password", "model": ErrorResponse},
    },
    summary="Start a session",
)
async def login(
    payload: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> UserEnvelope:
    user, sid = await auth_service.login(db, payload)
    set_session_cookie(response, sid)
    return UserEnvelope(user=user)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="End the current session (idempotent)",
)
async def logout(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await auth_service.destroy_session(db, session_token(request))
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    clear_session_cookie(response)
    return response


@router.get(
    "/me",
    response_model=UserEnvelope,
    summary="Current user, or null when no session is bound",
)
async def me(
    user: Optional[User] = Depends(get_current_user_optional),
) -> UserEnvelope:
    if user is None:
        return UserEnvelope(user=None)
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.put(
    "/me",
    response_model=UserEnvelope,
    responses={
        400: {"description": "Invalid name or email", "model": ErrorResponse},
        401: {"description": "No session", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Update name and/or email",
)
async def update_me(
    payload: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserEnvelope:
    updated = await auth_service.update_profile(db, user, payload)
    return UserEnvelope(user=updated)


@router.post(
    "/change-password",
    response_model=MessageResponse,
    responses={
        400: {"description": "New password too short or confirmation mismatch", "model": ErrorResponse},
        401: {"description": "No session or wrong current password", "model": ErrorResponse},
    },
    summary="Change the account password",
)
async def change_password(
    payload: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    if payload.confirm_password is not None and payload.confirm_password != payload.new_password:
        raise ValidationError(message="Passwords do not match", field="confirmPassword")

    await auth_service.change_password(
        db, user, payload.current_password, payload.new_password
    )
    return MessageResponse(message="Password updated")


@router.delete(
    "/me",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"description": "No session", "model": ErrorResponse}},
    summary="Delete the account and everything it owns",
)
async def delete_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await auth_service.delete_account(db, user)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    clear_session_cookie(response)
    return response

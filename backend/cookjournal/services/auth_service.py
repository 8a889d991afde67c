"""
Cook Journal Backend — Auth Service
=====================================

What:  Registration, login/logout, session resolution, profile and password
       changes, and account deletion.
Why:   Keeps credential and session rules out of the route handlers.
How:   Passwords go through passlib (services/password.py); sessions are rows
       in the `sessions` table keyed by a random token that the route puts in
       an HTTP-only cookie.
Who:   Called by routes/auth.py and by the current-user dependencies.

Security Notes:
    - Login failures raise the same AuthError for "no such email" and "wrong
      password" so the endpoint cannot be used to enumerate accounts.
    - Emails are compared after trim + lowercase; the same normalization is
      applied on write, so the unique index is effectively case-insensitive.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cookjournal.config import settings
from cookjournal.exceptions import AuthError, ConflictError, ValidationError
from cookjournal.models import Recipe, User, UserSession
from cookjournal.schemas.auth import (
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    UserResponse,
)
from cookjournal.services.password import hash_password, verify_password
from cookjournal.services.recipe_service import recipe_service

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
INVALID_CREDENTIALS = "Invalid email or password"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AuthService:
    """
    Business logic for accounts and sessions.

    Every method receives the request's AsyncSession and only flushes; the
    commit (or rollback) is owned by get_db_session().
    """

    # ── Sessions ──────────────────────────────────────────────────────────

    async def create_session(self, db: AsyncSession, user_id) -> str:
        sid = secrets.token_urlsafe(32)
        db.add(
            UserSession(
                sid=sid,
                user_id=user_id,
                expires_at=datetime.now(timezone.utc)
                + timedelta(seconds=settings.session_ttl_seconds),
            )
        )
        await db.flush()
        return sid

    async def resolve_session(self, db: AsyncSession, sid: Optional[str]) -> Optional[User]:
        """
        Map a cookie token to its user.

        Returns None (never raises) for a missing, unknown or expired token.
        Expired rows are deleted on sight.
        """
        if not sid:
            return None

        result = await db.execute(select(UserSession).where(UserSession.sid == sid))
        session = result.scalar_one_or_none()
        if session is None:
            return None

        if _as_utc(session.expires_at) <= datetime.now(timezone.utc):
            logger.info("Session for user %s expired; removing", session.user_id)
            await db.delete(session)
            await db.flush()
            return None

        return await db.get(User, session.user_id)

    async def session_user_id(self, db: AsyncSession, sid: Optional[str]):
        """Read-only variant of resolve_session: the user id of a live session, or None."""
        if not sid:
            return None
        result = await db.execute(
            select(UserSession.user_id, UserSession.expires_at).where(UserSession.sid == sid)
        )
        row = result.first()
        if row is None or _as_utc(row.expires_at) <= datetime.now(timezone.utc):
            return None
        return row.user_id

    async def destroy_session(self, db: AsyncSession, sid: Optional[str]) -> None:
        """Idempotent: an absent or unknown token is not an error."""
        if not sid:
            return
        await db.execute(delete(UserSession).where(UserSession.sid == sid))
        await db.flush()

    # ── Accounts ──────────────────────────────────────────────────────────

    async def _find_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def register(
        self, db: AsyncSession, payload: RegisterRequest
    ) -> Tuple[UserResponse, str]:
        """
        Create an account and log it in.

        Returns:
            (public user projection, new session token)

        Raises:
            ConflictError: email already registered (409)
        """
        if await self._find_by_email(db, payload.email) is not None:
            raise ConflictError(message="Email already registered", field="email")

        user = User(
            email=payload.email,
            password_hash=hash_password(payload.password),
            name=payload.name or None,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            raise ConflictError(message="Email already registered", field="email")

        sid = await self.create_session(db, user.id)
        logger.info("User registered: %s", user.id)
        return UserResponse.model_validate(user), sid

    async def login(
        self, db: AsyncSession, payload: LoginRequest
    ) -> Tuple[UserResponse, str]:
        user = await self._find_by_email(db, payload.email)
        if user is None or not verify_password(payload.password, user.password_hash):
            logger.info("Failed login attempt")
            raise AuthError(message=INVALID_CREDENTIALS)

        sid = await self.create_session(db, user.id)
        logger.info("User logged in: %s", user.id)
        return UserResponse.model_validate(user), sid

    async def update_profile(
        self, db: AsyncSession, user: User, payload: ProfileUpdateRequest
    ) -> UserResponse:
        """Apply only the keys present in the payload."""
        fields = payload.model_fields_set

        if "email" in fields and payload.email != user.email:
            existing = await self._find_by_email(db, payload.email)
            if existing is not None and existing.id != user.id:
                raise ConflictError(message="Email already registered", field="email")
            user.email = payload.email

        if "name" in fields:
            user.name = payload.name or None

        user.updated_at = datetime.now(timezone.utc)
        try:
            await db.flush()
        except IntegrityError:
            raise ConflictError(message="Email already registered", field="email")

        return UserResponse.model_validate(user)

    async def change_password(
        self,
        db: AsyncSession,
        user: User,
        current_password: str,
        new_password: str,
    ) -> None:
        """
        Raises:
            AuthError: current password does not verify (401)
            ValidationError: new password shorter than 6 characters (400)
        """
        if not verify_password(current_password, user.password_hash):
            raise AuthError(message="Current password is incorrect", field="currentPassword")

        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                field="newPassword",
            )

        user.password_hash = hash_password(new_password)
        user.updated_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info("Password changed for user %s", user.id)

    async def delete_account(self, db: AsyncSession, user: User) -> None:
        """
        Delete the user, their sessions, and every recipe they own (each
        through the recipe delete cascade), all in the caller's transaction.
        """
        result = await db.execute(select(Recipe.id).where(Recipe.author_id == user.id))
        recipe_ids = list(result.scalars().all())

        await recipe_service.purge(db, recipe_ids)
        await db.execute(delete(UserSession).where(UserSession.user_id == user.id))
        await db.execute(delete(User).where(User.id == user.id))
        await db.flush()
        logger.info("Account %s deleted with %d recipes", user.id, len(recipe_ids))


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService()

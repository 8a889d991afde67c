"""
Cook Journal Backend — User & Session SQLAlchemy Models
=========================================================

What:  ORM models for the `users` and `sessions` tables.
Why:   Accounts own recipes; sessions bind an opaque cookie token to a user id.
How:   Generic SQLAlchemy types (Uuid, DateTime) so the same models run on
       PostgreSQL in production and SQLite in tests.

Table Design Rationale:
    - users.email is unique and always stored trimmed + lowercased, which makes
      the uniqueness check case-insensitive without a functional index
    - password_hash holds a passlib bcrypt hash, never the plaintext
    - sessions.sid is a random URL-safe token; the cookie carries only this
    - sessions.user_id cascades on delete so account deletion drops sessions
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from cookjournal.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    An account. Created at registration, updated by profile/password changes,
    deleted on explicit request (owned recipes are removed with it).
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
        comment="Trimmed, lowercased login email",
    )

    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"


class UserSession(Base):
    """
    Server-side session record.

    Lifecycle:
        1. Created on register/login; its sid is sent as an HTTP-only cookie
        2. Resolved on every request that presents the cookie
        3. Deleted on logout, on account deletion, or lazily once expired
    """

    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    sid: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_sessions_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<UserSession(user_id={self.user_id}, expires_at='{self.expires_at}')>"

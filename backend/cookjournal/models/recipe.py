"""
Cook Journal Backend — Recipe, Attempt & Image SQLAlchemy Models
==================================================================

What:  ORM models for the `recipes`, `attempts` and `images` tables.
Why:   The recipe aggregate: a recipe, the attempts cooked against it, and the
       pictures attached to either.
How:   Generic SQLAlchemy types (Uuid, JSON, DateTime) for PostgreSQL/SQLite
       portability; images are eagerly loaded with selectin so async code
       never triggers a lazy load.

Table Design Rationale:
    - recipes.best_attempt_id is a plain nullable UUID with NO foreign key.
      The "best attempt" view is resolved at read time by a lookup constrained
      to the recipe's own attempts, so there is no cached object to go stale
      and no recipe ↔ attempt FK cycle.
    - attempts.recipe_id is mandatory; attempts never outlive their recipe.
    - images belong to a recipe OR an attempt (CHECK: never both) and carry a
      position so the collection keeps the order the client sent.
    - Foreign keys cascade on delete as a backstop; the service layer still
      deletes dependents explicitly inside the same transaction.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cookjournal.database import Base
from cookjournal.models.user import utcnow


class Image(Base):
    """A stored picture URL attached to exactly one recipe or attempt."""

    __tablename__ = "images"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    url: Mapped[str] = mapped_column(Text, nullable=False)

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    recipe_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=True
    )
    attempt_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("attempts.id", ondelete="CASCADE"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "recipe_id IS NULL OR attempt_id IS NULL",
            name="ck_images_single_owner",
        ),
        Index("idx_images_recipe_id", "recipe_id"),
        Index("idx_images_attempt_id", "attempt_id"),
    )

    def __repr__(self) -> str:
        return f"<Image(id={self.id}, url='{self.url}')>"


class Attempt(Base):
    """
    One recorded execution of a recipe.

    Append-only: created by the add-attempt operation (or seeded on recipe
    creation), never updated, removed only when its recipe is deleted.
    """

    __tablename__ = "attempts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    recipe_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False
    )

    body: Mapped[str] = mapped_column(Text, nullable=False)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    meta: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    images: Mapped[List[Image]] = relationship(
        Image,
        primaryjoin="Attempt.id == Image.attempt_id",
        order_by=Image.position,
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_attempts_recipe_created", "recipe_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Attempt(id={self.id}, recipe_id={self.recipe_id})>"


class Recipe(Base):
    """
    The root aggregate: a titled cooking procedure.

    Query Patterns:
        - List newest first: ORDER BY created_at DESC (idx_recipes_created_at)
        - "Mine": WHERE author_id = :user (idx_recipes_author_id)
    """

    __tablename__ = "recipes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    meta: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    best_attempt_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        nullable=True,
        comment="Attempt of THIS recipe shown as best; resolved at read time",
    )

    author_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    images: Mapped[List[Image]] = relationship(
        Image,
        primaryjoin="Recipe.id == Image.recipe_id",
        order_by=Image.position,
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_recipes_created_at", "created_at"),
        Index("idx_recipes_author_id", "author_id"),
    )

    def __repr__(self) -> str:
        return f"<Recipe(id={self.id}, title='{self.title}')>"

"""
Cook Journal Backend — Recipe Service (Recipe Store)
======================================================

What:  Create, read, list, update, patch, delete and choose-best for recipes.
Why:   Owns the recipe aggregate's consistency rules so routes stay thin.
How:   SQLAlchemy async queries inside the request's transaction.
Who:   Called by routes/recipes.py and by AuthService.delete_account().

Invariants:
    - best_attempt_id, when set, names an attempt whose recipe_id is this
      recipe. Every write path checks it; every read path resolves it with a
      lookup constrained to the recipe, so a bad pointer can never surface.
    - Deletion removes attempt images, recipe images, attempts and the recipe
      in one transaction (purge()).
    - Image-set replacement deletes every old image of the owner first, then
      inserts the new list in order. No diffing.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cookjournal.exceptions import (
    AuthError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from cookjournal.models import Attempt, Image, Recipe, User
from cookjournal.schemas.recipe import (
    AttemptResponse,
    RecipeCreate,
    RecipeListResponse,
    RecipePatch,
    RecipeResponse,
    RecipeUpdate,
)

logger = logging.getLogger(__name__)


def parse_id(value, resource: str) -> uuid.UUID:
    """Path ids that are not UUIDs cannot name a row: treat them as missing."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFoundError(resource=resource, resource_id=str(value))


def build_images(urls: Optional[Iterable[str]]) -> List[Image]:
    return [Image(url=url, position=index) for index, url in enumerate(urls or [])]


class RecipeService:
    """
    Business logic layer for recipes.

    Ownership rule for PUT/PATCH/DELETE: no session → AuthError (401);
    a session whose user is not the recipe's author, or a recipe with no
    author at all → ForbiddenError (403).
    """

    # ── Lookups ───────────────────────────────────────────────────────────

    async def load(self, db: AsyncSession, recipe_id) -> Recipe:
        rid = parse_id(recipe_id, "recipe")
        recipe = await db.get(Recipe, rid)
        if recipe is None:
            raise NotFoundError(resource="recipe", resource_id=str(rid))
        return recipe

    async def _attempt_of(
        self, db: AsyncSession, recipe: Recipe, attempt_id
    ) -> Optional[Attempt]:
        """The attempt with this id, only if it belongs to `recipe`."""
        result = await db.execute(
            select(Attempt).where(
                Attempt.id == attempt_id,
                Attempt.recipe_id == recipe.id,
            )
        )
        return result.scalar_one_or_none()

    async def _require_attempt_of(
        self, db: AsyncSession, recipe: Recipe, raw_attempt_id, field: str
    ) -> Attempt:
        try:
            attempt_id = uuid.UUID(str(raw_attempt_id))
        except ValueError:
            attempt = None
        else:
            attempt = await self._attempt_of(db, recipe, attempt_id)

        if attempt is None:
            raise ValidationError(
                message="attempt not found for this recipe",
                field=field,
                context={"recipe_id": str(recipe.id), "attempt_id": str(raw_attempt_id)},
            )
        return attempt

    # ── Response assembly ─────────────────────────────────────────────────

    def _to_response(self, recipe: Recipe, best: Optional[Attempt]) -> RecipeResponse:
        response = RecipeResponse.model_validate(recipe)
        if best is not None and best.recipe_id == recipe.id:
            response.best_attempt = AttemptResponse.model_validate(best)
        return response

    async def to_response(self, db: AsyncSession, recipe: Recipe) -> RecipeResponse:
        best = None
        if recipe.best_attempt_id is not None:
            best = await self._attempt_of(db, recipe, recipe.best_attempt_id)
        return self._to_response(recipe, best)

    async def _to_responses(
        self, db: AsyncSession, recipes: List[Recipe]
    ) -> List[RecipeResponse]:
        """Resolve every bestAttempt with a single query."""
        best_ids = [r.best_attempt_id for r in recipes if r.best_attempt_id is not None]
        best_by_id: Dict[uuid.UUID, Attempt] = {}
        if best_ids:
            result = await db.execute(select(Attempt).where(Attempt.id.in_(best_ids)))
            best_by_id = {a.id: a for a in result.scalars().all()}

        return [self._to_response(r, best_by_id.get(r.best_attempt_id)) for r in recipes]

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def ensure_owner(recipe: Recipe, user: Optional[User]) -> None:
        if user is None:
            raise AuthError()
        if recipe.author_id is None or recipe.author_id != user.id:
            logger.info("User %s denied mutation of recipe %s", user.id, recipe.id)
            raise ForbiddenError(context={"recipe_id": str(recipe.id)})

    async def _replace_images(
        self, db: AsyncSession, recipe: Recipe, urls: List[str]
    ) -> None:
        await db.execute(delete(Image).where(Image.recipe_id == recipe.id))
        db.add_all(
            Image(url=url, position=index, recipe_id=recipe.id)
            for index, url in enumerate(urls)
        )
        await db.flush()
        await db.refresh(recipe, attribute_names=["images"])

    # ── Operations ────────────────────────────────────────────────────────

    async def create(
        self, db: AsyncSession, payload: RecipeCreate, author: Optional[User] = None
    ) -> RecipeResponse:
        """
        Insert the recipe and its images. When body is non-empty after
        trimming, seed one attempt copying body/feedback/images and point
        bestAttemptId at it. All of it commits together.
        """
        recipe = Recipe(
            title=payload.title,
            body=payload.body if payload.body is not None else "",
            feedback=payload.feedback if payload.feedback is not None else "",
            meta=payload.meta if payload.meta is not None else {},
            author_id=author.id if author is not None else None,
            images=build_images(payload.images),
        )
        db.add(recipe)
        await db.flush()

        seeded: Optional[Attempt] = None
        if recipe.body.strip():
            seeded = Attempt(
                recipe_id=recipe.id,
                body=recipe.body,
                feedback=recipe.feedback,
                meta={},
                images=build_images(payload.images),
            )
            db.add(seeded)
            await db.flush()
            recipe.best_attempt_id = seeded.id
            await db.flush()

        logger.info(
            "Recipe %s created (author=%s, seeded_attempt=%s)",
            recipe.id,
            recipe.author_id,
            seeded.id if seeded else None,
        )
        return self._to_response(recipe, seeded)

    async def get(self, db: AsyncSession, recipe_id) -> RecipeResponse:
        recipe = await self.load(db, recipe_id)
        return await self.to_response(db, recipe)

    async def list_recipes(
        self,
        db: AsyncSession,
        q: Optional[str] = None,
        mine: bool = False,
        user: Optional[User] = None,
    ) -> RecipeListResponse:
        """
        Newest first. `q` is a case-insensitive substring match over
        title, body and feedback.

        Raises:
            AuthError: mine requested without a session
        """
        stmt = select(Recipe)

        if mine:
            if user is None:
                raise AuthError()
            stmt = stmt.where(Recipe.author_id == user.id)

        needle = (q or "").strip()
        if needle:
            stmt = stmt.where(
                or_(
                    Recipe.title.icontains(needle, autoescape=True),
                    Recipe.body.icontains(needle, autoescape=True),
                    Recipe.feedback.icontains(needle, autoescape=True),
                )
            )

        result = await db.execute(stmt.order_by(Recipe.created_at.desc()))
        recipes = list(result.scalars().all())
        items = await self._to_responses(db, recipes)
        return RecipeListResponse(total=len(items), items=items)

    async def _apply_fields(
        self, db: AsyncSession, recipe: Recipe, payload: RecipeUpdate
    ) -> None:
        fields = payload.model_fields_set
        for name in ("title", "body", "feedback", "meta"):
            if name in fields:
                setattr(recipe, name, getattr(payload, name))

    async def update(
        self,
        db: AsyncSession,
        recipe_id,
        payload: RecipeUpdate,
        user: Optional[User],
    ) -> RecipeResponse:
        """PUT: sent scalar fields are applied; the image set is always replaced."""
        recipe = await self.load(db, recipe_id)
        self.ensure_owner(recipe, user)

        await self._apply_fields(db, recipe, payload)
        recipe.updated_at = datetime.now(timezone.utc)
        await self._replace_images(db, recipe, payload.images or [])

        logger.info("Recipe %s replaced", recipe.id)
        return await self.to_response(db, recipe)

    async def patch(
        self,
        db: AsyncSession,
        recipe_id,
        payload: RecipePatch,
        user: Optional[User],
    ) -> RecipeResponse:
        """
        PATCH: only keys present are applied. bestAttemptId is validated
        before anything is written so a rejected pointer leaves the recipe
        untouched.
        """
        recipe = await self.load(db, recipe_id)
        self.ensure_owner(recipe, user)

        fields = payload.model_fields_set
        best: Optional[Attempt] = None
        if "best_attempt_id" in fields and payload.best_attempt_id is not None:
            best = await self._require_attempt_of(
                db, recipe, payload.best_attempt_id, field="bestAttemptId"
            )

        await self._apply_fields(db, recipe, payload)
        if "best_attempt_id" in fields:
            recipe.best_attempt_id = best.id if best is not None else None
        recipe.updated_at = datetime.now(timezone.utc)

        if "images" in fields:
            await self._replace_images(db, recipe, payload.images or [])
        else:
            await db.flush()

        logger.info("Recipe %s patched: %s", recipe.id, sorted(fields))
        return await self.to_response(db, recipe)

    async def purge(self, db: AsyncSession, recipe_ids: List[uuid.UUID]) -> None:
        """
        Remove recipes with every dependent row, children first.

        Runs inside the caller's transaction; a failure part way rolls the
        whole request back so no partial state is ever committed.
        """
        if not recipe_ids:
            return

        attempt_ids = select(Attempt.id).where(Attempt.recipe_id.in_(recipe_ids))
        try:
            await db.execute(delete(Image).where(Image.attempt_id.in_(attempt_ids)))
            await db.execute(delete(Image).where(Image.recipe_id.in_(recipe_ids)))
            await db.execute(delete(Attempt).where(Attempt.recipe_id.in_(recipe_ids)))
            await db.execute(delete(Recipe).where(Recipe.id.in_(recipe_ids)))
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Recipe cascade delete failed for %s: %s", recipe_ids, e)
            raise InternalError(context={"recipe_ids": [str(r) for r in recipe_ids]})

    async def delete(self, db: AsyncSession, recipe_id, user: Optional[User]) -> None:
        recipe = await self.load(db, recipe_id)
        self.ensure_owner(recipe, user)
        await self.purge(db, [recipe.id])
        logger.info("Recipe %s deleted by %s", recipe_id, user.id)

    async def choose_best(
        self, db: AsyncSession, recipe_id, attempt_id
    ) -> RecipeResponse:
        """
        Raises:
            NotFoundError: recipe absent (404)
            ValidationError: attempt absent or from another recipe (400)
        """
        recipe = await self.load(db, recipe_id)
        attempt = await self._require_attempt_of(db, recipe, attempt_id, field="attemptId")

        recipe.best_attempt_id = attempt.id
        recipe.updated_at = datetime.now(timezone.utc)
        await db.flush()

        logger.info("Recipe %s best attempt set to %s", recipe.id, attempt.id)
        return self._to_response(recipe, attempt)


# ── Singleton Instance ────────────────────────────────────────────────────
recipe_service = RecipeService()

"""
Cook Journal Backend — Attempt Service (Attempt Store)
========================================================

What:  Append-only creation and newest-first listing of a recipe's attempts.
Who:   Called by routes/recipes.py. Neither operation is ownership-gated.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cookjournal.models import Attempt
from cookjournal.schemas.recipe import AttemptCreate, AttemptListResponse, AttemptResponse
from cookjournal.services.recipe_service import build_images, recipe_service

logger = logging.getLogger(__name__)


class AttemptService:

    async def create(
        self, db: AsyncSession, recipe_id, payload: AttemptCreate
    ) -> AttemptResponse:
        """
        Raises:
            NotFoundError: recipe absent (404)
        """
        recipe = await recipe_service.load(db, recipe_id)

        attempt = Attempt(
            recipe_id=recipe.id,
            body=payload.body,
            feedback=payload.feedback if payload.feedback is not None else "",
            meta=payload.meta if payload.meta is not None else {},
            images=build_images(payload.images),
        )
        db.add(attempt)
        await db.flush()

        logger.info("Attempt %s added to recipe %s", attempt.id, recipe.id)
        return AttemptResponse.model_validate(attempt)

    async def list_attempts(self, db: AsyncSession, recipe_id) -> AttemptListResponse:
        recipe = await recipe_service.load(db, recipe_id)

        result = await db.execute(
            select(Attempt)
            .where(Attempt.recipe_id == recipe.id)
            .order_by(Attempt.created_at.desc())
        )
        items = [AttemptResponse.model_validate(a) for a in result.scalars().all()]
        return AttemptListResponse(total=len(items), items=items)


# ── Singleton Instance ────────────────────────────────────────────────────
attempt_service = AttemptService()

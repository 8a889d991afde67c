"""
Cook Journal Backend — Development Data
========================================

What:  Seeds a demo account with one recipe, and removes test recipes left in
       a development database.
Who:   Developers, from the backend/ directory:

           python -m cookjournal.seed demo
           python -m cookjournal.seed remove-test-recipes

Both commands are safe to re-run: the demo user is only created when absent,
and test recipes are matched by title/body markers.
"""

import argparse
import asyncio
import logging
import uuid
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cookjournal.config import settings
from cookjournal.database import async_session_factory, create_all, dispose_engine
from cookjournal.models import Recipe, User
from cookjournal.schemas.recipe import RecipeCreate
from cookjournal.services.password import hash_password
from cookjournal.services.recipe_service import recipe_service

logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo@example.com"
DEMO_PASSWORD = "password"
DEMO_NAME = "Demo User"

TEST_TITLE_PREFIX = "Test Recipe"
TEST_BODY_MARKER = "Test recipe body"


async def seed_demo(db: AsyncSession) -> Optional[uuid.UUID]:
    """
    Create the demo user and its recipe.

    Returns:
        The demo recipe id, or None when the demo user already existed.
    """
    existing = await db.execute(select(User).where(User.email == DEMO_EMAIL))
    if existing.scalar_one_or_none() is not None:
        logger.info("Demo user %s already exists; nothing seeded", DEMO_EMAIL)
        return None

    user = User(email=DEMO_EMAIL, password_hash=hash_password(DEMO_PASSWORD), name=DEMO_NAME)
    db.add(user)
    await db.flush()

    recipe = await recipe_service.create(
        db,
        RecipeCreate(title="Demo Recipe", body="This is a seeded demo recipe.", feedback=""),
        author=user,
    )
    logger.info("Seeded demo user %s with recipe %s", DEMO_EMAIL, recipe.id)
    return recipe.id


async def find_test_recipes(db: AsyncSession) -> List[Recipe]:
    result = await db.execute(
        select(Recipe).where(
            or_(
                Recipe.title.startswith(TEST_TITLE_PREFIX, autoescape=True),
                Recipe.body.contains(TEST_BODY_MARKER, autoescape=True),
            )
        )
    )
    return list(result.scalars().all())


async def remove_test_recipes() -> List[uuid.UUID]:
    """
    Delete every test recipe with its attempts and images.

    Each recipe goes in its own transaction, so one failure does not undo the
    recipes already removed.
    """
    async with async_session_factory() as db:
        candidates = [(r.id, r.title) for r in await find_test_recipes(db)]

    if not candidates:
        logger.info("No test recipes found")
        return []

    removed: List[uuid.UUID] = []
    for recipe_id, title in candidates:
        async with async_session_factory() as db:
            async with db.begin():
                await recipe_service.purge(db, [recipe_id])
        logger.info("Removed test recipe %s (%s)", recipe_id, title)
        removed.append(recipe_id)
    return removed


async def _run(command: str) -> None:
    if settings.is_sqlite:
        await create_all()
    try:
        if command == "demo":
            async with async_session_factory() as db:
                async with db.begin():
                    await seed_demo(db)
        else:
            removed = await remove_test_recipes()
            logger.info("Removed %d test recipe(s)", len(removed))
    finally:
        await dispose_engine()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Cook Journal development data")
    parser.add_argument(
        "command",
        choices=["demo", "remove-test-recipes"],
        help="seed the demo account, or delete recipes created by manual testing",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(_run(args.command))


if __name__ == "__main__":
    main()

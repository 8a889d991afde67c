"""
Cook Journal Backend — Recipe & Attempt Route Handlers
========================================================

What:  /api/recipes CRUD, attempts, and choose-best.
How:   Extract path/query/body, resolve the optional session user, delegate
       to RecipeService / AttemptService.

Access:
    POST   /api/recipes                              optional session (sets author)
    GET    /api/recipes[?q=&mine=]                   optional session (mine needs one)
    GET    /api/recipes/{id}                         public
    PUT    /api/recipes/{id}                         session + owner
    PATCH  /api/recipes/{id}                         session + owner
    DELETE /api/recipes/{id}                         session + owner
    POST   /api/recipes/{id}/attempts                public
    GET    /api/recipes/{id}/attempts                public
    POST   /api/recipes/{id}/attempts/{aid}/choose   public
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from cookjournal.database import get_db_session
from cookjournal.deps import get_current_user, get_current_user_optional
from cookjournal.models import User
from cookjournal.schemas.common import ErrorResponse
from cookjournal.schemas.recipe import (
    AttemptCreate,
    AttemptListResponse,
    AttemptResponse,
    RecipeCreate,
    RecipeListResponse,
    RecipePatch,
    RecipeResponse,
    RecipeUpdate,
)
from cookjournal.services.attempt_service import attempt_service
from cookjournal.services.recipe_service import recipe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recipes", tags=["Recipes"])

TRUTHY = {"1", "true", "yes", "on"}

NOT_FOUND = {404: {"description": "Recipe not found", "model": ErrorResponse}}
OWNER_ONLY = {
    401: {"description": "No session", "model": ErrorResponse},
    403: {"description": "Not the recipe's author", "model": ErrorResponse},
    **NOT_FOUND,
}


@router.post(
    "",
    response_model=RecipeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Validation failed", "model": ErrorResponse}},
    summary="Create a recipe",
    description=(
        "A non-empty body also seeds the first attempt, which becomes the "
        "recipe's best attempt."
    ),
)
async def create_recipe(
    payload: RecipeCreate,
    user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db_session),
) -> RecipeResponse:
    return await recipe_service.create(db, payload, author=user)


@router.get(
    "",
    response_model=RecipeListResponse,
    responses={401: {"description": "mine requested without a session", "model": ErrorResponse}},
    summary="List recipes, newest first",
)
async def list_recipes(
    q: Optional[str] = Query(default=None, description="Case-insensitive text search"),
    mine: Optional[str] = Query(default=None, description="Only the caller's recipes"),
    user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db_session),
) -> RecipeListResponse:
    only_mine = (mine or "").strip().lower() in TRUTHY
    return await recipe_service.list_recipes(db, q=q, mine=only_mine, user=user)


@router.get(
    "/{recipe_id}",
    response_model=RecipeResponse,
    responses=NOT_FOUND,
    summary="Get one recipe with its best attempt",
)
async def get_recipe(
    recipe_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> RecipeResponse:
    return await recipe_service.get(db, recipe_id)


@router.put(
    "/{recipe_id}",
    response_model=RecipeResponse,
    responses={400: {"description": "Validation failed", "model": ErrorResponse}, **OWNER_ONLY},
    summary="Update a recipe and replace its image set",
)
async def update_recipe(
    recipe_id: str,
    payload: RecipeUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> RecipeResponse:
    return await recipe_service.update(db, recipe_id, payload, user)


@router.patch(
    "/{recipe_id}",
    response_model=RecipeResponse,
    responses={400: {"description": "Validation failed", "model": ErrorResponse}, **OWNER_ONLY},
    summary="Sparse update, including bestAttemptId",
)
async def patch_recipe(
    recipe_id: str,
    payload: RecipePatch,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> RecipeResponse:
    return await recipe_service.patch(db, recipe_id, payload, user)


@router.delete(
    "/{recipe_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=OWNER_ONLY,
    summary="Delete a recipe with all its attempts and images",
)
async def delete_recipe(
    recipe_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await recipe_service.delete(db, recipe_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Attempts ──────────────────────────────────────────────────────────────


@router.post(
    "/{recipe_id}/attempts",
    response_model=AttemptResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Validation failed", "model": ErrorResponse}, **NOT_FOUND},
    summary="Record an attempt",
)
async def create_attempt(
    recipe_id: str,
    payload: AttemptCreate,
    db: AsyncSession = Depends(get_db_session),
) -> AttemptResponse:
    return await attempt_service.create(db, recipe_id, payload)


@router.get(
    "/{recipe_id}/attempts",
    response_model=AttemptListResponse,
    responses=NOT_FOUND,
    summary="List a recipe's attempts, newest first",
)
async def list_attempts(
    recipe_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> AttemptListResponse:
    return await attempt_service.list_attempts(db, recipe_id)


@router.post(
    "/{recipe_id}/attempts/{attempt_id}/choose",
    response_model=RecipeResponse,
    responses={400: {"description": "Attempt not part of this recipe", "model": ErrorResponse}, **NOT_FOUND},
    summary="Mark an attempt as the recipe's best",
)
async def choose_best_attempt(
    recipe_id: str,
    attempt_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> RecipeResponse:
    return await recipe_service.choose_best(db, recipe_id, attempt_id)

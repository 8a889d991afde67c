"""
Cook Journal Backend — Recipe & Attempt Request/Response Schemas
==================================================================

What:  Pydantic models defining the recipe/attempt API contract.
Why:   Strict input typing (a number is not a string, a list is not an
       object) and camelCase serialization in one place.
How:   Request models use Strict* types so nothing is coerced. Sparse
       updates rely on `model_fields_set` to tell "key absent" apart from
       "key sent as null" (e.g. bestAttemptId: null clears the pointer).

Type Rules (shared by create, PUT and PATCH):
    title     non-empty string (after trimming)
    body      string (attempt body: non-empty string)
    feedback  string
    images    array of URL strings
    meta      JSON object
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, StrictStr, field_validator

from cookjournal.schemas.common import CamelModel


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ImageResponse(CamelModel):
    id: uuid.UUID
    url: str
    created_at: datetime


class AttemptResponse(CamelModel):
    id: uuid.UUID
    recipe_id: uuid.UUID
    body: str
    feedback: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    images: List[ImageResponse] = Field(default_factory=list)
    created_at: datetime


class RecipeResponse(CamelModel):
    """
    Full recipe view.

    bestAttempt is derived at read time from bestAttemptId; it is never
    stored, so it cannot disagree with the pointer.
    """

    id: uuid.UUID
    title: str
    body: Optional[str] = None
    feedback: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    author_id: Optional[uuid.UUID] = None
    best_attempt_id: Optional[uuid.UUID] = None
    best_attempt: Optional[AttemptResponse] = None
    images: List[ImageResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class RecipeListResponse(CamelModel):
    total: int
    items: List[RecipeResponse]


class AttemptListResponse(CamelModel):
    total: int
    items: List[AttemptResponse]


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


def _require_title(v: Optional[str]) -> str:
    if v is None or not v.strip():
        raise ValueError("title is required and must be a non-empty string")
    return v.strip()


class RecipeCreate(CamelModel):
    title: StrictStr
    body: Optional[StrictStr] = None
    feedback: Optional[StrictStr] = None
    images: Optional[List[StrictStr]] = None
    meta: Optional[Dict[str, Any]] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _require_title(v)


class RecipeUpdate(CamelModel):
    """
    PUT payload. Scalar fields are updated only when sent; the image set is
    always replaced (an omitted `images` key means "no images").
    """

    title: Optional[StrictStr] = None
    body: Optional[StrictStr] = None
    feedback: Optional[StrictStr] = None
    images: Optional[List[StrictStr]] = None
    meta: Optional[Dict[str, Any]] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> str:
        return _require_title(v)

    # Only runs for keys actually sent, so these reject an explicit null
    @field_validator("body", "feedback")
    @classmethod
    def reject_null_text(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} must be a string")
        return v

    @field_validator("images")
    @classmethod
    def reject_null_images(cls, v):
        if v is None:
            raise ValueError("images must be an array")
        return v

    @field_validator("meta")
    @classmethod
    def reject_null_meta(cls, v):
        if v is None:
            raise ValueError("meta must be an object")
        return v


class RecipePatch(RecipeUpdate):
    """
    PATCH payload. Only keys present in the body are applied; `images` is
    replaced only when the key is present. bestAttemptId: null clears the
    pointer, a value must name an attempt of the same recipe.
    """

    best_attempt_id: Optional[StrictStr] = None


class AttemptCreate(CamelModel):
    body: StrictStr
    feedback: Optional[StrictStr] = None
    images: Optional[List[StrictStr]] = None
    meta: Optional[Dict[str, Any]] = None

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("attempt body is required and must be a non-empty string")
        return v


class UploadResponse(CamelModel):
    url: str

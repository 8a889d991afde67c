"""
Cook Journal Backend — Shared Pydantic Schemas
================================================

What:  Base model with camelCase JSON aliases, plus error/health contracts.
Why:   The API speaks camelCase (`bestAttemptId`, `createdAt`) while Python
       code stays snake_case. One base class keeps that rule in one place.
"""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Deliberately loose: one "@", no whitespace, a dot in the domain part
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(value: str) -> str:
    return value.strip().lower()


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


class CamelModel(BaseModel):
    """
    Base for every request/response schema.

    populate_by_name: services build responses with snake_case kwargs,
    clients send camelCase; both are accepted. FastAPI serializes responses
    by alias, so the wire format is always camelCase.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ══════════════════════════════════════════════════════════════════════════
# Error Response Models — Consistent error format across all endpoints
# ══════════════════════════════════════════════════════════════════════════


class ErrorItem(BaseModel):
    field: Optional[str] = Field(default=None, description="Offending request field, or null")
    message: str = Field(description="Human-readable error description")


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {"errors": [{"field": "title", "message": "title is required"}]}
    """

    errors: List[ErrorItem]


class HealthResponse(BaseModel):
    """Returned by GET /api/health for monitoring and load balancer probes."""

    ok: bool = Field(description="True when the database answered the probe")
    now: datetime = Field(description="Server time (UTC)")
    database: str = Field(description="Database connectivity: connected, disconnected")
    version: str = Field(description="Application version")

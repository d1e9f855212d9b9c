"""Pydantic schemas for error responses (used in OpenAPI docs)."""

from __future__ import annotations

from pydantic import BaseModel, Field


class DatabaseErrorResponse(BaseModel):
    """Body returned when a database operation fails."""

    error: str = Field(
        ...,
        description="Human-readable summary, e.g. 'Failed to load user due to database error.'",
    )
    details: str = Field(..., description="Underlying database error message.")


class RateLimitErrorResponse(BaseModel):
    """Body returned when a client exceeds its request quota."""

    error: str = Field("Too many requests", description="Fixed error label.")
    message: str = Field(
        ...,
        description="Quota explanation, e.g. 'Too many requests. Maximum 20 requests per minute.'",
    )

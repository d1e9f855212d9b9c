"""Pydantic schemas for the health endpoint."""

from __future__ import annotations

from pydantic import BaseModel, Field


class PoolStatsSchema(BaseModel):
    """Connection pool counters at the time of the request."""

    capacity: int = Field(..., description="Maximum number of live connections.")
    idle: int = Field(..., description="Connections ready to be leased.")
    leased: int = Field(..., description="Connections currently held by requests.")
    opening: int = Field(..., description="Connections being established.")
    waiting: int = Field(..., description="Requests blocked waiting for a connection.")
    closed: bool = Field(..., description="Whether the pool stopped leasing (shutdown).")


class HealthResponse(BaseModel):
    """Service liveness plus pool snapshot."""

    status: str = Field(..., description="'ok', or 'shutting_down' once draining began.")
    pool: PoolStatsSchema

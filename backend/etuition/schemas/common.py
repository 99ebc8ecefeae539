"""
eTuition Backend - Shared API Schemas
=====================================

What:  Base model and envelope types reused by every resource schema.

Field naming:
    The frontend speaks camelCase (`studentEmail`, `createdAt`). CamelModel
    serializes with camelCase aliases and still accepts snake_case input, so
    services can build responses straight from ORM objects.

Write acknowledgements:
    Mutating routes answer with the same acknowledgement shape the frontend
    already consumes: {acknowledged, insertedId} / {acknowledged, matchedCount,
    modifiedCount} / {acknowledged, deletedCount}.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for API models: camelCase on the wire, attributes from ORM rows."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class InsertResult(CamelModel):
    acknowledged: bool = True
    inserted_id: uuid.UUID


class UpdateResult(CamelModel):
    """matchedCount 0 means no row matched the id *and* the ownership filter."""

    acknowledged: bool = True
    matched_count: int
    modified_count: int


class DeleteResult(CamelModel):
    acknowledged: bool = True
    deleted_count: int


class GroupCount(CamelModel):
    """One bucket of a GROUP BY count, e.g. {"key": "Tutor", "count": 12}."""

    key: str
    count: int


class ErrorResponse(BaseModel):
    """
    Standardized error body for every non-2xx response produced by the
    global exception handlers.

    Example:
        {
            "error": "forbidden",
            "message": "Forbidden: Students only",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    payments: str = Field(description="Payment provider: available, unconfigured, circuit_open")
    uptime_seconds: float = Field(description="Seconds since service started")

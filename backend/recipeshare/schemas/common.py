"""
Recipe Share Backend — Shared Response Schemas
================================================

What:  The success envelope, the error body, and the base class every output
       model derives from.
Why:   Clients were written against camelCase JSON with Mongo-style `_id`
       keys; the base class produces exactly that from snake_case Python
       attributes, so services never build dicts by hand.
How:   `alias_generator=to_camel` renames fields on output,
       `populate_by_name=True` lets services construct models with Python
       names, and `from_attributes=True` reads straight from ORM rows.
"""

from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ResponseModel(BaseModel):
    """Base class for API output: camelCase keys, ORM-friendly."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(ResponseModel, Generic[T]):
    """
    Success envelope returned by every /api/v1 endpoint.

    Example:
        {"success": true, "message": "Recipe created successfully", "data": {...}}
    """

    success: bool = True
    message: str = ""
    data: Optional[T] = None


class ErrorResponse(ResponseModel):
    """
    Error body produced by the exception handlers in main.py.

    `stack` is only populated outside production.
    """

    success: bool = False
    error: str = Field(description="Machine-readable error code, e.g. 'validation_error'")
    message: str = Field(description="Human-readable explanation")
    details: Optional[Dict[str, Any]] = None
    request_id: str = ""
    stack: Optional[str] = None


class HealthResponse(BaseModel):
    """Response of GET /health."""

    status: str = Field(description="Overall status: healthy or degraded")
    version: str
    checks: Dict[str, Any] = Field(default_factory=dict)


def id_field(**kwargs: Any):
    """
    Primary key field serialized as `_id`.

    Accepts both `id` (ORM attribute) and `_id` (already-serialized JSON) on
    input, so FastAPI can re-validate a dumped response model.
    """
    return Field(
        validation_alias=AliasChoices("id", "_id"),
        serialization_alias="_id",
        **kwargs,
    )

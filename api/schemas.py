"""Request/response bodies for the agents HTTP API."""

from typing import Any

from pydantic import BaseModel


class GenerateRequest(BaseModel):
    """
    Body of the generate and stream endpoints.

    Attributes:
        prompt: User question; required, checked by the route so a missing
            prompt maps to 400
        meta: Opaque caller data echoed back; ``limit``, ``tone`` and
            ``language`` keys override the agent defaults
    """

    prompt: str | None = None
    meta: dict[str, Any] | None = None


class GenerateResponse(BaseModel):
    text: str
    meta: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str

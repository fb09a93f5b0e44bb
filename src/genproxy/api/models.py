"""Pydantic response models for the generation proxy API.

Every generation call answers with one of two envelopes so the browser
client can branch on ``success`` alone.

Models
------
GenerationResponse
    ``{"success": true, "data": [...]}`` for a finished job.
ErrorResponse
    ``{"success": false, "error": "..."}`` for any failure.
ConfigResponse
    Non-secret runtime settings served by ``GET /api/config``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from genproxy.core.models import GenerationResult


class GenerationResponse(BaseModel):
    """Successful generation envelope.

    Attributes:
        success: Always ``True``.
        data: One entry per produced artifact, in upstream order.
    """

    success: bool = True
    data: list[GenerationResult] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Failure envelope.

    Attributes:
        success: Always ``False``.
        error: User-facing failure message.
    """

    success: bool = False
    error: str


class ConfigResponse(BaseModel):
    """Runtime settings a client may use to pre-fill its form."""

    version: str
    default_model_version: str
    default_width: int
    default_height: int
    poll_interval_seconds: float
    max_poll_attempts: int

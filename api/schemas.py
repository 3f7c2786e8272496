"""
API Schemas

Pydantic response models for the JSON endpoints.
"""

from typing import Any, Dict

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of every transport-level error."""
    error: str = Field(..., description="Human readable error message")


class HealthResponse(BaseModel):
    """Bridge health summary."""
    status: str = Field(..., description="ok or degraded")
    version: str
    environment: str
    uptime_seconds: float
    sessions: int = Field(..., description="Tool client streams open on this instance")
    viewers: int = Field(..., description="Viewer streams open on this instance")
    session_store: Dict[str, Any] = Field(default_factory=dict)
    rate_limiter: Dict[str, Any] = Field(default_factory=dict)

"""Schemas shared by every router: health report and error body."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthStatusEnum(str, Enum):
    healthy = "healthy"
    unhealthy = "unhealthy"
    degraded = "degraded"


class ComponentHealth(BaseModel):
    """Health of one dependency (database, usage event queue)."""
    model_config = ConfigDict(extra="allow")

    status: HealthStatusEnum
    message: Optional[str] = None


class HealthStatus(BaseModel):
    """Overall service health; unhealthy when the ledger store is unreachable."""
    status: HealthStatusEnum = Field(default=HealthStatusEnum.healthy, examples=["healthy"])
    version: str
    timestamp: datetime
    components: Dict[str, ComponentHealth] = Field(default_factory=dict)


class UpgradeHint(BaseModel):
    plan: str = Field(..., examples=["pro"])
    message: str


class ErrorResponse(BaseModel):
    """
    Error body returned for every failed request.

    `error` is a stable machine-readable code such as `insufficient_balance`.
    Ledger errors add their context fields (required and available points,
    organization budget, pending request id) next to it.
    """
    model_config = ConfigDict(extra="allow")

    success: bool = False
    error: str = Field(..., examples=["insufficient_balance"])
    message: Optional[str] = None
    request_id: Optional[str] = None
    upgrade: Optional[UpgradeHint] = None
    details: Optional[Any] = None

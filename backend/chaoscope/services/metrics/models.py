"""
Request metric models.

One RequestMetric is emitted per proxied request and persisted as a single
line of newline-delimited JSON.
"""

import enum
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field


class ChaosType(str, enum.Enum):
    """Kind of chaos applied to a request."""
    NONE = "none"
    DELAY = "delay"
    FAILURE = "failure"


class RequestMetric(BaseModel):
    """A single observation of a proxied (or chaos short-circuited) request."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    method: str
    path: str
    status_code: int
    latency_ms: int = Field(ge=0, description="Wall-clock latency, truncated to milliseconds")
    chaos_applied: bool = False
    chaos_type: ChaosType = ChaosType.NONE
    backend_error: bool = Field(
        default=False,
        description="True if the response status was >= 500"
    )

    @property
    def endpoint_key(self) -> str:
        return f"{self.method}:{self.path}"

from __future__ import annotations

from pydantic import BaseModel, Field

from app.schemas import DropOutcome


class DropPublisherQuery(BaseModel):
    """Query string of the nginx-rtmp control drop request."""

    app: str = Field(..., description="RTMP application")
    name: str = Field(..., description="Stream name")


class DropResult(BaseModel):
    """What happened when dropping the publisher of a stream id."""

    outcome: DropOutcome
    stream_id: str
    application: str | None = None
    name: str | None = None
    status_code: int | None = Field(default=None, description="Relay response status on DENIED")
    error: str | None = Field(default=None, description="Transport error on UNREACHABLE")

    @property
    def dropped(self) -> bool:
        return self.outcome is DropOutcome.DROPPED

    def describe(self) -> str:
        target = f"{self.stream_id} ({self.application}/{self.name})"
        if self.outcome is DropOutcome.DENIED:
            return f"drop of {target} denied by relay, status {self.status_code}"
        if self.outcome is DropOutcome.UNREACHABLE:
            return f"drop of {target} failed, relay unreachable: {self.error}"
        return f"drop of {target}: {self.outcome}"

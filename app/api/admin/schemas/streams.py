from pydantic import BaseModel, Field

from app.domain.streams.expiry_spec import format_expiry
from app.schemas import StreamRecord


class CreateStreamIn(BaseModel):
    application: str = Field(..., description="RTMP application")
    name: str = Field(..., description="Stream name, must be URL path safe")
    auth_key: str = Field(default="", description="Publish key")
    auth_expire: str | None = Field(
        default=None,
        description="Empty for never, ISO 8601 duration (P1D, PT2H) or RFC 3339 timestamp",
    )
    notes: str = ""
    blocked: bool = False


class SetBlockedIn(BaseModel):
    blocked: bool


class StreamOut(BaseModel):
    id: str
    application: str
    name: str
    auth_key: str
    auth_expire: int
    expires_at: str | None = None
    notes: str
    blocked: bool
    active: bool

    @classmethod
    def from_record(cls, stream: StreamRecord) -> "StreamOut":
        return cls(
            **stream.model_dump(),
            expires_at=format_expiry(stream.auth_expire) or None,
        )


class ListStreamsOut(BaseModel):
    applications: list[str]
    streams: list[StreamOut]

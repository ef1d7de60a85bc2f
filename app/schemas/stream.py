"""Credential records and the registry state that is persisted as one blob."""

from pydantic import BaseModel, Field

# Reserved expiry value: the credential never expires.
NEVER_EXPIRES = -1

# Expiries are stored as signed 64-bit Unix seconds
EXPIRE_MIN = -(2**63)
EXPIRE_MAX = 2**63 - 1


class StreamRecord(BaseModel):
    """One authorized (application, name, key) tuple with its lifecycle flags.

    `id` is assigned by the registry on insert and never changes. Several
    records may share (application, name), e.g. while a key is being rotated.
    """

    id: str = ""
    application: str
    name: str
    auth_key: str = ""
    auth_expire: int = Field(default=NEVER_EXPIRES, ge=EXPIRE_MIN, le=EXPIRE_MAX)
    notes: str = ""
    blocked: bool = False
    active: bool = False

    def never_expires(self) -> bool:
        return self.auth_expire == NEVER_EXPIRES

    def is_expired(self, now: int) -> bool:
        return not self.never_expires() and self.auth_expire <= now


class StoreState(BaseModel):
    """Full durable registry state."""

    secret: bytes = b""
    ctrl_url: str = ""
    streams: list[StreamRecord] = Field(default_factory=list)

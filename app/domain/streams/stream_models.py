"""Stream domain models."""

from urllib.parse import quote

from pydantic import BaseModel, field_validator

from app.schemas import AuthDecision
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

# characters a path segment may carry unescaped besides the unreserved ones
_PATH_SAFE = "$&+,:;=@"


class StreamCreateParams(BaseModel):
    """Parameters for adding a credential record."""

    application: str
    name: str
    auth_key: str = ""
    auth_expire: str | None = None
    notes: str = ""
    blocked: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg="Stream name must be set",
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        if quote(v, safe=_PATH_SAFE) != v:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg="Stream name contains unsafe characters",
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        return v


class PublishResult(BaseModel):
    """Outcome of a publish request."""

    stream_id: str
    decision: AuthDecision

    @property
    def granted(self) -> bool:
        return self.decision is AuthDecision.GRANTED

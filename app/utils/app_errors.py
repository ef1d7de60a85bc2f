"""Application error type raised by domain code and rendered by the API layer."""

import inspect
from enum import Enum, IntEnum
from uuid import uuid4


class AppErrorCode(str, Enum):
    E_STREAM_NOT_FOUND = "E_STREAM_NOT_FOUND"
    E_NO_ACTIVE_STREAM = "E_NO_ACTIVE_STREAM"
    E_PERSISTENCE_FAILURE = "E_PERSISTENCE_FAILURE"
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_EXPIRY = "E_INVALID_EXPIRY"
    E_UNAUTHORIZED = "E_UNAUTHORIZED"
    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"

    def __str__(self) -> str:
        return self.value


class HttpStatusCode(IntEnum):
    OK = 200
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422
    INTERNAL_SERVER_ERROR = 500


class AppError(Exception):
    """Error with a stable code, a user-facing message and an HTTP status.

    The caller location is captured at construction so the handler can log
    where the error was raised rather than where it was caught.
    """

    def __init__(
        self,
        errcode: AppErrorCode | str,
        errmesg: str,
        status_code: int = HttpStatusCode.BAD_REQUEST,
    ):
        super().__init__(errmesg)
        self.errcode = str(errcode)
        self.errmesg = errmesg
        self.status_code = int(status_code)
        self.erresid = uuid4().hex[:10]

        caller_frame = inspect.stack()[1]
        module = inspect.getmodule(caller_frame.frame)
        module_name = (
            module.__name__ if module and getattr(module, "__name__", None) else caller_frame.filename
        )
        self.caller_info = f"{module_name}:{caller_frame.function}:{caller_frame.lineno}"

    def __repr__(self) -> str:
        return f"AppError(errcode={self.errcode!r}, errmesg={self.errmesg!r}, status_code={self.status_code})"


class StateLoadError(Exception):
    """Persisted registry exists but cannot be read or decoded."""

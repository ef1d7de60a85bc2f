"""Registry schemas."""

from .stream import EXPIRE_MAX, EXPIRE_MIN, NEVER_EXPIRES, StoreState, StreamRecord
from .stream_state import AuthDecision, DropOutcome

__all__ = [
    "EXPIRE_MAX",
    "EXPIRE_MIN",
    "NEVER_EXPIRES",
    "AuthDecision",
    "DropOutcome",
    "StoreState",
    "StreamRecord",
]

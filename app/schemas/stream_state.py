"""Closed outcome enums shared by the registry, the control client and the API."""

from enum import Enum

from app.utils.app_errors import HttpStatusCode


class AuthDecision(str, Enum):
    """Result of a publish authorization.

    - GRANTED: exact key match, not blocked, slot free or already held by this record
    - UNAUTHORIZED: no record matches (application, name, key)
    - BLOCKED: matched record is administratively blocked
    - BUSY: another record on the same (application, name) is active
    """

    GRANTED = "granted"
    UNAUTHORIZED = "unauthorized"
    BLOCKED = "blocked"
    BUSY = "busy"

    def __str__(self) -> str:
        return self.value

    @property
    def http_status(self) -> HttpStatusCode:
        return _AUTH_STATUS[self]


_AUTH_STATUS = {
    AuthDecision.GRANTED: HttpStatusCode.OK,
    AuthDecision.UNAUTHORIZED: HttpStatusCode.UNAUTHORIZED,
    AuthDecision.BLOCKED: HttpStatusCode.FORBIDDEN,
    AuthDecision.BUSY: HttpStatusCode.CONFLICT,
}


class DropOutcome(str, Enum):
    """Result of asking the relay to drop a publisher.

    Only DROPPED changes registry state. Every other outcome is informational
    and never undoes the mutation that led to the drop attempt.
    """

    DROPPED = "dropped"
    NOT_CONFIGURED = "not_configured"
    NOT_ACTIVE = "not_active"
    SUPERSEDED = "superseded"
    DENIED = "denied"
    UNREACHABLE = "unreachable"

    def __str__(self) -> str:
        return self.value

    @property
    def not_applicable(self) -> bool:
        return self in (DropOutcome.NOT_ACTIVE, DropOutcome.SUPERSEDED)

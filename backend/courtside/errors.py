"""
Structured engine errors.

Every error raised by the engine carries a ``kind`` (stable, machine-readable)
and a human-readable message. Routers do not translate these themselves; the
exception handler registered in ``courtside.main`` maps ``kind`` to an HTTP
status code.
"""
from typing import Any, Dict


class CompetitionError(Exception):
    kind = "internal"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class InvalidArgument(CompetitionError):
    """Malformed input (missing score, unparseable sets, bad seed number)."""

    kind = "invalid_argument"
    status_code = 422


class PermissionDenied(CompetitionError):
    kind = "permission_denied"
    status_code = 403


class NotFound(CompetitionError):
    kind = "not_found"
    status_code = 404


class FailedPrecondition(CompetitionError):
    """Wrong state for the requested transition."""

    kind = "failed_precondition"
    status_code = 409


class AlreadyExists(CompetitionError):
    kind = "already_exists"
    status_code = 409


class Internal(CompetitionError):
    """Invariant violation: corrupt standings, winner not in match, etc."""

    kind = "internal"
    status_code = 500


class ConcurrentModificationError(CompetitionError):
    """A compare-and-set write lost a race. Safe to retry the whole transaction."""

    kind = "aborted"
    status_code = 409

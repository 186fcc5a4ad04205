# Overview: Error taxonomy shared by commit handlers, routes, and telemetry.

"""
StoreOps errors.

Every error raised by a handler carries a stable `code` the caller's retry
logic can branch on, plus the HTTP status the API returns for it. Routes
never rewrite these; they serialize `to_dict()` verbatim.
"""


class StoreOpsError(Exception):
    """Base class for errors returned to callers."""
    code = "internal"
    http_status = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidArgument(StoreOpsError):
    """Malformed or missing required input."""
    code = "invalid-argument"
    http_status = 400


class AlreadyExists(StoreOpsError):
    """Duplicate commit of an idempotency key."""
    code = "already-exists"
    http_status = 409


class FailedPrecondition(StoreOpsError):
    """Referenced record missing or owned by another store."""
    code = "failed-precondition"
    http_status = 400


class Aborted(StoreOpsError):
    """Transaction kept conflicting; the caller should retry."""
    code = "aborted"
    http_status = 409


class Internal(StoreOpsError):
    """Unexpected failure."""
    code = "internal"
    http_status = 500


class NotFound(StoreOpsError):
    code = "not-found"
    http_status = 404

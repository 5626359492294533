"""Service-level exception hierarchy.

Learn: Services raise these instead of fastapi.HTTPException so the
business logic stays importable without a web stack (the CLI bootstrap
and tests call services directly). main.py registers one handler that
turns any ServiceError into a JSON body of the shape {"error": "..."}
with the status code carried by the exception class.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base for all errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str = "internal error", **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(message)

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class ValidationFailed(ServiceError):
    status_code = 400


class MissingCredentials(ServiceError):
    """No Authorization header at all; rejected before token parsing."""

    status_code = 400

    def __init__(self, message: str = "missing authorization header", **extra: Any):
        extra.setdefault("hint", "send: Authorization: Bearer <token>")
        super().__init__(message, **extra)


class Unauthorized(ServiceError):
    status_code = 401


class Forbidden(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    status_code = 409


class ResourceExhausted(ServiceError):
    """A bounded retry loop gave up (e.g. public id allocation)."""

    status_code = 500


class MailDeliveryError(Exception):
    """Raised by the mailer when a message could not be handed to the provider."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)

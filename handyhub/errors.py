"""Error taxonomy shared by services and routes.

Services raise these directly; ``main.py`` renders every one of them as
``{"success": false, "message": ...}`` with the status code below.
"""

from __future__ import annotations

from fastapi import HTTPException


class ServiceError(HTTPException):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(status_code=type(self).status_code, detail=message)

    @property
    def message(self) -> str:
        return self.detail


class ValidationError(ServiceError):
    """Malformed or missing input."""

    status_code = 400


class AuthorizationError(ServiceError):
    """The caller is not allowed to act on this resource."""

    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """A transition precondition no longer holds (includes lost races)."""

    status_code = 400


class InternalError(ServiceError):
    status_code = 500

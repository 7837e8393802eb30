"""
Service-layer exceptions.

Routes let these propagate; ``api.middleware`` turns them into
``{"message": ...}`` JSON with the mapped status code.
"""

from __future__ import annotations

from fastapi import status


class ServiceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotConnectedError(ValidationError):
    """The user has no connection for the service an operation needs."""


class UpstreamError(ServiceError):
    """A provider or AI backend call failed; details are logged, not returned."""

"""Domain exceptions raised by services and repositories.

Each exception carries the HTTP status the route layer reports for it;
``to_http_exception`` performs the translation.
"""

import logging

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class ApiHubError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class BadRequestError(ApiHubError):
    status_code = 400


class RequestBuildError(BadRequestError):
    """An outbound request could not be assembled from the caller's parameters."""


class MissingPathParameterError(RequestBuildError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Missing path parameter: {name}")
        self.name = name


class InvalidEnumValueError(RequestBuildError):
    def __init__(self, name: str, value: object) -> None:
        super().__init__(f"Invalid value for enum parameter {name}: {value}")
        self.name = name
        self.value = value


class AuthRequiredError(ApiHubError):
    status_code = 401


class InvalidCredentialError(ApiHubError):
    status_code = 403


class ForbiddenError(ApiHubError):
    status_code = 403


class NotFoundError(ApiHubError):
    status_code = 404


class ConflictError(ApiHubError):
    status_code = 409


class CorruptCiphertextError(ApiHubError):
    """Stored ciphertext is malformed or failed authentication."""

    status_code = 500


def to_http_exception(exc: ApiHubError) -> HTTPException:
    """Map a domain error onto the FastAPI exception the route raises."""
    if isinstance(exc, CorruptCiphertextError):
        logger.error("Stored credential could not be decrypted", exc_info=exc)
        return HTTPException(status_code=500, detail="Stored credential is unreadable")
    return HTTPException(status_code=exc.status_code, detail=exc.detail)

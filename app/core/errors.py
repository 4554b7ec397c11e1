from __future__ import annotations

from typing import Any


class EstateError(Exception):
    """Base for failures that map onto an HTTP error response."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, *, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInputError(EstateError):
    """Bad or missing upload, malformed identifier, unparseable form value."""

    status_code = 400
    code = "invalid_input"


class NotFoundError(EstateError):
    status_code = 404
    code = "not_found"


class ListingValidationError(EstateError):
    """A listing write was rejected because required fields are missing or invalid."""

    status_code = 422
    code = "validation_error"


class UploadFailedError(EstateError):
    status_code = 500
    code = "upload_failed"


class UploadTimeoutError(UploadFailedError):
    """The object store did not finish writing within the upload bound."""

    code = "upload_timeout"


class StorageUnavailableError(EstateError):
    status_code = 503
    code = "storage_unavailable"


def error_payload(
    *,
    message: str,
    code: str,
    status: int,
    details: Any | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "error": {
            "message": message,
            "code": code,
            "status": status,
        }
    }
    if details is not None:
        payload["error"]["details"] = details
    return payload

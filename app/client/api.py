from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from app.core.errors import (
    EstateError,
    InvalidInputError,
    ListingValidationError,
    StorageUnavailableError,
    UploadFailedError,
)
from app.core.logging import get_logger
from app.core.results import CreateResult
from app.schemas.properties import PropertyOut

logger = get_logger(__name__)


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    content: bytes = field(repr=False)
    content_type: str


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or resp.reason_phrase)
    if isinstance(error, str):
        return error
    return resp.reason_phrase


class EstateApiClient:
    """Thin async wrapper over the listings HTTP API.

    The caller owns ``http`` (base url, timeouts, transport); one client is shared
    by all concurrent uploads of a submission.
    """

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def upload_image(self, upload: ImageUpload) -> str:
        try:
            resp = await self._http.post(
                "/api/upload",
                files={"file": (upload.filename, upload.content, upload.content_type)},
            )
        except httpx.HTTPError as exc:
            raise UploadFailedError(f"Upload failed: {exc.__class__.__name__}") from exc

        if resp.status_code != 200:
            message = _error_message(resp)
            if resp.status_code == 400:
                raise InvalidInputError(f"Upload failed: {message}", details={"filename": upload.filename})
            raise UploadFailedError(f"Upload failed: {message}", details={"filename": upload.filename})

        return str(resp.json()["fileId"])

    async def create_property(self, payload: dict[str, Any]) -> CreateResult[PropertyOut]:
        try:
            resp = await self._http.post("/api/properties", json=payload)
        except httpx.HTTPError as exc:
            return CreateResult.failure(StorageUnavailableError(f"listing create failed: {exc.__class__.__name__}"))

        if resp.status_code == 200:
            return CreateResult.success(PropertyOut.model_validate(resp.json()))

        message = _error_message(resp)
        error: EstateError
        if resp.status_code == 422:
            error = ListingValidationError(message)
        else:
            error = StorageUnavailableError(message, details={"status_code": resp.status_code})
        return CreateResult.failure(error)

    async def list_properties(self) -> list[PropertyOut]:
        """Current listings, newest first; any transport or server failure yields ``[]``."""
        try:
            resp = await self._http.get("/api/properties")
        except httpx.HTTPError as exc:
            logger.warning("workflow.refresh.failed", extra={"error_type": exc.__class__.__name__})
            return []

        if resp.status_code != 200:
            logger.warning(
                "workflow.refresh.failed",
                extra={"status_code": resp.status_code, "error": _error_message(resp)},
            )
            return []
        return [PropertyOut.model_validate(item) for item in resp.json()]

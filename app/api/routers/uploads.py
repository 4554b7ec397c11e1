from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile

from app.api.deps import get_blob_store
from app.core.config import settings
from app.core.errors import InvalidInputError
from app.core.logging import get_logger
from app.core.metrics import record_upload_result
from app.schemas.uploads import UploadOut
from app.services import uploads as upload_service
from app.services.blob_store import BinaryObjectStore

logger = get_logger(__name__)
router = APIRouter(tags=["images"])

# multipart/form-data with a single ``file`` part
UPLOAD_REQUEST_BODY = {
    "content": {
        "multipart/form-data": {
            "schema": {
                "type": "object",
                "properties": {"file": {"type": "string", "format": "binary"}},
            }
        }
    }
}


@router.post("/upload", response_model=UploadOut, openapi_extra={"requestBody": UPLOAD_REQUEST_BODY})
async def upload_image(
    request: Request,
    store: BinaryObjectStore = Depends(get_blob_store),
):
    async with request.form() as form:
        file = form.get("file")
        # a plain text field under ``file`` is treated like a missing part
        if not isinstance(file, UploadFile) or not file.filename:
            record_upload_result(outcome="rejected")
            raise InvalidInputError("No file uploaded")

        filename, content_type = file.filename, file.content_type
        # one byte past the limit is enough to reject without buffering the rest
        data = await file.read(settings.upload_max_bytes + 1)
        declared_size = file.size or 0

    upload_service.validate_upload(
        filename=filename,
        content_type=content_type,
        size=max(len(data), declared_size),
        max_bytes=settings.upload_max_bytes,
    )

    logger.info(
        "upload.received",
        extra={
            "request_id": getattr(request.state, "request_id", "-"),
            "upload_filename": filename,
            "size_bytes": len(data),
            "content_type": content_type,
        },
    )

    file_id = await upload_service.store_upload(
        store,
        filename=filename,
        data=data,
        content_type=content_type or "",
        timeout_seconds=settings.upload_timeout_seconds,
    )
    return UploadOut(file_id=file_id)

from __future__ import annotations

import asyncio
import time
from functools import partial

from app.core.errors import InvalidInputError, UploadFailedError, UploadTimeoutError
from app.core.logging import get_logger
from app.core.metrics import record_upload_result
from app.services.blob_store import BinaryObjectStore

logger = get_logger(__name__)


def validate_upload(*, filename: str | None, content_type: str | None, size: int, max_bytes: int) -> None:
    if size > max_bytes:
        record_upload_result(outcome="rejected")
        raise InvalidInputError(
            f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB",
            details={"filename": filename, "size": size, "max_bytes": max_bytes},
        )

    if not (content_type or "").startswith("image/"):
        record_upload_result(outcome="rejected")
        raise InvalidInputError(
            "Only image files are allowed",
            details={"filename": filename, "content_type": content_type},
        )


async def store_upload(
    store: BinaryObjectStore,
    *,
    filename: str,
    data: bytes,
    content_type: str,
    timeout_seconds: float,
) -> str:
    """Write an already-validated upload to ``store`` within ``timeout_seconds``.

    The write runs on the loop's default executor. On timeout the worker is
    abandoned rather than interrupted, so it may still finish and leave an
    object nobody references.
    """
    loop = asyncio.get_running_loop()
    start = time.perf_counter()
    log_context = {"upload_filename": filename, "size_bytes": len(data), "content_type": content_type}

    try:
        object_id = await asyncio.wait_for(
            loop.run_in_executor(None, partial(store.put, filename, data, content_type)),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        record_upload_result(outcome="timeout")
        logger.error("upload.timeout", extra={**log_context, "timeout_seconds": timeout_seconds})
        raise UploadTimeoutError("Upload failed", details={"reason": "timeout"}) from exc
    except Exception as exc:
        record_upload_result(outcome="failed")
        logger.exception(
            "upload.store_failed",
            extra={**log_context, "error_type": exc.__class__.__name__},
        )
        raise UploadFailedError("Upload failed") from exc

    record_upload_result(outcome="stored")
    logger.info(
        "upload.stored",
        extra={
            **log_context,
            "image_id": object_id,
            "duration_ms": int((time.perf_counter() - start) * 1000),
        },
    )
    return object_id

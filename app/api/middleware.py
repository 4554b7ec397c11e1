from __future__ import annotations

import time
import uuid
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.logging import get_logger
from app.core.metrics import record_request_latency
from app.core.request_context import request_id_scope

logger = get_logger("app.request")

try:
    import sentry_sdk as _sentry_sdk

    sentry_sdk: Any | None = _sentry_sdk
except Exception:  # pragma: no cover - optional dependency
    sentry_sdk = None


def _route_template(request: Request) -> str:
    # /api/image/{image_id} rather than one label per image id
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        with request_id_scope(request_id):
            start = time.perf_counter()
            logger.info(
                "request.start",
                extra={"request_id": request_id, "method": request.method, "path": request.url.path},
            )

            if sentry_sdk is not None:
                sentry_sdk.set_tag("request_id", request_id)

            try:
                response = await call_next(request)
            except Exception:
                duration_seconds = time.perf_counter() - start
                logger.exception(
                    "request.unhandled_exception",
                    extra={
                        "request_id": request_id,
                        "method": request.method,
                        "path": request.url.path,
                        "duration_ms": int(duration_seconds * 1000),
                    },
                )
                record_request_latency(
                    method=request.method,
                    path=_route_template(request),
                    status_code=500,
                    duration_seconds=duration_seconds,
                )
                raise

            duration_seconds = time.perf_counter() - start
            logger.info(
                "request.end",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": int(duration_seconds * 1000),
                },
            )
            record_request_latency(
                method=request.method,
                path=_route_template(request),
                status_code=response.status_code,
                duration_seconds=duration_seconds,
            )

            response.headers["x-request-id"] = request_id
            return response

# app/main.py
from __future__ import annotations

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.middleware import RequestIDMiddleware
from app.api.routers.geocode import router as geocode_router
from app.api.routers.health import router as health_router
from app.api.routers.images import router as images_router
from app.api.routers.properties import router as properties_router
from app.api.routers.uploads import router as uploads_router
from app.core.config import settings
from app.core.error_reporting import configure_error_reporting
from app.core.errors import EstateError, error_payload
from app.core.logging import configure_logging, get_logger
from app.db.base import Database
from app.providers.base import Geocoder
from app.providers.nominatim import NominatimGeocoder
from app.services.blob_store import BinaryObjectStore

logger = get_logger(__name__)


def _request_context(request: Request, *, status_code: int, code: str) -> dict[str, object]:
    return {
        "request_id": getattr(request.state, "request_id", "-"),
        "method": request.method,
        "path": str(request.url.path),
        "status_code": status_code,
        "internal_error_code": code,
    }


def create_app(
    *,
    logging_replace_handlers: bool | None = None,
    database: Database | None = None,
    geocoder: Geocoder | None = None,
) -> FastAPI:
    if logging_replace_handlers is None:
        logging_replace_handlers = settings.environment.lower() != "test"

    configure_logging(
        level=settings.log_level,
        json_logs=settings.json_logs,
        replace_handlers=logging_replace_handlers,
    )
    configure_error_reporting(settings)

    if database is None:
        database = Database.from_settings(settings)
    if settings.db_create_all:
        database.create_all()

    logger.info(
        "app.startup",
        extra={
            "app_name": settings.app_name,
            "environment": settings.environment,
            "json_logs": settings.json_logs,
            "upload_max_bytes": settings.upload_max_bytes,
            "upload_timeout_seconds": settings.upload_timeout_seconds,
        },
    )

    app = FastAPI(title=settings.app_name)
    app.state.database = database
    app.state.blob_store = BinaryObjectStore(
        database,
        chunk_size=settings.blob_chunk_size_bytes,
        compress_threshold=settings.upload_compress_threshold_bytes,
    )
    app.state.geocoder = geocoder or NominatimGeocoder()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_methods=settings.cors_allowed_methods,
        allow_headers=settings.cors_allowed_headers,
        allow_credentials=settings.cors_allow_credentials,
    )
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(EstateError)
    async def estate_error_handler(request: Request, exc: EstateError):
        context = _request_context(request, status_code=exc.status_code, code=exc.code)
        if exc.status_code >= 500:
            logger.error("http.error.server", extra={**context, "event_name": "http.error.server"})
        else:
            logger.info("http.error.client", extra={**context, "event_name": "http.error.client"})

        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(
                message=exc.message,
                code=exc.code,
                status=exc.status_code,
                details=jsonable_encoder(exc.details) if exc.details is not None else None,
            ),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        message = detail if isinstance(detail, str) else "request failed"
        details = None if isinstance(detail, str) else jsonable_encoder(detail)

        if exc.status_code >= 500:
            logger.error(
                "http.exception.server",
                extra={
                    **_request_context(request, status_code=exc.status_code, code="http_error"),
                    "event_name": "http.exception.server",
                },
            )

        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(message=message, code="http_error", status=exc.status_code, details=details),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info(
            "request.validation_error",
            extra={
                **_request_context(request, status_code=422, code="validation_error"),
                "event_name": "request.validation_error",
            },
        )
        return JSONResponse(
            status_code=422,
            content=error_payload(
                message="validation error",
                code="validation_error",
                status=422,
                details=jsonable_encoder(exc.errors()),
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "http.exception.unhandled",
            exc_info=exc,
            extra={
                **_request_context(request, status_code=500, code="internal_error"),
                "error_type": exc.__class__.__name__,
            },
        )
        return JSONResponse(
            status_code=500,
            content=error_payload(message="internal error", code="internal_error", status=500),
        )

    app.include_router(health_router)
    app.include_router(uploads_router, prefix="/api")
    app.include_router(images_router, prefix="/api")
    app.include_router(properties_router, prefix="/api")
    app.include_router(geocode_router, prefix="/api")

    return app


app = create_app()

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import get_database
from app.core.logging import get_logger
from app.core.metrics import metrics_payload
from app.db.base import Database

logger = get_logger(__name__)
router = APIRouter(tags=["health"])
READINESS_PROBE_TIMEOUT_SECONDS = 1.0

# shared across probes: a hung SELECT holds a worker, not the request
_probe_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="readyz")


@router.get("/healthz")
def healthz():
    return {"status": "ok"}


@router.get("/readyz")
def readyz(request: Request, database: Database = Depends(get_database)):
    request_id = getattr(request.state, "request_id", "-")

    db_ok, db_reason = _probe_db(database, timeout_seconds=READINESS_PROBE_TIMEOUT_SECONDS)
    checks = {"db": _probe_status(db_ok, db_reason)}

    if not db_ok:
        logger.error(
            "health.ready.dependency_failed",
            extra={"request_id": request_id, "checks": checks},
        )
        raise HTTPException(
            status_code=503,
            detail={
                "status": "not_ready",
                "reason": "required dependency checks failed",
                "checks": checks,
            },
        )

    return {"status": "ready", "checks": checks}


def _probe_status(ok: bool, reason: str | None) -> dict[str, str]:
    if ok:
        return {"status": "ok"}
    return {"status": "failed", "reason": reason or "probe failed"}


def _select_one(database: Database) -> None:
    with database.engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def _probe_db(database: Database, *, timeout_seconds: float) -> tuple[bool, str | None]:
    future = _probe_executor.submit(_select_one, database)
    try:
        future.result(timeout=timeout_seconds)
    except TimeoutError:
        return False, f"db readiness probe timed out after {timeout_seconds:.1f}s"
    except SQLAlchemyError as exc:
        return False, f"db readiness probe failed: {exc.__class__.__name__}"
    return True, None


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    payload, content_type = metrics_payload()
    return Response(content=payload, media_type=content_type)

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import ListingValidationError, StorageUnavailableError
from app.core.logging import get_logger
from app.core.metrics import record_property_write
from app.core.results import CreateResult
from app.db import models
from app.schemas.properties import PropertyCreate

logger = get_logger(__name__)


def list_properties(db: Session) -> list[models.Property]:
    """All listings, newest first. Storage failures degrade to an empty list."""
    stmt = select(models.Property).order_by(models.Property.created_at.desc(), models.Property.id.desc())
    try:
        return list(db.execute(stmt).scalars())
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "properties.list.degraded",
            extra={"error_type": exc.__class__.__name__, "error": str(exc)},
        )
        return []


def _coerce_payload(payload: PropertyCreate | Mapping[str, Any]) -> PropertyCreate:
    if isinstance(payload, PropertyCreate):
        return payload
    try:
        return PropertyCreate.model_validate(dict(payload))
    except ValidationError as exc:
        raise ListingValidationError(
            "listing failed validation",
            details=exc.errors(include_url=False, include_context=False),
        ) from exc


def create_property(
    db: Session, payload: PropertyCreate | Mapping[str, Any]
) -> CreateResult[models.Property]:
    try:
        data = _coerce_payload(payload)
    except ListingValidationError as exc:
        record_property_write(outcome="invalid")
        logger.info("properties.create.invalid", extra={"errors": exc.details})
        return CreateResult.failure(exc)

    values = data.model_dump(exclude_none=True)
    prop = models.Property(**values)

    try:
        db.add(prop)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        record_property_write(outcome="failed")
        logger.error(
            "properties.create.failed",
            extra={"error_type": exc.__class__.__name__, "error": str(exc), "listing_name": data.name},
        )
        return CreateResult.failure(StorageUnavailableError("listing could not be saved"))

    record_property_write(outcome="created")
    logger.info(
        "properties.create.ok",
        extra={"property_id": prop.id, "image_count": len(prop.images)},
    )
    return CreateResult.success(prop)

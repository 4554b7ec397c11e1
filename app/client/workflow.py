"""Client-side orchestration of "post a listing".

One :meth:`CreatePropertyWorkflow.submit` call uploads the form's images in
parallel, resolves coordinates, writes the listing and refetches the listing
collection. Progress is reported at fixed checkpoints so a UI can drive a bar:

    IDLE -> UPLOADING (10) -> (60) -> GEOCODING (70) -> PERSISTING (80) -> IDLE (100)

Any failure returns the workflow to IDLE and propagates, except a failed
listing write: that one is absorbed into a locally fabricated ``mock_`` record
so the user still sees their listing. The fabricated record is not persisted
anywhere and disappears on the next refresh; this trades consistency for
visible progress and should be revisited before relying on it.
"""

from __future__ import annotations

import asyncio
import enum
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from app.client.api import EstateApiClient, ImageUpload
from app.core.errors import EstateError, InvalidInputError
from app.core.logging import get_logger
from app.providers.base import SELECTED_LOCATION_LABEL, Geocoder, GeocodingError
from app.schemas.properties import PLACEHOLDER_IMAGE_IDS, PropertyOut

logger = get_logger(__name__)


class WorkflowState(str, enum.Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    GEOCODING = "geocoding"
    PERSISTING = "persisting"


ProgressCallback = Callable[[int, WorkflowState], None]


@dataclass
class PropertyForm:
    """Raw form state. Numeric fields stay strings until submit, as typed by the user."""

    name: str = ""
    location: str = ""
    description: str = ""
    price: str = ""
    beds: str = ""
    baths: str = ""
    area: str = ""
    files: list[ImageUpload | None] = field(default_factory=list)
    # point picked on the map; (0, 0) means none
    lat: float = 0.0
    lng: float = 0.0
    # reverse-geocoded label of the picked point
    location_name: str = ""

    @property
    def has_point(self) -> bool:
        return not (self.lat == 0 and self.lng == 0)


@dataclass(frozen=True)
class SubmissionResult:
    listing: PropertyOut
    listings: list[PropertyOut]
    persisted: bool
    error: EstateError | None = None


def _to_number(field_name: str, raw: str | float | int | None) -> float:
    if raw is None:
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = raw.strip()
        if not text:
            return 0.0
        try:
            value = float(text)
        except ValueError:
            raise InvalidInputError(f"{field_name} must be a number", details={field_name: raw}) from None
    if not math.isfinite(value):
        raise InvalidInputError(f"{field_name} must be a finite number", details={field_name: raw})
    return value


def _to_count(field_name: str, raw: str | float | int | None) -> int:
    value = _to_number(field_name, raw)
    if not value.is_integer():
        raise InvalidInputError(f"{field_name} must be a whole number", details={field_name: raw})
    return int(value)


def _mock_listing(payload: dict[str, Any]) -> PropertyOut:
    now = datetime.now(UTC)
    return PropertyOut.model_validate(
        {
            **payload,
            "id": f"mock_{int(now.timestamp() * 1000)}",
            "createdAt": now,
        }
    )


class CreatePropertyWorkflow:
    def __init__(
        self,
        api: EstateApiClient,
        geocoder: Geocoder | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._api = api
        self._geocoder = geocoder
        self._on_progress = on_progress
        self.state = WorkflowState.IDLE
        self.progress = 0

    def _checkpoint(self, progress: int, state: WorkflowState | None = None) -> None:
        if state is not None:
            self.state = state
        self.progress = progress
        if self._on_progress is not None:
            self._on_progress(progress, self.state)

    async def pick_location(self, form: PropertyForm, lat: float, lng: float) -> str:
        """Record a map pick on ``form`` and label it via reverse geocoding."""
        form.lat, form.lng = lat, lng
        label = SELECTED_LOCATION_LABEL
        if self._geocoder is not None:
            try:
                result = await self._geocoder.reverse(lat, lng)
            except GeocodingError as exc:
                logger.warning("workflow.reverse_geocode.failed", extra={"error": str(exc)})
                result = None
            if result is not None and result.display_name:
                label = result.display_name
        form.location_name = label
        return label

    async def _upload_images(self, files: list[ImageUpload]) -> list[str]:
        start = time.perf_counter()
        # gather keeps slot order; the first failure fails the batch
        image_ids = await asyncio.gather(*(self._api.upload_image(f) for f in files))
        logger.info(
            "workflow.uploads.done",
            extra={"count": len(image_ids), "duration_ms": int((time.perf_counter() - start) * 1000)},
        )
        return list(image_ids)

    async def _resolve_coordinates(self, form: PropertyForm) -> tuple[float, float]:
        if form.has_point:
            return form.lat, form.lng
        if not form.location.strip() or self._geocoder is None:
            return 0.0, 0.0

        try:
            results = await self._geocoder.search(form.location, limit=1)
        except GeocodingError as exc:
            logger.warning("workflow.geocode.failed", extra={"location": form.location, "error": str(exc)})
            return 0.0, 0.0

        if not results:
            logger.info("workflow.geocode.no_match", extra={"location": form.location})
            return 0.0, 0.0
        return results[0].lat, results[0].lng

    @staticmethod
    def numeric_fields(form: PropertyForm) -> dict[str, float | int]:
        return {
            "price": _to_number("price", form.price),
            "beds": _to_count("beds", form.beds),
            "baths": _to_count("baths", form.baths),
            "area": _to_number("area", form.area),
        }

    def compose_payload(
        self, form: PropertyForm, *, image_ids: list[str], lat: float, lng: float
    ) -> dict[str, Any]:
        return {
            "images": list(image_ids),
            "name": form.name,
            "location": form.location_name or form.location,
            "description": form.description,
            "lat": lat,
            "lng": lng,
            "createdAt": datetime.now(UTC).isoformat(),
            **self.numeric_fields(form),
        }

    async def submit(self, form: PropertyForm) -> SubmissionResult:
        if self.state is not WorkflowState.IDLE:
            raise RuntimeError(f"submission already in progress ({self.state.value})")

        start = time.perf_counter()
        self.progress = 0
        try:
            # reject unparseable numbers before anything is uploaded
            self.numeric_fields(form)

            files = [f for f in form.files if f is not None]
            image_ids: list[str] = []
            if files:
                self._checkpoint(10, WorkflowState.UPLOADING)
                image_ids = await self._upload_images(files)
                self._checkpoint(60)

            if not image_ids:
                image_ids = list(PLACEHOLDER_IMAGE_IDS)
            self._checkpoint(70, WorkflowState.GEOCODING)

            lat, lng = await self._resolve_coordinates(form)
            self._checkpoint(80, WorkflowState.PERSISTING)

            payload = self.compose_payload(form, image_ids=image_ids, lat=lat, lng=lng)
            result = await self._api.create_property(payload)
            if result.ok:
                listing = result.unwrap()
            else:
                logger.warning(
                    "workflow.create.fallback_to_mock",
                    extra={"error_code": result.error.code, "error": result.error.message},
                )
                listing = _mock_listing(payload)

            listings = await self._api.list_properties()
            self._checkpoint(100)
        except Exception:
            logger.exception("workflow.submit.failed", extra={"state": self.state.value})
            raise
        finally:
            self.state = WorkflowState.IDLE

        logger.info(
            "workflow.submit.done",
            extra={
                "property_id": listing.id,
                "persisted": result.ok,
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return SubmissionResult(listing=listing, listings=listings, persisted=result.ok, error=result.error)

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_geocoder
from app.core.config import settings
from app.core.logging import get_logger
from app.providers.base import SELECTED_LOCATION_LABEL, Geocoder, GeocodingError
from app.schemas.geocode import GeocodeOut

logger = get_logger(__name__)
router = APIRouter(prefix="/geocode", tags=["geocode"])

MIN_SUGGESTION_QUERY_LENGTH = 3


@router.get("/search", response_model=list[GeocodeOut])
async def search_locations(
    q: str = Query("", max_length=300),
    geocoder: Geocoder = Depends(get_geocoder),
):
    """Location suggestions for free-text entry. Best-effort: failures yield no suggestions."""
    if len(q.strip()) < MIN_SUGGESTION_QUERY_LENGTH:
        return []

    try:
        results = await geocoder.search(q, limit=settings.geocoder_suggestion_limit)
    except GeocodingError as exc:
        logger.warning(
            "geocode.search.failed",
            extra={"geocoder": geocoder.name, "error": str(exc), "status_code": exc.status_code},
        )
        return []

    return [GeocodeOut(display_name=r.display_name, lat=r.lat, lng=r.lng) for r in results]


@router.get("/reverse", response_model=GeocodeOut)
async def reverse_geocode(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    geocoder: Geocoder = Depends(get_geocoder),
):
    try:
        result = await geocoder.reverse(lat, lng)
    except GeocodingError as exc:
        logger.warning(
            "geocode.reverse.failed",
            extra={"geocoder": geocoder.name, "error": str(exc), "status_code": exc.status_code},
        )
        result = None

    label = result.display_name if result and result.display_name else SELECTED_LOCATION_LABEL
    return GeocodeOut(display_name=label, lat=lat, lng=lng)

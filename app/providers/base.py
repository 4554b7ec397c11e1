from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

# label for a picked point the geocoder cannot name
SELECTED_LOCATION_LABEL = "Selected Location"


class GeocodingError(Exception):
    """Raised when a geocoder request fails in a controlled way."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str | None = None,
        duration_ms: int | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint
        self.duration_ms = duration_ms
        self.meta = meta


@dataclass(frozen=True)
class GeocodeResult:
    display_name: str
    lat: float
    lng: float


class Geocoder(Protocol):
    """
    Forward/reverse geocoding interface.
    Anything that implements this can be handed to the geocode router or the creation workflow.
    """

    name: str

    async def search(self, query: str, *, limit: int = 5) -> list[GeocodeResult]:
        """
        Resolve free text into candidate places, best match first.
        Raise GeocodingError on transport or upstream failures.
        """
        raise NotImplementedError

    async def reverse(self, lat: float, lng: float) -> GeocodeResult | None:
        """
        Resolve a coordinate pair into a display name; None when nothing is known there.
        Raise GeocodingError on transport or upstream failures.
        """
        raise NotImplementedError

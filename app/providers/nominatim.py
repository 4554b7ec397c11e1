from __future__ import annotations

import time
from typing import Any

import httpx

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import record_geocoder_call
from app.providers.base import GeocodeResult, Geocoder, GeocodingError

logger = get_logger(__name__)


class NominatimGeocoder(Geocoder):
    """OpenStreetMap Nominatim client. Single attempt per call; callers treat failures as best-effort."""

    name = "nominatim"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.geocoder_base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.geocoder_timeout_seconds
        self._headers = {"User-Agent": user_agent or settings.geocoder_user_agent, "Accept": "application/json"}
        self._transport = transport

    async def _get(self, endpoint: str, params: dict[str, Any]) -> Any:
        url = f"{self.base_url}{endpoint}"
        start = time.perf_counter()

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                resp = await client.get(url, headers=self._headers, params={"format": "json", **params})
        except httpx.HTTPError as e:
            duration_ms = int((time.perf_counter() - start) * 1000)
            raise GeocodingError(
                f"Nominatim network error: {e.__class__.__name__}",
                endpoint=endpoint,
                duration_ms=duration_ms,
            ) from e

        duration_ms = int((time.perf_counter() - start) * 1000)
        if resp.status_code != 200:
            raise GeocodingError(
                f"Nominatim error {resp.status_code}",
                status_code=resp.status_code,
                endpoint=endpoint,
                duration_ms=duration_ms,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise GeocodingError(
                "Nominatim returned invalid JSON",
                status_code=resp.status_code,
                endpoint=endpoint,
                duration_ms=duration_ms,
            ) from e

    @staticmethod
    def _to_result(item: Any) -> GeocodeResult | None:
        if not isinstance(item, dict):
            return None
        try:
            lat = float(item["lat"])
            lng = float(item["lon"])
        except (KeyError, TypeError, ValueError):
            return None
        return GeocodeResult(display_name=str(item.get("display_name") or ""), lat=lat, lng=lng)

    async def search(self, query: str, *, limit: int = 5) -> list[GeocodeResult]:
        q = query.strip()
        if not q:
            return []

        try:
            data = await self._get("/search", {"q": q, "limit": max(limit, 1)})
        except GeocodingError as exc:
            record_geocoder_call(operation="search", error=str(exc), hit=False)
            raise

        results = [r for r in (self._to_result(item) for item in (data if isinstance(data, list) else [])) if r]
        record_geocoder_call(operation="search", error=None, hit=bool(results))
        logger.debug("geocoder.search", extra={"query": q, "results": len(results)})
        return results[:limit]

    async def reverse(self, lat: float, lng: float) -> GeocodeResult | None:
        try:
            data = await self._get("/reverse", {"lat": lat, "lon": lng})
        except GeocodingError as exc:
            record_geocoder_call(operation="reverse", error=str(exc), hit=False)
            raise

        if not isinstance(data, dict) or "error" in data:
            record_geocoder_call(operation="reverse", error=None, hit=False)
            return None

        record_geocoder_call(operation="reverse", error=None, hit=True)
        return GeocodeResult(display_name=str(data.get("display_name") or ""), lat=lat, lng=lng)

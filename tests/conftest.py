from __future__ import annotations

import os
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

# --- Force test settings early (before app import) ---
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("GEOCODER_BASE_URL", "http://geocoder.test")

from app.db.base import Database  # noqa: E402
from app.main import create_app  # noqa: E402
from app.providers.base import GeocodeResult, GeocodingError  # noqa: E402


class FakeGeocoder:
    name = "fake"

    def __init__(self) -> None:
        self.places: dict[str, list[GeocodeResult]] = {}
        self.labels: dict[tuple[float, float], str] = {}
        self.error: GeocodingError | None = None
        self.calls: list[tuple[str, object]] = []

    async def search(self, query: str, *, limit: int = 5) -> list[GeocodeResult]:
        self.calls.append(("search", query))
        if self.error is not None:
            raise self.error
        return self.places.get(query, [])[:limit]

    async def reverse(self, lat: float, lng: float) -> GeocodeResult | None:
        self.calls.append(("reverse", (lat, lng)))
        if self.error is not None:
            raise self.error
        label = self.labels.get((lat, lng))
        return GeocodeResult(display_name=label, lat=lat, lng=lng) if label else None


@pytest.fixture()
def database(tmp_path) -> Iterator[Database]:
    db = Database(f"sqlite+pysqlite:///{tmp_path / 'estate.db'}")
    db.create_all()
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture()
def broken_database(tmp_path) -> Iterator[Database]:
    """A reachable database without any tables: every query fails."""
    db = Database(f"sqlite+pysqlite:///{tmp_path / 'empty.db'}")
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture()
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture()
def app(database: Database, geocoder: FakeGeocoder):
    return create_app(database=database, geocoder=geocoder)


@pytest.fixture()
def client(app) -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def blob_store(app):
    return app.state.blob_store


@pytest.fixture()
def jpeg_bytes():
    def _jpeg_bytes(size: int) -> bytes:
        # JPEG-ish header followed by a repeating, compressible body
        header = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00"
        body = bytes(i % 251 for i in range(size))
        return (header + body)[:size]

    return _jpeg_bytes
